# tests/unit/domain/test_sequestration_forecast.py
from __future__ import annotations

from decimal import Decimal

from ecometrics_api.domain.enums.analytics import ConfidenceLevel
from ecometrics_api.domain.services.sequestration_forecast import (
    DEFAULT_AREA_HA,
    SequestrationObservation,
    forecast_sequestration,
)

_PRICE = Decimal(20)


def _history() -> list[SequestrationObservation]:
    return [
        SequestrationObservation(year=2022, rate=Decimal(5)),
        SequestrationObservation(year=2021, rate=Decimal(4), area=Decimal(100)),
        SequestrationObservation(
            year=2023,
            rate=Decimal(6),
            area=Decimal(120),
            monthly_sample_count=6,
            verified=True,
        ),
    ]


def test_projects_growth_from_recent_rates() -> None:
    forecast = forecast_sequestration(
        _history(), years_ahead=2, credit_price_usd=_PRICE, permanence=ConfidenceLevel.HIGH
    )

    assert forecast is not None
    assert forecast.baseline_year == 2023
    assert forecast.baseline_rate == Decimal(5)
    # (6 - 4) / 4 * 100 spread over two intervals.
    assert forecast.annual_growth_rate_percent == Decimal(25)
    assert forecast.projected_area == Decimal(120)

    first, second = forecast.points
    assert first.year == 2024
    assert first.sequestration_rate == Decimal("6.25")
    assert first.total_sequestration == Decimal(750)
    assert first.credit_value_usd == Decimal(15000)
    assert first.confidence is ConfidenceLevel.MEDIUM
    assert second.year == 2025
    assert second.sequestration_rate == Decimal("7.8125")
    assert second.total_sequestration == Decimal("937.5")
    assert forecast.total_potential_credits == Decimal("1687.5")
    assert forecast.total_potential_value_usd == Decimal(33750)
    assert forecast.eligibility.eligible


def test_only_the_recent_window_feeds_the_rate() -> None:
    history = [
        SequestrationObservation(year=2015, rate=Decimal(100), area=Decimal(5)),
        SequestrationObservation(year=2022, rate=Decimal(5)),
        SequestrationObservation(year=2023, rate=Decimal(6), area=Decimal(10)),
    ]

    forecast = forecast_sequestration(history, years_ahead=1, credit_price_usd=_PRICE)

    assert forecast is not None
    assert forecast.baseline_rate == Decimal("5.5")
    assert forecast.annual_growth_rate_percent == Decimal(20)


def test_flat_rates_have_low_confidence() -> None:
    history = [
        SequestrationObservation(year=2022, rate=Decimal(5), area=Decimal(10)),
        SequestrationObservation(year=2023, rate=Decimal(5)),
    ]

    forecast = forecast_sequestration(history, years_ahead=1, credit_price_usd=_PRICE)

    assert forecast is not None
    assert forecast.annual_growth_rate_percent == Decimal(0)
    assert forecast.points[0].confidence is ConfidenceLevel.LOW


def test_eligibility_requires_permanence_monitoring_and_verification() -> None:
    history = [
        SequestrationObservation(year=2022, rate=Decimal(5), area=Decimal(10)),
        SequestrationObservation(year=2023, rate=Decimal(6), monthly_sample_count=3),
    ]

    forecast = forecast_sequestration(history, years_ahead=1, credit_price_usd=_PRICE)

    assert forecast is not None
    eligibility = forecast.eligibility
    assert not eligibility.minimum_permanence
    assert not eligibility.minimum_monitoring
    assert not eligibility.verification_status
    assert eligibility.positive_sequestration
    assert not eligibility.eligible


def test_insufficient_history_yields_none() -> None:
    one_rate = [
        SequestrationObservation(year=2022, rate=Decimal(0), area=Decimal(10)),
        SequestrationObservation(year=2023, rate=Decimal(6), area=Decimal(10)),
    ]

    assert forecast_sequestration(one_rate, years_ahead=3, credit_price_usd=_PRICE) is None
    assert forecast_sequestration([], years_ahead=3, credit_price_usd=_PRICE) is None
    assert forecast_sequestration(_history(), years_ahead=0, credit_price_usd=_PRICE) is None


def test_missing_area_projects_per_hectare() -> None:
    observations = [
        SequestrationObservation(year=2022, rate=Decimal(5)),
        SequestrationObservation(year=2023, rate=Decimal(6)),
    ]

    forecast = forecast_sequestration(observations, years_ahead=1, credit_price_usd=_PRICE)

    assert forecast is not None
    assert forecast.projected_area == DEFAULT_AREA_HA
    (point,) = forecast.points
    assert point.sequestration_rate == Decimal("6.6")
    assert point.total_sequestration == Decimal("6.6")
    assert point.credit_value_usd == Decimal("132")
