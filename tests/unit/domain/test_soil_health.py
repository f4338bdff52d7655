# tests/unit/domain/test_soil_health.py
from __future__ import annotations

from decimal import Decimal

import pytest

from ecometrics_api.domain.enums.analytics import (
    ConfidenceLevel,
    DegradationStatus,
    TrendDirection,
    VegetationClass,
)
from ecometrics_api.domain.services.soil_health import (
    DegradationInputs,
    assess_degradation,
    assess_permanence,
    build_soil_health,
    classify_ndvi,
    classify_soc_trend,
    risk_level,
)


def _d(*values: str | int) -> list[Decimal]:
    return [Decimal(str(v)) for v in values]


@pytest.mark.parametrize(
    ("ndvi", "expected"),
    [
        ("0.61", VegetationClass.EXCELLENT),
        ("0.6", VegetationClass.GOOD),
        ("0.41", VegetationClass.GOOD),
        ("0.4", VegetationClass.MODERATE),
        ("0.2", VegetationClass.POOR),
        (None, VegetationClass.UNKNOWN),
    ],
)
def test_classify_ndvi(ndvi: str | None, expected: VegetationClass) -> None:
    assert classify_ndvi(None if ndvi is None else Decimal(ndvi)) is expected


def test_soc_trend_uses_two_percent_threshold() -> None:
    assert classify_soc_trend(_d(50, 51)) == (TrendDirection.STABLE, Decimal(2))
    assert classify_soc_trend(_d(50, "51.5"))[0] is TrendDirection.IMPROVING
    assert classify_soc_trend(_d(50, 48))[0] is TrendDirection.DECLINING
    assert classify_soc_trend(_d(50)) == (TrendDirection.UNKNOWN, None)


def test_permanence_ratings() -> None:
    high = assess_permanence(_d(40, 41, 42))
    medium = assess_permanence(_d(40, 44, 40))
    low = assess_permanence(_d(50, 40, 30))
    unknown = assess_permanence(_d(40, 41))

    assert (high.rating, high.score, high.risk) == (ConfidenceLevel.HIGH, 85, ConfidenceLevel.LOW)
    assert (medium.rating, medium.score) == (ConfidenceLevel.MEDIUM, 65)
    assert (low.rating, low.score, low.risk) == (ConfidenceLevel.LOW, 40, ConfidenceLevel.HIGH)
    assert unknown.rating is ConfidenceLevel.INSUFFICIENT_DATA
    assert unknown.score is None


@pytest.mark.parametrize(
    ("score", "expected"),
    [
        (70, ConfidenceLevel.HIGH),
        (69, ConfidenceLevel.MEDIUM),
        (30, ConfidenceLevel.MEDIUM),
        (29, ConfidenceLevel.LOW),
        (None, ConfidenceLevel.INSUFFICIENT_DATA),
    ],
)
def test_risk_level(score: int | None, expected: ConfidenceLevel) -> None:
    assert risk_level(score) is expected


def test_degradation_with_every_risk_factor() -> None:
    result = assess_degradation(
        DegradationInputs(
            soc_mean=Decimal(15), ndvi_mean=Decimal("0.3"), erosion_latest=Decimal(6)
        )
    )

    assert result.risk_factors == (
        "low_soil_organic_carbon",
        "low_vegetation_cover",
        "soil_erosion",
    )
    assert result.degradation_score == 100
    assert result.degradation_status is DegradationStatus.HIGH_RISK
    assert result.regeneration_score == 50
    assert result.regeneration_level is ConfidenceLevel.MEDIUM


def test_erosion_alone_is_a_factor_without_extra_score() -> None:
    result = assess_degradation(DegradationInputs(erosion_latest=Decimal(6)))

    assert result.risk_factors == ("soil_erosion",)
    assert result.degradation_score == 50
    assert result.degradation_status is DegradationStatus.MODERATE_RISK


def test_degradation_without_inputs_is_insufficient() -> None:
    result = assess_degradation(DegradationInputs(max_monthly_samples=6, verified=True))

    assert result.degradation_score is None
    assert result.degradation_status is DegradationStatus.INSUFFICIENT_DATA
    assert result.regeneration_score == 85
    assert result.regeneration_level is ConfidenceLevel.HIGH


def test_regeneration_is_capped() -> None:
    result = assess_degradation(
        DegradationInputs(max_monthly_samples=12, verified=True, improving=True)
    )

    assert result.regeneration_score == 100


def test_build_soil_health() -> None:
    indicators = build_soil_health(
        soc_values=_d(40, 41, 42),
        ndvi_values=_d("0.5", "0.7"),
        sequestration_rates=_d(2, 2, 3, 3),
    )

    assert indicators.soc_trend is TrendDirection.IMPROVING
    assert indicators.soc_change_percent == Decimal(5)
    assert indicators.permanence.rating is ConfidenceLevel.HIGH
    assert indicators.mean_ndvi == Decimal("0.6")
    assert indicators.vegetation_class is VegetationClass.GOOD
    assert indicators.sequestration_trend is TrendDirection.IMPROVING
    assert indicators.sequestration_rate == Decimal(3)


def test_build_soil_health_without_data() -> None:
    indicators = build_soil_health([], [], [])

    assert indicators.soc_trend is TrendDirection.UNKNOWN
    assert indicators.vegetation_class is VegetationClass.UNKNOWN
    assert indicators.sequestration_rate is None
