# src/ecometrics_api/domain/services/sequestration_forecast.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Linear sequestration forecast.

Purpose:
    Project per-area carbon sequestration rates and totals forward from the
    most recent years of history, and derive indicative carbon credits.

Layer:
    domain/services

Method:
    1. Keep observations within the last three calendar years (latest year
       and the two before it) and, among those, rates strictly above zero.
    2. ``mean_rate`` is the mean of the kept rates.
    3. ``growth`` is the percentage change from the oldest to the newest kept
       rate divided by ``n - 1``.
    4. For ``t = 1..N``: ``rate(t) = mean_rate * (1 + growth / 100) ** t`` and
       ``total(t) = rate(t) * latest_area``; with no known area the projection
       assumes a single hectare.
    5. Credits are ``max(0, total(t))`` (one credit per tCO2e) valued at the
       configured price.

    Fewer than two usable years yields ``None``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Final

from ecometrics_api.domain.entities.analytics import (
    ForecastEligibility,
    ForecastPoint,
    SequestrationForecast,
)
from ecometrics_api.domain.enums.analytics import ConfidenceLevel
from ecometrics_api.domain.services.numeric import HUNDRED, ZERO, mean
from ecometrics_api.domain.services.trend_analysis import percentage_change

__all__ = [
    "SequestrationObservation",
    "forecast_sequestration",
    "RECENT_WINDOW_YEARS",
    "DEFAULT_AREA_HA",
]

RECENT_WINDOW_YEARS: Final[int] = 3
MINIMUM_MONITORING_MONTHS: Final[int] = 6
DEFAULT_AREA_HA: Final[Decimal] = Decimal(1)


@dataclass(frozen=True, slots=True)
class SequestrationObservation:
    """One historical year of sequestration data.

    Attributes:
        year: Calendar year.
        rate: Sequestration per hectare (tCO2e/ha), if known.
        area: Monitored area (ha), if known.
        monthly_sample_count: Number of monthly samples recorded that year.
        verified: Whether the year's data is verified or audited.
    """

    year: int
    rate: Decimal | None
    area: Decimal | None = None
    monthly_sample_count: int = 0
    verified: bool = False


def forecast_sequestration(
    observations: Sequence[SequestrationObservation],
    *,
    years_ahead: int,
    credit_price_usd: Decimal,
    permanence: ConfidenceLevel = ConfidenceLevel.INSUFFICIENT_DATA,
) -> SequestrationForecast | None:
    """Project sequestration ``years_ahead`` years past the latest observation.

    Args:
        observations: Historical observations, in any order.
        years_ahead: Number of future years to project (>= 1).
        credit_price_usd: Price of one carbon credit.
        permanence: Carbon stock permanence rating, used for eligibility.

    Returns:
        The forecast, or ``None`` with fewer than two usable years.
    """
    if not observations or years_ahead < 1:
        return None

    latest_year = max(o.year for o in observations)
    recent = sorted(
        (o for o in observations if o.year > latest_year - RECENT_WINDOW_YEARS),
        key=lambda o: o.year,
        reverse=True,
    )
    rates = [o.rate for o in recent if o.rate is not None and o.rate > 0]
    if len(rates) < 2:
        return None

    area = _latest_area(observations)
    mean_rate = mean(rates) or ZERO
    latest_rate, oldest_rate = rates[0], rates[-1]
    growth = percentage_change(oldest_rate, latest_rate) / Decimal(len(rates) - 1)
    confidence = ConfidenceLevel.MEDIUM if growth != 0 else ConfidenceLevel.LOW

    factor = Decimal(1) + growth / HUNDRED
    points: list[ForecastPoint] = []
    for offset in range(1, years_ahead + 1):
        rate = mean_rate * factor**offset
        total = rate * area
        credits = max(ZERO, total)
        points.append(
            ForecastPoint(
                year=latest_year + offset,
                sequestration_rate=rate,
                total_sequestration=total,
                carbon_credits=credits,
                credit_value_usd=credits * credit_price_usd,
                confidence=confidence,
            )
        )

    eligibility = ForecastEligibility(
        minimum_permanence=permanence
        not in (ConfidenceLevel.LOW, ConfidenceLevel.INSUFFICIENT_DATA),
        minimum_monitoring=any(
            o.monthly_sample_count >= MINIMUM_MONITORING_MONTHS for o in observations
        ),
        verification_status=any(o.verified for o in observations),
        positive_sequestration=mean_rate > 0,
    )
    return SequestrationForecast(
        baseline_year=latest_year,
        baseline_rate=mean_rate,
        annual_growth_rate_percent=growth,
        projected_area=area,
        points=tuple(points),
        eligibility=eligibility,
    )


def _latest_area(observations: Sequence[SequestrationObservation]) -> Decimal:
    for obs in sorted(observations, key=lambda o: o.year, reverse=True):
        if obs.area is not None and obs.area > 0:
            return obs.area
    return DEFAULT_AREA_HA
