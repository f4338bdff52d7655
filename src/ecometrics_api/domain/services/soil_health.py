# src/ecometrics_api/domain/services/soil_health.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Soil, vegetation, and land degradation classification.

Purpose:
    Bucket raw aggregates (soil organic carbon, NDVI, erosion, sequestration
    rates) into ordinal labels using fixed cutoffs, and derive the degradation
    and regeneration assessments built on them.

Layer:
    domain/services

Cutoffs:
    * NDVI mean: > 0.6 Excellent, > 0.4 Good, > 0.2 Moderate, else Poor.
    * SOC trend: percentage change beyond +/-2%.
    * Permanence (>= 3 SOC values): variance < 5 and change > 0 -> high (85,
      low risk); variance < 15 and change >= 0 -> medium (65, medium risk);
      otherwise low (40, high risk).
    * Risk level from a 0-100 score: >= 70 high, >= 30 medium, else low.
    * Degradation: base 50, +20 SOC mean < 20 tC/ha, +20 NDVI mean < 0.4,
      +10 when more than two risk factors; >= 70 high_risk, >= 50
      moderate_risk, else low_risk.
    * Regeneration: base 50, +20 for >= 6 monthly samples, +15 verified,
      +15 improvements; >= 70 high, >= 50 medium, else low.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Final

from ecometrics_api.domain.entities.analytics import (
    DegradationAssessment,
    PermanenceAssessment,
    SoilHealthIndicators,
)
from ecometrics_api.domain.enums.analytics import (
    ConfidenceLevel,
    DegradationStatus,
    TrendDirection,
    VegetationClass,
)
from ecometrics_api.domain.services.numeric import mean, population_variance
from ecometrics_api.domain.services.trend_analysis import (
    classify_trend,
    half_mean_trend,
    percentage_change,
)

__all__ = [
    "SOC_TREND_THRESHOLD_PCT",
    "classify_ndvi",
    "classify_soc_trend",
    "assess_permanence",
    "risk_level",
    "DegradationInputs",
    "assess_degradation",
    "build_soil_health",
]

SOC_TREND_THRESHOLD_PCT: Final[Decimal] = Decimal(2)
SOC_DEGRADATION_THRESHOLD: Final[Decimal] = Decimal(20)
NDVI_DEGRADATION_THRESHOLD: Final[Decimal] = Decimal("0.4")
EROSION_RISK_THRESHOLD: Final[Decimal] = Decimal(5)

_NDVI_BANDS: Final[tuple[tuple[Decimal, VegetationClass], ...]] = (
    (Decimal("0.6"), VegetationClass.EXCELLENT),
    (Decimal("0.4"), VegetationClass.GOOD),
    (Decimal("0.2"), VegetationClass.MODERATE),
)


def classify_ndvi(mean_ndvi: Decimal | None) -> VegetationClass:
    """Classify vegetation condition from a mean NDVI value."""
    if mean_ndvi is None:
        return VegetationClass.UNKNOWN
    for floor, label in _NDVI_BANDS:
        if mean_ndvi > floor:
            return label
    return VegetationClass.POOR


def classify_soc_trend(values: Sequence[Decimal]) -> tuple[TrendDirection, Decimal | None]:
    """Classify the soil organic carbon trend between first and last value."""
    if len(values) < 2:
        return TrendDirection.UNKNOWN, None
    pct = percentage_change(values[0], values[-1])
    return classify_trend(pct, SOC_TREND_THRESHOLD_PCT), pct


def assess_permanence(values: Sequence[Decimal]) -> PermanenceAssessment:
    """Rate carbon stock permanence from chronologically ordered SOC values."""
    if len(values) < 3:
        return PermanenceAssessment(
            rating=ConfidenceLevel.INSUFFICIENT_DATA,
            score=None,
            risk=ConfidenceLevel.INSUFFICIENT_DATA,
        )
    variance = population_variance(values)
    change = values[-1] - values[0]
    if variance is not None and variance < 5 and change > 0:
        return PermanenceAssessment(ConfidenceLevel.HIGH, 85, ConfidenceLevel.LOW)
    if variance is not None and variance < 15 and change >= 0:
        return PermanenceAssessment(ConfidenceLevel.MEDIUM, 65, ConfidenceLevel.MEDIUM)
    return PermanenceAssessment(ConfidenceLevel.LOW, 40, ConfidenceLevel.HIGH)


def risk_level(score: Decimal | int | None) -> ConfidenceLevel:
    """Map a 0-100 risk score onto low/medium/high."""
    if score is None:
        return ConfidenceLevel.INSUFFICIENT_DATA
    if score >= 70:
        return ConfidenceLevel.HIGH
    if score >= 30:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def build_soil_health(
    soc_values: Sequence[Decimal],
    ndvi_values: Sequence[Decimal],
    sequestration_rates: Sequence[Decimal],
) -> SoilHealthIndicators:
    """Assemble soil health indicators from chronologically ordered series."""
    soc_trend, soc_change = classify_soc_trend(soc_values)
    mean_ndvi = mean(ndvi_values)
    return SoilHealthIndicators(
        soc_trend=soc_trend,
        soc_change_percent=soc_change,
        permanence=assess_permanence(soc_values),
        mean_ndvi=mean_ndvi,
        vegetation_class=classify_ndvi(mean_ndvi),
        sequestration_trend=half_mean_trend(sequestration_rates),
        sequestration_rate=sequestration_rates[-1] if sequestration_rates else None,
    )


@dataclass(frozen=True, slots=True)
class DegradationInputs:
    """Aggregates feeding the degradation and regeneration assessment."""

    soc_mean: Decimal | None = None
    ndvi_mean: Decimal | None = None
    erosion_latest: Decimal | None = None
    max_monthly_samples: int = 0
    verified: bool = False
    improving: bool = False


def assess_degradation(inputs: DegradationInputs) -> DegradationAssessment:
    """Score land degradation risk and regeneration potential.

    With no SOC, NDVI, or erosion data the degradation side is reported as
    ``insufficient_data``; regeneration is always scored.
    """
    risk_factors: list[str] = []
    if inputs.soc_mean is not None and inputs.soc_mean < SOC_DEGRADATION_THRESHOLD:
        risk_factors.append("low_soil_organic_carbon")
    if inputs.ndvi_mean is not None and inputs.ndvi_mean < NDVI_DEGRADATION_THRESHOLD:
        risk_factors.append("low_vegetation_cover")
    if inputs.erosion_latest is not None and inputs.erosion_latest > EROSION_RISK_THRESHOLD:
        risk_factors.append("soil_erosion")

    degradation_score: int | None
    if inputs.soc_mean is None and inputs.ndvi_mean is None and inputs.erosion_latest is None:
        degradation_score = None
        status = DegradationStatus.INSUFFICIENT_DATA
    else:
        score = 50
        if "low_soil_organic_carbon" in risk_factors:
            score += 20
        if "low_vegetation_cover" in risk_factors:
            score += 20
        if len(risk_factors) > 2:
            score += 10
        degradation_score = min(score, 100)
        if degradation_score >= 70:
            status = DegradationStatus.HIGH_RISK
        elif degradation_score >= 50:
            status = DegradationStatus.MODERATE_RISK
        else:
            status = DegradationStatus.LOW_RISK

    regeneration = 50
    if inputs.max_monthly_samples >= 6:
        regeneration += 20
    if inputs.verified:
        regeneration += 15
    if inputs.improving:
        regeneration += 15
    regeneration = min(regeneration, 100)
    if regeneration >= 70:
        level = ConfidenceLevel.HIGH
    elif regeneration >= 50:
        level = ConfidenceLevel.MEDIUM
    else:
        level = ConfidenceLevel.LOW

    return DegradationAssessment(
        degradation_score=degradation_score,
        degradation_status=status,
        risk_factors=tuple(risk_factors),
        regeneration_score=regeneration,
        regeneration_level=level,
    )
