# src/ecometrics_api/domain/entities/analytics.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Analytics result entities.

Purpose:
    Nominally-typed, immutable indicator objects returned by the analytics
    functions. Optional fields are ``None`` when the underlying data is
    missing; no analytics result type requires complete input to exist.

Layer:
    domain/entities
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Generic, TypeVar

from ecometrics_api.domain.enums.analytics import (
    ComplianceRating,
    ConfidenceLevel,
    DegradationStatus,
    TrendDirection,
    VegetationClass,
)
from ecometrics_api.domain.enums.metric_record import MetricDomain

__all__ = [
    "TrendIndicator",
    "ScoreComponent",
    "CompositeScore",
    "ConfidenceScore",
    "ForecastPoint",
    "ForecastEligibility",
    "SequestrationForecast",
    "FieldAggregate",
    "MonthlyAggregate",
    "PermanenceAssessment",
    "SoilHealthIndicators",
    "DegradationAssessment",
    "AnalyticsResult",
]

TData = TypeVar("TData")


@dataclass(frozen=True, slots=True)
class TrendIndicator:
    """Trend classification of one metric between two reference years."""

    metric_name: str
    direction: TrendDirection
    percentage_change: Decimal | None = None
    first_year: str | None = None
    last_year: str | None = None
    first_value: Decimal | None = None
    last_value: Decimal | None = None


@dataclass(frozen=True, slots=True)
class ScoreComponent:
    """One weighted sub-score of a composite score.

    Attributes:
        name: Component identifier.
        raw_value: Input the sub-score was derived from, if known.
        score: Sub-score clamped to 0-100.
        weight: Weight applied to ``score`` in the composite.
    """

    name: str
    raw_value: Decimal | None
    score: Decimal
    weight: Decimal

    @property
    def contribution(self) -> Decimal:
        """Return ``score * weight``."""
        return self.score * self.weight


@dataclass(frozen=True, slots=True)
class CompositeScore:
    """A weighted composite of independent sub-scores."""

    score: int
    rating: ComplianceRating
    components: tuple[ScoreComponent, ...]
    baseline: Decimal = Decimal(0)


@dataclass(frozen=True, slots=True)
class ConfidenceScore:
    """Data confidence score with the points each factor contributed."""

    score: int
    factors: Mapping[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ForecastPoint:
    """Projected sequestration for one future year."""

    year: int
    sequestration_rate: Decimal
    total_sequestration: Decimal
    carbon_credits: Decimal
    credit_value_usd: Decimal
    confidence: ConfidenceLevel


@dataclass(frozen=True, slots=True)
class ForecastEligibility:
    """Carbon-credit eligibility checks evaluated alongside a forecast."""

    minimum_permanence: bool
    minimum_monitoring: bool
    verification_status: bool
    positive_sequestration: bool

    @property
    def eligible(self) -> bool:
        """Return True when every criterion holds."""
        return (
            self.minimum_permanence
            and self.minimum_monitoring
            and self.verification_status
            and self.positive_sequestration
        )


@dataclass(frozen=True, slots=True)
class SequestrationForecast:
    """Linear sequestration projection from historical per-area rates."""

    baseline_year: int
    baseline_rate: Decimal
    annual_growth_rate_percent: Decimal
    projected_area: Decimal
    points: tuple[ForecastPoint, ...]
    eligibility: ForecastEligibility

    @property
    def total_potential_credits(self) -> Decimal:
        """Sum of projected carbon credits over the horizon."""
        return sum((p.carbon_credits for p in self.points), Decimal(0))

    @property
    def total_potential_value_usd(self) -> Decimal:
        """Sum of projected credit value over the horizon."""
        return sum((p.credit_value_usd for p in self.points), Decimal(0))


@dataclass(frozen=True, slots=True)
class FieldAggregate:
    """Statistics for one monthly field; all ``None`` when no month has a value."""

    field: str
    sample_count: int
    mean: Decimal | None = None
    minimum: Decimal | None = None
    maximum: Decimal | None = None
    variance: Decimal | None = None


@dataclass(frozen=True, slots=True)
class MonthlyAggregate:
    """Per-field statistics over one year's monthly samples."""

    year: str
    month_count: int
    fields: tuple[FieldAggregate, ...] = ()

    def get(self, name: str) -> FieldAggregate | None:
        """Return the aggregate for ``name``, if present."""
        for agg in self.fields:
            if agg.field == name:
                return agg
        return None


@dataclass(frozen=True, slots=True)
class PermanenceAssessment:
    """Carbon stock permanence rating."""

    rating: ConfidenceLevel
    score: int | None
    risk: ConfidenceLevel


@dataclass(frozen=True, slots=True)
class SoilHealthIndicators:
    """Soil and vegetation indicators derived from a carbon accounting record."""

    soc_trend: TrendDirection
    soc_change_percent: Decimal | None
    permanence: PermanenceAssessment
    mean_ndvi: Decimal | None
    vegetation_class: VegetationClass
    sequestration_trend: TrendDirection
    sequestration_rate: Decimal | None


@dataclass(frozen=True, slots=True)
class DegradationAssessment:
    """Land degradation and regeneration potential."""

    degradation_score: int | None
    degradation_status: DegradationStatus
    risk_factors: tuple[str, ...]
    regeneration_score: int
    regeneration_level: ConfidenceLevel


@dataclass(frozen=True, slots=True)
class AnalyticsResult(Generic[TData]):  # noqa: UP046
    """Envelope stamped on every analytics response.

    ``data`` is ``None`` and ``status`` is ``"insufficient_data"`` when the
    inputs needed for the computation are missing.
    """

    company_id: str
    domain: MetricDomain
    api_version: str
    calculation_version: str
    generated_at: datetime
    data: TData | None
    status: str = "ok"

    @property
    def has_data(self) -> bool:
        """Return True when ``data`` is populated."""
        return self.data is not None
