# src/ecometrics_api/application/services/analytics_engine.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Analytics engine facade (application layer).

Purpose:
    Read active metric records through the store's read API and run the pure
    analytics functions over them: trends, composite scores, confidence,
    sequestration forecasts, monthly aggregates, and soil/degradation
    classification.

Layer:
    application/services

Notes:
    - Read-only: the engine never mutates a record.
    - Missing inputs never raise. A result whose inputs are absent carries
      ``data=None`` and ``status="insufficient_data"``; partially populated
      inputs still produce a best-effort result.
    - Version strings and pricing come from :class:`AnalyticsConfig`, passed at
      construction time.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Protocol, TypeVar

from ecometrics_api.domain.entities.analytics import (
    AnalyticsResult,
    CompositeScore,
    ConfidenceScore,
    DegradationAssessment,
    MonthlyAggregate,
    SequestrationForecast,
    SoilHealthIndicators,
    TrendIndicator,
)
from ecometrics_api.domain.entities.metric_record import (
    Metric,
    MetricRecord,
    SingleValue,
    YearlyDataPoint,
    YearlySeries,
)
from ecometrics_api.domain.enums.analytics import ConfidenceLevel, TrendDirection
from ecometrics_api.domain.enums.metric_record import MetricDomain
from ecometrics_api.domain.services import domain_schemas as names
from ecometrics_api.domain.services.composite_scoring import (
    BiodiversityInputs,
    ComplianceInputs,
    score_biodiversity,
    score_compliance,
)
from ecometrics_api.domain.services.confidence_scoring import (
    confidence_inputs_from_record,
    score_confidence,
)
from ecometrics_api.domain.services.monthly_aggregation import aggregate_monthly
from ecometrics_api.domain.services.numeric import first_year, mean, year_sort_key
from ecometrics_api.domain.services.sequestration_forecast import (
    SequestrationObservation,
    forecast_sequestration,
)
from ecometrics_api.domain.services.soil_health import (
    DegradationInputs,
    assess_degradation,
    assess_permanence,
    build_soil_health,
    classify_soc_trend,
    risk_level,
)
from ecometrics_api.domain.services.trend_analysis import (
    TREND_THRESHOLD_PCT,
    compute_trend,
    half_mean_trend,
)

__all__ = ["AnalyticsConfig", "AnalyticsEngine", "ActiveRecordReader", "INSUFFICIENT_DATA"]

TData = TypeVar("TData")

INSUFFICIENT_DATA = "insufficient_data"


@dataclass(frozen=True, slots=True)
class AnalyticsConfig:
    """Construction-time configuration of the analytics engine.

    Attributes:
        api_version: Version string stamped on every result.
        calculation_version: Version of the calculation rules, stamped on results.
        carbon_credit_price_usd: Price of one carbon credit used by forecasts.
        forecast_horizon_years: Default number of years to project.
        trend_threshold_pct: Percentage change separating stable from moving.
    """

    api_version: str = "1.0.0"
    calculation_version: str = "1.0.0"
    carbon_credit_price_usd: Decimal = Decimal(15)
    forecast_horizon_years: int = 5
    trend_threshold_pct: Decimal = TREND_THRESHOLD_PCT


class ActiveRecordReader(Protocol):
    """Read port the engine depends on (satisfied by ``VersionStore``)."""

    async def get_active_record(
        self, company_id: str, domain: MetricDomain | str
    ) -> MetricRecord | None:
        """Return the active record for ``(company_id, domain)``, if any."""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _find(record: MetricRecord | None, metric_name: str) -> Metric | None:
    if record is None:
        return None
    for metric in record.active_metrics:
        if metric.metric_name == metric_name:
            return metric
    return None


def _points(record: MetricRecord | None, metric_name: str) -> list[YearlyDataPoint]:
    metric = _find(record, metric_name)
    if metric is None or not isinstance(metric.payload, YearlySeries):
        return []
    return sorted(metric.payload.points, key=lambda p: year_sort_key(p.year))


def _series(record: MetricRecord | None, metric_name: str) -> list[Decimal]:
    """Chronological numeric values of a series metric."""
    return [p.numeric_value for p in _points(record, metric_name) if p.numeric_value is not None]


def _latest(record: MetricRecord | None, metric_name: str) -> Decimal | None:
    """Latest numeric value of a series, or the value of a numeric single value."""
    metric = _find(record, metric_name)
    if metric is None:
        return None
    if isinstance(metric.payload, SingleValue):
        value = metric.payload.value
        return value if isinstance(value, Decimal) else None
    values = _series(record, metric_name)
    return values[-1] if values else None


def _monthly_values(record: MetricRecord | None, field_name: str) -> list[Decimal]:
    """Every non-null monthly reading of ``field_name`` across all series metrics."""
    if record is None:
        return []
    out: list[Decimal] = []
    for point in _all_points(record):
        for sample in point.monthly_samples:
            value = sample.values.get(field_name)
            if value is not None:
                out.append(value)
    return out


def _all_points(record: MetricRecord) -> Iterator[YearlyDataPoint]:
    for metric in record.active_metrics:
        if isinstance(metric.payload, YearlySeries):
            yield from metric.payload.points


def _max_monthly_samples(record: MetricRecord | None) -> int:
    if record is None:
        return 0
    return max((len(p.monthly_samples) for p in _all_points(record)), default=0)


def _is_assured(record: MetricRecord, point: YearlyDataPoint) -> bool:
    status = point.verification_status or record.verification_status
    return status.is_assured


@dataclass(slots=True)
class _YearObservation:
    rate: Decimal | None = None
    area: Decimal | None = None
    months: int = 0
    verified: bool = False


class AnalyticsEngine:
    """Read-only analytics over active metric records."""

    def __init__(
        self,
        reader: ActiveRecordReader,
        config: AnalyticsConfig | None = None,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the engine.

        Args:
            reader: Source of active records.
            config: Version stamps and pricing; defaults apply when omitted.
            clock: Timestamp source for ``generated_at``.
        """
        self._reader = reader
        self._config = config or AnalyticsConfig()
        self._clock = clock

    @property
    def config(self) -> AnalyticsConfig:
        return self._config

    # ------------------------------------------------------------------
    # Trend
    # ------------------------------------------------------------------

    async def trend(
        self,
        company_id: str,
        domain: MetricDomain | str,
        metric_name: str,
        *,
        category: str | None = None,
        reference_years: Collection[str] | None = None,
    ) -> AnalyticsResult[TrendIndicator]:
        """Classify the trend of one series metric of the active record.

        The direction is ``unknown`` when fewer than two numeric points exist
        within ``reference_years``.
        """
        key = names.get_domain_schema(domain).domain
        record = await self._reader.get_active_record(company_id, key)
        metric: Metric | None = None
        if record is not None:
            for candidate in record.active_metrics:
                if candidate.metric_name == metric_name and (
                    category is None or candidate.category == category
                ):
                    metric = candidate
                    break
        if metric is None:
            return self._result(
                company_id,
                key,
                TrendIndicator(metric_name=metric_name, direction=TrendDirection.UNKNOWN),
                status=INSUFFICIENT_DATA,
            )
        indicator = compute_trend(
            metric, reference_years, threshold=self._config.trend_threshold_pct
        )
        status = INSUFFICIENT_DATA if indicator.direction is TrendDirection.UNKNOWN else "ok"
        return self._result(company_id, key, indicator, status=status)

    # ------------------------------------------------------------------
    # Composite scores
    # ------------------------------------------------------------------

    async def compliance_score(self, company_id: str) -> AnalyticsResult[CompositeScore]:
        """Score farm compliance from the compliance and carbon records."""
        compliance = await self._reader.get_active_record(
            company_id, MetricDomain.FARM_COMPLIANCE
        )
        carbon = await self._reader.get_active_record(company_id, MetricDomain.CARBON_ACCOUNTING)
        inputs = ComplianceInputs(
            training_hours=_latest(compliance, names.TRAINING_HOURS),
            employees_trained=_latest(compliance, names.EMPLOYEES_TRAINED),
            suppliers_code_of_conduct=_latest(compliance, names.SUPPLIERS_CODE_OF_CONDUCT),
            suppliers_audited=_latest(compliance, names.SUPPLIERS_AUDITED),
            non_compliance_cases=_latest(compliance, names.NON_COMPLIANCE_CASES),
            framework_alignment={
                name: _latest(compliance, name) for name in names.FRAMEWORK_ALIGNMENT_METRICS
            },
            scope3_emissions=_latest(carbon, names.SCOPE3_EMISSIONS),
        )
        if inputs.is_empty:
            return self._empty(company_id, MetricDomain.FARM_COMPLIANCE)
        return self._result(company_id, MetricDomain.FARM_COMPLIANCE, score_compliance(inputs))

    async def biodiversity_score(self, company_id: str) -> AnalyticsResult[CompositeScore]:
        """Score biodiversity from the land-use record (trees fall back to community data)."""
        land = await self._reader.get_active_record(company_id, MetricDomain.BIODIVERSITY_LANDUSE)
        trees = _latest(land, names.TREES_PLANTED)
        if trees is None:
            community = await self._reader.get_active_record(
                company_id, MetricDomain.COMMUNITY_ENGAGEMENT
            )
            trees = _latest(community, names.TREES_PLANTED)

        species = _find(land, names.SPECIES_COUNT)
        species_trend = (
            compute_trend(species, threshold=self._config.trend_threshold_pct).direction
            if species is not None
            else TrendDirection.UNKNOWN
        )
        inputs = BiodiversityInputs(
            protected_habitat_percent=_latest(land, names.PROTECTED_HABITAT),
            species_trend=species_trend,
            trees_planted=trees,
            human_wildlife_conflicts=_latest(land, names.HUMAN_WILDLIFE_CONFLICTS),
        )
        if inputs.is_empty:
            return self._empty(company_id, MetricDomain.BIODIVERSITY_LANDUSE)
        return self._result(
            company_id, MetricDomain.BIODIVERSITY_LANDUSE, score_biodiversity(inputs)
        )

    async def confidence_score(
        self, company_id: str, domain: MetricDomain | str
    ) -> AnalyticsResult[ConfidenceScore]:
        """Score how much the active record's data can be trusted."""
        key = names.get_domain_schema(domain).domain
        record = await self._reader.get_active_record(company_id, key)
        if record is None:
            return self._empty(company_id, key)
        score = score_confidence(confidence_inputs_from_record(record))
        return self._result(company_id, key, score)

    # ------------------------------------------------------------------
    # Carbon
    # ------------------------------------------------------------------

    async def sequestration_forecast(
        self, company_id: str, years: int | None = None
    ) -> AnalyticsResult[SequestrationForecast]:
        """Project sequestration and carbon credits from recent per-area rates.

        Args:
            company_id: Tenant identifier.
            years: Years to project; defaults to the configured horizon.
        """
        key = MetricDomain.CARBON_ACCOUNTING
        record = await self._reader.get_active_record(company_id, key)
        horizon = years if years is not None else self._config.forecast_horizon_years
        if record is None:
            return self._empty(company_id, key)
        forecast = forecast_sequestration(
            self._observations(record),
            years_ahead=horizon,
            credit_price_usd=self._config.carbon_credit_price_usd,
            permanence=assess_permanence(_series(record, names.SOIL_ORGANIC_CARBON)).rating,
        )
        if forecast is None:
            return self._empty(company_id, key)
        return self._result(company_id, key, forecast)

    async def soil_health(self, company_id: str) -> AnalyticsResult[SoilHealthIndicators]:
        """Classify soil organic carbon, vegetation cover, and sequestration trend."""
        key = MetricDomain.CARBON_ACCOUNTING
        record = await self._reader.get_active_record(company_id, key)
        if record is None:
            return self._empty(company_id, key)
        soc = _series(record, names.SOIL_ORGANIC_CARBON)
        ndvi = self._ndvi_values(record)
        rates = _series(record, names.SEQUESTRATION_RATE)
        if not soc and not ndvi and not rates:
            return self._empty(company_id, key)
        return self._result(company_id, key, build_soil_health(soc, ndvi, rates))

    async def degradation(self, company_id: str) -> AnalyticsResult[DegradationAssessment]:
        """Assess land degradation risk and regeneration potential."""
        key = MetricDomain.CARBON_ACCOUNTING
        record = await self._reader.get_active_record(company_id, key)
        if record is None:
            return self._empty(company_id, key)
        soc = _series(record, names.SOIL_ORGANIC_CARBON)
        soc_trend, _ = classify_soc_trend(soc)
        improving = (
            soc_trend is TrendDirection.IMPROVING
            or half_mean_trend(_series(record, names.SEQUESTRATION_RATE))
            is TrendDirection.IMPROVING
        )
        verified = record.verification_status.is_assured or any(
            _is_assured(record, p) for p in _all_points(record)
        )
        inputs = DegradationInputs(
            soc_mean=mean(soc),
            ndvi_mean=mean(self._ndvi_values(record)),
            erosion_latest=_latest(record, names.EROSION_RATE),
            max_monthly_samples=_max_monthly_samples(record),
            verified=verified,
            improving=improving,
        )
        return self._result(company_id, key, assess_degradation(inputs))

    # ------------------------------------------------------------------
    # Monthly data
    # ------------------------------------------------------------------

    async def monthly_aggregates(
        self,
        company_id: str,
        domain: MetricDomain | str,
        metric_name: str,
        year: str,
    ) -> AnalyticsResult[MonthlyAggregate]:
        """Aggregate the monthly samples attached to ``year`` of a series metric."""
        key = names.get_domain_schema(domain).domain
        record = await self._reader.get_active_record(company_id, key)
        wanted = first_year(year)
        samples = None
        for point in _points(record, metric_name):
            if point.year == year or (wanted is not None and first_year(point.year) == wanted):
                if point.monthly_samples:
                    samples = point.monthly_samples
                    break
        if not samples:
            return self._empty(company_id, key)
        return self._result(company_id, key, aggregate_monthly(year, samples))

    @staticmethod
    def risk_level(score: Decimal | int | None) -> ConfidenceLevel:
        """Map a 0-100 risk score onto high (>=70) / medium (>=30) / low."""
        return risk_level(score)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _ndvi_values(record: MetricRecord) -> list[Decimal]:
        yearly = _series(record, names.NDVI)
        return yearly if yearly else _monthly_values(record, names.NDVI)

    @staticmethod
    def _observations(record: MetricRecord) -> list[SequestrationObservation]:
        by_year: dict[int, _YearObservation] = {}

        def slot(label: str) -> _YearObservation | None:
            year = first_year(label)
            if year is None:
                return None
            return by_year.setdefault(year, _YearObservation())

        for point in _points(record, names.SEQUESTRATION_RATE):
            entry = slot(point.year)
            if entry is not None and point.numeric_value is not None:
                entry.rate = point.numeric_value
        for point in _points(record, names.MONITORED_AREA):
            entry = slot(point.year)
            if entry is not None and point.numeric_value is not None:
                entry.area = point.numeric_value
        for point in _all_points(record):
            entry = slot(point.year)
            if entry is None:
                continue
            entry.months = max(entry.months, len(point.monthly_samples))
            entry.verified = entry.verified or _is_assured(record, point)

        return [
            SequestrationObservation(
                year=year,
                rate=entry.rate,
                area=entry.area,
                monthly_sample_count=entry.months,
                verified=entry.verified,
            )
            for year, entry in sorted(by_year.items())
        ]

    def _result(
        self,
        company_id: str,
        domain: MetricDomain,
        data: TData | None,
        *,
        status: str = "ok",
    ) -> AnalyticsResult[TData]:
        return AnalyticsResult(
            company_id=company_id,
            domain=domain,
            api_version=self._config.api_version,
            calculation_version=self._config.calculation_version,
            generated_at=self._clock(),
            data=data,
            status=status,
        )

    def _empty(self, company_id: str, domain: MetricDomain) -> AnalyticsResult[TData]:
        return self._result(company_id, domain, None, status=INSUFFICIENT_DATA)
