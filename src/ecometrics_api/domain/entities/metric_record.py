# src/ecometrics_api/domain/entities/metric_record.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Metric record entities.

Purpose:
    Define the immutable shapes of a metric snapshot: the record itself, its
    ordered metrics, and the tagged-union payload each metric carries
    (yearly series, single value, list, or summary).

Layer:
    domain/entities

Notes:
    - Entities are frozen; state transitions produce new instances through
      ``dataclasses.replace``.
    - A record exclusively owns its metrics and their data points. The
      ``previous_version_id`` / ``restored_from_id`` links are weak references
      used for traversal only.
    - Numeric values are ``Decimal``; a value that could not be parsed is
      ``None`` rather than an error.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID

from ecometrics_api.domain.enums.metric_record import (
    ImportSource,
    IssueSeverity,
    MetricDataType,
    MetricDomain,
    ValidationStatus,
    VerificationStatus,
)
from ecometrics_api.domain.exceptions.metric_records import InvalidMetricRecord

__all__ = [
    "MonthlySample",
    "YearlyDataPoint",
    "YearlySeries",
    "SingleValue",
    "ListItem",
    "ListData",
    "Summary",
    "MetricPayload",
    "Metric",
    "ImportMetadata",
    "ValidationIssue",
    "MetricRecord",
]


@dataclass(frozen=True, slots=True)
class MonthlySample:
    """One month of sub-annual measurements attached to a yearly data point.

    Attributes:
        month: Month label as supplied (e.g. ``"January"``).
        month_number: Calendar month, 1-12.
        values: Field name to parsed value; ``None`` marks a missing reading.
    """

    month: str
    month_number: int
    values: Mapping[str, Decimal | None] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Reject month numbers outside 1-12."""
        if not 1 <= self.month_number <= 12:
            raise InvalidMetricRecord(
                "month_number must be between 1 and 12.",
                details={"month": self.month, "month_number": self.month_number},
            )


@dataclass(frozen=True, slots=True)
class YearlyDataPoint:
    """A single year-indexed observation.

    Attributes:
        year: Period label. May be a 4-digit year, a fiscal-year code such as
            ``"FY2022"``, or range notation such as ``"2021/22"``.
        numeric_value: Best-effort parse of ``raw_value``; ``None`` if unparseable.
        source: Citation for the value (file name, report, or system).
        unit: Unit of measure, if known.
        notes: Free-form notes.
        raw_value: The cell text the value was parsed from.
        verification_status: Optional per-point verification state.
        monthly_samples: Up to twelve monthly samples for this year.
        added_by: Actor that added the point.
        added_at: When the point was added.
    """

    year: str
    numeric_value: Decimal | None
    source: str
    unit: str | None = None
    notes: str | None = None
    raw_value: str | None = None
    verification_status: VerificationStatus | None = None
    monthly_samples: tuple[MonthlySample, ...] = ()
    added_by: str | None = None
    added_at: datetime | None = None

    def __post_init__(self) -> None:
        """Enforce a non-empty year label, a citation, and at most 12 months."""
        if not self.year or not self.year.strip():
            raise InvalidMetricRecord("Yearly data point requires a year label.")
        if not self.source or not self.source.strip():
            raise InvalidMetricRecord(
                "Yearly data point requires a source citation.",
                details={"year": self.year},
            )
        if len(self.monthly_samples) > 12:
            raise InvalidMetricRecord(
                "A yearly data point carries at most 12 monthly samples.",
                details={"year": self.year, "count": len(self.monthly_samples)},
            )


@dataclass(frozen=True, slots=True)
class YearlySeries:
    """Payload: ordered year-indexed observations."""

    data_type: ClassVar[MetricDataType] = MetricDataType.YEARLY_SERIES

    points: tuple[YearlyDataPoint, ...] = ()


@dataclass(frozen=True, slots=True)
class SingleValue:
    """Payload: one scalar value (numeric or textual)."""

    data_type: ClassVar[MetricDataType] = MetricDataType.SINGLE_VALUE

    value: Decimal | str | None
    unit: str | None = None
    source: str | None = None
    notes: str | None = None
    added_by: str | None = None
    added_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ListItem:
    """One free-form entry of a list payload."""

    text: str
    added_by: str | None = None
    added_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ListData:
    """Payload: ordered free-form items (programs, measures, focus areas)."""

    data_type: ClassVar[MetricDataType] = MetricDataType.LIST

    items: tuple[ListItem, ...] = ()


@dataclass(frozen=True, slots=True)
class Summary:
    """Payload: a key metric with its latest value, trend, and notes."""

    data_type: ClassVar[MetricDataType] = MetricDataType.SUMMARY

    key: str
    latest_value: str | None = None
    trend: str | None = None
    notes: str | None = None
    added_by: str | None = None
    added_at: datetime | None = None


type MetricPayload = YearlySeries | SingleValue | ListData | Summary


@dataclass(frozen=True, slots=True)
class Metric:
    """A named, categorized measurement within a record.

    Attributes:
        id: Stable metric identifier within its record.
        category: Top-level grouping (e.g. ``"environmental"``).
        metric_name: Display and lookup name. Together with ``category`` it
            identifies the metric for upserts.
        payload: Exactly one payload variant.
        subcategory: Optional secondary grouping.
        description: Optional description.
        is_active: False once soft-deleted.
        created_by: Actor that first created the metric; preserved on upsert.
        created_at: Creation timestamp.
        last_updated_by: Actor of the latest change.
        last_updated_at: Timestamp of the latest change.
    """

    id: UUID
    category: str
    metric_name: str
    payload: MetricPayload
    subcategory: str | None = None
    description: str | None = None
    is_active: bool = True
    created_by: str | None = None
    created_at: datetime | None = None
    last_updated_by: str | None = None
    last_updated_at: datetime | None = None

    @property
    def data_type(self) -> MetricDataType:
        """Return the discriminator of the payload variant."""
        return self.payload.data_type

    @property
    def key(self) -> tuple[str, str]:
        """Return the (category, metric_name) identity used for upsert matching."""
        return (self.category, self.metric_name)

    def matches(self, category: str, metric_name: str) -> bool:
        """Return True if this metric has the given upsert identity."""
        return self.category == category and self.metric_name == metric_name


@dataclass(frozen=True, slots=True)
class ImportMetadata:
    """Traceability data stamped on a record when it is created.

    Attributes:
        source: Import source type.
        batch_id: Opaque import batch identifier (not a persisted entity).
        original_file_name: Name of the uploaded file, if any.
        data_period_start: Earliest 4-digit year observed in the import.
        data_period_end: Latest 4-digit year observed in the import.
    """

    source: ImportSource | None = None
    batch_id: str | None = None
    original_file_name: str | None = None
    data_period_start: str | None = None
    data_period_end: str | None = None


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """A single validation finding."""

    field: str
    message: str
    severity: IssueSeverity
    metric_id: UUID | None = None
    metric_name: str | None = None


@dataclass(frozen=True, slots=True)
class MetricRecord:
    """A versioned metric snapshot for one (company, domain).

    Attributes:
        id: Record identity.
        company_id: Opaque tenant identifier.
        domain: ESG domain the record belongs to.
        version: 1-based position in the version chain.
        is_active: True for the single current snapshot of the chain.
        metrics: Ordered metrics owned by the record.
        previous_version_id: Weak back-reference to version ``version - 1``.
        restored_from_id: Record this one was restored from, if any.
        restore_notes: Human-readable restore provenance.
        validation_status: Outcome of the latest validation run.
        validation_errors: Findings of the latest validation run.
        validation_notes: Notes stored with the latest validation run.
        data_quality_score: 0-100 score of the latest validation run.
        verification_status: Third-party verification state.
        verified_by: Actor that set the verification status.
        verified_at: When the verification status was set.
        verification_notes: Notes stored with the verification status.
        import_metadata: Import traceability data.
        created_by: Actor that created the record.
        created_at: Creation timestamp.
        last_updated_by: Actor of the latest in-place change.
        last_updated_at: Timestamp of the latest in-place change.
    """

    id: UUID
    company_id: str
    domain: MetricDomain
    version: int
    is_active: bool
    metrics: tuple[Metric, ...] = ()
    previous_version_id: UUID | None = None
    restored_from_id: UUID | None = None
    restore_notes: str | None = None
    validation_status: ValidationStatus = ValidationStatus.NOT_VALIDATED
    validation_errors: tuple[ValidationIssue, ...] = ()
    validation_notes: str | None = None
    data_quality_score: int | None = None
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED
    verified_by: str | None = None
    verified_at: datetime | None = None
    verification_notes: str | None = None
    import_metadata: ImportMetadata = field(default_factory=ImportMetadata)
    created_by: str | None = None
    created_at: datetime | None = None
    last_updated_by: str | None = None
    last_updated_at: datetime | None = None

    def __post_init__(self) -> None:
        """Enforce version-chain shape and score bounds."""
        if not self.company_id:
            raise InvalidMetricRecord("Metric record requires a company_id.")
        if self.version < 1:
            raise InvalidMetricRecord(
                "Metric record version must be >= 1.",
                details={"version": self.version},
            )
        if (self.version == 1) != (self.previous_version_id is None):
            raise InvalidMetricRecord(
                "Only version 1 may omit previous_version_id.",
                details={
                    "version": self.version,
                    "previous_version_id": (
                        str(self.previous_version_id) if self.previous_version_id else None
                    ),
                },
            )
        if self.data_quality_score is not None and not 0 <= self.data_quality_score <= 100:
            raise InvalidMetricRecord(
                "data_quality_score must be within 0-100.",
                details={"data_quality_score": self.data_quality_score},
            )

    @property
    def active_metrics(self) -> tuple[Metric, ...]:
        """Return metrics that have not been soft-deleted, in order."""
        return tuple(m for m in self.metrics if m.is_active)

    def find_metric(self, category: str, metric_name: str) -> Metric | None:
        """Return the active metric with the given upsert identity, if any."""
        for metric in self.metrics:
            if metric.is_active and metric.matches(category, metric_name):
                return metric
        return None

    def metric_by_id(self, metric_id: UUID) -> Metric | None:
        """Return the metric with the given id, active or not."""
        for metric in self.metrics:
            if metric.id == metric_id:
                return metric
        return None
