# src/ecometrics_api/adapters/mappers/metric_record_mapper.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Mapping between metric record entities and their persisted form.

Purpose:
    Convert domain ``MetricRecord`` / ``Metric`` instances into ORM rows and
    back. Metric payloads are stored as JSON documents whose shape depends on
    the metric's ``data_type``; decimals are stored as strings so no precision
    is lost through JSON.

Layer:
    adapters/mappers

Notes:
    * Mapping is lossless: ``record_from_model(record_to_model(r)) == r``.
    * ``apply_record`` updates an already-loaded row in place so metric ids
      stay stable across upserts and soft deletes.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from ecometrics_api.domain.entities.metric_record import (
    ImportMetadata,
    ListData,
    ListItem,
    Metric,
    MetricPayload,
    MetricRecord,
    MonthlySample,
    SingleValue,
    Summary,
    ValidationIssue,
    YearlyDataPoint,
    YearlySeries,
)
from ecometrics_api.domain.enums.metric_record import (
    ImportSource,
    IssueSeverity,
    MetricDataType,
    MetricDomain,
    ValidationStatus,
    VerificationStatus,
)
from ecometrics_api.infrastructure.database.models.metric_records import (
    MetricRecordMetricModel,
    MetricRecordModel,
)

__all__ = [
    "payload_to_document",
    "payload_from_document",
    "issue_to_document",
    "issue_from_document",
    "record_to_model",
    "apply_record",
    "record_from_model",
]


# ---------------------------------------------------------------------------
# Scalar helpers


def _dec_out(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def _dec_in(value: Any) -> Decimal | None:
    return None if value is None else Decimal(str(value))


def _ts_out(value: datetime | None) -> str | None:
    return None if value is None else value.isoformat()


def _ts_in(value: Any) -> datetime | None:
    return None if value is None else datetime.fromisoformat(str(value))


# ---------------------------------------------------------------------------
# Payload documents


def _point_to_document(point: YearlyDataPoint) -> dict[str, Any]:
    return {
        "year": point.year,
        "numeric_value": _dec_out(point.numeric_value),
        "source": point.source,
        "unit": point.unit,
        "notes": point.notes,
        "raw_value": point.raw_value,
        "verification_status": (
            point.verification_status.value if point.verification_status else None
        ),
        "monthly_samples": [
            {
                "month": s.month,
                "month_number": s.month_number,
                "values": {k: _dec_out(v) for k, v in s.values.items()},
            }
            for s in point.monthly_samples
        ],
        "added_by": point.added_by,
        "added_at": _ts_out(point.added_at),
    }


def _point_from_document(doc: Mapping[str, Any]) -> YearlyDataPoint:
    status = doc.get("verification_status")
    return YearlyDataPoint(
        year=doc["year"],
        numeric_value=_dec_in(doc.get("numeric_value")),
        source=doc["source"],
        unit=doc.get("unit"),
        notes=doc.get("notes"),
        raw_value=doc.get("raw_value"),
        verification_status=VerificationStatus(status) if status else None,
        monthly_samples=tuple(
            MonthlySample(
                month=s["month"],
                month_number=int(s["month_number"]),
                values={k: _dec_in(v) for k, v in (s.get("values") or {}).items()},
            )
            for s in doc.get("monthly_samples") or ()
        ),
        added_by=doc.get("added_by"),
        added_at=_ts_in(doc.get("added_at")),
    )


def payload_to_document(payload: MetricPayload) -> dict[str, Any]:
    """Serialize a metric payload to a JSON-compatible document."""
    match payload:
        case YearlySeries(points=points):
            return {"points": [_point_to_document(p) for p in points]}
        case SingleValue():
            is_number = isinstance(payload.value, Decimal)
            return {
                "value": None if payload.value is None else str(payload.value),
                "value_kind": "number" if is_number else "text",
                "unit": payload.unit,
                "source": payload.source,
                "notes": payload.notes,
                "added_by": payload.added_by,
                "added_at": _ts_out(payload.added_at),
            }
        case ListData(items=items):
            return {
                "items": [
                    {"text": i.text, "added_by": i.added_by, "added_at": _ts_out(i.added_at)}
                    for i in items
                ]
            }
        case Summary():
            return {
                "key": payload.key,
                "latest_value": payload.latest_value,
                "trend": payload.trend,
                "notes": payload.notes,
                "added_by": payload.added_by,
                "added_at": _ts_out(payload.added_at),
            }
    raise TypeError(f"Unsupported metric payload: {type(payload).__name__}")


def payload_from_document(data_type: MetricDataType, doc: Mapping[str, Any]) -> MetricPayload:
    """Deserialize a payload document for the given ``data_type``."""
    match data_type:
        case MetricDataType.YEARLY_SERIES:
            return YearlySeries(points=tuple(_point_from_document(p) for p in doc["points"]))
        case MetricDataType.SINGLE_VALUE:
            raw = doc.get("value")
            value: Decimal | str | None = raw
            if raw is not None and doc.get("value_kind") == "number":
                value = Decimal(raw)
            return SingleValue(
                value=value,
                unit=doc.get("unit"),
                source=doc.get("source"),
                notes=doc.get("notes"),
                added_by=doc.get("added_by"),
                added_at=_ts_in(doc.get("added_at")),
            )
        case MetricDataType.LIST:
            return ListData(
                items=tuple(
                    ListItem(
                        text=i["text"],
                        added_by=i.get("added_by"),
                        added_at=_ts_in(i.get("added_at")),
                    )
                    for i in doc["items"]
                )
            )
        case MetricDataType.SUMMARY:
            return Summary(
                key=doc["key"],
                latest_value=doc.get("latest_value"),
                trend=doc.get("trend"),
                notes=doc.get("notes"),
                added_by=doc.get("added_by"),
                added_at=_ts_in(doc.get("added_at")),
            )


# ---------------------------------------------------------------------------
# Validation findings


def issue_to_document(issue: ValidationIssue) -> dict[str, Any]:
    return {
        "field": issue.field,
        "message": issue.message,
        "severity": issue.severity.value,
        "metric_id": str(issue.metric_id) if issue.metric_id else None,
        "metric_name": issue.metric_name,
    }


def issue_from_document(doc: Mapping[str, Any]) -> ValidationIssue:
    metric_id = doc.get("metric_id")
    return ValidationIssue(
        field=doc["field"],
        message=doc["message"],
        severity=IssueSeverity(doc["severity"]),
        metric_id=UUID(metric_id) if metric_id else None,
        metric_name=doc.get("metric_name"),
    )


# ---------------------------------------------------------------------------
# Records


def _apply_metric(row: MetricRecordMetricModel, metric: Metric, position: int) -> None:
    row.position = position
    row.category = metric.category
    row.metric_name = metric.metric_name
    row.subcategory = metric.subcategory
    row.description = metric.description
    row.data_type = metric.data_type.value
    row.payload = payload_to_document(metric.payload)
    row.is_active = metric.is_active
    row.created_by = metric.created_by
    row.created_at = metric.created_at
    row.last_updated_by = metric.last_updated_by
    row.last_updated_at = metric.last_updated_at


def _metric_from_row(row: MetricRecordMetricModel) -> Metric:
    data_type = MetricDataType(row.data_type)
    return Metric(
        id=row.id,
        category=row.category,
        metric_name=row.metric_name,
        payload=payload_from_document(data_type, row.payload),
        subcategory=row.subcategory,
        description=row.description,
        is_active=row.is_active,
        created_by=row.created_by,
        created_at=row.created_at,
        last_updated_by=row.last_updated_by,
        last_updated_at=row.last_updated_at,
    )


def _apply_record_columns(model: MetricRecordModel, record: MetricRecord) -> None:
    meta = record.import_metadata
    model.is_active = record.is_active
    model.previous_version_id = record.previous_version_id
    model.restored_from_id = record.restored_from_id
    model.restore_notes = record.restore_notes
    model.validation_status = record.validation_status.value
    model.validation_errors = [issue_to_document(i) for i in record.validation_errors]
    model.validation_notes = record.validation_notes
    model.data_quality_score = record.data_quality_score
    model.verification_status = record.verification_status.value
    model.verified_by = record.verified_by
    model.verified_at = record.verified_at
    model.verification_notes = record.verification_notes
    model.import_source = meta.source.value if meta.source else None
    model.import_batch_id = meta.batch_id
    model.original_file_name = meta.original_file_name
    model.data_period_start = meta.data_period_start
    model.data_period_end = meta.data_period_end
    model.created_by = record.created_by
    model.created_at = record.created_at
    model.last_updated_by = record.last_updated_by
    model.last_updated_at = record.last_updated_at


def record_to_model(record: MetricRecord) -> MetricRecordModel:
    """Build a new ORM row (with metric rows) for ``record``."""
    model = MetricRecordModel(
        id=record.id,
        company_id=record.company_id,
        domain=record.domain.value,
        version=record.version,
    )
    _apply_record_columns(model, record)
    rows = []
    for position, metric in enumerate(record.metrics):
        row = MetricRecordMetricModel(id=metric.id, record_id=record.id)
        _apply_metric(row, metric, position)
        rows.append(row)
    model.metrics = rows
    return model


def apply_record(model: MetricRecordModel, record: MetricRecord) -> None:
    """Update a loaded row in place so it matches ``record``.

    Identity columns (id, company, domain, version) are never rewritten.
    Metric rows are matched by id; rows absent from ``record`` are removed.
    """
    _apply_record_columns(model, record)
    existing = {row.id: row for row in model.metrics}
    rows = []
    for position, metric in enumerate(record.metrics):
        row = existing.get(metric.id)
        if row is None:
            row = MetricRecordMetricModel(id=metric.id, record_id=record.id)
        _apply_metric(row, metric, position)
        rows.append(row)
    model.metrics = rows


def record_from_model(model: MetricRecordModel) -> MetricRecord:
    """Build the domain record for a loaded ORM row."""
    source = model.import_source
    return MetricRecord(
        id=model.id,
        company_id=model.company_id,
        domain=MetricDomain(model.domain),
        version=model.version,
        is_active=model.is_active,
        metrics=tuple(_metric_from_row(r) for r in sorted(model.metrics, key=lambda r: r.position)),
        previous_version_id=model.previous_version_id,
        restored_from_id=model.restored_from_id,
        restore_notes=model.restore_notes,
        validation_status=ValidationStatus(model.validation_status),
        validation_errors=tuple(issue_from_document(d) for d in model.validation_errors or ()),
        validation_notes=model.validation_notes,
        data_quality_score=model.data_quality_score,
        verification_status=VerificationStatus(model.verification_status),
        verified_by=model.verified_by,
        verified_at=model.verified_at,
        verification_notes=model.verification_notes,
        import_metadata=ImportMetadata(
            source=ImportSource(source) if source else None,
            batch_id=model.import_batch_id,
            original_file_name=model.original_file_name,
            data_period_start=model.data_period_start,
            data_period_end=model.data_period_end,
        ),
        created_by=model.created_by,
        created_at=model.created_at,
        last_updated_by=model.last_updated_by,
        last_updated_at=model.last_updated_at,
    )
