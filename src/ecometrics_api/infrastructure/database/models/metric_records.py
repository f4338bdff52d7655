# src/ecometrics_api/infrastructure/database/models/metric_records.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""ORM models for versioned metric records.

Tables:
    metric_records: One row per snapshot version of a (company, domain).
    metric_record_metrics: Ordered metrics owned by a snapshot. Payloads are
        stored as JSON documents keyed by ``data_type``.

Invariants enforced by the schema:
    * ``(company_id, domain, version)`` is unique.
    * At most one active row per ``(company_id, domain)`` (partial unique index).
    * Metrics are deleted with their record; version links are plain columns
      so history rows never cascade.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import DateTime

from ecometrics_api.infrastructure.database.models.base import (
    AuditActorMixin,
    Base,
    JSONDocument,
)

__all__ = ["MetricRecordModel", "MetricRecordMetricModel"]


class MetricRecordModel(AuditActorMixin, Base):
    """A snapshot version of the metrics of one (company, domain)."""

    __tablename__ = "metric_records"
    __table_args__ = (
        UniqueConstraint("company_id", "domain", "version", name="uq_metric_records_version"),
        Index(
            "uq_metric_records_active",
            "company_id",
            "domain",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
        CheckConstraint("version >= 1", name="version_positive"),
        CheckConstraint(
            "data_quality_score IS NULL OR data_quality_score BETWEEN 0 AND 100",
            name="quality_score_range",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    domain: Mapped[str] = mapped_column(String(64), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    previous_version_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    restored_from_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    restore_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    validation_status: Mapped[str] = mapped_column(String(32), nullable=False)
    validation_errors: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument, nullable=False, default=list
    )
    validation_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    data_quality_score: Mapped[int | None] = mapped_column(Integer, nullable=True)

    verification_status: Mapped[str] = mapped_column(String(32), nullable=False)
    verified_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    verification_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    import_source: Mapped[str | None] = mapped_column(String(32), nullable=True)
    import_batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    original_file_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    data_period_start: Mapped[str | None] = mapped_column(String(4), nullable=True)
    data_period_end: Mapped[str | None] = mapped_column(String(4), nullable=True)

    metrics: Mapped[list[MetricRecordMetricModel]] = relationship(
        back_populates="record",
        cascade="all, delete-orphan",
        order_by="MetricRecordMetricModel.position",
        lazy="selectin",
    )


class MetricRecordMetricModel(AuditActorMixin, Base):
    """One metric of a snapshot, in record order."""

    __tablename__ = "metric_record_metrics"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("metric_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(128), nullable=False)
    metric_name: Mapped[str] = mapped_column(String(255), nullable=False)
    subcategory: Mapped[str | None] = mapped_column(String(128), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    data_type: Mapped[str] = mapped_column(String(32), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONDocument, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    record: Mapped[MetricRecordModel] = relationship(back_populates="metrics")
