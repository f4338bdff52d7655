# src/ecometrics_api/adapters/repositories/metric_records_repository.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Metric records repository (SQLAlchemy).

Purpose:
    Persist and query versioned metric records and their ordered metrics.

Layer:
    adapters/repositories

Design:
    * Uses SQLAlchemy ORM with AsyncSession; never commits.
    * Writes are flushed immediately so constraint violations surface inside
      the operation that caused them (and map to ``TransactionConflict``).
    * ``lock_key`` takes a transaction-scoped PostgreSQL advisory lock on the
      ``(company_id, domain)`` key. Other dialects rely on the partial unique
      index on active rows.
    * Emits Prometheus metrics for latency and failures.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from ecometrics_api.adapters.mappers.metric_record_mapper import (
    apply_record,
    record_from_model,
    record_to_model,
)
from ecometrics_api.adapters.repositories.base_repository import BaseRepository
from ecometrics_api.domain.entities.metric_record import MetricRecord
from ecometrics_api.domain.enums.metric_record import MetricDomain
from ecometrics_api.domain.exceptions.metric_records import MetricRecordNotFound
from ecometrics_api.infrastructure.database.models.metric_records import MetricRecordModel

_ADVISORY_LOCK_SQL = text("SELECT pg_advisory_xact_lock(hashtext(:key))")


class SqlAlchemyMetricRecordsRepository(BaseRepository[MetricRecordModel]):
    """SQLAlchemy-backed metric records repository."""

    _MODEL_NAME = "metric_records"

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: Async SQLAlchemy session owned by the unit of work.
        """
        super().__init__(session=session)

    async def lock_key(self, company_id: str, domain: MetricDomain) -> None:
        """Take the advisory lock of ``(company_id, domain)`` until the transaction ends."""
        if self._session.get_bind().dialect.name != "postgresql":
            return
        async with self._observe("lock_key"):
            await self._session.execute(
                _ADVISORY_LOCK_SQL, {"key": f"metric_records:{company_id}:{domain.value}"}
            )

    async def get_active(self, company_id: str, domain: MetricDomain) -> MetricRecord | None:
        async with self._observe("get_active"):
            stmt = select(MetricRecordModel).where(
                MetricRecordModel.company_id == company_id,
                MetricRecordModel.domain == domain.value,
                MetricRecordModel.is_active.is_(True),
            )
            model = await self.fetch_optional(stmt)
            return record_from_model(model) if model is not None else None

    async def get_by_id(self, record_id: UUID) -> MetricRecord | None:
        async with self._observe("get_by_id"):
            model = await self._session.get(MetricRecordModel, record_id)
            return record_from_model(model) if model is not None else None

    async def list_versions(self, company_id: str, domain: MetricDomain) -> Sequence[MetricRecord]:
        async with self._observe("list_versions"):
            stmt = (
                select(MetricRecordModel)
                .where(
                    MetricRecordModel.company_id == company_id,
                    MetricRecordModel.domain == domain.value,
                )
                .order_by(MetricRecordModel.version.desc())
            )
            return [record_from_model(m) for m in await self.fetch_all(stmt)]

    async def add(self, record: MetricRecord) -> None:
        async with self._observe("add"):
            self._session.add(record_to_model(record))
            await self._session.flush()

    async def deactivate(self, record_id: UUID, *, actor_id: str, at: datetime) -> None:
        async with self._observe("deactivate"):
            model = await self._require(record_id)
            model.is_active = False
            model.last_updated_by = actor_id
            model.last_updated_at = at
            await self._session.flush()

    async def save(self, record: MetricRecord) -> None:
        async with self._observe("save"):
            model = await self._require(record.id)
            apply_record(model, record)
            await self._session.flush()

    async def _require(self, record_id: UUID) -> MetricRecordModel:
        model = await self._session.get(MetricRecordModel, record_id)
        if model is None:
            raise MetricRecordNotFound(
                "Metric record not found.",
                details={"record_id": str(record_id)},
            )
        return model
