# src/ecometrics_api/domain/interfaces/repositories/metric_records_repository.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Metric records repository interface.

Purpose:
    Define the persistence operations the version store composes into atomic
    snapshot transitions (import, upsert, soft-delete, restore).

Layer:
    domain/interfaces/repositories

Notes:
    Implementations live in the adapters layer and must:
        * Never commit; the Unit of Work owns the transaction.
        * Translate integrity/serialization failures into
          ``TransactionConflict``.
        * Return records with metrics in their stored order.
        * Never cascade along ``previous_version_id``.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol
from uuid import UUID

from ecometrics_api.domain.entities.metric_record import MetricRecord
from ecometrics_api.domain.enums.metric_record import MetricDomain


class MetricRecordsRepository(Protocol):
    """Protocol for repositories persisting versioned metric records."""

    async def lock_key(self, company_id: str, domain: MetricDomain) -> None:
        """Serialize writers on ``(company_id, domain)`` until the transaction ends.

        Writers on other keys must not be blocked.
        """

    async def get_active(self, company_id: str, domain: MetricDomain) -> MetricRecord | None:
        """Return the active record for ``(company_id, domain)``, if any."""

    async def get_by_id(self, record_id: UUID) -> MetricRecord | None:
        """Return the record with ``record_id``, active or not."""

    async def list_versions(self, company_id: str, domain: MetricDomain) -> Sequence[MetricRecord]:
        """Return every record of the chain ordered by version descending."""

    async def add(self, record: MetricRecord) -> None:
        """Insert a new record together with its metrics."""

    async def deactivate(self, record_id: UUID, *, actor_id: str, at: datetime) -> None:
        """Flip ``is_active`` to false on an existing record.

        Raises:
            MetricRecordNotFound: If the record does not exist.
        """

    async def save(self, record: MetricRecord) -> None:
        """Persist in-place changes to an existing record and its metrics.

        Raises:
            MetricRecordNotFound: If the record does not exist.
        """
