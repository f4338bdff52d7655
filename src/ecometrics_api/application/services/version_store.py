# src/ecometrics_api/application/services/version_store.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Versioned metric record store (application service).

Purpose:
    Maintain one versioned metric snapshot per ``(company_id, domain)``:
    exactly one active record, an immutable history linked through
    ``previous_version_id``, and atomic import / upsert / soft-delete /
    restore transitions. A single implementation serves every ESG domain; the
    per-domain differences live in the :class:`DomainSchema` registry.

Layer:
    application/services

Transactions:
    Every mutating operation runs as one attempt = one Unit of Work:

        hold in-process key lock
          -> open UoW
            -> repository.lock_key (cross-process serialization)
            -> read active -> compute next -> deactivate old -> write new
          -> commit (or roll back on any error)

    A ``TransactionConflict`` raised by the storage adapter rolls the attempt
    back in full and the whole attempt is retried with jittered backoff. Once
    the retry budget is spent the conflict surfaces to the caller with no
    partial effect.

Notes:
    - Reads take no locks and never block writers.
    - No commit/rollback happens outside ``run_in_uow``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any, TypeVar
from uuid import UUID, uuid4

from ecometrics_api.application.interfaces.metric_store_observer import (
    MetricStoreObserver,
    NullMetricStoreObserver,
)
from ecometrics_api.application.resilience.retry import RetryPolicy, retry_async
from ecometrics_api.application.schemas.dto.metric_import import (
    parse_metric,
    parse_metrics_import,
)
from ecometrics_api.application.services.keyed_lock import KeyedLockRegistry
from ecometrics_api.application.uow import UnitOfWork, UnitOfWorkFactory, run_in_uow
from ecometrics_api.domain.entities.metric_record import (
    ImportMetadata,
    Metric,
    MetricRecord,
    YearlyDataPoint,
    YearlySeries,
)
from ecometrics_api.domain.enums.metric_record import (
    ImportSource,
    MetricDomain,
    ValidationStatus,
    VerificationStatus,
)
from ecometrics_api.domain.exceptions.base import DomainError
from ecometrics_api.domain.exceptions.metric_records import (
    InvalidImportStructure,
    MetricRecordNotFound,
    TransactionConflict,
    UnsupportedImportType,
)
from ecometrics_api.domain.interfaces.repositories.metric_records_repository import (
    MetricRecordsRepository,
)
from ecometrics_api.domain.services.domain_schemas import DOMAIN_SCHEMAS, DomainSchema
from ecometrics_api.domain.services.import_transform import (
    ImportTransform,
    import_source_from_file_name,
    infer_data_period,
    new_import_batch_id,
)
from ecometrics_api.domain.services.metric_traversal import stamp_actor
from ecometrics_api.domain.services.numeric import year_sort_key
from ecometrics_api.domain.services.validation_engine import ValidationEngine, ValidationResult

__all__ = ["VersionStore", "DEFAULT_RETRY_POLICY"]

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRY_POLICY = RetryPolicy(total=3, base=0.05, cap=1.0)

_DEFAULT_JSON_FILE_NAME = "manual_import.json"

type _WriteStep[R] = Callable[[MetricRecordsRepository, datetime], Awaitable[R]]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _is_retryable(exc: Exception) -> bool:
    return isinstance(exc, DomainError) and exc.retryable


def _require_actor(actor_id: str) -> str:
    if not actor_id or not str(actor_id).strip():
        raise InvalidImportStructure("An actor id is required for store mutations.")
    return str(actor_id).strip()


def _require_metrics(metrics: Iterable[Metric]) -> tuple[Metric, ...]:
    """Return ``metrics`` as a tuple or raise before anything is written."""
    if metrics is None or isinstance(metrics, (str, bytes, Mapping)):
        raise InvalidImportStructure("Canonical metrics must be a sequence of metrics.")
    items = tuple(metrics)
    if not items:
        raise InvalidImportStructure("An import must contain at least one metric.")
    seen: set[tuple[str, str]] = set()
    for index, metric in enumerate(items):
        if not isinstance(metric, Metric):
            raise InvalidImportStructure(
                "Canonical metrics must be Metric instances.",
                details={"index": index, "type": type(metric).__name__},
            )
        if not metric.is_active:
            continue
        if metric.key in seen:
            raise InvalidImportStructure(
                "Duplicate (category, metric_name) in import.",
                details={"category": metric.category, "metric_name": metric.metric_name},
            )
        seen.add(metric.key)
    return items


class VersionStore:
    """Generic versioned snapshot store for all ESG metric domains.

    Example:
        store = VersionStore(uow_factory)
        record = await store.import_rows("acme", "carbon_accounting", rows, "u-1",
                                         file_name="carbon.xlsx")
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        schemas: Mapping[MetricDomain, DomainSchema] = DOMAIN_SCHEMAS,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        observer: MetricStoreObserver | None = None,
        locks: KeyedLockRegistry | None = None,
        validation_engine: ValidationEngine | None = None,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], UUID] = uuid4,
    ) -> None:
        """Initialize the store.

        Args:
            uow_factory: Returns a fresh Unit of Work per transaction attempt.
            schemas: Import schema per supported domain.
            retry_policy: Backoff applied to ``TransactionConflict``.
            observer: Receives operation outcomes; defaults to a no-op.
            locks: In-process per-key lock registry. Share one instance between
                stores that write to the same database.
            validation_engine: Engine used by :meth:`validate_active_record`.
            clock: Timestamp source (UTC).
            id_factory: Identifier factory for records and metrics.
        """
        self._uow_factory = uow_factory
        self._schemas = schemas
        self._retry_policy = retry_policy
        self._observer: MetricStoreObserver = observer or NullMetricStoreObserver()
        self._locks = locks if locks is not None else KeyedLockRegistry()
        self._validation_engine = validation_engine or ValidationEngine()
        self._clock = clock
        self._id_factory = id_factory

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_record(
        self,
        company_id: str,
        domain: MetricDomain | str,
        metrics: Iterable[Metric],
        actor_id: str,
        *,
        metadata: ImportMetadata | None = None,
    ) -> MetricRecord:
        """Insert version 1 of a chain that has no active record yet.

        Raises:
            InvalidImportStructure: If ``metrics`` is empty or malformed.
            TransactionConflict: If an active record already exists.
        """
        key = self._domain(domain)
        actor = _require_actor(actor_id)
        items = _require_metrics(metrics)

        async def step(repo: MetricRecordsRepository, now: datetime) -> MetricRecord:
            if await repo.get_active(company_id, key) is not None:
                raise TransactionConflict(
                    "An active record already exists; import a new version instead.",
                    details={"company_id": company_id, "domain": key.value},
                )
            record = self._new_record(
                company_id, key, items, actor, now, previous=None, metadata=metadata
            )
            await repo.add(record)
            return record

        record = await self._write("create_record", company_id, key, step, retry=False)
        self._log_mutation("metric_record.created", record)
        return record

    async def import_snapshot(
        self,
        company_id: str,
        domain: MetricDomain | str,
        metrics: Iterable[Metric],
        actor_id: str,
        *,
        metadata: ImportMetadata | None = None,
    ) -> MetricRecord:
        """Supersede the active record (if any) with a new version holding ``metrics``.

        Args:
            company_id: Tenant identifier.
            domain: Target ESG domain.
            metrics: Canonical metrics of the new snapshot.
            actor_id: Acting user.
            metadata: Import traceability data. A missing data period is
                inferred from the metrics' yearly points.

        Returns:
            The new active record.

        Raises:
            InvalidImportStructure: If ``metrics`` is empty or malformed. Nothing
                is written in that case.
            TransactionConflict: If the write still conflicts after retries.
        """
        key = self._domain(domain)
        actor = _require_actor(actor_id)
        items = _require_metrics(metrics)

        async def step(repo: MetricRecordsRepository, now: datetime) -> MetricRecord:
            active = await repo.get_active(company_id, key)
            if active is not None:
                await repo.deactivate(active.id, actor_id=actor, at=now)
            record = self._new_record(
                company_id, key, items, actor, now, previous=active, metadata=metadata
            )
            await repo.add(record)
            return record

        record = await self._write("import_snapshot", company_id, key, step)
        self._log_mutation("metric_record.imported", record, metric_count=len(record.metrics))
        return record

    async def import_rows(
        self,
        company_id: str,
        domain: MetricDomain | str,
        rows: Sequence[Mapping[str, object]],
        actor_id: str,
        *,
        file_name: str,
    ) -> MetricRecord:
        """Transform tokenized spreadsheet rows and import them as a new version.

        Args:
            company_id: Tenant identifier.
            domain: Target ESG domain; selects the import schema.
            rows: Tokenized rows in file order.
            actor_id: Acting user.
            file_name: Uploaded file name; its extension selects the import
                source and it is cited on every data point.

        Raises:
            UnsupportedImportType: For an unknown extension or domain.
            InvalidImportStructure: If the rows yield no metrics.
        """
        key = self._domain(domain)
        source = import_source_from_file_name(file_name)
        result = ImportTransform(
            self._schema(key), source=file_name, id_factory=self._id_factory
        ).transform_rows(rows)
        if result.skipped_cells:
            logger.info(
                "metric_record.import_cells_skipped",
                extra={
                    "extra": {
                        "company_id": company_id,
                        "domain": key.value,
                        "file_name": file_name,
                        "rows_read": result.rows_read,
                        "skipped_cells": result.skipped_cells,
                    }
                },
            )
        metadata = ImportMetadata(
            source=source,
            batch_id=new_import_batch_id(source, self._clock()),
            original_file_name=file_name,
            data_period_start=result.data_period_start,
            data_period_end=result.data_period_end,
        )
        return await self.import_snapshot(
            company_id, key, result.metrics, actor_id, metadata=metadata
        )

    async def import_json(
        self,
        company_id: str,
        domain: MetricDomain | str,
        body: Mapping[str, Any],
        actor_id: str,
        *,
        file_name: str | None = None,
        source: ImportSource = ImportSource.MANUAL,
    ) -> MetricRecord:
        """Validate a ``{"metrics": [...]}`` body and import it as a new version.

        Raises:
            InvalidImportStructure: If the body is malformed.
        """
        key = self._domain(domain)
        dto = parse_metrics_import(body)
        citation = file_name or _DEFAULT_JSON_FILE_NAME
        metrics = dto.to_domain(default_source=citation, id_factory=self._id_factory)
        start, end = infer_data_period(metrics)
        metadata = ImportMetadata(
            source=source,
            batch_id=new_import_batch_id(source, self._clock()),
            original_file_name=citation,
            data_period_start=start,
            data_period_end=end,
        )
        return await self.import_snapshot(company_id, key, metrics, actor_id, metadata=metadata)

    async def upsert_metric(
        self,
        company_id: str,
        domain: MetricDomain | str,
        metric: Metric | Mapping[str, Any],
        actor_id: str,
    ) -> MetricRecord:
        """Insert or replace one metric on the active record, in place.

        The metric is matched by ``(category, metric_name)``. A replaced metric
        keeps its id and its original ``created_by``/``created_at``. When no
        active record exists, an empty version 1 is created first.

        Returns:
            The updated active record.

        Raises:
            InvalidImportStructure: If ``metric`` is malformed.
        """
        key = self._domain(domain)
        actor = _require_actor(actor_id)
        incoming = self._coerce_metric(metric)

        async def step(repo: MetricRecordsRepository, now: datetime) -> MetricRecord:
            active = await repo.get_active(company_id, key)
            created = active is None
            if active is None:
                active = MetricRecord(
                    id=self._id_factory(),
                    company_id=company_id,
                    domain=key,
                    version=1,
                    is_active=True,
                    created_by=actor,
                    created_at=now,
                    last_updated_by=actor,
                    last_updated_at=now,
                )
            stamped = stamp_actor(incoming, actor, now)
            existing = active.find_metric(incoming.category, incoming.metric_name)
            if existing is not None:
                merged = replace(
                    stamped,
                    id=existing.id,
                    is_active=True,
                    created_by=existing.created_by,
                    created_at=existing.created_at,
                    last_updated_by=actor,
                    last_updated_at=now,
                )
                metrics = tuple(merged if m.id == existing.id else m for m in active.metrics)
            else:
                added = replace(
                    stamped,
                    id=self._id_factory(),
                    is_active=True,
                    created_by=actor,
                    created_at=now,
                    last_updated_by=actor,
                    last_updated_at=now,
                )
                metrics = (*active.metrics, added)
            updated = replace(active, metrics=metrics, last_updated_by=actor, last_updated_at=now)
            if created:
                await repo.add(updated)
            else:
                await repo.save(updated)
            return updated

        record = await self._write("upsert_metric", company_id, key, step)
        self._log_mutation(
            "metric_record.upserted",
            record,
            category=incoming.category,
            metric_name=incoming.metric_name,
        )
        return record

    async def delete_metric(
        self,
        company_id: str,
        domain: MetricDomain | str,
        metric_id: UUID,
        actor_id: str,
    ) -> MetricRecord:
        """Soft-delete one metric of the active record.

        Raises:
            MetricRecordNotFound: If there is no active record, or the metric id
                is absent from it (or already deleted).
        """
        key = self._domain(domain)
        actor = _require_actor(actor_id)

        async def step(repo: MetricRecordsRepository, now: datetime) -> MetricRecord:
            active = await self._require_active(repo, company_id, key)
            target = active.metric_by_id(metric_id)
            if target is None or not target.is_active:
                raise MetricRecordNotFound(
                    "Metric not found on the active record.",
                    details={"company_id": company_id, "metric_id": str(metric_id)},
                )
            deleted = replace(target, is_active=False, last_updated_by=actor, last_updated_at=now)
            updated = replace(
                active,
                metrics=tuple(deleted if m.id == metric_id else m for m in active.metrics),
                last_updated_by=actor,
                last_updated_at=now,
            )
            await repo.save(updated)
            return updated

        record = await self._write("delete_metric", company_id, key, step)
        self._log_mutation("metric_record.metric_deleted", record, metric_id=str(metric_id))
        return record

    async def restore_version(
        self,
        company_id: str,
        domain: MetricDomain | str,
        version_id: UUID,
        actor_id: str,
    ) -> MetricRecord:
        """Create a new active version whose metrics deep-copy ``version_id``'s.

        Raises:
            MetricRecordNotFound: If the target does not exist or belongs to
                another company or domain.
        """
        key = self._domain(domain)
        actor = _require_actor(actor_id)

        async def step(repo: MetricRecordsRepository, now: datetime) -> MetricRecord:
            target = await repo.get_by_id(version_id)
            if target is None or target.company_id != company_id or target.domain is not key:
                raise MetricRecordNotFound(
                    "Version not found.",
                    details={"company_id": company_id, "version_id": str(version_id)},
                )
            active = await repo.get_active(company_id, key)
            if active is not None:
                await repo.deactivate(active.id, actor_id=actor, at=now)
            copies = tuple(replace(m, id=self._id_factory()) for m in target.metrics)
            record = replace(
                self._new_record(
                    company_id,
                    key,
                    copies,
                    actor,
                    now,
                    previous=active,
                    metadata=target.import_metadata,
                ),
                restored_from_id=target.id,
                restore_notes=f"Restored from version {target.version} on {now.isoformat()}",
            )
            await repo.add(record)
            return record

        record = await self._write("restore_version", company_id, key, step)
        self._log_mutation(
            "metric_record.restored", record, restored_from_id=str(record.restored_from_id)
        )
        return record

    async def validate_active_record(
        self,
        company_id: str,
        domain: MetricDomain | str,
        actor_id: str,
        *,
        notes: str | None = None,
    ) -> ValidationResult:
        """Validate the active record and persist the outcome on it (no new version).

        A failed validation is recorded, never raised.

        Raises:
            MetricRecordNotFound: If there is no active record.
        """
        key = self._domain(domain)
        actor = _require_actor(actor_id)

        async def step(
            repo: MetricRecordsRepository, now: datetime
        ) -> tuple[MetricRecord, ValidationResult]:
            active = await self._require_active(repo, company_id, key)
            result = self._validation_engine.evaluate(active)
            updated = replace(
                active,
                validation_status=result.validation_status,
                data_quality_score=result.data_quality_score,
                validation_errors=result.errors,
                validation_notes=notes,
                last_updated_by=actor,
                last_updated_at=now,
            )
            await repo.save(updated)
            return updated, result

        record, result = await self._write("validate_active_record", company_id, key, step)
        self._log_mutation(
            "metric_record.validated",
            record,
            validation_status=result.validation_status.value,
            data_quality_score=result.data_quality_score,
            error_count=result.error_count,
        )
        return result

    async def update_verification_status(
        self,
        company_id: str,
        domain: MetricDomain | str,
        status: VerificationStatus | str,
        actor_id: str,
        *,
        notes: str | None = None,
    ) -> MetricRecord:
        """Set the third-party verification state of the active record.

        Raises:
            MetricRecordNotFound: If there is no active record.
            InvalidImportStructure: If ``status`` is not a known verification state.
        """
        key = self._domain(domain)
        actor = _require_actor(actor_id)
        try:
            new_status = VerificationStatus(status)
        except ValueError as exc:
            raise InvalidImportStructure(
                "Unknown verification status.", details={"status": str(status)}
            ) from exc

        async def step(repo: MetricRecordsRepository, now: datetime) -> MetricRecord:
            active = await self._require_active(repo, company_id, key)
            updated = replace(
                active,
                verification_status=new_status,
                verified_by=actor,
                verified_at=now,
                verification_notes=notes,
                last_updated_by=actor,
                last_updated_at=now,
            )
            await repo.save(updated)
            return updated

        record = await self._write("update_verification_status", company_id, key, step)
        self._log_mutation(
            "metric_record.verification_updated",
            record,
            verification_status=new_status.value,
        )
        return record

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_active_record(
        self, company_id: str, domain: MetricDomain | str
    ) -> MetricRecord | None:
        """Return the active record for ``(company_id, domain)``, if any."""
        key = self._domain(domain)
        return await self._read(lambda repo: repo.get_active(company_id, key))

    async def get_record_by_id(self, company_id: str, record_id: UUID) -> MetricRecord:
        """Return any version of a chain owned by ``company_id``.

        Raises:
            MetricRecordNotFound: If absent or owned by another company.
        """
        record = await self._read(lambda repo: repo.get_by_id(record_id))
        if record is None or record.company_id != company_id:
            raise MetricRecordNotFound(
                "Record not found.",
                details={"company_id": company_id, "record_id": str(record_id)},
            )
        return record

    async def list_versions(
        self, company_id: str, domain: MetricDomain | str
    ) -> list[MetricRecord]:
        """Return the whole version chain, newest first."""
        key = self._domain(domain)
        records = await self._read(lambda repo: repo.list_versions(company_id, key))
        return sorted(records, key=lambda r: r.version, reverse=True)

    async def get_metrics_by_category(
        self, company_id: str, domain: MetricDomain | str, category: str
    ) -> list[Metric]:
        """Return the active record's live metrics in ``category``, in order."""
        active = await self.get_active_record(company_id, domain)
        if active is None:
            return []
        return [m for m in active.active_metrics if m.category == category]

    async def get_time_series(
        self,
        company_id: str,
        domain: MetricDomain | str,
        metric_name: str,
        category: str | None = None,
    ) -> list[YearlyDataPoint]:
        """Return the yearly points of a live series metric, ordered by year.

        Returns an empty list when the record, the metric, or the points are missing.
        """
        active = await self.get_active_record(company_id, domain)
        if active is None:
            return []
        for metric in active.active_metrics:
            if metric.metric_name != metric_name:
                continue
            if category is not None and metric.category != category:
                continue
            if isinstance(metric.payload, YearlySeries):
                return sorted(metric.payload.points, key=lambda p: year_sort_key(p.year))
        return []

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _domain(self, domain: MetricDomain | str) -> MetricDomain:
        try:
            key = MetricDomain(domain)
        except ValueError as exc:
            raise UnsupportedImportType(
                "Unknown metric domain.", details={"domain": str(domain)}
            ) from exc
        if key not in self._schemas:
            raise UnsupportedImportType(
                "Metric domain is not served by this store.", details={"domain": key.value}
            )
        return key

    def _schema(self, domain: MetricDomain) -> DomainSchema:
        return self._schemas[domain]

    def _coerce_metric(self, metric: Metric | Mapping[str, Any]) -> Metric:
        if isinstance(metric, Metric):
            _require_metrics((metric,))
            return metric
        dto = parse_metric(metric)
        return dto.to_domain(default_source=_DEFAULT_JSON_FILE_NAME, id_factory=self._id_factory)

    def _new_record(
        self,
        company_id: str,
        domain: MetricDomain,
        metrics: Sequence[Metric],
        actor: str,
        now: datetime,
        *,
        previous: MetricRecord | None,
        metadata: ImportMetadata | None,
    ) -> MetricRecord:
        stamped = tuple(
            replace(
                stamp_actor(m, actor, now),
                created_by=m.created_by or actor,
                created_at=m.created_at or now,
                last_updated_by=actor,
                last_updated_at=now,
            )
            for m in metrics
        )
        meta = metadata or ImportMetadata()
        if meta.data_period_start is None and meta.data_period_end is None:
            start, end = infer_data_period(stamped)
            meta = replace(meta, data_period_start=start, data_period_end=end)
        return MetricRecord(
            id=self._id_factory(),
            company_id=company_id,
            domain=domain,
            version=previous.version + 1 if previous is not None else 1,
            is_active=True,
            metrics=stamped,
            previous_version_id=previous.id if previous is not None else None,
            validation_status=ValidationStatus.NOT_VALIDATED,
            import_metadata=meta,
            created_by=actor,
            created_at=now,
            last_updated_by=actor,
            last_updated_at=now,
        )

    @staticmethod
    async def _require_active(
        repo: MetricRecordsRepository, company_id: str, domain: MetricDomain
    ) -> MetricRecord:
        active = await repo.get_active(company_id, domain)
        if active is None:
            raise MetricRecordNotFound(
                "No active record.",
                details={"company_id": company_id, "domain": domain.value},
            )
        return active

    async def _read(self, fn: Callable[[MetricRecordsRepository], Awaitable[T]]) -> T:
        async def body(tx: UnitOfWork) -> T:
            return await fn(tx.get_repository(MetricRecordsRepository))

        return await run_in_uow(self._uow_factory(), body)

    async def _write(
        self,
        operation: str,
        company_id: str,
        domain: MetricDomain,
        step: _WriteStep[T],
        *,
        retry: bool = True,
    ) -> T:
        async def attempt() -> T:
            async with self._locks.hold((company_id, domain)):

                async def body(tx: UnitOfWork) -> T:
                    repo: MetricRecordsRepository = tx.get_repository(MetricRecordsRepository)
                    await repo.lock_key(company_id, domain)
                    return await step(repo, self._clock())

                return await run_in_uow(self._uow_factory(), body)

        def on_retry(attempt_no: int, exc: Exception) -> None:
            self._observer.conflict_retried(operation, domain)
            logger.warning(
                "metric_record.conflict_retry",
                extra={
                    "extra": {
                        "operation": operation,
                        "company_id": company_id,
                        "domain": domain.value,
                        "attempt": attempt_no,
                        "error": str(exc),
                    }
                },
            )

        try:
            result = await retry_async(
                attempt,
                policy=self._retry_policy if retry else RetryPolicy.none(),
                retry_on=_is_retryable,
                on_retry=on_retry,
            )
        except TransactionConflict:
            self._observer.operation_finished(operation, domain, "conflict")
            raise
        except Exception:
            self._observer.operation_finished(operation, domain, "error")
            raise
        self._observer.operation_finished(operation, domain, "success")
        return result

    @staticmethod
    def _log_mutation(event: str, record: MetricRecord, **fields: Any) -> None:
        logger.info(
            event,
            extra={
                "extra": {
                    "company_id": record.company_id,
                    "domain": record.domain.value,
                    "record_id": str(record.id),
                    "version": record.version,
                    **fields,
                }
            },
        )
