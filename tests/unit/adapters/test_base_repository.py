# tests/unit/adapters/test_base_repository.py
from __future__ import annotations

import prometheus_client as prom
import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from ecometrics_api.adapters.repositories.base_repository import (
    BaseRepository,
    conflict_from_db_error,
)
from ecometrics_api.domain.exceptions.metric_records import (
    MetricRecordNotFound,
    TransactionConflict,
)


class _PgError(Exception):
    def __init__(self, sqlstate: str) -> None:
        super().__init__(f"sqlstate {sqlstate}")
        self.sqlstate = sqlstate


class _ProbeRepository(BaseRepository[object]):
    _MODEL_NAME = "sample_records"


def _errors(registry: prom.CollectorRegistry, operation: str, reason: str) -> float | None:
    return registry.get_sample_value(
        "ecometrics_db_errors_total",
        {"operation": operation, "model": "sample_records", "reason": reason},
    )


@pytest.mark.parametrize(
    "error",
    [
        IntegrityError("INSERT", {}, _PgError("23505")),
        OperationalError("UPDATE", {}, _PgError("40001")),
        DBAPIError("UPDATE", {}, _PgError("40P01")),
    ],
)
def test_retryable_errors_map_to_conflicts(error: DBAPIError) -> None:
    conflict = conflict_from_db_error(error, operation="add")

    assert isinstance(conflict, TransactionConflict)
    assert conflict.details["operation"] == "add"
    assert conflict.details["sqlstate"] == error.orig.sqlstate  # type: ignore[union-attr]


def test_other_errors_are_not_conflicts() -> None:
    error = OperationalError("SELECT", {}, _PgError("08006"))

    assert conflict_from_db_error(error, operation="get_active") is None


@pytest.mark.anyio
async def test_observe_maps_integrity_errors(prom_registry: prom.CollectorRegistry) -> None:
    repo = _ProbeRepository(session=None)  # type: ignore[arg-type]
    error = IntegrityError("INSERT", {}, _PgError("23505"))

    with pytest.raises(TransactionConflict) as info:
        async with repo._observe("add"):
            raise error

    assert info.value.__cause__ is error
    assert _errors(prom_registry, "add", "conflict") == 1.0


@pytest.mark.anyio
async def test_observe_records_latency_and_plain_errors(
    prom_registry: prom.CollectorRegistry,
) -> None:
    repo = _ProbeRepository(session=None)  # type: ignore[arg-type]

    async with repo._observe("get_active"):
        pass
    with pytest.raises(MetricRecordNotFound):
        async with repo._observe("save"):
            raise MetricRecordNotFound("gone")

    labels = {"operation": "get_active", "model": "sample_records", "outcome": "success"}
    count = prom_registry.get_sample_value("ecometrics_db_operation_duration_seconds_count", labels)
    assert count == 1
    assert _errors(prom_registry, "save", "MetricRecordNotFound") == 1.0
