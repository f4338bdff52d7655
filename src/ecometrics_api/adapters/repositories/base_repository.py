# src/ecometrics_api/adapters/repositories/base_repository.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""
BaseRepository: shared mechanics for SQLAlchemy repositories.

Purpose:
    * Safe fetch helpers (optional, all).
    * Latency/error metrics around each repository operation.
    * Translation of integrity and serialization failures into
      ``TransactionConflict`` so callers can retry on a fresh transaction.

Layer: adapters / repositories

Notes:
    * No business logic, no domain decisions.
    * Repositories never commit; the unit of work owns transactions.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from typing import Any, Generic, TypeVar

from sqlalchemy import Select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ecometrics_api.domain.exceptions.metric_records import TransactionConflict
from ecometrics_api.infrastructure.observability.metrics import (
    get_db_errors_total,
    get_db_operation_duration_seconds,
)

TModel = TypeVar("TModel")

#: PostgreSQL SQLSTATEs that mean "retry the transaction".
RETRYABLE_SQLSTATES: frozenset[str] = frozenset({"40001", "40P01"})


def conflict_from_db_error(exc: DBAPIError, *, operation: str) -> TransactionConflict | None:
    """Return a ``TransactionConflict`` for retryable DB failures, else ``None``.

    Unique violations (a concurrent writer created the same version or a
    second active row), serialization failures and deadlocks all map to a
    conflict.
    """
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if isinstance(exc, IntegrityError) or sqlstate in RETRYABLE_SQLSTATES:
        return TransactionConflict(
            "Concurrent modification of the metric record chain.",
            details={"operation": operation, "sqlstate": sqlstate, "reason": type(exc).__name__},
        )
    return None


class BaseRepository(Generic[TModel]):  # noqa: UP046
    """Base class for SQLAlchemy repositories."""

    _MODEL_NAME = "unknown"

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: Async SQLAlchemy session bound to the target database.
        """
        self._session: AsyncSession = session
        self._metrics_hist = get_db_operation_duration_seconds()
        self._metrics_err = get_db_errors_total()

    @asynccontextmanager
    async def _observe(self, operation: str) -> AsyncIterator[None]:
        """Record latency and errors of ``operation``; map DB conflicts.

        Raises:
            TransactionConflict: For integrity, serialization or deadlock errors.
        """
        start = time.perf_counter()
        outcome = "success"
        try:
            yield
        except DBAPIError as exc:
            outcome = "error"
            conflict = conflict_from_db_error(exc, operation=operation)
            self._count_error(operation, "conflict" if conflict else type(exc).__name__)
            if conflict is not None:
                raise conflict from exc
            raise
        except Exception as exc:
            outcome = "error"
            self._count_error(operation, type(exc).__name__)
            raise
        finally:
            with suppress(Exception):
                self._metrics_hist.labels(
                    operation=operation,
                    model=self._MODEL_NAME,
                    outcome=outcome,
                ).observe(time.perf_counter() - start)

    def _count_error(self, operation: str, reason: str) -> None:
        with suppress(Exception):
            self._metrics_err.labels(
                operation=operation,
                model=self._MODEL_NAME,
                reason=reason,
            ).inc()

    async def fetch_optional(self, stmt: Select[Any]) -> TModel | None:
        """Execute a statement and return zero or one row."""
        res = await self._session.execute(stmt)
        return res.scalars().first()

    async def fetch_all(self, stmt: Select[Any]) -> list[TModel]:
        """Execute a statement and return all rows as a list."""
        res = await self._session.execute(stmt)
        return list(res.scalars().all())
