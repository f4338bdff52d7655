# src/ecometrics_api/adapters/uow/sqlalchemy_uow.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""SQLAlchemy-backed Unit of Work implementation.

Purpose:
    Implement the application-layer ``UnitOfWork`` protocol on top of one
    ``AsyncSession``. Every snapshot transition of the version store runs in
    exactly one such unit; a retry opens a new one.

Layer:
    adapters/uow
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import TracebackType
from typing import Any

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ecometrics_api.adapters.repositories.base_repository import conflict_from_db_error
from ecometrics_api.adapters.repositories.metric_records_repository import (
    SqlAlchemyMetricRecordsRepository,
)
from ecometrics_api.application.uow import UnitOfWork
from ecometrics_api.domain.interfaces.repositories.metric_records_repository import (
    MetricRecordsRepository,
)


class SqlAlchemyUnitOfWork(UnitOfWork):
    """SQLAlchemy-based UnitOfWork.

    Usage:

        async with SqlAlchemyUnitOfWork(session_factory=factory) as uow:
            repo = uow.get_repository(MetricRecordsRepository)
            ...
            await uow.commit()
    """

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        repo_factories: Mapping[type[Any], Callable[[AsyncSession], Any]] | None = None,
    ) -> None:
        """Initialize the UnitOfWork.

        Args:
            session_factory: Factory for new ``AsyncSession`` instances.
            repo_factories: Optional overrides mapping a repository key to a
                factory taking the session. The metric records repository is
                registered by default under its protocol and concrete class.
        """
        self._session_factory = session_factory
        self._session: AsyncSession | None = None

        default_factories: dict[type[Any], Callable[[AsyncSession], Any]] = {
            MetricRecordsRepository: lambda s: SqlAlchemyMetricRecordsRepository(session=s),
            SqlAlchemyMetricRecordsRepository: lambda s: SqlAlchemyMetricRecordsRepository(
                session=s
            ),
        }
        self._repo_factories: dict[type[Any], Callable[[AsyncSession], Any]] = {
            **default_factories,
            **(dict(repo_factories) if repo_factories is not None else {}),
        }

        self._repos: dict[type[Any], Any] = {}
        self._committed = False
        self._rolled_back = False

    async def __aenter__(self) -> SqlAlchemyUnitOfWork:
        """Open a new AsyncSession.

        Raises:
            RuntimeError: If a session is already active (nested usage).
        """
        if self._session is not None:
            raise RuntimeError("UnitOfWork is already active; nested usage is not supported.")

        self._session = self._session_factory()
        self._committed = False
        self._rolled_back = False
        self._repos.clear()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool | None:
        """Roll back if needed and close the session. Exceptions propagate."""
        try:
            if not self._committed and not self._rolled_back:
                await self.rollback()
        finally:
            if self._session is not None:
                await self._session.close()
                self._session = None
            self._repos.clear()
        return None

    async def commit(self) -> None:
        """Commit the transaction; no-op if already committed or rolled back.

        Raises:
            RuntimeError: If called without an active session.
            TransactionConflict: If the commit failed on a serialization or
                integrity error.
        """
        if self._session is None:
            raise RuntimeError("Cannot commit: UnitOfWork has no active session.")
        if self._committed or self._rolled_back:
            return

        try:
            await self._session.commit()
        except DBAPIError as exc:
            await self.rollback()
            conflict = conflict_from_db_error(exc, operation="commit")
            if conflict is not None:
                raise conflict from exc
            raise
        self._committed = True

    async def rollback(self) -> None:
        """Roll back the transaction; no-op if already finished."""
        if self._session is None or self._rolled_back or self._committed:
            return
        await self._session.rollback()
        self._rolled_back = True

    def get_repository(self, repo_type: type[Any]) -> Any:
        """Return the repository for ``repo_type`` bound to the active session.

        Raises:
            RuntimeError: If called outside of an active UnitOfWork context.
            KeyError: If no factory is registered for ``repo_type``.
        """
        if self._session is None:
            raise RuntimeError(
                "get_repository() called outside of an active UnitOfWork scope. "
                "Use 'async with uow:' before requesting repositories.",
            )

        if repo_type in self._repos:
            return self._repos[repo_type]

        try:
            factory = self._repo_factories[repo_type]
        except KeyError as exc:
            raise KeyError(f"No repository factory registered for type {repo_type!r}.") from exc

        repo = factory(self._session)
        self._repos[repo_type] = repo
        return repo
