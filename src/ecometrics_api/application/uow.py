# src/ecometrics_api/application/uow.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Unit of Work (Application Layer).

Purpose:
    Define the transactional boundary the version store uses to make each
    snapshot transition (read active -> compute next -> deactivate old ->
    write new) a single indivisible commit.

    This module is infrastructure-agnostic:
        * No SQLAlchemy / DB imports.
        * Only Protocols and helpers.

    Concrete implementations live in ``adapters/uow``.

Layer:
    application
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from types import TracebackType
from typing import Any, Protocol, TypeVar, runtime_checkable

TResult = TypeVar("TResult")


@runtime_checkable
class UnitOfWork(Protocol, AbstractAsyncContextManager["UnitOfWork"]):
    """Abstract Unit-of-Work contract.

    A UnitOfWork instance represents exactly one transaction. Retrying an
    operation means opening a new UnitOfWork from a :data:`UnitOfWorkFactory`.
    """

    async def __aenter__(self) -> UnitOfWork:
        """Begin the transaction and return the active UoW."""
        raise NotImplementedError

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool | None:
        """End the transactional scope, rolling back if it was not committed."""
        raise NotImplementedError

    async def commit(self) -> None:
        """Commit all pending changes."""
        raise NotImplementedError

    async def rollback(self) -> None:
        """Discard all pending changes."""
        raise NotImplementedError

    def get_repository(self, repo_type: type[Any]) -> Any:
        """Return the repository bound to this transaction for ``repo_type``.

        Args:
            repo_type: Repository protocol (or concrete class) used as a key.
        """
        raise NotImplementedError


#: Zero-argument callable returning a fresh, not-yet-entered UnitOfWork.
type UnitOfWorkFactory = Callable[[], UnitOfWork]


async def run_in_uow(  # noqa: UP047
    uow: UnitOfWork,
    fn: Callable[[UnitOfWork], Awaitable[TResult]],
) -> TResult:
    """Execute ``fn`` inside ``uow`` with commit/rollback semantics.

    * On success the transaction is committed and the result returned.
    * On any exception the transaction is rolled back and the exception
      re-raised, so the operation has no partial effect.

    Args:
        uow: UnitOfWork providing the transactional boundary.
        fn: Callable receiving the active UnitOfWork.

    Returns:
        TResult: The result of ``fn``.
    """
    async with uow as tx:
        try:
            result = await fn(tx)
        except BaseException:
            await tx.rollback()
            raise
        await tx.commit()
        return result
