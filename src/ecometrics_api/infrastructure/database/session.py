# src/ecometrics_api/infrastructure/database/session.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Async SQLAlchemy engine and session factory.

This module owns the process-global async engine and ``async_sessionmaker``
used by the SQLAlchemy unit of work.

Lifecycle:
    * Call ``init_engine_and_sessionmaker(settings)`` at startup.
    * Units of work open sessions from ``get_sessionmaker()``.
    * Call ``dispose_engine()`` during shutdown.

Notes:
    * ``pool_pre_ping=True`` surfaces dead connections before use.
    * ``expire_on_commit=False`` keeps loaded rows readable after commit so
      repositories can map them to domain records.
    * On PostgreSQL, unqualified tables are mapped onto ``settings.db_schema``
      through ``schema_translate_map``.
"""

from __future__ import annotations

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ecometrics_api.config.settings import Settings

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


def schema_translate_map(database_url: str, db_schema: str) -> dict[str | None, str] | None:
    """Return the schema translation for ``database_url``, if it needs one.

    Only PostgreSQL URLs with a non-empty schema are translated; SQLite has no
    schemas and keeps the tables unqualified.
    """
    if not db_schema or make_url(database_url).get_backend_name() != "postgresql":
        return None
    return {None: db_schema}


def init_engine_and_sessionmaker(settings: Settings) -> None:
    """Initialize the global async engine and sessionmaker (idempotent).

    Args:
        settings: Application settings providing ``database_url``.

    Raises:
        ValueError: If ``database_url`` is empty.
    """
    global _engine, _sessionmaker

    if not settings.database_url:
        raise ValueError("database_url must be configured")
    if _engine is not None:
        return

    engine = create_async_engine(
        url=settings.database_url,
        future=True,
        pool_pre_ping=True,
        echo=False,
    )
    translate = schema_translate_map(settings.database_url, settings.db_schema)
    if translate is not None:
        engine = engine.execution_options(schema_translate_map=translate)
    _engine = engine
    _sessionmaker = async_sessionmaker(bind=_engine, expire_on_commit=False, class_=AsyncSession)


async def dispose_engine() -> None:
    """Dispose the global engine and forget the sessionmaker."""
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Return the initialized async sessionmaker.

    Raises:
        RuntimeError: If the sessionmaker is not yet initialized.
    """
    if _sessionmaker is None:
        raise RuntimeError("DB sessionmaker not initialized (call init_engine_and_sessionmaker)")
    return _sessionmaker

