# migrations/env.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Alembic Environment (migrations/env.py)

Purpose:
    Configure Alembic for the EcoMetrics metric record tables, offline and
    online (async).

Design:
    - Loads .env and .env.<ENVIRONMENT> without overriding exported variables.
    - Requires ENVIRONMENT and an allowlisted database name per environment,
      so a stray DATABASE_URL cannot migrate the wrong database.
    - Uses the project metadata as ``target_metadata`` for autogenerate.
    - Keeps the version table in public.alembic_version.
    - Creates the tables in DB_SCHEMA on PostgreSQL (default "public").
    - Logs only masked connection information.

Environment variables:
    ENVIRONMENT       Required. One of: "test", "development", "docker".
    DATABASE_URL      Database URL (async driver).
    ECHO_SQL          If "1", echo SQL in online runs.
    ALEMBIC_SHOW_URL  If "1", log the masked URL.
    DB_SCHEMA         Target schema for the metric record tables.

Usage:
    ENVIRONMENT=test alembic upgrade head --sql
    ENVIRONMENT=test alembic upgrade head
"""

from __future__ import annotations

import asyncio
import logging
import logging.config
import os
from pathlib import Path
from urllib.parse import urlparse, urlunparse

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from ecometrics_api.infrastructure.database.models import metadata as target_metadata
from ecometrics_api.infrastructure.database.session import schema_translate_map

config = context.config

if config.config_file_name is not None:
    logging.config.fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

_VERSION_TABLE = "alembic_version"
_VERSION_TABLE_SCHEMA = "public"

_ALLOWED_DATABASES: dict[str, set[str]] = {
    "test": {"ecometrics_test"},
    "development": {"ecometrics"},
    "docker": {"ecometrics"},
}


def _load_env_files() -> None:
    """Load .env then .env.<ENVIRONMENT> from the repo root (exported vars win)."""
    root = Path(__file__).resolve().parents[1]
    base = root / ".env"
    if base.exists():
        load_dotenv(base, override=False)
    env = (os.getenv("ENVIRONMENT") or "").strip().lower()
    if env and (root / f".env.{env}").exists():
        load_dotenv(root / f".env.{env}", override=False)


_load_env_files()


def _mask_url(url: str) -> str:
    """Return ``url`` with the password removed."""
    parts = urlparse(url)
    auth = f"{parts.username}:****@" if parts.username else ""
    port = f":{parts.port}" if parts.port else ""
    return urlunparse((parts.scheme, f"{auth}{parts.hostname or ''}{port}", parts.path, "", "", ""))


def _resolve_url() -> str:
    """Return the database URL after the environment safety checks.

    Raises:
        RuntimeError: If ENVIRONMENT or the URL is missing, or the database
            name is not allowed for ENVIRONMENT.
    """
    env = (os.getenv("ENVIRONMENT") or "").strip().lower()
    if not env:
        raise RuntimeError("ENVIRONMENT is required for migrations (e.g., ENVIRONMENT=test).")
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("Database URL not configured (DATABASE_URL/sqlalchemy.url).")

    allowed = _ALLOWED_DATABASES.get(env)
    if allowed is None:
        raise RuntimeError(
            f"Unsupported ENVIRONMENT={env!r} for migrations. "
            f"Supported: {sorted(_ALLOWED_DATABASES)}"
        )
    dbname = (urlparse(url).path or "").lstrip("/")
    if dbname not in allowed:
        raise RuntimeError(
            "Refusing to run migrations against an unexpected database: "
            f"ENVIRONMENT={env!r} database={dbname!r} allowed={sorted(allowed)}"
        )

    if os.getenv("ALEMBIC_SHOW_URL") == "1":
        logger.info("Using DATABASE_URL (masked): %s", _mask_url(url))
    return url


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (SQL script output)."""
    context.configure(
        url=_resolve_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        include_schemas=True,
        version_table=_VERSION_TABLE,
        version_table_schema=_VERSION_TABLE_SCHEMA,
    )
    with context.begin_transaction():
        context.run_migrations()


def _configure_and_run(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        include_schemas=True,
        version_table=_VERSION_TABLE,
        version_table_schema=_VERSION_TABLE_SCHEMA,
    )
    with context.begin_transaction():
        context.run_migrations()


async def _run_migrations_async() -> None:
    """Run migrations in 'online' mode using an async engine."""
    url = _resolve_url()
    engine = create_async_engine(
        url,
        echo=os.getenv("ECHO_SQL") == "1",
        poolclass=pool.NullPool,
    )
    translate = schema_translate_map(url, os.getenv("DB_SCHEMA", "public"))
    if translate is not None:
        engine = engine.execution_options(schema_translate_map=translate)
    async with engine.connect() as connection:
        await connection.run_sync(_configure_and_run)
    await engine.dispose()


def run_migrations_online() -> None:
    """Entry point used by Alembic for online migrations."""
    asyncio.run(_run_migrations_async())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
