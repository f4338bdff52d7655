# src/ecometrics_api/infrastructure/database/models/base.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Declarative Base and shared column types for EcoMetrics models.

This module defines:
    - The project-wide Declarative Base with deterministic naming conventions
      (stable Alembic diffs).
    - ``JSONDocument``: JSONB on PostgreSQL, generic JSON elsewhere.
    - ``AuditActorMixin``: ``created_*`` / ``last_updated_*`` actor columns.

Tables are declared without a schema. The engine maps them onto the
configured ``DB_SCHEMA`` (see ``infrastructure.database.session``).

Persistence only; no domain behavior lives here.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, MetaData
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column
from sqlalchemy.types import DateTime, String

__all__ = ["metadata", "Base", "AuditActorMixin", "JSONDocument"]

#: Ref: https://alembic.sqlalchemy.org/en/latest/naming.html
NAMING_CONVENTIONS: dict[str, str] = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTIONS)

JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Declarative Base for all ORM models."""

    metadata = metadata


class AuditActorMixin:
    """Actor and timestamp columns written by the version store."""

    @declared_attr
    def created_by(cls) -> Mapped[str | None]:
        return mapped_column(String(255), nullable=True)

    @declared_attr
    def created_at(cls) -> Mapped[datetime | None]:
        return mapped_column(DateTime(timezone=True), nullable=True)

    @declared_attr
    def last_updated_by(cls) -> Mapped[str | None]:
        return mapped_column(String(255), nullable=True)

    @declared_attr
    def last_updated_at(cls) -> Mapped[datetime | None]:
        return mapped_column(DateTime(timezone=True), nullable=True)

