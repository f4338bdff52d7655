# src/ecometrics_api/adapters/dependencies/metric_store.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Metric store dependency wiring.

Purpose:
    Build the version store and analytics engine from settings, backed by
    SQLAlchemy units of work and the Prometheus observer. Building the store
    is the startup hook: it also installs JSON logging at ``LOG_LEVEL``.

Layer:
    adapters/dependencies
"""

from __future__ import annotations

from ecometrics_api.adapters.uow import SqlAlchemyUnitOfWork
from ecometrics_api.application.services.analytics_engine import AnalyticsEngine
from ecometrics_api.application.services.version_store import VersionStore
from ecometrics_api.config.settings import Settings, get_settings
from ecometrics_api.infrastructure.database.session import (
    get_sessionmaker,
    init_engine_and_sessionmaker,
)
from ecometrics_api.infrastructure.logging.logger import configure_root_logging
from ecometrics_api.infrastructure.observability.metrics import PrometheusMetricStoreObserver


def build_version_store(settings: Settings | None = None) -> VersionStore:
    """Construct the version store for the configured database.

    Args:
        settings: Settings to use; ``get_settings()`` when omitted.
    """
    settings = settings or get_settings()
    configure_root_logging(settings.log_level.upper())
    init_engine_and_sessionmaker(settings)
    session_factory = get_sessionmaker()
    return VersionStore(
        lambda: SqlAlchemyUnitOfWork(session_factory=session_factory),
        retry_policy=settings.retry_policy(),
        observer=PrometheusMetricStoreObserver(),
    )


def build_analytics_engine(
    store: VersionStore, settings: Settings | None = None
) -> AnalyticsEngine:
    """Construct the analytics engine reading active records from ``store``."""
    settings = settings or get_settings()
    return AnalyticsEngine(store, settings.analytics_config())
