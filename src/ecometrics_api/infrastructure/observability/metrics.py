# src/ecometrics_api/infrastructure/observability/metrics.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Prometheus metrics (registry-aware, test safe).

Two families of collectors are exposed through accessor functions:

1) **Database operations** recorded by the SQLAlchemy repository
   (``ecometrics_db_operation_duration_seconds``, ``ecometrics_db_errors_total``).
2) **Version store operations** recorded through
   :class:`PrometheusMetricStoreObserver`
   (``ecometrics_metric_store_operations_total``,
   ``ecometrics_metric_store_conflicts_total``).

Accessors return a collector bound to the *current* ``prometheus_client.REGISTRY``.
Tests that swap the default registry get fresh collectors and no
duplicate-registration errors.

Example:
    get_db_operation_duration_seconds().labels(
        operation="add", model="metric_records", outcome="success"
    ).observe(0.004)
"""

from __future__ import annotations

import logging
import threading
from contextlib import suppress
from typing import Final

import prometheus_client as prom
from prometheus_client import Counter, Histogram

from ecometrics_api.domain.enums.metric_record import MetricDomain

_log = logging.getLogger(__name__)

# Histogram buckets (seconds); repository calls are expected well under 1s.
_BUCKETS: Final[tuple[float, ...]] = (
    0.001,
    0.005,
    0.010,
    0.025,
    0.050,
    0.100,
    0.250,
    0.500,
    1.000,
    2.500,
)

_registry_id: int | None = None
_cache: dict[str, Histogram | Counter] = {}
_lock = threading.RLock()


def _ensure_registry() -> None:
    """Drop cached collectors when the default registry has been replaced."""
    global _registry_id
    with _lock:
        rid = id(prom.REGISTRY)
        if _registry_id != rid:
            _cache.clear()
            _registry_id = rid


def _lookup_existing[C: (Histogram, Counter)](name: str, kind: type[C]) -> C | None:
    """Return a collector already registered under ``name`` if it has type ``kind``."""
    with _lock, suppress(Exception):
        mapping = getattr(prom.REGISTRY, "_names_to_collectors", None)
        if isinstance(mapping, dict):
            col = mapping.get(name)
            if isinstance(col, kind):
                return col
    return None


def _get_or_create_hist(
    name: str,
    help_text: str,
    *,
    labelnames: tuple[str, ...] = (),
    buckets: tuple[float, ...] = _BUCKETS,
) -> Histogram:
    """Get or create a ``Histogram`` on the active registry.

    Order of resolution: module cache, collector already in the registry,
    fresh registration. A concurrent duplicate registration falls back to the
    registry lookup.
    """
    _ensure_registry()
    with _lock:
        cached = _cache.get(name)
        if isinstance(cached, Histogram):
            return cached
        existing = _lookup_existing(name, Histogram)
        if existing is not None:
            _cache[name] = existing
            return existing
        try:
            hist = Histogram(name, help_text, labelnames, buckets=buckets, registry=prom.REGISTRY)
        except ValueError as exc:
            again = _lookup_existing(name, Histogram)
            if "Duplicated timeseries" in str(exc) and again is not None:
                _cache[name] = again
                return again
            _log.exception("Failed to register Prometheus histogram %s", name)
            raise
        _cache[name] = hist
        return hist


def _get_or_create_counter(
    name: str,
    help_text: str,
    *,
    labelnames: tuple[str, ...] = (),
) -> Counter:
    """Get or create a ``Counter`` on the active registry (see :func:`_get_or_create_hist`)."""
    _ensure_registry()
    with _lock:
        cached = _cache.get(name)
        if isinstance(cached, Counter):
            return cached
        existing = _lookup_existing(name, Counter)
        if existing is not None:
            _cache[name] = existing
            return existing
        try:
            counter = Counter(name, help_text, labelnames, registry=prom.REGISTRY)
        except ValueError as exc:
            again = _lookup_existing(name, Counter)
            if "Duplicated timeseries" in str(exc) and again is not None:
                _cache[name] = again
                return again
            _log.exception("Failed to register Prometheus counter %s", name)
            raise
        _cache[name] = counter
        return counter


# ---------------------------------------------------------------------------
# Database metrics


def get_db_operation_duration_seconds() -> Histogram:
    """Return histogram for repository operation latency.

    Labels:
        operation: Repository method (e.g. ``get_active``, ``add``).
        model: Table name (``metric_records``).
        outcome: ``success`` or ``error``.
    """
    return _get_or_create_hist(
        name="ecometrics_db_operation_duration_seconds",
        help_text="Latency (seconds) of metric record repository operations.",
        labelnames=("operation", "model", "outcome"),
    )


def get_db_errors_total() -> Counter:
    """Return counter for repository errors.

    Labels:
        operation: Repository method.
        model: Table name.
        reason: Exception class name or ``conflict``.
    """
    return _get_or_create_counter(
        name="ecometrics_db_errors_total",
        help_text="Total metric record repository errors by operation/model.",
        labelnames=("operation", "model", "reason"),
    )


# ---------------------------------------------------------------------------
# Version store metrics


def get_metric_store_operations_total() -> Counter:
    """Return counter of finished version store operations.

    Labels:
        operation: Store operation (e.g. ``import_snapshot``, ``upsert_metric``).
        domain: Metric domain value.
        outcome: ``success``, ``conflict`` or ``error``.
    """
    return _get_or_create_counter(
        name="ecometrics_metric_store_operations_total",
        help_text="Version store operations by outcome.",
        labelnames=("operation", "domain", "outcome"),
    )


def get_metric_store_conflicts_total() -> Counter:
    """Return counter of conflicting attempts that were retried."""
    return _get_or_create_counter(
        name="ecometrics_metric_store_conflicts_total",
        help_text="Version store transaction conflicts that triggered a retry.",
        labelnames=("operation", "domain"),
    )


class PrometheusMetricStoreObserver:
    """Version store observer that increments the Prometheus counters above."""

    def operation_finished(self, operation: str, domain: MetricDomain, outcome: str) -> None:
        get_metric_store_operations_total().labels(
            operation=operation, domain=domain.value, outcome=outcome
        ).inc()

    def conflict_retried(self, operation: str, domain: MetricDomain) -> None:
        get_metric_store_conflicts_total().labels(operation=operation, domain=domain.value).inc()
