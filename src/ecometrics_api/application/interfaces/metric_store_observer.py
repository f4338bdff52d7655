# src/ecometrics_api/application/interfaces/metric_store_observer.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Metric store observer port.

Purpose:
    Let the version store report operation outcomes and retried conflicts
    without importing the metrics backend. The Prometheus implementation lives
    in ``infrastructure/observability``.

Layer:
    application/interfaces
"""

from __future__ import annotations

from typing import Protocol

from ecometrics_api.domain.enums.metric_record import MetricDomain


class MetricStoreObserver(Protocol):
    """Receives one call per finished store operation and per retried conflict."""

    def operation_finished(self, operation: str, domain: MetricDomain, outcome: str) -> None:
        """Record a finished operation.

        Args:
            operation: Store operation name (e.g. ``"import_snapshot"``).
            domain: Domain the operation targeted.
            outcome: ``"success"``, ``"conflict"`` or ``"error"``.
        """

    def conflict_retried(self, operation: str, domain: MetricDomain) -> None:
        """Record a conflicting attempt that is about to be retried."""


class NullMetricStoreObserver:
    """Observer that records nothing."""

    def operation_finished(self, operation: str, domain: MetricDomain, outcome: str) -> None:
        return None

    def conflict_retried(self, operation: str, domain: MetricDomain) -> None:
        return None
