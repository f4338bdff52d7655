# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable

import prometheus_client as prom
import pytest
from fakes import InMemoryDatabase, InMemoryUnitOfWork, StepClock

from ecometrics_api.application.resilience.retry import RetryPolicy
from ecometrics_api.application.services.version_store import VersionStore
from ecometrics_api.infrastructure.observability import metrics


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Force pytest-anyio to use asyncio (not trio)."""
    return "asyncio"


@pytest.fixture
def db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def uow_factory(db: InMemoryDatabase) -> Callable[[], InMemoryUnitOfWork]:
    return lambda: InMemoryUnitOfWork(db)


@pytest.fixture
def store(uow_factory: Callable[[], InMemoryUnitOfWork]) -> VersionStore:
    return VersionStore(
        uow_factory,
        retry_policy=RetryPolicy(total=3, base=0.0, cap=0.0, jitter=False),
        clock=StepClock(),
    )


@pytest.fixture
def prom_registry(monkeypatch: pytest.MonkeyPatch) -> prom.CollectorRegistry:
    """Swap in an empty Prometheus registry and drop cached collectors."""
    fresh = prom.CollectorRegistry()
    monkeypatch.setattr(prom, "REGISTRY", fresh)
    monkeypatch.setattr(metrics, "_registry_id", None)
    return fresh
