# tests/unit/application/test_keyed_lock.py
from __future__ import annotations

import asyncio

import pytest

from ecometrics_api.application.services.keyed_lock import KeyedLockRegistry


@pytest.mark.anyio
async def test_same_key_is_serialized() -> None:
    locks = KeyedLockRegistry()
    events: list[str] = []

    async def writer(name: str) -> None:
        async with locks.hold(("acme", "carbon")):
            events.append(f"{name}:start")
            await asyncio.sleep(0.01)
            events.append(f"{name}:end")

    await asyncio.gather(writer("a"), writer("b"))

    assert events == ["a:start", "a:end", "b:start", "b:end"]


@pytest.mark.anyio
async def test_different_keys_run_concurrently() -> None:
    locks = KeyedLockRegistry()
    inside = asyncio.Event()
    both = asyncio.Event()

    async def first() -> None:
        async with locks.hold("a"):
            inside.set()
            await asyncio.wait_for(both.wait(), timeout=1)

    async def second() -> None:
        await inside.wait()
        async with locks.hold("b"):
            both.set()

    await asyncio.gather(first(), second())

    assert both.is_set()


@pytest.mark.anyio
async def test_released_keys_are_dropped() -> None:
    locks = KeyedLockRegistry()

    async with locks.hold("a"):
        assert len(locks) == 1

    assert len(locks) == 0


@pytest.mark.anyio
async def test_lock_is_released_on_error() -> None:
    locks = KeyedLockRegistry()

    with pytest.raises(RuntimeError):
        async with locks.hold("a"):
            raise RuntimeError("boom")

    async with locks.hold("a"):
        pass
    assert len(locks) == 0
