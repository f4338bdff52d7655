# src/ecometrics_api/application/services/keyed_lock.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Per-key asyncio lock registry.

Purpose:
    Serialize in-process writers that target the same ``(company_id, domain)``
    key while letting writers on other keys proceed concurrently. The database
    advisory lock taken by the repository covers writers in other processes.

Layer:
    application/services
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager


class KeyedLockRegistry:
    """Lazily created ``asyncio.Lock`` per key, released entries are dropped."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._waiters[key] - 1
            if remaining:
                self._waiters[key] = remaining
            else:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
