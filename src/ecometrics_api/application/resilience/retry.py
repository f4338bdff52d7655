# src/ecometrics_api/application/resilience/retry.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Async retry with jittered exponential backoff.

Used by the version store to re-run a whole transaction after a
``TransactionConflict``. Each attempt must be self-contained (its own Unit of
Work) so a failed attempt leaves no partial effect.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry attempts."""

    total: int  # retries after the first attempt
    base: float  # base backoff seconds
    cap: float  # max backoff seconds
    jitter: bool = True  # full jitter when True

    @classmethod
    def none(cls) -> RetryPolicy:
        """Return a policy that never retries."""
        return cls(total=0, base=0.0, cap=0.0, jitter=False)

    def backoff(self, attempt: int) -> float:
        """Return the sleep before retry number ``attempt`` (0-based)."""
        delay = min(self.cap, self.base * (2**attempt))
        if self.jitter:
            delay = random.uniform(0, delay)  # noqa: S311
        return delay


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    retry_on: Callable[[Exception], bool],
    on_retry: Callable[[int, Exception], None] | None = None,
) -> T:
    """Run ``fn`` until it succeeds, a non-retryable error occurs, or the budget is spent.

    Args:
        fn: Zero-arg async function to execute; one full attempt per call.
        policy: RetryPolicy defining count/backoff.
        retry_on: Predicate returning True for exceptions worth retrying.
        on_retry: Optional hook called with ``(attempt, exc)`` before sleeping.

    Returns:
        The return value of ``fn``.

    Raises:
        Exception: The last exception once retries are exhausted, or the
            first non-retryable one.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            if attempt >= policy.total or not retry_on(exc):
                raise
            if on_retry is not None:
                on_retry(attempt + 1, exc)
            await asyncio.sleep(policy.backoff(attempt))
            attempt += 1
