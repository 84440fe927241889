"""
backend/los/services/retry.py

Purpose:
    Bounded retry with exponential backoff for store operations. Only
    TransientStoreError is retried; everything else propagates immediately.

Dependencies:
    - asyncio
    - los.errors
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from los.errors import TransientStoreError

logger = logging.getLogger("los.retry")

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]


class RetryPolicy:
    """Retry/backoff policy for awaitables that may raise TransientStoreError."""

    def __init__(
        self,
        max_attempts: int = 4,
        base_delay: float = 0.5,
        max_delay: float = 30.0,
        sleep: Sleep | None = None,
    ):
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay = max(0.0, float(base_delay))
        self.max_delay = max(self.base_delay, float(max_delay))
        self._sleep = sleep or asyncio.sleep

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (0-based)."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    async def run(self, name: str, func: Callable[[], Awaitable[T]]) -> T:
        """Call `func` until it succeeds or attempts are exhausted."""
        last_exc: TransientStoreError | None = None

        for attempt in range(self.max_attempts):
            try:
                return await func()
            except TransientStoreError as exc:
                last_exc = exc
                logger.warning(
                    "[%s] Transient store error (attempt %d/%d): %s",
                    name, attempt + 1, self.max_attempts, exc,
                )
                if attempt < self.max_attempts - 1:
                    await self._sleep(self.delay_for(attempt))

        logger.error("[%s] All %d attempts failed: %s", name, self.max_attempts, last_exc)
        raise last_exc  # type: ignore[misc]
