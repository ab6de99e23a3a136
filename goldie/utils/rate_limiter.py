"""Goldie — Async Rate Limiter.

Sliding-window limiter used to keep the NBKR scraper polite. A single
asyncio.Lock serializes callers; waiting happens outside the lock.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque

from goldie.utils.logger import get_logger

logger = get_logger(__name__)


class AsyncRateLimiter:
    """Allow at most max_calls acquisitions per sliding window.

    Attributes:
        max_calls: Calls allowed within one window.
        period: Window length in seconds.
    """

    def __init__(self, max_calls: int, period_seconds: float) -> None:
        if max_calls < 1:
            raise ValueError(f"max_calls must be positive, got {max_calls}")
        self.max_calls = max_calls
        self.period = max(0.0, period_seconds)
        self._calls: deque[float] = deque()
        self._lock = asyncio.Lock()

        logger.debug(
            "Rate limiter initialized: %d calls / %.1f seconds",
            max_calls, self.period,
        )

    def _expire(self, now: float) -> None:
        cutoff = now - self.period
        while self._calls and self._calls[0] <= cutoff:
            self._calls.popleft()

    async def acquire(self) -> None:
        """Block until a slot is free, then record the call."""
        while True:
            async with self._lock:
                now = time.monotonic()
                self._expire(now)
                if len(self._calls) < self.max_calls:
                    self._calls.append(now)
                    return
                wait_time = self._calls[0] + self.period - now

            logger.debug("Rate limit reached, waiting %.2f seconds", wait_time)
            await asyncio.sleep(wait_time)

    async def __aenter__(self) -> "AsyncRateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, *args: object) -> None:
        pass

    def __repr__(self) -> str:
        return f"AsyncRateLimiter(max_calls={self.max_calls}, period={self.period}s)"
