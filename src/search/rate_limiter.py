# src/search/rate_limiter.py — v1
"""Interval gate: minimum spacing between consecutive provider calls.

One gate instance is owned by the search client and shared by every
concurrent acquisition; it is injected, never a module global.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class IntervalGate:
    """Lets one caller through at a time, at least ``interval_s`` apart."""

    def __init__(
        self,
        interval_s: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if interval_s < 0:
            raise ValueError("interval_s must be >= 0")
        self._interval = interval_s
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last: float | None = None

    @property
    def interval_s(self) -> float:
        return self._interval

    async def wait(self) -> None:
        """Block until the next call may reach the provider."""
        async with self._lock:
            while self._last is not None:
                delay = self._last + self._interval - self._clock()
                if delay <= 0:
                    break
                logger.debug("Search gate: waiting %.2fs", delay)
                await self._sleep(delay)
            # Stamped while still holding the lock
            self._last = self._clock()
