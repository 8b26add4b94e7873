"""Minimum-interval request limiter shared by all callers of one source."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable


class MinIntervalLimiter:
    """Spaces requests at least `interval` seconds apart.

    Callers await acquire() before each request. The lock serializes the
    wait so concurrent quotes against the same vendor queue up instead of
    bursting. A limiter can outlive an event loop (one CLI run after
    another), so the lock is recreated for each loop that uses it.
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None
        self._lock: asyncio.Lock | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def _current_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._loop is not loop:
            self._lock = asyncio.Lock()
            self._loop = loop
        return self._lock

    async def acquire(self) -> float:
        """Wait for the slot; returns the delay applied, in seconds."""
        async with self._current_lock():
            waited = 0.0
            now = self._clock()
            if self._last is not None:
                elapsed = now - self._last
                if elapsed < self.interval:
                    waited = self.interval - elapsed
                    await self._sleep(waited)
                    now = max(self._clock(), self._last + self.interval)
            self._last = now
            return waited


_SHARED: dict[str, MinIntervalLimiter] = {}


def shared_limiter(vendor: str, interval: float) -> MinIntervalLimiter:
    """Process-wide limiter for a vendor, created on first use."""
    limiter = _SHARED.get(vendor)
    if limiter is None:
        limiter = _SHARED[vendor] = MinIntervalLimiter(interval)
    return limiter


__all__ = ["MinIntervalLimiter", "shared_limiter"]
