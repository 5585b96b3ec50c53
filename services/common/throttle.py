"""
Per-provider outbound throttle: concurrency permits plus debounce.

For a cap of C requests per minute:
  - at most max(1, C) calls are in flight at once (asyncio.Semaphore)
  - successive calls start at least 60 / max(1, C) seconds apart

The debounce clock is the event loop's monotonic time. The lock around it is
held only to read and reserve the next start instant, never across the sleep,
so concurrent callers queue up behind each other at the minimum spacing.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

logger = logging.getLogger(__name__)


class RateLimiter:
    """Permit set + minimum inter-request interval for one upstream."""

    def __init__(self, requests_per_minute: int, min_interval_s: float | None = None):
        """
        Args:
            requests_per_minute: Cap C. Values below 1 are treated as 1.
            min_interval_s:      Override for the 60 / C spacing.
        """
        self.requests_per_minute = max(1, requests_per_minute)
        self.min_interval_s = (
            60.0 / self.requests_per_minute if min_interval_s is None else max(0.0, min_interval_s)
        )
        self._permits = asyncio.Semaphore(self.requests_per_minute)
        self._clock_lock = asyncio.Lock()
        self._last_request: float | None = None

    @property
    def last_request(self) -> float | None:
        """Loop time of the most recently scheduled request, if any."""
        return self._last_request

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold a permit and wait out the debounce before the caller's request."""
        async with self._permits:
            await self._debounce()
            yield

    async def _debounce(self) -> None:
        loop = asyncio.get_running_loop()
        async with self._clock_lock:
            now = loop.time()
            previous = self._last_request
            start_at = now
            if self._last_request is not None:
                start_at = max(now, self._last_request + self.min_interval_s)
            self._last_request = start_at

        wait = start_at - now
        if wait > 0:
            logger.debug("Debouncing request for %.0fms", wait * 1000)
            try:
                await asyncio.sleep(wait)
            except asyncio.CancelledError:
                # Give back the slot unless a later caller has already booked after it.
                # _clock_lock is never held across an await, so this is atomic.
                if self._last_request == start_at:
                    self._last_request = previous
                raise
