"""
In-memory keyed cache with optional TTL, shared by both services.

Key normalisation:
  "  London " -> "london"
  "NEW YORK"  -> "new york"
  "New+York"  -> "new york"

Entries carry an optional absolute deadline on the monotonic clock. A read
returns the value only if there is no deadline or the deadline is strictly in
the future. Expired entries are left in place on read; the next write of the
same key replaces them and purge_expired() sweeps them in bulk.

Concurrency: reads share a ReadWriteLock, writes take it exclusively. Values
are copied on the way out so callers never hold a reference into the map.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def normalize_key(key: str) -> str:
    return key.replace("+", " ").strip().lower()


class ReadWriteLock:
    """
    asyncio lock allowing many readers or a single writer.

    A waiting writer blocks new readers so writes are not starved by a
    steady stream of lookups.
    """

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def writer_active(self) -> bool:
        return self._writer

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and not self._writers_waiting)
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            self._writers_waiting += 1
            try:
                await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            finally:
                self._writers_waiting -= 1
                # Readers parked behind a writer that gave up must re-check.
                self._cond.notify_all()
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass
class CacheEntry(Generic[T]):
    value: T
    expires_at: float | None = None

    def is_fresh(self, now: float) -> bool:
        return self.expires_at is None or self.expires_at > now


class TTLCache(Generic[T]):
    """
    Async-safe cache keyed by normalised strings.

    Usage:
        cache: TTLCache[WeatherSample] = TTLCache(ttl_seconds=300)
        await cache.set("London", sample)
        hit = await cache.get("  LONDON ")   # same entry
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        """
        Args:
            ttl_seconds: Lifetime of an entry. None means entries never expire.
            clock:       Monotonic clock, injectable for tests.
            name:        Label used in log lines.
        """
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._lock = ReadWriteLock()

    async def get(self, key: str) -> T | None:
        """Return a copy of the live value for key, or None on miss / expiry."""
        k = normalize_key(key)
        async with self._lock.read():
            entry = self._entries.get(k)
            if entry is None:
                logger.debug("%s miss: %s", self.name, k)
                return None
            if not entry.is_fresh(self._clock()):
                logger.debug("%s expired: %s", self.name, k)
                return None
            return copy.deepcopy(entry.value)

    async def set(self, key: str, value: T) -> None:
        """Insert or replace the entry for key, restarting its TTL."""
        k = normalize_key(key)
        expires_at = None
        if self.ttl_seconds is not None:
            expires_at = self._clock() + self.ttl_seconds
        async with self._lock.write():
            self._entries[k] = CacheEntry(value=copy.deepcopy(value), expires_at=expires_at)
        logger.debug("%s set: %s ttl=%s", self.name, k, self.ttl_seconds)

    async def purge_expired(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        async with self._lock.write():
            now = self._clock()
            stale = [k for k, e in self._entries.items() if not e.is_fresh(now)]
            for k in stale:
                del self._entries[k]
        if stale:
            logger.debug("%s purged %d expired entries", self.name, len(stale))
        return len(stale)

    async def size(self) -> int:
        """Number of stored entries, expired ones included."""
        async with self._lock.read():
            return len(self._entries)

    async def clear(self) -> None:
        async with self._lock.write():
            self._entries.clear()
