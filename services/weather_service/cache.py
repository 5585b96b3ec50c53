"""
Weather cache: in-memory, TTL-bounded, keyed by normalised city name.

Cache key:  city.strip().lower()   ("London", " london ", "LONDON" share one entry)
TTL:        CACHE_TTL_SECONDS (default 300)

Expired entries read as misses and are replaced on the next write. The
optional sweeper (CACHE_SWEEP_INTERVAL_SECONDS) drops them in bulk so the map
does not grow with one-off city names.
"""

from __future__ import annotations

import asyncio
import logging

from services.common.cache import TTLCache
from services.common.models import WeatherSample

logger = logging.getLogger(__name__)


class WeatherCache(TTLCache[WeatherSample]):
    def __init__(self, ttl_seconds: float = 300, **kwargs) -> None:
        super().__init__(ttl_seconds=ttl_seconds, name="weather-cache", **kwargs)


async def sweep_forever(cache: TTLCache, interval_s: float) -> None:
    """Purge expired entries every interval_s seconds until cancelled."""
    while True:
        await asyncio.sleep(interval_s)
        removed = await cache.purge_expired()
        if removed:
            logger.info("Swept %d expired entries from %s", removed, cache.name)
