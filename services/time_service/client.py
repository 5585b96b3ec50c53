"""
WorldTimeApiClient: current local time per city via WorldTimeAPI, cached forever.

get_time(city):
  1. cache lookup (normalised key); hit -> return
  2. IANA zone from the static table ("UTC" for unknown cities)
  3. retrying GET {base}/{zone}, zone percent-encoded ("Europe%2FLondon")
  4. translate unixtime -> unix_time, cache write

WorldTimeAPI response (fields we use):
  {"datetime": "2024-01-01T12:00:00.000000+00:00",
   "timezone": "Europe/London",
   "unixtime": 1704110400}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import quote

from pydantic import BaseModel

from services.common.errors import AppError
from services.common.http_client import RetryingJSONClient
from services.common.models import TimeSample
from services.time_service.cache import TimeCache

logger = logging.getLogger(__name__)

CITY_TIMEZONES: dict[str, str] = {
    "london": "Europe/London",
    "tokyo": "Asia/Tokyo",
    "new york": "America/New_York",
    "paris": "Europe/Paris",
    "berlin": "Europe/Berlin",
    "moscow": "Europe/Moscow",
    "beijing": "Asia/Shanghai",
    "sydney": "Australia/Sydney",
    "rio de janeiro": "America/Sao_Paulo",
    "cairo": "Africa/Cairo",
    "los angeles": "America/Los_Angeles",
    "chicago": "America/Chicago",
    "toronto": "America/Toronto",
    "mexico city": "America/Mexico_City",
    "sao paulo": "America/Sao_Paulo",
    "são paulo": "America/Sao_Paulo",
    "buenos aires": "America/Argentina/Buenos_Aires",
    "dubai": "Asia/Dubai",
    "mumbai": "Asia/Kolkata",
    "singapore": "Asia/Singapore",
    "hong kong": "Asia/Hong_Kong",
}

DEFAULT_TIMEZONE = "UTC"

PREFILL_CITIES = (
    "London",
    "Tokyo",
    "New York",
    "Paris",
    "Berlin",
    "Sydney",
    "Los Angeles",
    "Chicago",
    "Toronto",
    "Singapore",
)


class WorldTimeApiResponse(BaseModel):
    datetime: str
    timezone: str
    unixtime: int


@dataclass(frozen=True)
class PrefillReport:
    cached: int
    failed: int


def timezone_for(city: str) -> str:
    key = " ".join(city.replace("+", " ").lower().split())
    return CITY_TIMEZONES.get(key, DEFAULT_TIMEZONE)


class WorldTimeApiClient:
    """
    Usage:
        client = WorldTimeApiClient(cache=TimeCache(), base_url=settings.world_time_api_url)
        sample = await client.get_time("Tokyo")
    """

    def __init__(
        self,
        cache: TimeCache,
        base_url: str,
        http: RetryingJSONClient | None = None,
    ) -> None:
        self._cache = cache
        self._base_url = base_url.rstrip("/")
        self._http = http or RetryingJSONClient()

    @property
    def cache(self) -> TimeCache:
        return self._cache

    def url_for(self, city: str) -> str:
        return f"{self._base_url}/{quote(timezone_for(city), safe='')}"

    async def get_time(self, city: str) -> TimeSample:
        """Current time for city. Raises AppError subclasses on upstream failure."""
        cached = await self._cache.get(city)
        if cached is not None:
            logger.info("Time cache hit for %r", city)
            return cached

        logger.info("Fetching time for %r from WorldTimeAPI", city)
        payload = await self._http.fetch_json(self.url_for(city), WorldTimeApiResponse)
        sample = TimeSample(
            datetime=payload.datetime,
            timezone=payload.timezone,
            unix_time=payload.unixtime,
        )
        await self._cache.set(city, sample)
        return sample

    async def prefill_cache(self, cities: tuple[str, ...] = PREFILL_CITIES) -> PrefillReport:
        """Warm the cache one city at a time. Failures are logged and counted, never raised."""
        logger.info("Starting cache prefill for %d cities", len(cities))
        cached = 0
        failed = 0
        for city in cities:
            try:
                await self.get_time(city)
                cached += 1
            except AppError as exc:
                failed += 1
                logger.warning("Failed to fetch time for %r during prefill: %s", city, exc)

        logger.info("Cache prefill completed: cached=%d failed=%d", cached, failed)
        return PrefillReport(cached=cached, failed=failed)

    async def aclose(self) -> None:
        await self._http.aclose()
