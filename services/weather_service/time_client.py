"""Client for the time service's GET /api/time/{city}, used by the aggregator."""

from __future__ import annotations

from urllib.parse import quote

from services.common.http_client import RetryingJSONClient
from services.common.models import TimeSample


class TimeServiceClient:
    def __init__(self, base_url: str, http: RetryingJSONClient | None = None) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http or RetryingJSONClient()

    def url_for(self, city: str) -> str:
        return f"{self._base_url}/api/time/{quote(city, safe='')}"

    async def get_time(self, city: str) -> TimeSample:
        return await self._http.fetch_json(self.url_for(city), TimeSample)

    async def aclose(self) -> None:
        await self._http.aclose()
