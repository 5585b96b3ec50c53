"""
WorldTimeApiClient: city -> zone mapping, translation, caching and prefill.
"""

import httpx
import pytest

from services.common.errors import ParseError, UpstreamHTTPError
from services.common.http_client import RetryingJSONClient
from services.time_service.cache import TimeCache
from services.time_service.client import PREFILL_CITIES, WorldTimeApiClient, timezone_for

UNIXTIME = 1704110400


class TestTimezoneLookup:

    @pytest.mark.parametrize("city, zone", [
        ("London", "Europe/London"),
        ("tokyo", "Asia/Tokyo"),
        ("  New York ", "America/New_York"),
        ("new+york", "America/New_York"),
        ("Mumbai", "Asia/Kolkata"),
        ("Beijing", "Asia/Shanghai"),
        ("São Paulo", "America/Sao_Paulo"),
    ])
    def test_known_cities(self, city, zone):
        assert timezone_for(city) == zone

    def test_unknown_city_is_utc(self):
        assert timezone_for("Atlantis") == "UTC"


class TestGetTime:

    def test_zone_is_percent_encoded(self, time_client):
        assert time_client.url_for("London") == "http://worldtime.test/api/timezone/Europe%2FLondon"
        assert time_client.url_for("Buenos Aires") == (
            "http://worldtime.test/api/timezone/America%2FArgentina%2FBuenos_Aires"
        )

    @pytest.mark.asyncio
    async def test_translates_unixtime(self, time_client):
        sample = await time_client.get_time("Tokyo")
        assert sample.timezone == "Asia/Tokyo"
        assert sample.unix_time == UNIXTIME
        assert sample.datetime == "2024-01-01T12:00:00.000000+00:00"

    @pytest.mark.asyncio
    async def test_unknown_city_gets_utc(self, time_client, world_time):
        sample = await time_client.get_time("Atlantis")
        assert sample.timezone == "UTC"
        assert world_time.requests[0].url.path == "/api/timezone/UTC"

    @pytest.mark.asyncio
    async def test_cached_forever_under_normalised_key(self, time_client, world_time):
        first = await time_client.get_time("Tokyo")
        second = await time_client.get_time(" TOKYO ")
        assert first == second
        assert len(world_time.requests) == 1

    @pytest.mark.asyncio
    async def test_failure_propagates_and_is_not_cached(self, time_client, world_time):
        world_time.status = 500
        with pytest.raises(UpstreamHTTPError):
            await time_client.get_time("Paris")
        assert await time_client.cache.size() == 0

    @pytest.mark.asyncio
    async def test_schema_mismatch_is_parse_error(self):
        def handler(request):
            return httpx.Response(200, json={"datetime": "2024-01-01T00:00:00+00:00"})

        client = WorldTimeApiClient(
            cache=TimeCache(),
            base_url="http://worldtime.test/api/timezone",
            http=RetryingJSONClient(max_retries=0, transport=httpx.MockTransport(handler)),
        )
        with pytest.raises(ParseError) as exc_info:
            await client.get_time("London")
        assert str(exc_info.value).startswith("JSON parse error: ")
        await client.aclose()


class TestPrefill:

    def test_prefill_list(self):
        assert len(PREFILL_CITIES) == 10
        assert PREFILL_CITIES[0] == "London"
        assert "Singapore" in PREFILL_CITIES

    @pytest.mark.asyncio
    async def test_all_cities_cached(self, time_client, world_time):
        report = await time_client.prefill_cache()
        assert (report.cached, report.failed) == (10, 0)
        assert await time_client.cache.size() == 10

        await time_client.get_time("Berlin")
        assert len(world_time.requests) == 10

    @pytest.mark.asyncio
    async def test_failures_counted_not_raised(self, time_client, world_time):
        world_time.failing_zones.add("Asia/Tokyo")
        report = await time_client.prefill_cache()
        assert (report.cached, report.failed) == (9, 1)
        assert await time_client.cache.get("Tokyo") is None
        assert await time_client.cache.get("London") is not None

    @pytest.mark.asyncio
    async def test_custom_city_list(self, time_client):
        report = await time_client.prefill_cache(("Dubai", "Cairo"))
        assert (report.cached, report.failed) == (2, 0)
