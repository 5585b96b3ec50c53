"""
Shared fixtures for the weather service tests.

Provides:
- FakeUpstream: one httpx.MockTransport handler standing in for Open-Meteo
  and the time service, recording every request
- a FastAPI app with real clients wired to the fake upstream
  (ASGITransport does not run the lifespan, so state is injected here)
- async HTTP client bound to that app
"""

from urllib.parse import unquote

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from services.common.cancellation import CancellationToken
from services.common.http_client import RetryingJSONClient
from services.common.throttle import RateLimiter
from services.weather_service.aggregator import Aggregator
from services.weather_service.cache import WeatherCache
from services.weather_service.client import OpenMeteoClient
from services.weather_service.config import Settings
from services.weather_service.time_client import TimeServiceClient

OPEN_METEO_HOST = "open-meteo.test"
TIME_HOST = "time-service.test"

OPEN_METEO_BODY = {
    "current": {
        "temperature_2m": 15.5,
        "relative_humidity_2m": 65.0,
        "wind_speed_10m": 10.2,
        "weather_code": 3,
    }
}


class FakeUpstream:
    """Routes by host. Status overrides make a whole upstream fail."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.weather_status = 200
        self.time_status = 200
        self.failing_time_cities: set[str] = set()

    def hits(self, host: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == OPEN_METEO_HOST:
            if self.weather_status != 200:
                return httpx.Response(self.weather_status)
            return httpx.Response(200, json=OPEN_METEO_BODY)

        if request.url.host == TIME_HOST:
            city = unquote(request.url.path.rsplit("/", 1)[-1])
            if self.time_status != 200:
                return httpx.Response(self.time_status)
            if city in self.failing_time_cities:
                return httpx.Response(503)
            return httpx.Response(200, json={
                "datetime": "2024-01-01T12:00:00.000000+00:00",
                "timezone": "Europe/London",
                "unix_time": 1704110400,
            })

        return httpx.Response(404)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def http(upstream):
    return RetryingJSONClient(backoff_base_s=0, transport=httpx.MockTransport(upstream))


@pytest.fixture
def weather_cache():
    return WeatherCache(ttl_seconds=300)


@pytest.fixture
def weather_client(weather_cache, http):
    return OpenMeteoClient(
        cache=weather_cache,
        base_url=f"http://{OPEN_METEO_HOST}/v1/forecast",
        http=http,
        rate_limiter=RateLimiter(60, min_interval_s=0),
    )


@pytest.fixture
def time_client(http):
    return TimeServiceClient(f"http://{TIME_HOST}", http=http)


@pytest.fixture
def app(weather_cache, weather_client, time_client):
    """Weather service app with clients pointed at FakeUpstream."""
    from services.weather_service.main import create_app

    _app = create_app(Settings())
    shutdown = CancellationToken()
    _app.state.shutdown = shutdown
    _app.state.weather_cache = weather_cache
    _app.state.weather_client = weather_client
    _app.state.time_client = time_client
    _app.state.aggregator = Aggregator(weather_client, time_client, shutdown=shutdown)
    return _app


@pytest.fixture
async def client(app, http):
    """Async HTTP client bound to the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await http.aclose()
