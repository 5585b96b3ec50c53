"""
Shared fixtures for the time service tests.

Provides:
- FakeWorldTimeApi: MockTransport handler answering /api/timezone/{zone}
- WorldTimeApiClient wired to it, with instant retries
- FastAPI app + async client (lifespan not run; state injected)
"""


import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from services.common.http_client import RetryingJSONClient
from services.time_service.cache import TimeCache
from services.time_service.client import WorldTimeApiClient
from services.time_service.config import Settings

WORLD_TIME_BASE = "http://worldtime.test/api/timezone"
UNIXTIME = 1704110400


class FakeWorldTimeApi:
    """Answers any zone; zones listed in failing_zones get a 503."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.failing_zones: set[str] = set()
        self.status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        zone = request.url.path.removeprefix("/api/timezone/")
        if self.status != 200:
            return httpx.Response(self.status)
        if zone in self.failing_zones:
            return httpx.Response(503)
        return httpx.Response(200, json={
            "abbreviation": "UTC",
            "datetime": "2024-01-01T12:00:00.000000+00:00",
            "timezone": zone,
            "unixtime": UNIXTIME,
            "utc_offset": "+00:00",
        })


@pytest.fixture
def world_time():
    return FakeWorldTimeApi()


@pytest.fixture
def time_client(world_time):
    return WorldTimeApiClient(
        cache=TimeCache(),
        base_url=WORLD_TIME_BASE,
        http=RetryingJSONClient(max_retries=0, transport=httpx.MockTransport(world_time)),
    )


@pytest.fixture
def app(time_client):
    from services.time_service.main import create_app

    _app = create_app(Settings(prefill_on_startup=False))
    _app.state.time_client = time_client
    return _app


@pytest.fixture
async def client(app, time_client):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await time_client.aclose()
