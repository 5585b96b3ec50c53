"""
Weather service HTTP surface.

Tests:
- /health, OpenAPI document, 404 shape, X-Request-ID
- GET /api/weather/{city} success and upstream failure mapping
- GET /api/aggregate validation, partial failure and caching across requests
- lifespan wiring and shutdown
"""

from unittest.mock import patch

import pytest

from services.common.cancellation import CancellationToken
from services.weather_service.aggregator import Aggregator
from services.weather_service.client import OpenMeteoClient
from services.weather_service.config import Settings
from services.weather_service.main import create_app, lifespan
from services.weather_service.time_client import TimeServiceClient

OPEN_METEO_HOST = "open-meteo.test"
TIME_HOST = "time-service.test"


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

class TestHealthEndpoint:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "weather-service"}

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client):
        response = await client.get("/health", headers={"x-request-id": "test-req-12345"})
        assert response.headers["x-request-id"] == "test-req-12345"

    @pytest.mark.asyncio
    async def test_openapi_document(self, client):
        response = await client.get("/api-docs/openapi.json")
        assert response.status_code == 200
        paths = response.json()["paths"]
        assert "/api/aggregate" in paths
        assert "/api/weather/{city}" in paths

    @pytest.mark.asyncio
    async def test_swagger_ui(self, client):
        response = await client.get("/swagger-ui")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown_route(self, client):
        response = await client.get("/nonexistent-route")
        assert response.status_code == 404
        assert response.json() == {"error": "Resource not found"}


# ---------------------------------------------------------------------------
# Single-city weather
# ---------------------------------------------------------------------------

class TestWeatherEndpoint:

    @pytest.mark.asyncio
    async def test_returns_sample(self, client):
        response = await client.get("/api/weather/London")
        assert response.status_code == 200
        assert response.json() == {
            "temperature": 15.5,
            "condition": "Partly cloudy",
            "humidity": 65.0,
            "wind_speed": 10.2,
        }

    @pytest.mark.asyncio
    async def test_city_with_space(self, client, upstream):
        response = await client.get("/api/weather/New%20York")
        assert response.status_code == 200
        assert upstream.requests[0].url.params["latitude"] == "40.7128"

    @pytest.mark.asyncio
    async def test_upstream_failure_maps_to_error_body(self, client, upstream):
        upstream.weather_status = 500
        response = await client.get("/api/weather/London")
        assert response.status_code == 500
        assert response.json() == {"error": "HTTP error: 500 Internal Server Error"}
        assert len(upstream.hits(OPEN_METEO_HOST)) == 3

    @pytest.mark.asyncio
    async def test_upstream_502_is_echoed(self, client, upstream):
        upstream.weather_status = 502
        response = await client.get("/api/weather/London")
        assert response.status_code == 502
        assert response.json()["error"] == "HTTP error: 502 Bad Gateway"


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------

class TestAggregateEndpoint:

    @pytest.mark.asyncio
    async def test_two_cities(self, client):
        response = await client.get("/api/aggregate", params=[("city", "London"), ("city", "Tokyo")])
        assert response.status_code == 200
        body = response.json()
        assert [c["city"] for c in body["cities"]] == ["London", "Tokyo"]
        assert body["summary"] == {"total": 2, "successful": 2, "failed": 0}
        assert body["cities"][0]["time"]["unix_time"] == 1704110400
        assert body["cities"][0]["errors"] == []

    @pytest.mark.asyncio
    async def test_no_cities_is_400(self, client):
        response = await client.get("/api/aggregate")
        assert response.status_code == 400
        assert response.json() == {"error": "Validation error: Must provide between 1 and 20 cities"}

    @pytest.mark.asyncio
    async def test_too_many_cities_is_400(self, client, upstream):
        params = [("city", f"City {i}") for i in range(21)]
        response = await client.get("/api/aggregate", params=params)
        assert response.status_code == 400
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_partial_failure_is_still_200(self, client, upstream):
        upstream.failing_time_cities.add("Paris")
        response = await client.get("/api/aggregate", params=[("city", "London"), ("city", "Paris")])
        assert response.status_code == 200
        body = response.json()
        paris = body["cities"][1]
        assert paris["weather"]["condition"] == "Partly cloudy"
        assert paris["time"] is None
        assert paris["errors"] == ["Time: HTTP error: 503 Service Unavailable"]
        assert body["summary"] == {"total": 2, "successful": 1, "failed": 1}

    @pytest.mark.asyncio
    async def test_weather_cached_across_requests(self, client, upstream):
        for _ in range(2):
            response = await client.get("/api/aggregate", params={"city": "London"})
            assert response.json()["summary"]["successful"] == 1

        assert len(upstream.hits(OPEN_METEO_HOST)) == 1
        assert len(upstream.hits(TIME_HOST)) == 2

    @pytest.mark.asyncio
    async def test_shutdown_reports_cancelled(self, client, app):
        app.state.shutdown.cancel()
        response = await client.get("/api/aggregate", params={"city": "London"})
        assert response.status_code == 200
        assert response.json()["cities"][0]["errors"] == ["Request cancelled"]


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

class TestLifespan:

    @pytest.mark.asyncio
    async def test_wires_state_and_cancels_on_exit(self):
        app = create_app(Settings(cache_sweep_interval_seconds=0))
        with patch("services.weather_service.main.configure_logging"):
            async with lifespan(app):
                assert isinstance(app.state.weather_client, OpenMeteoClient)
                assert isinstance(app.state.time_client, TimeServiceClient)
                assert isinstance(app.state.aggregator, Aggregator)
                shutdown: CancellationToken = app.state.shutdown
                assert not shutdown.is_cancelled()

        assert shutdown.is_cancelled()

    @pytest.mark.asyncio
    async def test_sweeper_started_and_stopped(self):
        app = create_app(Settings(cache_sweep_interval_seconds=60))
        with patch("services.weather_service.main.configure_logging"):
            async with lifespan(app):
                assert app.state.weather_cache.ttl_seconds == 300


class TestWeatherCaching:

    @pytest.mark.asyncio
    async def test_repeated_lookup_hits_upstream_once(self, client, upstream):
        first = await client.get("/api/weather/London")
        second = await client.get("/api/weather/london")
        assert first.status_code == second.status_code == 200
        assert first.json() == second.json()
        assert len(upstream.hits(OPEN_METEO_HOST)) == 1
