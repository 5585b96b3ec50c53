"""
Weather service: per-city weather plus the weather+time aggregate endpoint.

Entrypoint: uvicorn services.weather_service.main:app --host 0.0.0.0 --port 3002
        or: weather-service   (console script, honours PORT)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from services.common.cancellation import CancellationToken, link_to_signals
from services.common.errors import install_error_handlers
from services.common.http_client import RetryingJSONClient
from services.common.logging_setup import configure_logging
from services.common.middleware import install_request_context, setup_cors
from services.common.sentry import setup_sentry
from services.weather_service.aggregator import Aggregator
from services.weather_service.cache import WeatherCache, sweep_forever
from services.weather_service.client import OpenMeteoClient
from services.weather_service.config import Settings, settings as default_settings
from services.weather_service.routers import health, weather
from services.weather_service.time_client import TimeServiceClient

logger = logging.getLogger(__name__)


def _http_client(settings: Settings) -> RetryingJSONClient:
    return RetryingJSONClient(
        timeout_s=settings.http_timeout_seconds,
        max_retries=settings.http_max_retries,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings: Settings = app.state.settings
    configure_logging(settings.log_level, settings.log_json)
    setup_sentry(settings)

    shutdown = CancellationToken()
    restore_signals = link_to_signals(shutdown)

    cache = WeatherCache(ttl_seconds=settings.cache_ttl_seconds)
    weather_client = OpenMeteoClient(
        cache=cache,
        base_url=settings.open_meteo_url,
        rate_limit_per_minute=settings.rate_limit_per_minute,
        http=_http_client(settings),
    )
    time_client = TimeServiceClient(settings.time_service_url, http=_http_client(settings))

    app.state.shutdown = shutdown
    app.state.weather_cache = cache
    app.state.weather_client = weather_client
    app.state.time_client = time_client
    app.state.aggregator = Aggregator(
        weather_client,
        time_client,
        shutdown=shutdown,
        fan_out_limit=settings.fan_out_limit,
        per_fetch_timeout_s=settings.per_fetch_timeout_seconds,
        max_cities=settings.max_cities,
    )

    sweeper = None
    if settings.cache_sweep_interval_seconds > 0:
        sweeper = asyncio.create_task(
            sweep_forever(cache, settings.cache_sweep_interval_seconds),
            name="weather-cache-sweeper",
        )

    logger.info(
        "Weather service started: ttl=%ss rate_limit=%d/min time_service=%s",
        settings.cache_ttl_seconds,
        settings.rate_limit_per_minute,
        settings.time_service_url,
    )

    yield

    shutdown.cancel()
    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
    await weather_client.aclose()
    await time_client.aclose()
    restore_signals()
    logger.info("Weather service stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title="Weather Service",
        version=settings.app_version,
        docs_url="/swagger-ui",
        openapi_url="/api-docs/openapi.json",
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.include_router(health.router)
    app.include_router(weather.router)

    install_error_handlers(app)
    install_request_context(app)
    # CORS last so it is outermost and answers preflight.
    setup_cors(app, settings.cors_origins)
    return app


app = create_app()


def run() -> None:
    uvicorn.run(app, host="0.0.0.0", port=default_settings.port)
