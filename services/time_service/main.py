"""
Time service: current local time per city, backed by WorldTimeAPI.

Entrypoint: uvicorn services.time_service.main:app --host 0.0.0.0 --port 3003
        or: time-service   (console script, honours PORT)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from services.common.errors import install_error_handlers
from services.common.http_client import RetryingJSONClient
from services.common.logging_setup import configure_logging
from services.common.middleware import install_request_context, setup_cors
from services.common.sentry import setup_sentry
from services.time_service.cache import TimeCache
from services.time_service.client import WorldTimeApiClient
from services.time_service.config import Settings, settings as default_settings
from services.time_service.routers import health, time

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle. Prefill finishes before the first request is served."""
    settings: Settings = app.state.settings
    configure_logging(settings.log_level, settings.log_json)
    setup_sentry(settings)

    time_client = WorldTimeApiClient(
        cache=TimeCache(),
        base_url=settings.world_time_api_url,
        http=RetryingJSONClient(
            timeout_s=settings.http_timeout_seconds,
            max_retries=settings.http_max_retries,
        ),
    )
    app.state.time_client = time_client

    if settings.prefill_on_startup:
        await time_client.prefill_cache()

    logger.info("Time service started: upstream=%s", settings.world_time_api_url)

    yield

    await time_client.aclose()
    logger.info("Time service stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title="Time Service",
        version=settings.app_version,
        docs_url="/swagger-ui",
        openapi_url="/api-docs/openapi.json",
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.include_router(health.router)
    app.include_router(time.router)

    install_error_handlers(app)
    install_request_context(app)
    setup_cors(app, settings.cors_origins)
    return app


app = create_app()


def run() -> None:
    uvicorn.run(app, host="0.0.0.0", port=default_settings.port)
