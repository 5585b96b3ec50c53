"""
Sentry instrumentation for the FastAPI services.
Server-side only. Strips sensitive headers from breadcrumbs.
"""

from __future__ import annotations

from typing import Any, Protocol

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

SENSITIVE_HEADERS = {"authorization", "cookie", "set-cookie"}


class SentrySettings(Protocol):
    sentry_dsn: str
    sentry_traces_sample_rate: float
    environment: str
    app_name: str
    app_version: str


def _filter_headers(headers: Any) -> None:
    if isinstance(headers, dict):
        for key in list(headers.keys()):
            if key.lower() in SENSITIVE_HEADERS:
                headers[key] = "[FILTERED]"


def _strip_sensitive_data(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    """before_send hook: strip Authorization headers and cookies from breadcrumbs."""
    for breadcrumb in event.get("breadcrumbs", {}).get("values", []):
        data = breadcrumb.get("data", {})
        if isinstance(data, dict):
            _filter_headers(data.get("headers"))
    request = event.get("request", {})
    if isinstance(request, dict):
        _filter_headers(request.get("headers"))
    return event


def setup_sentry(settings: SentrySettings) -> bool:
    """Initialise Sentry if a DSN is configured. Returns whether it was enabled."""
    if not settings.sentry_dsn:
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"{settings.app_name}@{settings.app_version}",
        traces_sample_rate=settings.sentry_traces_sample_rate,
        before_send=_strip_sensitive_data,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        send_default_pii=False,
    )
    return True
