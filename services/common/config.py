"""
Settings shared by both services, read from environment variables via
pydantic-settings. Each service subclasses ServiceSettings.

Numeric and boolean variables that are set but unparseable (PORT=abc,
CACHE_TTL_SECONDS=-5) fall back to the field default with a warning instead
of aborting startup.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}

# Zero would make every fetch time out immediately.
_POSITIVE_FIELDS = {"http_timeout_seconds", "per_fetch_timeout_seconds"}


class ServiceSettings(BaseSettings):
    # App
    app_name: str = "city-service"
    app_version: str = "0.1.0"
    environment: str = Field(default="development", pattern=r"^(development|staging|production)$")
    port: int = 8000

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Sentry
    sentry_dsn: str = ""
    sentry_traces_sample_rate: float = Field(default=0.1, ge=0.0, le=1.0)

    # CORS
    cors_origins: list[str] = Field(default=["*"])

    # Outbound HTTP
    http_timeout_seconds: float = 2.0
    http_max_retries: int = 2

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}

    @field_validator("*", mode="before")
    @classmethod
    def _fallback_on_unparseable(cls, value: Any, info: ValidationInfo) -> Any:
        field = cls.model_fields[info.field_name]
        if field.annotation in (int, float) and isinstance(value, (int, float)) and not isinstance(value, bool):
            if not _in_range(info.field_name, value):
                return _default_for(info.field_name, field.default, value)
            return value
        if not isinstance(value, str):
            return value
        raw = value.strip()

        if field.annotation is bool:
            lowered = raw.lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            return _default_for(info.field_name, field.default, value)

        if field.annotation in (int, float):
            try:
                parsed = field.annotation(raw)
            except ValueError:
                return _default_for(info.field_name, field.default, value)
            if not _in_range(info.field_name, parsed):
                return _default_for(info.field_name, field.default, value)
            return parsed

        return value


def _in_range(name: str, value: float) -> bool:
    if value < 0 or (name == "port" and value > 65535):
        return False
    return not (name in _POSITIVE_FIELDS and value == 0)


def _default_for(name: str, default: Any, raw: Any) -> Any:
    logger.warning("Ignoring unparseable %s=%r, using default %r", name.upper(), raw, default)
    return default
