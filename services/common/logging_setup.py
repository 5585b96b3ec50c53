"""
Root logger configuration for both services.

Development: one human-readable line per record, with module and line.
Production (LOG_JSON=true): one JSON object per line for log shippers.
"""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone

_TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s:%(lineno)d] %(message)s"

# Attributes every LogRecord has; anything else was passed via extra=.
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO", json_format: bool = False) -> None:
    formatter = {"()": JsonFormatter} if json_format else {"format": _TEXT_FORMAT}
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "root": {"level": level.upper(), "handlers": ["console"]},
        "loggers": {
            # Our access log middleware replaces uvicorn's.
            "uvicorn.access": {"level": "WARNING"},
            "httpx": {"level": "WARNING"},
        },
    })
