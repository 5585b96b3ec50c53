"""
Shared error taxonomy for the weather and time services.

Every failure the services know about is one AppError subclass. Each class
carries the HTTP status it maps to and the label used in its message:

  FetchTimeoutError     504   per-request / per-fetch timeout
  UpstreamHTTPError     echo  non-2xx upstream (502 when the status is bogus)
  NetworkError          502   transport failure
  ParseError            400   upstream body does not match the schema
  InputValidationError  400   client request rejected
  DatabaseError         500   auth service only
  AuthError             401   auth service only
  AuthorizationError    403   auth service only
  InternalError         500   anything unexpected

Error responses always have the body {"error": "<str(exc)>"}.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class. str(exc) is the human message sent to clients."""

    kind = "internal"
    label = "Internal error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.label}: {self.message}"


class FetchTimeoutError(AppError):
    kind = "timeout"
    label = "Timeout error"
    status_code = 504


class UpstreamHTTPError(AppError):
    """Non-2xx response from an upstream. Carries the numeric status."""

    kind = "http"
    label = "HTTP error"

    def __init__(self, status: int, reason: str = "") -> None:
        self.status = status
        self.reason = reason
        super().__init__(f"{status} {reason}".strip())

    @property
    def status_code(self) -> int:  # type: ignore[override]
        if 100 <= self.status <= 599:
            return self.status
        return 502


class NetworkError(AppError):
    kind = "network"
    label = "Network error"
    status_code = 502


class ParseError(AppError):
    kind = "parse"
    label = "JSON parse error"
    status_code = 400


class InputValidationError(AppError):
    kind = "validation"
    label = "Validation error"
    status_code = 400


class DatabaseError(AppError):
    kind = "database"
    label = "Database error"
    status_code = 500


class AuthError(AppError):
    kind = "auth"
    label = "Authentication error"
    status_code = 401


class AuthorizationError(AppError):
    kind = "authorization"
    label = "Authorization error"
    status_code = 403


class InternalError(AppError):
    pass


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def install_error_handlers(app: FastAPI) -> None:
    """Register the {"error": ...} handlers on a FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return error_response(exc.status_code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        )
        return error_response(400, str(InputValidationError(details or "Invalid request")))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return error_response(404, "Resource not found")
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, str(InternalError("An unexpected error occurred")))
