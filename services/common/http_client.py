"""
Retrying JSON-over-HTTP client shared by every upstream integration.

One RetryingJSONClient wraps one httpx.AsyncClient (connection pooling is
transparent to callers and the instance is safe to share between tasks).

Each attempt is classified into exactly one failure kind:

  timeout              -> FetchTimeoutError
  other transport      -> NetworkError
  non-2xx status       -> UpstreamHTTPError(status)
  body fails the model -> ParseError

Any classified failure is retried while attempts remain, sleeping
backoff_base_s * 2**attempt between attempts (100ms, 200ms, ... by default).
Parse failures are retried too. On exhaustion the last failure is raised.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from services.common.errors import (
    AppError,
    FetchTimeoutError,
    InternalError,
    NetworkError,
    ParseError,
    UpstreamHTTPError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

DEFAULT_TIMEOUT_S = 2.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_BACKOFF_BASE_S = 0.1

USER_AGENT = "city-services/0.1"


def backoff_delay(attempt: int, base_s: float = DEFAULT_BACKOFF_BASE_S) -> float:
    """Delay before retrying after the given zero-based attempt."""
    return base_s * (2 ** attempt)


class RetryingJSONClient:
    """
    GET + decode into a pydantic model, with timeout and retry.

    Usage:
        http = RetryingJSONClient(timeout_s=2.0, max_retries=2)
        payload = await http.fetch_json(url, OpenMeteoResponse, params={...})
        await http.aclose()
    """

    def __init__(
        self,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base_s: float = DEFAULT_BACKOFF_BASE_S,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            timeout_s:      Overall cap on one attempt (request + body read).
            max_retries:    Extra attempts after the first one.
            backoff_base_s: First backoff delay; doubles per attempt.
            client:         Existing httpx client to share. Not closed by aclose().
            transport:      Transport for an owned client (tests use MockTransport).
        """
        self.timeout_s = timeout_s
        self.max_retries = max(0, max_retries)
        self.backoff_base_s = backoff_base_s
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_s),
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
            transport=transport,
        )

    async def fetch_json(
        self,
        url: str,
        model: type[T],
        params: Mapping[str, Any] | None = None,
    ) -> T:
        """Fetch url and decode the body as model, retrying classified failures."""
        last_error: AppError | None = None
        attempts = self.max_retries + 1

        for attempt in range(attempts):
            try:
                result = await self._fetch_once(url, model, params)
                logger.info("GET %s succeeded (attempt %d/%d)", url, attempt + 1, attempts)
                return result
            except AppError as exc:
                last_error = exc
                if attempt < self.max_retries:
                    delay = backoff_delay(attempt, self.backoff_base_s)
                    logger.warning(
                        "GET %s failed (attempt %d/%d): %s. Retrying in %.0fms",
                        url, attempt + 1, attempts, exc, delay * 1000,
                    )
                    await asyncio.sleep(delay)

        logger.error("GET %s: all %d attempts failed: %s", url, attempts, last_error)
        raise last_error or InternalError("Unknown error after retries")

    async def _fetch_once(
        self,
        url: str,
        model: type[T],
        params: Mapping[str, Any] | None,
    ) -> T:
        try:
            resp = await asyncio.wait_for(
                self._client.get(url, params=params),
                timeout=self.timeout_s,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise FetchTimeoutError(f"Request to {url} timed out") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(str(exc) or type(exc).__name__) from exc

        if not resp.is_success:
            raise UpstreamHTTPError(resp.status_code, resp.reason_phrase)

        try:
            return model.model_validate_json(resp.content)
        except ValidationError as exc:
            raise ParseError(_summarise_validation(exc)) from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _summarise_validation(exc: ValidationError) -> str:
    """One-line description of the first schema violation."""
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ())) or "body"
    return f"{loc}: {first.get('msg', 'invalid')}"
