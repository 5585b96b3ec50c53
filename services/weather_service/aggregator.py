"""
Aggregator: weather + time for up to MAX_CITIES cities in one request.

Per request:
  - 1 <= len(cities) <= max_cities, otherwise InputValidationError (HTTP 400)
  - one asyncio task per city, all gated by a process-wide semaphore
    (fan-out limit, default 10) held for the whole of the city's work
  - inside the gate, weather and time are fetched concurrently, each capped
    by its own per-fetch timeout (default 10s)
  - the request's cancellation token races the permit wait and the fetch
    step; cancellation yields errors == ["Request cancelled"] and drops any
    partial data

Failures never escape per city. They become strings on the CityResult:
  "Weather: HTTP error: 500 Internal Server Error"
  "Time: Timeout error: Time fetch for Paris timed out"
(weather first). Results come back in input order, one per input city, so
len(cities) == summary.total always holds.

City task states: created -> waiting-for-permit -> fetching -> done, with
cancelled reachable from created and waiting-for-permit, and racing fetching.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Protocol

from services.common.cancellation import CancellationToken
from services.common.errors import AppError, FetchTimeoutError, InputValidationError, InternalError
from services.common.models import AggregateResult, CityResult, TimeSample, WeatherSample

logger = logging.getLogger(__name__)

DEFAULT_FAN_OUT_LIMIT = 10
DEFAULT_PER_FETCH_TIMEOUT_S = 10.0
DEFAULT_MAX_CITIES = 20


class WeatherSource(Protocol):
    async def get_weather(self, city: str) -> WeatherSample: ...


class TimeSource(Protocol):
    async def get_time(self, city: str) -> TimeSample: ...


def describe_failure(exc: BaseException) -> str:
    """Human message for a per-city failure."""
    if isinstance(exc, AppError):
        return str(exc)
    return str(InternalError(str(exc) or type(exc).__name__))


class Aggregator:
    """
    Usage:
        aggregator = Aggregator(weather_client, time_client, shutdown_token)
        result = await aggregator.aggregate(["London", "Tokyo"])
    """

    def __init__(
        self,
        weather: WeatherSource,
        time_source: TimeSource,
        shutdown: CancellationToken | None = None,
        fan_out_limit: int = DEFAULT_FAN_OUT_LIMIT,
        per_fetch_timeout_s: float = DEFAULT_PER_FETCH_TIMEOUT_S,
        max_cities: int = DEFAULT_MAX_CITIES,
    ) -> None:
        """
        Args:
            weather:             Source of WeatherSample (OpenMeteoClient).
            time_source:         Source of TimeSample (TimeServiceClient).
            shutdown:            Process-wide token; each request gets a child of it.
            fan_out_limit:       Max city tasks holding a permit at once.
            per_fetch_timeout_s: Cap on each weather / time call inside a city task.
            max_cities:          Upper bound on cities per request.
        """
        self._weather = weather
        self._time = time_source
        self._shutdown = shutdown or CancellationToken()
        self.fan_out_limit = max(1, fan_out_limit)
        self.per_fetch_timeout_s = per_fetch_timeout_s
        self.max_cities = max_cities
        self._gate = asyncio.Semaphore(self.fan_out_limit)

        # Observability: city tasks currently inside the gate, and the high-water mark.
        self.in_flight = 0
        self.peak_in_flight = 0

    @property
    def shutdown(self) -> CancellationToken:
        return self._shutdown

    async def aggregate(
        self,
        cities: list[str],
        cancel: CancellationToken | None = None,
    ) -> AggregateResult:
        """
        Fetch weather and time for every city.

        Args:
            cities: City names, in the order the results should come back.
            cancel: Request-scoped token. Defaults to a child of the shutdown token.

        Raises:
            InputValidationError: cities is empty or longer than max_cities.
        """
        if not 1 <= len(cities) <= self.max_cities:
            raise InputValidationError(f"Must provide between 1 and {self.max_cities} cities")

        token = cancel or self._shutdown.child_token()
        logger.info("Starting aggregation for %d cities", len(cities))
        started = time.perf_counter()

        tasks = [
            asyncio.create_task(self._run_city(city, token), name=f"aggregate:{city}")
            for city in cities
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        results = [self._collect(city, outcome) for city, outcome in zip(cities, outcomes)]
        aggregate = AggregateResult.from_cities(results)

        logger.info(
            "Aggregation completed: total=%d successful=%d failed=%d elapsed=%.0fms",
            aggregate.summary.total,
            aggregate.summary.successful,
            aggregate.summary.failed,
            (time.perf_counter() - started) * 1000,
        )
        return aggregate

    def _collect(self, city: str, outcome: Any) -> CityResult:
        """Turn a gathered task outcome into a CityResult, synthesising join failures."""
        if isinstance(outcome, CityResult):
            return outcome
        if isinstance(outcome, asyncio.CancelledError):
            return CityResult.cancelled(city)
        logger.error("City task for %r died: %r", city, outcome)
        return CityResult.failed(city, str(InternalError(f"City task failed: {outcome!r}")))

    async def _run_city(self, city: str, token: CancellationToken) -> CityResult:
        if token.is_cancelled():
            return CityResult.cancelled(city)

        acquired, _ = await token.race(self._gate.acquire())
        if not acquired:
            logger.info("City %r cancelled while waiting for a permit", city)
            return CityResult.cancelled(city)

        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            finished, result = await token.race(self._process_city(city))
        finally:
            self.in_flight -= 1
            self._gate.release()

        if not finished:
            logger.info("City %r cancelled during fetch", city)
            return CityResult.cancelled(city)
        return result

    async def _process_city(self, city: str) -> CityResult:
        weather, time_ = await asyncio.gather(
            self._fetch_weather(city),
            self._fetch_time(city),
            return_exceptions=True,
        )

        errors: list[str] = []
        if isinstance(weather, BaseException):
            logger.warning("Weather fetch failed for %r: %s", city, weather)
            errors.append(f"Weather: {describe_failure(weather)}")
            weather = None
        if isinstance(time_, BaseException):
            logger.warning("Time fetch failed for %r: %s", city, time_)
            errors.append(f"Time: {describe_failure(time_)}")
            time_ = None

        return CityResult(city=city, weather=weather, time=time_, errors=errors)

    async def _fetch_weather(self, city: str) -> WeatherSample:
        try:
            return await asyncio.wait_for(self._weather.get_weather(city), self.per_fetch_timeout_s)
        except asyncio.TimeoutError as exc:
            raise FetchTimeoutError(f"Weather fetch for {city} timed out") from exc

    async def _fetch_time(self, city: str) -> TimeSample:
        try:
            return await asyncio.wait_for(self._time.get_time(city), self.per_fetch_timeout_s)
        except asyncio.TimeoutError as exc:
            raise FetchTimeoutError(f"Time fetch for {city} timed out") from exc
