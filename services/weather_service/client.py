"""
OpenMeteoClient: Open-Meteo current-conditions client with cache, rate limit
and debounce.

get_weather(city) order of operations:
  1. cache lookup (normalised key); hit -> return
  2. acquire a rate-limit permit and wait out the debounce
  3. coordinates from the static table, (0, 0) for unknown cities
  4. retrying GET of
       {base}?latitude=..&longitude=..&current=temperature_2m,relative_humidity_2m,wind_speed_10m,weather_code
  5. translate to WeatherSample (weather_code -> condition)
  6. cache write, then release the permit

Open-Meteo response:
  {"current": {"temperature_2m": 15.5, "relative_humidity_2m": 65.0,
               "wind_speed_10m": 10.2, "weather_code": 3}}
"""

from __future__ import annotations

import logging

from pydantic import BaseModel

from services.common.http_client import RetryingJSONClient
from services.common.models import WeatherSample
from services.common.throttle import RateLimiter
from services.weather_service.cache import WeatherCache

logger = logging.getLogger(__name__)

CURRENT_FIELDS = "temperature_2m,relative_humidity_2m,wind_speed_10m,weather_code"

# (latitude, longitude)
CITY_COORDINATES: dict[str, tuple[float, float]] = {
    "london": (51.5074, -0.1278),
    "tokyo": (35.6762, 139.6503),
    "new york": (40.7128, -74.0060),
    "paris": (48.8566, 2.3522),
    "berlin": (52.5200, 13.4050),
    "moscow": (55.7558, 37.6173),
    "beijing": (39.9042, 116.4074),
    "sydney": (-33.8688, 151.2093),
    "rio de janeiro": (-22.9068, -43.1729),
    "cairo": (30.0444, 31.2357),
    "los angeles": (34.0522, -118.2437),
    "chicago": (41.8781, -87.6298),
    "toronto": (43.6532, -79.3832),
    "mexico city": (19.4326, -99.1332),
    "sao paulo": (-23.5505, -46.6333),
    "são paulo": (-23.5505, -46.6333),
    "buenos aires": (-34.6037, -58.3816),
    "dubai": (25.2048, 55.2708),
    "mumbai": (19.0760, 72.8777),
    "singapore": (1.3521, 103.8198),
    "hong kong": (22.3193, 114.1694),
}

_FALLBACK_COORDINATES = (0.0, 0.0)


class CurrentWeather(BaseModel):
    temperature_2m: float
    relative_humidity_2m: float | None = None
    wind_speed_10m: float | None = None
    weather_code: int | None = None


class OpenMeteoResponse(BaseModel):
    current: CurrentWeather


def lookup_key(city: str) -> str:
    """'  New+York ' -> 'new york'"""
    return " ".join(city.replace("+", " ").lower().split())


def coordinates_for(city: str) -> tuple[float, float]:
    return CITY_COORDINATES.get(lookup_key(city), _FALLBACK_COORDINATES)


def weather_code_to_condition(code: int) -> str:
    """Map an Open-Meteo (WMO) weather code to a short condition string."""
    if code == 0:
        return "Clear sky"
    if 1 <= code <= 3:
        return "Partly cloudy"
    if code in (45, 48):
        return "Foggy"
    if code in (51, 53, 55):
        return "Drizzle"
    if code in (61, 63, 65):
        return "Rain"
    if code in (71, 73, 75):
        return "Snow"
    if 80 <= code <= 82:
        return "Rain showers"
    if code in (85, 86):
        return "Snow showers"
    if code == 95:
        return "Thunderstorm"
    if code in (96, 99):
        return "Thunderstorm with hail"
    return "Unknown"


def to_sample(payload: OpenMeteoResponse) -> WeatherSample:
    current = payload.current
    code = current.weather_code if current.weather_code is not None else 0
    return WeatherSample(
        temperature=current.temperature_2m,
        condition=weather_code_to_condition(code),
        humidity=current.relative_humidity_2m,
        wind_speed=current.wind_speed_10m,
    )


class OpenMeteoClient:
    """
    Usage:
        client = OpenMeteoClient(cache=WeatherCache(300), base_url=settings.open_meteo_url)
        sample = await client.get_weather("Tokyo")
    """

    def __init__(
        self,
        cache: WeatherCache,
        base_url: str,
        rate_limit_per_minute: int = 60,
        http: RetryingJSONClient | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """
        Args:
            cache:                 Shared weather cache.
            base_url:              Open-Meteo forecast endpoint (OPEN_METEO_URL).
            rate_limit_per_minute: Cap C; also sets the debounce to 60 / C seconds.
            http:                  Retrying client; a default (2s, 2 retries) is built if omitted.
            rate_limiter:          Explicit limiter, overriding rate_limit_per_minute.
        """
        self._cache = cache
        self._base_url = base_url
        self._http = http or RetryingJSONClient()
        self.rate_limiter = rate_limiter or RateLimiter(rate_limit_per_minute)

    @property
    def cache(self) -> WeatherCache:
        return self._cache

    async def get_weather(self, city: str) -> WeatherSample:
        """Current weather for city. Raises AppError subclasses on upstream failure."""
        cached = await self._cache.get(city)
        if cached is not None:
            logger.info("Weather cache hit for %r", city)
            return cached

        async with self.rate_limiter.slot():
            latitude, longitude = coordinates_for(city)
            logger.info("Fetching weather for %r from Open-Meteo", city)
            payload = await self._http.fetch_json(
                self._base_url,
                OpenMeteoResponse,
                params={
                    "latitude": latitude,
                    "longitude": longitude,
                    "current": CURRENT_FIELDS,
                },
            )
            sample = to_sample(payload)
            await self._cache.set(city, sample)

        return sample

    async def aclose(self) -> None:
        await self._http.aclose()
