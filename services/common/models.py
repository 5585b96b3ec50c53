"""
Wire models shared by the weather service, the time service and the aggregator.

Field names match the public JSON contract exactly:

  WeatherSample    {"temperature", "condition", "humidity", "wind_speed"}
  TimeSample       {"datetime", "timezone", "unix_time"}
  CityResult       {"city", "weather", "time", "errors"}
  AggregateResult  {"cities", "summary": {"total", "successful", "failed"}}
"""

from __future__ import annotations

from pydantic import BaseModel, Field

CANCELLED_MESSAGE = "Request cancelled"


class WeatherSample(BaseModel):
    """Current conditions for one city."""

    temperature: float
    condition: str
    humidity: float | None = None
    wind_speed: float | None = None


class TimeSample(BaseModel):
    """Current local time for one city."""

    datetime: str = Field(description="ISO-8601 timestamp with offset")
    timezone: str = Field(description="IANA zone id")
    unix_time: int


class CityResult(BaseModel):
    """One entry of an aggregate response. Successful iff errors is empty."""

    city: str
    weather: WeatherSample | None = None
    time: TimeSample | None = None
    errors: list[str] = Field(default_factory=list)

    @property
    def successful(self) -> bool:
        return not self.errors

    @classmethod
    def cancelled(cls, city: str) -> CityResult:
        return cls(city=city, errors=[CANCELLED_MESSAGE])

    @classmethod
    def failed(cls, city: str, message: str) -> CityResult:
        return cls(city=city, errors=[message])


class Summary(BaseModel):
    total: int
    successful: int
    failed: int


class AggregateResult(BaseModel):
    cities: list[CityResult]
    summary: Summary

    @classmethod
    def from_cities(cls, cities: list[CityResult]) -> AggregateResult:
        successful = sum(1 for c in cities if c.successful)
        return cls(
            cities=cities,
            summary=Summary(
                total=len(cities),
                successful=successful,
                failed=len(cities) - successful,
            ),
        )
