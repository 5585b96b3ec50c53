"""
Weather endpoints.

GET /api/weather/{city}       -> WeatherSample
GET /api/aggregate?city=A&... -> AggregateResult (1-20 cities, repeated `city`)
"""

import logging

from fastapi import APIRouter, Query, Request

from services.common.models import AggregateResult, WeatherSample

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["weather"])


@router.get("/weather/{city}", response_model=WeatherSample)
async def get_weather(request: Request, city: str) -> WeatherSample:
    logger.info("Weather request received for %r", city)
    return await request.app.state.weather_client.get_weather(city)


@router.get("/aggregate", response_model=AggregateResult, tags=["aggregate"])
async def aggregate(
    request: Request,
    city: list[str] = Query(default=[], description="Cities to aggregate data for (1-20)"),
) -> AggregateResult:
    logger.info("Aggregate request received for %d cities", len(city))
    aggregator = request.app.state.aggregator
    return await aggregator.aggregate(city, cancel=aggregator.shutdown.child_token())
