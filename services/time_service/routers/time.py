"""Time endpoint: GET /api/time/{city} -> TimeSample."""

import logging

from fastapi import APIRouter, Request

from services.common.models import TimeSample

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["time"])


@router.get("/time/{city}", response_model=TimeSample)
async def get_time(request: Request, city: str) -> TimeSample:
    logger.info("Time request received for %r", city)
    return await request.app.state.time_client.get_time(city)
