"""
Health check endpoint.
"""

from fastapi import APIRouter

from app.config import APP_VERSION, FACILITY_NAME
from app.models import HealthResponse
from app.services.booking_service import booking_service

router = APIRouter(prefix="/api", tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    operation_id="getHealth",
    summary="Health check",
)
async def get_health() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=APP_VERSION,
        facility=FACILITY_NAME,
        timezone=booking_service.tz.key,
        timestamp=booking_service.clock().astimezone(booking_service.tz),
    )
