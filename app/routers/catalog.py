"""
Public catalog endpoints – spaces, bundles and the facility calendar.
"""

from fastapi import APIRouter

from app import db
from app.config import FACILITY_TIMEZONE
from app.models import Bundle, FacilityResponse, Space
from app.services.booking_service import booking_service

router = APIRouter(prefix="/api", tags=["catalog"])


@router.get(
    "/spaces",
    response_model=list[Space],
    operation_id="listSpaces",
    summary="List bookable spaces",
)
async def list_spaces() -> list[Space]:
    return await db.list_spaces()


@router.get(
    "/bundles",
    response_model=list[Bundle],
    operation_id="listBundles",
    summary="List bookable bundles",
)
async def list_bundles() -> list[Bundle]:
    return await db.list_bundles()


@router.get(
    "/facility",
    response_model=FacilityResponse,
    operation_id="getFacility",
    summary="Opening hours, open days and upcoming blocked dates",
)
async def get_facility() -> FacilityResponse:
    today = booking_service.clock().astimezone(booking_service.tz).date()
    return FacilityResponse(
        policy=await db.get_facility_policy(),
        blocked_dates=await db.list_blocked_dates(date_from=today),
        timezone=FACILITY_TIMEZONE,
    )
