"""
Availability endpoints – which slots of a space or bundle can be booked.
"""

from datetime import date, time

from fastapi import APIRouter, Query

from app.models import (
    DayAvailabilityResponse,
    ResourceType,
    SlotAvailability,
    SlotCheckResponse,
)
from app.services.booking_service import booking_service

router = APIRouter(prefix="/api/availability/{resource_type}/{resource_id}", tags=["availability"])


@router.get(
    "",
    response_model=DayAvailabilityResponse,
    operation_id="getDayAvailability",
    summary="Bookable start times and durations for one day",
)
async def get_day_availability(
    resource_type: ResourceType,
    resource_id: str,
    availability_date: date = Query(..., alias="date", description="Facility-local date (YYYY-MM-DD)"),
) -> DayAvailabilityResponse:
    day = await booking_service.day_availability(resource_type, resource_id, availability_date)
    return DayAvailabilityResponse(
        resource_type=resource_type,
        resource_id=resource_id,
        availability_date=availability_date,
        bookable=day.bookable,
        reason=day.reason.value if day.reason else None,
        message=day.message,
        slots=[
            SlotAvailability(time=start.strftime("%H:%M"), durations=list(durations))
            for start, durations in day.slots
        ],
    )


@router.get(
    "/check",
    response_model=SlotCheckResponse,
    operation_id="checkSlot",
    summary="Check a single slot and the longest duration available there",
)
async def check_slot(
    resource_type: ResourceType,
    resource_id: str,
    slot_date: date = Query(..., alias="date", description="Facility-local date (YYYY-MM-DD)"),
    start_time: time = Query(..., alias="time", description="Facility-local start time (HH:MM)"),
    duration: int = Query(1, description="Duration in hours"),
) -> SlotCheckResponse:
    decision, longest = await booking_service.check_slot(
        resource_type, resource_id, slot_date, start_time, duration
    )
    return SlotCheckResponse(
        bookable=decision.bookable,
        reason=decision.reason.value if decision.reason else None,
        message=decision.message,
        max_duration=longest,
    )
