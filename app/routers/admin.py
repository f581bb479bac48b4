"""
Staff endpoints – bookings, facility calendar and catalog management.

Every route requires a session with the ``admin`` role.
"""

import logging
from datetime import date

import aiosqlite
from fastapi import APIRouter, Depends, Query, status

from app import db
from app.dependencies import AdminUser, PaginationParams, paginate, require_admin
from app.errors import ConflictError, NotFoundError
from app.models import (
    AdminBookingCreate,
    BlockedDate,
    BlockedDateCreate,
    Booking,
    BookingListResponse,
    BookingStatus,
    Bundle,
    FacilityPolicy,
    ReminderRunResponse,
    ResourceUpdate,
    Space,
)
from app.services.booking_service import booking_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


# ── Bookings ──────────────────────────────────────────────────────────────


@router.get(
    "/bookings",
    response_model=BookingListResponse,
    operation_id="adminListBookings",
    summary="List all bookings, newest first",
)
async def list_bookings(
    pagination: PaginationParams = Depends(PaginationParams),
    booking_status: BookingStatus | None = Query(None, alias="status", description="Filter by status"),
    date_from: date | None = Query(None, description="First facility-local date (inclusive)"),
    date_to: date | None = Query(None, description="Last facility-local date (inclusive)"),
) -> BookingListResponse:
    bookings = await booking_service.list_all_bookings(
        status=booking_status, date_from=date_from, date_to=date_to
    )
    return paginate(bookings, pagination, BookingListResponse)


@router.post(
    "/bookings",
    response_model=Booking,
    status_code=status.HTTP_201_CREATED,
    operation_id="adminCreateBooking",
    summary="Record a cash or complimentary booking for a customer",
)
async def create_booking(body: AdminBookingCreate, admin: AdminUser) -> Booking:
    booking = await booking_service.create_booking(
        body.customer_email, body, admin=True, payment_method=body.payment_method
    )
    logger.info("Admin %s booked %s for %s (%s)", admin.email, booking.id, body.customer_email, body.payment_method)
    return booking


@router.post(
    "/bookings/{booking_id}/cancel",
    response_model=Booking,
    operation_id="adminCancelBooking",
    summary="Cancel any booking that has not finished",
)
async def cancel_booking(booking_id: str, admin: AdminUser) -> Booking:
    return await booking_service.cancel_booking(booking_id, admin.email, admin=True)


@router.delete(
    "/bookings/{booking_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    operation_id="adminDeleteBooking",
    summary="Permanently remove a booking",
)
async def delete_booking(booking_id: str) -> None:
    await booking_service.delete_booking(booking_id)


# ── Facility calendar ─────────────────────────────────────────────────────


@router.put(
    "/facility",
    response_model=FacilityPolicy,
    operation_id="adminUpdateFacility",
    summary="Set opening hours and open days",
)
async def update_facility(body: FacilityPolicy) -> FacilityPolicy:
    return await db.update_facility_policy(body)


@router.post(
    "/blocked-dates",
    response_model=BlockedDate,
    status_code=status.HTTP_201_CREATED,
    operation_id="adminBlockDate",
    summary="Close the facility for a whole day",
)
async def block_date(body: BlockedDateCreate, admin: AdminUser) -> BlockedDate:
    try:
        blocked = await db.create_blocked_date(body.blocked_date, body.reason, admin.email)
    except aiosqlite.IntegrityError:
        raise ConflictError(
            f"{body.blocked_date.isoformat()} is already blocked.",
            {"date": body.blocked_date.isoformat()},
        ) from None
    logger.info("Admin %s blocked %s (%s)", admin.email, blocked.blocked_date, blocked.reason)
    return blocked


@router.delete(
    "/blocked-dates/{blocked_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    operation_id="adminUnblockDate",
    summary="Reopen a blocked date",
)
async def unblock_date(blocked_id: str) -> None:
    if not await db.delete_blocked_date(blocked_id):
        raise NotFoundError("Blocked date")


# ── Catalog ───────────────────────────────────────────────────────────────


@router.patch(
    "/spaces/{space_id}",
    response_model=Space,
    operation_id="adminUpdateSpace",
    summary="Change a space's price or availability",
)
async def update_space(space_id: str, body: ResourceUpdate) -> Space:
    space = await db.update_space(space_id, hourly_rate=body.hourly_rate, is_active=body.is_active)
    if space is None:
        raise NotFoundError("Space")
    return space


@router.patch(
    "/bundles/{bundle_id}",
    response_model=Bundle,
    operation_id="adminUpdateBundle",
    summary="Change a bundle's price or availability",
)
async def update_bundle(bundle_id: str, body: ResourceUpdate) -> Bundle:
    bundle = await db.update_bundle(bundle_id, hourly_rate=body.hourly_rate, is_active=body.is_active)
    if bundle is None:
        raise NotFoundError("Bundle")
    return bundle


# ── Jobs ──────────────────────────────────────────────────────────────────


@router.post(
    "/reminders/run",
    response_model=ReminderRunResponse,
    operation_id="adminRunReminders",
    summary="Send due reminders now instead of waiting for the scanner",
)
async def run_reminders() -> ReminderRunResponse:
    selected, sent = await booking_service.send_due_reminders()
    return ReminderRunResponse(selected=selected, sent=sent)
