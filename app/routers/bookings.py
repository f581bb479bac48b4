"""
Customer booking endpoints (authenticated).
"""

from fastapi import APIRouter, Depends, Request, status

from app.dependencies import CurrentUser, PaginationParams, paginate
from app.models import Booking, BookingCreate, BookingListResponse
from app.rate_limit import BOOKING, limiter
from app.services.booking_service import booking_service

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


@router.get(
    "",
    response_model=BookingListResponse,
    operation_id="listMyBookings",
    summary="List the authenticated user's bookings, newest first",
)
async def list_my_bookings(
    current_user: CurrentUser,
    pagination: PaginationParams = Depends(PaginationParams),
) -> BookingListResponse:
    bookings = await booking_service.list_user_bookings(current_user.email)
    return paginate(bookings, pagination, BookingListResponse)


@router.post(
    "",
    response_model=Booking,
    status_code=status.HTTP_201_CREATED,
    operation_id="createBooking",
    summary="Book a space or bundle; the booking is pending until paid",
)
@limiter.limit(BOOKING)
async def create_booking(
    request: Request,
    body: BookingCreate,
    current_user: CurrentUser,
) -> Booking:
    return await booking_service.create_booking(current_user.email, body)


@router.get(
    "/{booking_id}",
    response_model=Booking,
    operation_id="getMyBooking",
    summary="Get one of the authenticated user's bookings",
)
async def get_my_booking(booking_id: str, current_user: CurrentUser) -> Booking:
    return await booking_service.get_booking(booking_id, user_email=current_user.email)


@router.post(
    "/{booking_id}/cancel",
    response_model=Booking,
    operation_id="cancelMyBooking",
    summary="Cancel a confirmed booking more than 24 hours before it starts",
)
async def cancel_my_booking(booking_id: str, current_user: CurrentUser) -> Booking:
    return await booking_service.cancel_booking(booking_id, current_user.email)
