"""Pydantic models for the Barn Booking API."""

from datetime import date, datetime, time
from decimal import Decimal
from enum import StrEnum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


# ── Catalog ────────────────────────────────────────────────────────────────


class Space(BaseModel):
    """A single rentable area of the facility."""
    id: str = Field(..., description="Unique space identifier")
    name: str = Field(..., description="Display name")
    description: str = Field(default="", description="What the space is")
    dimensions: str = Field(default="", description="Floor dimensions")
    equipment: str = Field(default="", description="Included equipment")
    hourly_rate: Decimal = Field(..., ge=0, decimal_places=2, description="Price per hour")
    is_active: bool = Field(default=True, description="Whether the space can be booked")


class Bundle(BaseModel):
    """Several spaces reserved together as one unit."""
    id: str = Field(..., description="Unique bundle identifier")
    name: str = Field(..., description="Display name")
    description: str = Field(default="", description="What the bundle includes")
    space_ids: List[str] = Field(..., min_length=1, description="Constituent space IDs")
    hourly_rate: Decimal = Field(..., ge=0, decimal_places=2, description="Price per hour")
    is_active: bool = Field(default=True, description="Whether the bundle can be booked")


class ResourceUpdate(BaseModel):
    """Admin update of a space or bundle."""
    hourly_rate: Optional[Decimal] = Field(None, ge=0, decimal_places=2, description="New price per hour")
    is_active: Optional[bool] = Field(None, description="Enable or disable booking")


# ── Facility calendar ──────────────────────────────────────────────────────

# date.weekday() index → policy flag
_WEEKDAY_FLAGS = (
    "monday_open",
    "tuesday_open",
    "wednesday_open",
    "thursday_open",
    "friday_open",
    "saturday_open",
    "sunday_open",
)


class FacilityPolicy(BaseModel):
    """Opening hours and the days of the week the facility is open."""
    opening_time: int = Field(default=8, ge=0, le=23, description="Opening hour (0-23)")
    closing_time: int = Field(default=21, ge=0, le=23, description="Closing hour (0-23)")
    sunday_open: bool = True
    monday_open: bool = True
    tuesday_open: bool = True
    wednesday_open: bool = True
    thursday_open: bool = True
    friday_open: bool = True
    saturday_open: bool = True

    @model_validator(mode="after")
    def _opening_before_closing(self) -> "FacilityPolicy":
        if self.opening_time >= self.closing_time:
            raise ValueError("opening_time must be earlier than closing_time")
        return self

    def is_open_on(self, day: date) -> bool:
        return getattr(self, _WEEKDAY_FLAGS[day.weekday()])


class BlockedDate(BaseModel):
    """A whole calendar day on which nothing can be booked."""
    id: str = Field(..., description="Unique identifier")
    blocked_date: date = Field(..., alias="date", description="Blocked calendar date")
    reason: str = Field(..., description="Why the facility is closed")
    created_by: Optional[str] = Field(None, description="Admin who blocked the date")
    created_at: datetime = Field(..., description="Creation timestamp")

    model_config = ConfigDict(populate_by_name=True)


class BlockedDateCreate(BaseModel):
    blocked_date: date = Field(..., alias="date", description="Date to block")
    reason: str = Field(..., min_length=1, max_length=200, description="Reason shown to customers")

    model_config = ConfigDict(populate_by_name=True)


class FacilityResponse(BaseModel):
    policy: FacilityPolicy
    blocked_dates: List[BlockedDate]
    timezone: str = Field(..., description="IANA timezone all hours are expressed in")


# ── Bookings ───────────────────────────────────────────────────────────────


class BookingStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PAYMENT_FAILED = "payment_failed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    EXPIRED = "expired"


PaymentMethod = Literal["card", "cash", "comp"]


class Booking(BaseModel):
    """A reservation of exactly one space or bundle."""
    id: str = Field(..., description="Unique booking identifier")
    user_email: EmailStr = Field(..., description="Owning user")
    space_id: Optional[str] = Field(None, description="Booked space")
    bundle_id: Optional[str] = Field(None, description="Booked bundle")
    start_time: datetime = Field(..., description="Start (UTC)")
    end_time: datetime = Field(..., description="End (UTC)")
    total_amount: Decimal = Field(..., description="Hourly rate x duration")
    status: BookingStatus = Field(..., description="Lifecycle status")
    payment_method: PaymentMethod = Field(default="card", description="How the booking is paid")
    payment_intent_id: Optional[str] = Field(None, description="Payment processor handle")
    reminder_sent: bool = Field(default=False, description="Whether the reminder went out")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @model_validator(mode="after")
    def _check_invariants(self) -> "Booking":
        if (self.space_id is None) == (self.bundle_id is None):
            raise ValueError("exactly one of space_id or bundle_id must be set")
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def resource_id(self) -> str:
        return self.space_id or self.bundle_id  # type: ignore[return-value]


class BookingCreate(BaseModel):
    """
    Customer booking request.

    Fields are optional at the schema level so the booking service can
    report every missing field at once with a readable message.
    """
    space_id: Optional[str] = Field(None, description="Space to book (or bundle_id)")
    bundle_id: Optional[str] = Field(None, description="Bundle to book (or space_id)")
    booking_date: Optional[date] = Field(None, alias="date", description="Facility-local date")
    start_time: Optional[time] = Field(None, description="Facility-local start time (HH:MM)")
    duration: Optional[int] = Field(None, description="Duration in hours (1-3)")

    model_config = ConfigDict(populate_by_name=True)


class AdminBookingCreate(BookingCreate):
    """Cash or complimentary booking entered by staff."""
    customer_email: EmailStr = Field(..., description="Customer the booking is for")
    payment_method: Literal["cash", "comp"] = Field(default="cash", description="Cash or comp")


class BookingListResponse(BaseModel):
    items: List[Booking]
    meta: "PaginationMeta"


# ── Availability ───────────────────────────────────────────────────────────


ResourceType = Literal["space", "bundle"]


class SlotAvailability(BaseModel):
    """A bookable start time and the durations that fit there."""
    time: str = Field(..., description="Start time (HH:MM, facility-local)")
    durations: List[int] = Field(..., description="Valid durations in hours")


class DayAvailabilityResponse(BaseModel):
    resource_type: ResourceType
    resource_id: str
    availability_date: date = Field(..., description="Facility-local date")
    bookable: bool = Field(..., description="False when the whole day is unavailable")
    reason: Optional[str] = Field(None, description="Machine-readable day-level reason")
    message: Optional[str] = Field(None, description="Human-readable day-level reason")
    slots: List[SlotAvailability] = Field(default_factory=list)


class SlotCheckResponse(BaseModel):
    bookable: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    max_duration: int = Field(..., description="Longest valid duration at this start (0 if none)")


# ── Payments ───────────────────────────────────────────────────────────────


class PaymentIntentRequest(BaseModel):
    booking_id: str


class PaymentIntentResponse(BaseModel):
    booking_id: str
    payment_intent_id: str
    client_secret: Optional[str] = None
    amount: Decimal


class WebhookAck(BaseModel):
    received: bool = True
    booking_id: Optional[str] = None
    status: Optional[BookingStatus] = Field(None, description="Booking status after the event")


# ── Misc ───────────────────────────────────────────────────────────────────


class UserInfo(BaseModel):
    email: EmailStr
    name: Optional[str] = None
    role: Literal["customer", "admin"] = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class PaginationMeta(BaseModel):
    page: int
    page_size: int
    total_items: int
    total_pages: int


class Error(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Health status")
    version: str = Field(..., description="Service version")
    facility: str = Field(..., description="Facility name")
    timezone: str = Field(..., description="IANA timezone all booking times are local to")
    timestamp: datetime = Field(..., description="Current facility-local time")


class MessageResponse(BaseModel):
    message: str


class ReminderRunResponse(BaseModel):
    selected: int = Field(..., description="Bookings inside the reminder window")
    sent: int = Field(..., description="Reminders dispatched")


BookingListResponse.model_rebuild()
