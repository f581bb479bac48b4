"""
Booking lifecycle — creates, cancels and transitions reservations.

Every decision about *whether* a slot can be booked is delegated to the
availability engine; this module loads the snapshot the engine needs,
turns rejections into user-facing errors, and drives the status machine:

    pending ──► confirmed ──► completed
       │  ╲         │  ╲
       │   ╲        │   ► cancelled
       │    ► payment_failed ──► confirmed (retry)
       ▼             │
    expired ◄────────┘

Only ``confirmed`` bookings hold their slot.  Unpaid bookings compete for
it: whichever payment lands first confirms, and a later confirmation that
would overlap it is refused.  The housekeeper expires unpaid bookings a
fixed time after they were created.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Protocol
from uuid import uuid4
from zoneinfo import ZoneInfo

from app import db
from app.config import (
    CANCELLATION_CUTOFF_HOURS,
    FACILITY_TIMEZONE,
    PENDING_EXPIRY_MINUTES,
    REMINDER_WINDOW_END_HOURS,
    REMINDER_WINDOW_START_HOURS,
)
from app.errors import (
    BookingError,
    CancellationWindowError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PaymentUnavailableError,
    PolicyError,
    ValidationError,
)
from app.models import Booking, BookingCreate, BookingStatus, PaymentMethod, ResourceType
from app.services import availability
from app.services.availability import (
    DURATIONS,
    AvailabilitySnapshot,
    DayAvailability,
    Reason,
    Resource,
    SlotDecision,
)
from app.services.email import EmailNotifier
from app.services.payments import PaymentGateway, PaymentHandle

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_CENTS = Decimal("0.01")

TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {
            BookingStatus.CONFIRMED,
            BookingStatus.PAYMENT_FAILED,
            BookingStatus.EXPIRED,
            BookingStatus.CANCELLED,
        }
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.PAYMENT_FAILED}
    ),
    BookingStatus.PAYMENT_FAILED: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.EXPIRED, BookingStatus.CANCELLED}
    ),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.EXPIRED: frozenset(),
}


class Notifier(Protocol):
    async def send_confirmation(self, booking: Booking, resource_name: str) -> None: ...

    async def send_reminder(self, booking: Booking, resource_name: str) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_total(hourly_rate: Decimal, duration: int) -> Decimal:
    return (hourly_rate * duration).quantize(_CENTS)


def ensure_transition(booking: Booking, target: BookingStatus) -> None:
    """Raise InvalidTransitionError unless *booking* may move to *target*."""
    if booking.status == target:
        return
    if target not in TRANSITIONS[booking.status]:
        raise InvalidTransitionError(
            f"A {booking.status.value} booking cannot become {target.value}.",
            {"from": booking.status.value, "to": target.value},
        )


def decision_error(decision: SlotDecision) -> BookingError:
    """The user-facing error for a rejected slot."""
    message = decision.message or "That time cannot be booked."
    if decision.reason == Reason.CONFLICT:
        return ConflictError(message)
    if decision.reason == Reason.INVALID_DURATION:
        return ValidationError({"duration": message})
    if decision.reason == Reason.RESOURCE_INACTIVE:
        return ValidationError({"resource": message})
    return PolicyError(str(decision.reason), message)


class BookingService:
    """Facade over the ledger and the availability engine."""

    def __init__(
        self,
        *,
        tz: ZoneInfo | None = None,
        clock: Clock = _utcnow,
        payments: PaymentGateway | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.tz = tz or ZoneInfo(FACILITY_TIMEZONE)
        self.clock = clock
        self.payments = payments
        self.notifier: Notifier = notifier or EmailNotifier(self.tz)

    # ── Catalog lookups ───────────────────────────────────────────────

    async def get_resource(self, resource_type: ResourceType, resource_id: str) -> Resource:
        if resource_type == "space":
            resource = await db.get_space(resource_id)
            what = "Space"
        else:
            resource = await db.get_bundle(resource_id)
            what = "Bundle"
        if resource is None:
            raise NotFoundError(what)
        return resource

    async def _resource_of(self, booking: Booking) -> Resource | None:
        if booking.space_id is not None:
            return await db.get_space(booking.space_id)
        return await db.get_bundle(booking.bundle_id or "")

    async def _resource_name(self, booking: Booking) -> str:
        resource = await self._resource_of(booking)
        return resource.name if resource else booking.resource_id

    # ── Read path ─────────────────────────────────────────────────────

    def local_day_span(self, day: date) -> tuple[datetime, datetime]:
        """UTC bounds of a facility-local calendar day."""
        start = datetime.combine(day, time(0), tzinfo=self.tz)
        end = datetime.combine(day + timedelta(days=1), time(0), tzinfo=self.tz)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

    async def snapshot_for(self, day: date) -> AvailabilitySnapshot:
        """Load everything the engine needs to judge slots on *day*."""
        policy = await db.get_facility_policy()
        blocked = await db.get_blocked_date_for(day)
        day_start, day_end = self.local_day_span(day)
        bookings = await db.list_holding_bookings(day_start, day_end)
        bundles = await db.list_bundles(active_only=False)
        return AvailabilitySnapshot.build(
            policy,
            now=self.clock(),
            tz=self.tz,
            blocked_dates=[blocked] if blocked else [],
            bookings=bookings,
            bundles=bundles,
        )

    async def check_slot(
        self,
        resource_type: ResourceType,
        resource_id: str,
        day: date,
        start: time,
        duration: int,
    ) -> tuple[SlotDecision, int]:
        """Decision for one slot plus the longest duration available there."""
        resource = await self.get_resource(resource_type, resource_id)
        snapshot = await self.snapshot_for(day)
        decision = availability.check_slot(resource, day, start, duration, snapshot)
        return decision, availability.max_duration(resource, day, start, snapshot)

    async def day_availability(
        self, resource_type: ResourceType, resource_id: str, day: date
    ) -> DayAvailability:
        resource = await self.get_resource(resource_type, resource_id)
        snapshot = await self.snapshot_for(day)
        return availability.day_availability(resource, day, snapshot)

    # ── Create ────────────────────────────────────────────────────────

    async def create_booking(
        self,
        user_email: str,
        request: BookingCreate,
        *,
        admin: bool = False,
        payment_method: PaymentMethod = "card",
    ) -> Booking:
        """
        Validate and commit a new booking.

        Card bookings start ``pending`` and wait for the payment webhook.
        Staff cash and comp bookings are confirmed immediately.
        """
        if payment_method != "card" and not admin:
            raise ValidationError({"payment_method": "Only staff can record cash or comp bookings."})

        self._validate_request(request)
        resource = await self._bookable_resource(request)
        day: date = request.booking_date  # type: ignore[assignment]
        start: time = request.start_time.replace(tzinfo=None)  # type: ignore[union-attr]
        duration: int = request.duration  # type: ignore[assignment]

        snapshot = await self.snapshot_for(day)
        decision = availability.check_slot(resource, day, start, duration, snapshot)
        if not decision.bookable:
            logger.info(
                "Booking rejected for %s on %s %s (%dh): %s",
                resource.id, day, start.strftime("%H:%M"), duration, decision.reason,
            )
            raise decision_error(decision)

        start_utc, end_utc = availability.slot_span(day, start, duration, self.tz)
        now = self.clock()
        draft = Booking(
            id=str(uuid4()),
            user_email=user_email,
            space_id=request.space_id,
            bundle_id=request.bundle_id,
            start_time=start_utc,
            end_time=end_utc,
            total_amount=Decimal("0.00") if payment_method == "comp" else compute_total(resource.hourly_rate, duration),
            status=BookingStatus.PENDING if payment_method == "card" else BookingStatus.CONFIRMED,
            payment_method=payment_method,
            created_at=now,
            updated_at=now,
        )

        def guard(holding: list[Booking]) -> None:
            clash = availability.find_conflict(resource, start_utc, end_utc, holding, snapshot.bundles)
            if clash is not None:
                logger.info("Booking for %s lost the race to booking %s", resource.id, clash.id)
                raise ConflictError()

        booking = await db.insert_booking(draft, guard)
        logger.info(
            "Booking %s created: %s %s–%s for %s (%s, $%s)",
            booking.id,
            resource.id,
            start_utc.isoformat(),
            end_utc.isoformat(),
            user_email,
            booking.status.value,
            booking.total_amount,
        )
        if booking.status == BookingStatus.CONFIRMED:
            await self._notify_confirmation(booking, resource.name)
        return booking

    @staticmethod
    def _validate_request(request: BookingCreate) -> None:
        fields: dict[str, str] = {}
        if not request.space_id and not request.bundle_id:
            fields["resource"] = "Select a space or a bundle to book."
        elif request.space_id and request.bundle_id:
            fields["resource"] = "Select either a space or a bundle, not both."
        if request.booking_date is None:
            fields["date"] = "Date is required."
        if request.start_time is None:
            fields["start_time"] = "Start time is required."
        if request.duration is None:
            fields["duration"] = "Duration is required."
        elif request.duration not in DURATIONS:
            fields["duration"] = "Bookings last 1, 2 or 3 hours."
        if fields:
            raise ValidationError(fields)

    async def _bookable_resource(self, request: BookingCreate) -> Resource:
        if request.space_id:
            resource: Resource | None = await db.get_space(request.space_id)
            field, label = "space_id", "space"
        else:
            resource = await db.get_bundle(request.bundle_id or "")
            field, label = "bundle_id", "bundle"
        if resource is None:
            raise ValidationError({field: f"Unknown {label}."})
        if not resource.is_active:
            raise ValidationError({field: f"This {label} is not available for booking."})
        return resource

    # ── Cancel ────────────────────────────────────────────────────────

    async def cancel_booking(
        self, booking_id: str, user_email: str, *, admin: bool = False
    ) -> Booking:
        booking = await self.get_booking(booking_id, user_email=None if admin else user_email)
        if booking.status == BookingStatus.CANCELLED:
            return booking

        if admin:
            ensure_transition(booking, BookingStatus.CANCELLED)
        else:
            self._check_customer_cancel(booking)

        def check(current: Booking, _overlapping: list[Booking]) -> None:
            if admin:
                ensure_transition(current, BookingStatus.CANCELLED)
            else:
                self._check_customer_cancel(current)

        updated = await db.transition_status(
            booking_id, BookingStatus.CANCELLED, check, now=self.clock()
        )
        if updated is None:
            raise NotFoundError()
        logger.info(
            "Booking %s cancelled by %s%s", booking_id, user_email, " (admin)" if admin else ""
        )
        return updated

    def _check_customer_cancel(self, booking: Booking) -> None:
        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidTransitionError(
                f"Only confirmed bookings can be cancelled (this one is {booking.status.value}).",
                {"from": booking.status.value, "to": BookingStatus.CANCELLED.value},
            )
        cutoff = self.clock() + timedelta(hours=CANCELLATION_CUTOFF_HOURS)
        if booking.start_time <= cutoff:
            raise CancellationWindowError(
                f"Bookings can only be cancelled more than {CANCELLATION_CUTOFF_HOURS} hours "
                "before they start. Please contact the facility.",
                {"cutoff_hours": CANCELLATION_CUTOFF_HOURS},
            )

    # ── Payments ──────────────────────────────────────────────────────

    async def attach_payment(self, booking_id: str, user_email: str) -> tuple[Booking, PaymentHandle]:
        """Ask the payment collaborator for a handle and record it on the booking."""
        booking = await self.get_booking(booking_id, user_email=user_email)
        if booking.status not in (BookingStatus.PENDING, BookingStatus.PAYMENT_FAILED):
            raise InvalidTransitionError(
                f"A {booking.status.value} booking does not need payment.",
                {"status": booking.status.value},
            )
        if self.payments is None:
            raise PaymentUnavailableError("Card payments are not available right now.")

        handle = await self.payments.create_payment(booking.id, booking.total_amount)
        updated = await db.set_payment_intent(booking.id, handle.payment_intent_id, now=self.clock())
        if updated is None:
            raise NotFoundError()
        return updated, handle

    async def record_payment_result(self, booking_id: str, *, succeeded: bool) -> Booking:
        """Apply a payment outcome reported by the processor."""
        booking = await db.get_booking(booking_id)
        if booking is None:
            raise NotFoundError()

        if not succeeded:
            ensure_transition(booking, BookingStatus.PAYMENT_FAILED)
            updated = await db.transition_status(
                booking_id,
                BookingStatus.PAYMENT_FAILED,
                lambda current, _: ensure_transition(current, BookingStatus.PAYMENT_FAILED),
                now=self.clock(),
            )
            if updated is None:
                raise NotFoundError()
            logger.info("Payment failed for booking %s", booking_id)
            return updated

        if booking.status == BookingStatus.CONFIRMED:
            return booking
        ensure_transition(booking, BookingStatus.CONFIRMED)

        resource = await self._resource_of(booking)
        bundles = {b.id: b for b in await db.list_bundles(active_only=False)}

        def check(current: Booking, overlapping: list[Booking]) -> None:
            ensure_transition(current, BookingStatus.CONFIRMED)
            if resource is None:
                return
            clash = availability.find_conflict(
                resource, current.start_time, current.end_time, overlapping, bundles
            )
            if clash is not None:
                raise ConflictError(
                    "The slot was taken before the payment completed. "
                    "Please contact the facility for a refund or another time."
                )

        updated = await db.transition_status(booking_id, BookingStatus.CONFIRMED, check, now=self.clock())
        if updated is None:
            raise NotFoundError()
        logger.info("Payment succeeded — booking %s confirmed", booking_id)
        await self._notify_confirmation(updated, resource.name if resource else updated.resource_id)
        return updated

    async def find_by_payment_intent(self, payment_intent_id: str) -> Booking | None:
        return await db.find_booking_by_payment_intent(payment_intent_id)

    # ── Sweeps ────────────────────────────────────────────────────────

    async def expire_stale_bookings(self) -> list[Booking]:
        """Expire bookings still unpaid PENDING_EXPIRY_MINUTES after creation."""
        now = self.clock()
        expired = await db.expire_stale(now - timedelta(minutes=PENDING_EXPIRY_MINUTES), now=now)
        for booking in expired:
            logger.info("Booking %s expired (unpaid)", booking.id)
        return expired

    async def complete_past_bookings(self) -> list[Booking]:
        completed = await db.complete_finished(self.clock())
        if completed:
            logger.info("Marked %d finished bookings as completed", len(completed))
        return completed

    async def send_due_reminders(self) -> tuple[int, int]:
        """
        Remind customers about bookings starting in the reminder window.

        Each booking is claimed before its email goes out, so overlapping
        scans never send twice; a failed delivery is logged and not retried.
        Returns ``(selected, sent)``.
        """
        now = self.clock()
        candidates = await db.list_reminder_candidates(
            now + timedelta(hours=REMINDER_WINDOW_START_HOURS),
            now + timedelta(hours=REMINDER_WINDOW_END_HOURS),
        )
        sent = 0
        for booking in candidates:
            if not await db.claim_reminder(booking.id):
                continue
            try:
                await self.notifier.send_reminder(booking, await self._resource_name(booking))
            except Exception:
                logger.exception("Reminder for booking %s could not be delivered", booking.id)
                continue
            sent += 1
            logger.info("Reminder sent for booking %s to %s", booking.id, booking.user_email)
        return len(candidates), sent

    async def _notify_confirmation(self, booking: Booking, resource_name: str) -> None:
        try:
            await self.notifier.send_confirmation(booking, resource_name)
        except Exception:
            logger.exception("Confirmation email for booking %s could not be delivered", booking.id)

    # ── Queries ───────────────────────────────────────────────────────

    async def get_booking(self, booking_id: str, *, user_email: str | None = None) -> Booking:
        """Fetch a booking; with *user_email*, only if that user owns it."""
        booking = await db.get_booking(booking_id)
        if booking is None or (user_email is not None and booking.user_email != user_email):
            raise NotFoundError()
        return booking

    async def list_user_bookings(self, user_email: str) -> list[Booking]:
        return await db.list_bookings(user_email=user_email)

    async def list_all_bookings(
        self,
        *,
        status: BookingStatus | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[Booking]:
        """All bookings, optionally filtered by status and facility-local date range."""
        return await db.list_bookings(
            status=status.value if status else None,
            date_from=self.local_day_span(date_from)[0] if date_from else None,
            date_to=self.local_day_span(date_to)[1] if date_to else None,
        )

    async def delete_booking(self, booking_id: str) -> None:
        if not await db.delete_booking(booking_id):
            raise NotFoundError()
        logger.info("Booking %s deleted", booking_id)


booking_service = BookingService()
