"""
Availability engine – decides which time slots are legally bookable.

Everything in this module is a pure function of an ``AvailabilitySnapshot``
(facility policy, blocked dates, confirmed bookings, bundle catalog, facility
timezone and the current time).  There is no I/O here: the booking service
loads a snapshot and calls the same functions on both the read path
(calendar / slot checks) and the write path (booking creation), so the two
can never disagree.

Rules, in evaluation order:

0.  Resource – an inactive space or bundle has no bookable slots at all.
1.  Day gate – the date must not be in the past, must be within
    ``today + horizon`` (inclusive), must fall on an open weekday and must
    not be a blocked date.
2.  Duration – 1, 2 or 3 hours.
3.  Hours – start at or after opening; ``start + duration`` may end exactly
    at closing time but not later.
4.  Notice – on the current facility-local day, the start must be at least
    ``min_notice`` after *now*.
5.  Conflict – no holding booking whose span overlaps (half-open) and whose
    space set intersects the candidate's.
"""

from __future__ import annotations

import calendar
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from enum import StrEnum
from functools import cached_property
from zoneinfo import ZoneInfo

from app.config import BOOKING_HORIZON_MONTHS, MIN_NOTICE_MINUTES
from app.models import BlockedDate, Booking, Bundle, FacilityPolicy, Space

DURATIONS: tuple[int, ...] = (1, 2, 3)

Resource = Space | Bundle


class Reason(StrEnum):
    RESOURCE_INACTIVE = "resource_inactive"
    PAST_DATE = "past_date"
    HORIZON_EXCEEDED = "horizon_exceeded"
    DAY_CLOSED = "day_closed"
    DATE_BLOCKED = "date_blocked"
    INVALID_DURATION = "invalid_duration"
    BEFORE_OPENING = "before_opening"
    PAST_CLOSING = "past_closing"
    TOO_SOON = "too_soon"
    CONFLICT = "conflict"


# ── Calendar helpers ──────────────────────────────────────────────────────


def add_months(day: date, months: int) -> date:
    """Calendar month arithmetic, clamped to the last day of the month."""
    index = day.month - 1 + months
    year = day.year + index // 12
    month = index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def booking_horizon(today: date, months: int = BOOKING_HORIZON_MONTHS) -> date:
    """Last bookable date (inclusive)."""
    return add_months(today, months)


def intervals_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """Half-open overlap: touching endpoints do not overlap."""
    return start_a < end_b and end_a > start_b


def generate_slot_times(policy: FacilityPolicy) -> list[time]:
    """Whole-hour start times from opening to one hour before closing."""
    return [time(hour) for hour in range(policy.opening_time, policy.closing_time)]


def slot_span(
    day: date, start: time, duration: int, tz: ZoneInfo
) -> tuple[datetime, datetime]:
    """
    UTC span of a facility-local slot.

    The duration is elapsed time, so it is added after converting to UTC; a
    slot across a DST change still lasts exactly *duration* hours.  A wall
    time skipped by the spring-forward gap resolves with the offset in
    force before the gap, as ``zoneinfo`` does for ``fold=0``.
    """
    start_utc = datetime.combine(day, start, tzinfo=tz).astimezone(timezone.utc)
    return start_utc, start_utc + timedelta(hours=duration)


# ── Resource sets ─────────────────────────────────────────────────────────


def space_ids_for(resource: Resource) -> frozenset[str]:
    """The spaces a resource occupies: itself, or a bundle's constituents."""
    if isinstance(resource, Bundle):
        return frozenset(resource.space_ids)
    return frozenset((resource.id,))


def _bundle_key(bundle_id: str) -> str:
    return f"bundle:{bundle_id}"


def _resource_keys(resource: Resource) -> frozenset[str]:
    keys = space_ids_for(resource)
    if isinstance(resource, Bundle):
        keys |= {_bundle_key(resource.id)}
    return keys


def booking_space_ids(booking: Booking, bundles: Mapping[str, Bundle]) -> frozenset[str]:
    """The spaces an existing booking occupies."""
    if booking.space_id is not None:
        return frozenset((booking.space_id,))
    bundle = bundles.get(booking.bundle_id or "")
    return frozenset(bundle.space_ids) if bundle else frozenset()


def _booking_keys(booking: Booking, bundles: Mapping[str, Bundle]) -> frozenset[str]:
    keys = booking_space_ids(booking, bundles)
    if booking.bundle_id is not None:
        # A bundle missing from the catalog still collides with itself.
        keys |= {_bundle_key(booking.bundle_id)}
    return keys


class BookingIndex:
    """
    Holding bookings indexed by the spaces they occupy.

    A candidate only has to be compared against bookings that share at
    least one space with it, instead of every booking on the day.
    """

    def __init__(self, bookings: Iterable[Booking], bundles: Mapping[str, Bundle]) -> None:
        self._by_key: dict[str, list[Booking]] = defaultdict(list)
        for booking in bookings:
            for key in _booking_keys(booking, bundles):
                self._by_key[key].append(booking)

    def first_conflict(
        self,
        resource: Resource,
        start: datetime,
        end: datetime,
        *,
        ignore_id: str | None = None,
    ) -> Booking | None:
        seen: set[str] = set()
        for key in sorted(_resource_keys(resource)):
            for booking in self._by_key.get(key, ()):
                if booking.id in seen or booking.id == ignore_id:
                    continue
                seen.add(booking.id)
                if intervals_overlap(start, end, booking.start_time, booking.end_time):
                    return booking
        return None


def find_conflict(
    resource: Resource,
    start: datetime,
    end: datetime,
    bookings: Iterable[Booking],
    bundles: Mapping[str, Bundle],
    *,
    ignore_id: str | None = None,
) -> Booking | None:
    """First booking that overlaps *start*–*end* on any shared space."""
    return BookingIndex(bookings, bundles).first_conflict(
        resource, start, end, ignore_id=ignore_id
    )


# ── Snapshot ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AvailabilitySnapshot:
    """Everything one availability evaluation needs, captured up front."""

    policy: FacilityPolicy
    now: datetime
    tz: ZoneInfo
    blocked: Mapping[date, str] = field(default_factory=dict)
    bookings: tuple[Booking, ...] = ()
    bundles: Mapping[str, Bundle] = field(default_factory=dict)
    horizon_months: int = BOOKING_HORIZON_MONTHS
    min_notice: timedelta = timedelta(minutes=MIN_NOTICE_MINUTES)

    @classmethod
    def build(
        cls,
        policy: FacilityPolicy,
        *,
        now: datetime,
        tz: ZoneInfo,
        blocked_dates: Iterable[BlockedDate] = (),
        bookings: Iterable[Booking] = (),
        bundles: Iterable[Bundle] = (),
        **limits,
    ) -> AvailabilitySnapshot:
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")
        return cls(
            policy=policy,
            now=now,
            tz=tz,
            blocked={b.blocked_date: b.reason for b in blocked_dates},
            bookings=tuple(bookings),
            bundles={b.id: b for b in bundles},
            **limits,
        )

    @property
    def today(self) -> date:
        """The current calendar day in the facility's timezone."""
        return self.now.astimezone(self.tz).date()

    @property
    def horizon(self) -> date:
        return booking_horizon(self.today, self.horizon_months)

    @cached_property
    def index(self) -> BookingIndex:
        return BookingIndex(self.bookings, self.bundles)


@dataclass(frozen=True)
class SlotDecision:
    bookable: bool
    reason: Reason | None = None
    message: str | None = None
    conflicting: Booking | None = None

    @classmethod
    def ok(cls) -> SlotDecision:
        return cls(bookable=True)


@dataclass(frozen=True)
class DayAvailability:
    day: date
    reason: Reason | None
    message: str | None
    slots: tuple[tuple[time, tuple[int, ...]], ...] = ()

    @property
    def bookable(self) -> bool:
        return self.reason is None and bool(self.slots)


# ── Messages ──────────────────────────────────────────────────────────────


def reason_message(reason: Reason, day: date, snapshot: AvailabilitySnapshot) -> str:
    """User-displayable explanation of the rule that rejected a slot."""
    policy = snapshot.policy
    if reason == Reason.RESOURCE_INACTIVE:
        return "This space or bundle is not available for booking."
    if reason == Reason.PAST_DATE:
        return "Bookings cannot be made for dates in the past."
    if reason == Reason.HORIZON_EXCEEDED:
        return (
            f"Bookings can be made at most {snapshot.horizon_months} months "
            f"in advance (through {snapshot.horizon.isoformat()})."
        )
    if reason == Reason.DAY_CLOSED:
        return f"The facility is closed on {day.strftime('%A')}s."
    if reason == Reason.DATE_BLOCKED:
        note = snapshot.blocked.get(day)
        suffix = f": {note}" if note else "."
        return f"The facility is closed on {day.isoformat()}{suffix}"
    if reason == Reason.INVALID_DURATION:
        return "Bookings last 1, 2 or 3 hours."
    if reason == Reason.BEFORE_OPENING:
        return f"The facility opens at {policy.opening_time:02d}:00."
    if reason == Reason.PAST_CLOSING:
        return f"Bookings must end by closing time ({policy.closing_time:02d}:00)."
    if reason == Reason.TOO_SOON:
        minutes = int(snapshot.min_notice.total_seconds() // 60)
        return f"Same-day bookings must start at least {minutes} minutes from now."
    return "That time is already booked. Please pick another time or space."


def _reject(
    reason: Reason,
    day: date,
    snapshot: AvailabilitySnapshot,
    conflicting: Booking | None = None,
) -> SlotDecision:
    return SlotDecision(
        bookable=False,
        reason=reason,
        message=reason_message(reason, day, snapshot),
        conflicting=conflicting,
    )


# ── Decisions ─────────────────────────────────────────────────────────────


def check_day(day: date, snapshot: AvailabilitySnapshot) -> Reason | None:
    """Day-level gate; returns the failing rule or None when the day is open."""
    if day < snapshot.today:
        return Reason.PAST_DATE
    if day > snapshot.horizon:
        return Reason.HORIZON_EXCEEDED
    if not snapshot.policy.is_open_on(day):
        return Reason.DAY_CLOSED
    if day in snapshot.blocked:
        return Reason.DATE_BLOCKED
    return None


def _check_time(
    resource: Resource,
    day: date,
    start: time,
    duration: int,
    snapshot: AvailabilitySnapshot,
) -> SlotDecision:
    """Every rule after the day gate."""
    if duration not in DURATIONS:
        return _reject(Reason.INVALID_DURATION, day, snapshot)

    policy = snapshot.policy
    start_minutes = start.hour * 60 + start.minute
    if start_minutes < policy.opening_time * 60:
        return _reject(Reason.BEFORE_OPENING, day, snapshot)
    if start_minutes + duration * 60 > policy.closing_time * 60:
        return _reject(Reason.PAST_CLOSING, day, snapshot)

    start_utc, end_utc = slot_span(day, start, duration, snapshot.tz)
    if day == snapshot.today and start_utc < snapshot.now + snapshot.min_notice:
        return _reject(Reason.TOO_SOON, day, snapshot)

    clash = snapshot.index.first_conflict(resource, start_utc, end_utc)
    if clash is not None:
        return _reject(Reason.CONFLICT, day, snapshot, conflicting=clash)
    return SlotDecision.ok()


def check_slot(
    resource: Resource,
    day: date,
    start: time,
    duration: int,
    snapshot: AvailabilitySnapshot,
) -> SlotDecision:
    """Full bookability decision for one (resource, date, time, duration)."""
    if not resource.is_active:
        return _reject(Reason.RESOURCE_INACTIVE, day, snapshot)
    day_reason = check_day(day, snapshot)
    if day_reason is not None:
        return _reject(day_reason, day, snapshot)
    return _check_time(resource, day, start, duration, snapshot)


def max_duration(
    resource: Resource, day: date, start: time, snapshot: AvailabilitySnapshot
) -> int:
    """
    Longest valid duration starting at *start*, or 0 when none fits.

    Durations are tried shortest first; a longer one can only fail where a
    shorter one passed, so the first failure ends the search.
    """
    best = 0
    for duration in DURATIONS:
        if not check_slot(resource, day, start, duration, snapshot).bookable:
            break
        best = duration
    return best


def day_availability(
    resource: Resource, day: date, snapshot: AvailabilitySnapshot
) -> DayAvailability:
    """Start times of the day that have at least one bookable duration."""
    day_reason = Reason.RESOURCE_INACTIVE if not resource.is_active else check_day(day, snapshot)
    if day_reason is not None:
        return DayAvailability(
            day=day,
            reason=day_reason,
            message=reason_message(day_reason, day, snapshot),
        )

    slots = []
    for start in generate_slot_times(snapshot.policy):
        durations = tuple(
            d
            for d in DURATIONS
            if _check_time(resource, day, start, d, snapshot).bookable
        )
        if durations:
            slots.append((start, durations))
    return DayAvailability(day=day, reason=None, message=None, slots=tuple(slots))
