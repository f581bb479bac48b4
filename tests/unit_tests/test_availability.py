"""Tests for the availability engine (pure functions, no database)."""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from app.models import BookingStatus, FacilityPolicy
from app.services.availability import (
    AvailabilitySnapshot,
    Reason,
    add_months,
    booking_horizon,
    booking_space_ids,
    check_day,
    check_slot,
    day_availability,
    find_conflict,
    generate_slot_times,
    intervals_overlap,
    max_duration,
    slot_span,
    space_ids_for,
)
from tests.mocks.models import (
    BOOKING_DAY,
    BUNDLE_ABC,
    BUNDLE_ALL,
    BUNDLES,
    CLOSED_SUNDAYS,
    DEFAULT_POLICY,
    FACILITY_TZ,
    FIXED_NOW,
    HORIZON,
    SPACE_A,
    SPACE_B,
    SPACE_D,
    SUNDAY,
    TODAY,
    local_span,
    make_blocked_date,
    make_booking,
)

_BUNDLE_MAP = {b.id: b for b in BUNDLES}


def _snapshot(policy=DEFAULT_POLICY, *, bookings=(), blocked=(), now=FIXED_NOW) -> AvailabilitySnapshot:
    return AvailabilitySnapshot.build(
        policy,
        now=now,
        tz=FACILITY_TZ,
        blocked_dates=blocked,
        bookings=bookings,
        bundles=BUNDLES,
    )


def _times(day) -> list[str]:
    return [start.strftime("%H:%M") for start, _ in day.slots]


# ── Calendar helpers ──────────────────────────────────────────────────────


class TestAddMonths:
    def test_simple(self):
        assert add_months(date(2026, 6, 1), 4) == date(2026, 10, 1)

    def test_crosses_year(self):
        assert add_months(date(2026, 10, 15), 4) == date(2027, 2, 15)

    def test_clamps_to_month_end(self):
        assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
        assert add_months(date(2028, 1, 31), 1) == date(2028, 2, 29)
        assert add_months(date(2026, 10, 31), 4) == date(2027, 2, 28)

    def test_horizon_is_four_months(self):
        assert booking_horizon(TODAY) == HORIZON


class TestIntervals:
    def _span(self, start_h, end_h):
        base = datetime(2026, 6, 10, tzinfo=timezone.utc)
        return base + timedelta(hours=start_h), base + timedelta(hours=end_h)

    def test_touching_intervals_do_not_overlap(self):
        assert not intervals_overlap(*self._span(14, 15), *self._span(15, 16))
        assert not intervals_overlap(*self._span(15, 16), *self._span(14, 15))

    def test_partial_overlap(self):
        assert intervals_overlap(*self._span(14, 15), *self._span(14.5, 15.5))

    def test_containment(self):
        assert intervals_overlap(*self._span(14, 17), *self._span(15, 16))

    def test_disjoint(self):
        assert not intervals_overlap(*self._span(8, 9), *self._span(12, 13))


class TestSlotGeneration:
    def test_default_hours(self):
        times = generate_slot_times(DEFAULT_POLICY)
        assert times[0] == time(8)
        assert times[-1] == time(20)
        assert len(times) == 13

    def test_custom_hours(self):
        policy = FacilityPolicy(opening_time=10, closing_time=12)
        assert generate_slot_times(policy) == [time(10), time(11)]

    def test_opening_must_precede_closing(self):
        with pytest.raises(ValueError):
            FacilityPolicy(opening_time=12, closing_time=12)


class TestSlotSpan:
    def test_summer_time(self):
        start, end = slot_span(BOOKING_DAY, time(14), 2, FACILITY_TZ)
        assert start == datetime(2026, 6, 10, 18, 0, tzinfo=timezone.utc)
        assert end == datetime(2026, 6, 10, 20, 0, tzinfo=timezone.utc)

    def test_after_clocks_fall_back(self):
        start, _ = slot_span(date(2026, 11, 1), time(8), 1, FACILITY_TZ)
        assert start == datetime(2026, 11, 1, 13, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "day, start",
        [
            (date(2026, 3, 8), time(1)),   # clocks spring forward at 02:00
            (date(2026, 11, 1), time(0)),  # clocks fall back at 02:00
        ],
    )
    @pytest.mark.parametrize("duration", [1, 2, 3])
    def test_duration_is_elapsed_time_across_dst(self, day, start, duration):
        begin, end = slot_span(day, start, duration, FACILITY_TZ)
        assert end - begin == timedelta(hours=duration)

    def test_spring_forward_slot_ends_at_local_four(self):
        _, end = slot_span(date(2026, 3, 8), time(1), 2, FACILITY_TZ)
        assert end == datetime(2026, 3, 8, 8, 0, tzinfo=timezone.utc)
        assert end.astimezone(FACILITY_TZ).hour == 4

    def test_skipped_wall_time_uses_the_earlier_offset(self):
        start, end = slot_span(date(2026, 3, 8), time(2, 30), 1, FACILITY_TZ)
        assert start == datetime(2026, 3, 8, 7, 30, tzinfo=timezone.utc)
        assert end == datetime(2026, 3, 8, 8, 30, tzinfo=timezone.utc)


# ── Resource sets & conflicts ─────────────────────────────────────────────


class TestResourceSets:
    def test_space_is_its_own_set(self):
        assert space_ids_for(SPACE_B) == {"B"}

    def test_bundle_expands_to_constituents(self):
        assert space_ids_for(BUNDLE_ALL) == {"A", "B", "C", "D"}

    def test_booking_of_bundle(self):
        booking = make_booking(bundle_id="bundle2")
        assert booking_space_ids(booking, _BUNDLE_MAP) == {"A", "B", "C"}

    def test_booking_of_unknown_bundle_occupies_nothing(self):
        booking = make_booking(bundle_id="gone")
        assert booking_space_ids(booking, _BUNDLE_MAP) == frozenset()


class TestFindConflict:
    def _find(self, resource, start, hours, existing):
        span = local_span(BOOKING_DAY, start, hours)
        return find_conflict(resource, *span, existing, _BUNDLE_MAP)

    def test_same_space_overlap(self):
        existing = [make_booking(space_id="B", start=time(14))]
        assert self._find(SPACE_B, time(14, 30), 1, existing) is existing[0]

    def test_bundle_blocks_constituent_space(self):
        # Bundle A+B+C 14:00–15:00 blocks Space B 14:30–15:30.
        existing = [make_booking(bundle_id="bundle2", start=time(14))]
        assert self._find(SPACE_B, time(14, 30), 1, existing) is existing[0]

    def test_space_blocks_bundle_containing_it(self):
        existing = [make_booking(space_id="C", start=time(14))]
        assert self._find(BUNDLE_ABC, time(13), 2, existing) is existing[0]

    def test_overlapping_bundles(self):
        existing = [make_booking(bundle_id="bundle2", start=time(14))]
        assert self._find(BUNDLE_ALL, time(14), 1, existing) is existing[0]

    def test_same_bundle(self):
        existing = [make_booking(bundle_id="bundle3", start=time(14))]
        assert self._find(BUNDLE_ALL, time(14), 1, existing) is existing[0]

    def test_disjoint_spaces_do_not_conflict(self):
        existing = [make_booking(bundle_id="bundle2", start=time(14))]
        assert self._find(SPACE_D, time(14), 1, existing) is None

    def test_adjacent_booking_does_not_conflict(self):
        existing = [make_booking(space_id="B", start=time(14))]
        assert self._find(SPACE_B, time(15), 1, existing) is None
        assert self._find(SPACE_B, time(13), 1, existing) is None

    def test_ignore_id(self):
        existing = [make_booking(space_id="B", start=time(14))]
        span = local_span(BOOKING_DAY, time(14), 1)
        assert find_conflict(SPACE_B, *span, existing, _BUNDLE_MAP, ignore_id=existing[0].id) is None


# ── Day gate ──────────────────────────────────────────────────────────────


class TestCheckDay:
    def test_open_day(self):
        assert check_day(BOOKING_DAY, _snapshot()) is None

    def test_today_is_open(self):
        assert check_day(TODAY, _snapshot()) is None

    def test_past_date(self):
        assert check_day(TODAY - timedelta(days=1), _snapshot()) == Reason.PAST_DATE

    def test_exactly_four_months_is_accepted(self):
        assert check_day(HORIZON, _snapshot()) is None

    def test_four_months_and_a_day_is_rejected(self):
        assert check_day(HORIZON + timedelta(days=1), _snapshot()) == Reason.HORIZON_EXCEEDED

    def test_closed_weekday(self):
        assert check_day(SUNDAY, _snapshot(CLOSED_SUNDAYS)) == Reason.DAY_CLOSED

    def test_blocked_date(self):
        snap = _snapshot(blocked=[make_blocked_date(BOOKING_DAY)])
        assert check_day(BOOKING_DAY, snap) == Reason.DATE_BLOCKED

    def test_closed_day_reported_before_blocked(self):
        snap = _snapshot(CLOSED_SUNDAYS, blocked=[make_blocked_date(SUNDAY)])
        assert check_day(SUNDAY, snap) == Reason.DAY_CLOSED

    def test_today_uses_facility_timezone(self):
        # 02:00 UTC on 2 June is still 1 June in Detroit.
        late_evening = datetime(2026, 6, 2, 2, 0, tzinfo=timezone.utc)
        snap = _snapshot(now=late_evening)
        assert snap.today == TODAY
        assert check_day(TODAY, snap) is None

    def test_naive_now_is_rejected(self):
        with pytest.raises(ValueError):
            _snapshot(now=datetime(2026, 6, 1, 12, 0))


# ── Single slot ───────────────────────────────────────────────────────────


class TestCheckSlot:
    def test_bookable(self):
        decision = check_slot(SPACE_B, BOOKING_DAY, time(14), 2, _snapshot())
        assert decision.bookable
        assert decision.reason is None

    @pytest.mark.parametrize("duration", [0, 4, -1])
    def test_invalid_duration(self, duration):
        decision = check_slot(SPACE_B, BOOKING_DAY, time(14), duration, _snapshot())
        assert decision.reason == Reason.INVALID_DURATION

    def test_before_opening(self):
        decision = check_slot(SPACE_B, BOOKING_DAY, time(7), 1, _snapshot())
        assert decision.reason == Reason.BEFORE_OPENING

    def test_past_closing(self):
        decision = check_slot(SPACE_B, BOOKING_DAY, time(20), 2, _snapshot())
        assert decision.reason == Reason.PAST_CLOSING

    def test_may_end_exactly_at_closing(self):
        assert check_slot(SPACE_B, BOOKING_DAY, time(19), 2, _snapshot()).bookable
        assert check_slot(SPACE_B, BOOKING_DAY, time(18), 3, _snapshot()).bookable

    def test_too_soon_today(self):
        # Now is 08:00 local; 08:30 is inside the 60 minute notice.
        decision = check_slot(SPACE_B, TODAY, time(8, 30), 1, _snapshot())
        assert decision.reason == Reason.TOO_SOON

    def test_exactly_one_hour_notice_is_enough(self):
        assert check_slot(SPACE_B, TODAY, time(9), 1, _snapshot()).bookable

    def test_day_gate_runs_first(self):
        snap = _snapshot(CLOSED_SUNDAYS)
        decision = check_slot(SPACE_B, SUNDAY, time(7), 5, snap)
        assert decision.reason == Reason.DAY_CLOSED

    def test_blocked_date_rejects_every_hour_and_resource(self):
        snap = _snapshot(blocked=[make_blocked_date(BOOKING_DAY, "Christmas")])
        for resource in (SPACE_A, SPACE_D, BUNDLE_ALL):
            for start in generate_slot_times(DEFAULT_POLICY):
                decision = check_slot(resource, BOOKING_DAY, start, 1, snap)
                assert decision.reason == Reason.DATE_BLOCKED
        assert "Christmas" in decision.message

    def test_inactive_resource_is_never_bookable(self):
        inactive = SPACE_B.model_copy(update={"is_active": False})
        decision = check_slot(inactive, BOOKING_DAY, time(14), 1, _snapshot())
        assert not decision.bookable
        assert decision.reason == Reason.RESOURCE_INACTIVE
        assert decision.message

    def test_inactive_wins_over_day_rules(self):
        inactive = SPACE_B.model_copy(update={"is_active": False})
        decision = check_slot(inactive, SUNDAY, time(14), 1, _snapshot(CLOSED_SUNDAYS))
        assert decision.reason == Reason.RESOURCE_INACTIVE

    def test_conflict_reports_the_clashing_booking(self):
        existing = make_booking(bundle_id="bundle2", start=time(14))
        decision = check_slot(SPACE_B, BOOKING_DAY, time(14), 1, _snapshot(bookings=[existing]))
        assert decision.reason == Reason.CONFLICT
        assert decision.conflicting is existing

    def test_confirmed_booking_blocks(self):
        existing = make_booking(space_id="B", start=time(14), status=BookingStatus.CONFIRMED)
        decision = check_slot(SPACE_B, BOOKING_DAY, time(14), 1, _snapshot(bookings=[existing]))
        assert decision.reason == Reason.CONFLICT

    def test_every_rejection_has_a_message(self):
        snap = _snapshot(CLOSED_SUNDAYS, blocked=[make_blocked_date(BOOKING_DAY)])
        cases = [
            (TODAY - timedelta(days=1), time(10), 1),
            (HORIZON + timedelta(days=1), time(10), 1),
            (SUNDAY, time(10), 1),
            (BOOKING_DAY, time(10), 1),
            (TODAY, time(10), 9),
            (TODAY, time(6), 1),
            (TODAY, time(20), 3),
            (TODAY, time(8), 1),
        ]
        for day, start, duration in cases:
            decision = check_slot(SPACE_A, day, start, duration, snap)
            assert not decision.bookable
            assert decision.message


# ── Max duration ──────────────────────────────────────────────────────────


class TestMaxDuration:
    def test_open_afternoon(self):
        assert max_duration(SPACE_B, BOOKING_DAY, time(14), _snapshot()) == 3

    def test_limited_by_later_booking(self):
        snap = _snapshot(bookings=[make_booking(space_id="B", start=time(16))])
        assert max_duration(SPACE_B, BOOKING_DAY, time(14), snap) == 2
        assert max_duration(SPACE_B, BOOKING_DAY, time(15), snap) == 1
        assert max_duration(SPACE_B, BOOKING_DAY, time(16), snap) == 0

    def test_limited_by_closing(self):
        assert max_duration(SPACE_B, BOOKING_DAY, time(19), _snapshot()) == 2
        assert max_duration(SPACE_B, BOOKING_DAY, time(20), _snapshot()) == 1

    def test_zero_on_closed_day(self):
        assert max_duration(SPACE_B, SUNDAY, time(10), _snapshot(CLOSED_SUNDAYS)) == 0

    def test_zero_for_inactive_space(self):
        inactive = SPACE_B.model_copy(update={"is_active": False})
        assert max_duration(inactive, BOOKING_DAY, time(14), _snapshot()) == 0


# ── Whole day ─────────────────────────────────────────────────────────────


class TestDayAvailability:
    def test_open_day_lists_every_hour(self):
        day = day_availability(SPACE_B, BOOKING_DAY, _snapshot())
        assert day.bookable
        assert day.reason is None
        assert len(day.slots) == 13
        durations = dict(day.slots)
        assert durations[time(8)] == (1, 2, 3)
        assert durations[time(19)] == (1, 2)
        assert durations[time(20)] == (1,)

    def test_closed_day_has_no_slots(self):
        day = day_availability(SPACE_B, SUNDAY, _snapshot(CLOSED_SUNDAYS))
        assert not day.bookable
        assert day.reason == Reason.DAY_CLOSED
        assert day.slots == ()
        assert "Sunday" in day.message

    def test_inactive_resource_has_no_slots(self):
        for resource in (SPACE_B, BUNDLE_ALL):
            inactive = resource.model_copy(update={"is_active": False})
            day = day_availability(inactive, BOOKING_DAY, _snapshot())
            assert not day.bookable
            assert day.reason == Reason.RESOURCE_INACTIVE
            assert day.slots == ()
            assert "not available" in day.message

    def test_blocked_day(self):
        snap = _snapshot(blocked=[make_blocked_date(BOOKING_DAY, "Christmas")])
        day = day_availability(BUNDLE_ALL, BOOKING_DAY, snap)
        assert day.reason == Reason.DATE_BLOCKED
        assert day.slots == ()

    def test_booked_hour_is_removed_and_neighbours_shortened(self):
        snap = _snapshot(bookings=[make_booking(space_id="B", start=time(14))])
        day = day_availability(SPACE_B, BOOKING_DAY, snap)
        durations = dict(day.slots)
        assert time(14) not in durations
        assert durations[time(13)] == (1,)
        assert durations[time(12)] == (1, 2)
        assert durations[time(15)] == (1, 2, 3)

    def test_bundle_booking_shadows_spaces_but_not_others(self):
        snap = _snapshot(bookings=[make_booking(bundle_id="bundle2", start=time(14))])
        assert time(14) not in dict(day_availability(SPACE_A, BOOKING_DAY, snap).slots)
        assert time(14) not in dict(day_availability(BUNDLE_ALL, BOOKING_DAY, snap).slots)
        assert time(14) in dict(day_availability(SPACE_D, BOOKING_DAY, snap).slots)

    def test_today_skips_slots_inside_notice(self):
        day = day_availability(SPACE_B, TODAY, _snapshot())
        assert _times(day)[0] == "09:00"

    def test_fully_booked_day(self):
        booking = make_booking(bundle_id="bundle3", start=time(8), hours=13)
        day = day_availability(SPACE_D, BOOKING_DAY, _snapshot(bookings=[booking]))
        assert day.slots == ()
        assert not day.bookable
