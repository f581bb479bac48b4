"""
SQLite database layer using aiosqlite.

Stores the resource catalog (spaces, bundles), the facility calendar
policy, blocked dates and the booking ledger.  Tables are created
automatically on first connect and the catalog is seeded when empty.

Writes that must be serializable (conflict check + insert, status
transitions) run inside ``BEGIN IMMEDIATE`` transactions, one at a time
on the shared connection.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import TypeVar
from uuid import uuid4

import aiosqlite

from app.config import DB_PATH
from app.models import (
    BlockedDate,
    Booking,
    BookingStatus,
    Bundle,
    FacilityPolicy,
    Space,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Only confirmed bookings occupy their slot.
HOLDING_STATUSES: tuple[str, ...] = (BookingStatus.CONFIRMED.value,)

# ── Module-level connection ───────────────────────────────────────────────

_db: aiosqlite.Connection | None = None
_write_lock: asyncio.Lock | None = None


async def init_db() -> None:
    """Open the database, create tables and seed the catalog if needed."""
    global _db, _write_lock
    db_path = Path(DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    _db = await aiosqlite.connect(str(db_path))
    _db.row_factory = aiosqlite.Row  # dict-like rows
    _write_lock = asyncio.Lock()
    await _db.execute("PRAGMA journal_mode=WAL")
    await _db.execute("PRAGMA foreign_keys=ON")
    await _db.execute("PRAGMA busy_timeout=5000")

    await _db.executescript(_SCHEMA)
    await _db.commit()
    await _seed_catalog()
    logger.info("Database initialized at %s", db_path)


async def close_db() -> None:
    """Close the database connection."""
    global _db, _write_lock
    if _db is not None:
        await _db.close()
        _db = None
        _write_lock = None
        logger.info("Database connection closed")


def get_db() -> aiosqlite.Connection:
    """Return the active database connection (must call init_db first)."""
    assert _db is not None, "Database not initialized — call init_db() first"
    return _db


async def _transaction(work: Callable[[aiosqlite.Connection], Awaitable[T]]) -> T:
    """
    Run *work* inside one serializable write transaction.

    A locked database is retried once; any other exception rolls back and
    propagates unchanged.
    """
    db = get_db()
    assert _write_lock is not None
    for attempt in (1, 2):
        try:
            async with _write_lock:
                await db.execute("BEGIN IMMEDIATE")
                try:
                    result = await work(db)
                except BaseException:
                    await db.rollback()
                    raise
                await db.commit()
                return result
        except aiosqlite.OperationalError:
            if attempt == 2:
                raise
            logger.warning("Write transaction failed (database busy) — retrying once")
    raise AssertionError("unreachable")


async def _execute_write(sql: str, params: Iterable = ()) -> int:
    """Run a single write statement in its own transaction; returns rowcount."""

    async def work(db: aiosqlite.Connection) -> int:
        cur = await db.execute(sql, tuple(params))
        return cur.rowcount

    return await _transaction(work)


# ── Schema ────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS spaces (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    description     TEXT NOT NULL DEFAULT '',
    dimensions      TEXT NOT NULL DEFAULT '',
    equipment       TEXT NOT NULL DEFAULT '',
    hourly_rate     TEXT NOT NULL,  -- decimal string
    is_active       INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS bundles (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    description     TEXT NOT NULL DEFAULT '',
    space_ids       TEXT NOT NULL,  -- JSON array of space ids
    hourly_rate     TEXT NOT NULL,
    is_active       INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS facility_policy (
    id              TEXT PRIMARY KEY,
    opening_time    INTEGER NOT NULL,
    closing_time    INTEGER NOT NULL,
    sunday_open     INTEGER NOT NULL DEFAULT 1,
    monday_open     INTEGER NOT NULL DEFAULT 1,
    tuesday_open    INTEGER NOT NULL DEFAULT 1,
    wednesday_open  INTEGER NOT NULL DEFAULT 1,
    thursday_open   INTEGER NOT NULL DEFAULT 1,
    friday_open     INTEGER NOT NULL DEFAULT 1,
    saturday_open   INTEGER NOT NULL DEFAULT 1,
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS blocked_dates (
    id              TEXT PRIMARY KEY,
    date            TEXT NOT NULL UNIQUE,
    reason          TEXT NOT NULL,
    created_by      TEXT,
    created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS bookings (
    id              TEXT PRIMARY KEY,
    user_email      TEXT NOT NULL,
    space_id        TEXT REFERENCES spaces(id),
    bundle_id       TEXT REFERENCES bundles(id),
    start_time      TEXT NOT NULL,  -- UTC ISO-8601
    end_time        TEXT NOT NULL,
    total_amount    TEXT NOT NULL,
    status          TEXT NOT NULL,
    payment_method  TEXT NOT NULL DEFAULT 'card',
    payment_intent_id TEXT,
    reminder_sent   INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    CHECK ((space_id IS NULL) != (bundle_id IS NULL)),
    CHECK (end_time > start_time)
);

CREATE INDEX IF NOT EXISTS idx_bookings_span ON bookings(start_time, end_time);
CREATE INDEX IF NOT EXISTS idx_bookings_user ON bookings(user_email);
CREATE INDEX IF NOT EXISTS idx_bookings_status ON bookings(status);
CREATE INDEX IF NOT EXISTS idx_bookings_intent ON bookings(payment_intent_id);
"""

_POLICY_ID = "default"

_DAY_COLUMNS = (
    "sunday_open",
    "monday_open",
    "tuesday_open",
    "wednesday_open",
    "thursday_open",
    "friday_open",
    "saturday_open",
)

_SEED_SPACES: list[Space] = [
    Space(
        id="A",
        name="Space A",
        description="60' x 88' Open Practice Area",
        dimensions="60' x 88'",
        equipment="Cones, bases, balls, pitching mounds, mini hurdles, medicine balls, sliding mat",
        hourly_rate=Decimal("75.00"),
    ),
    Space(
        id="B",
        name="Space B",
        description="12' x 40' Batting Cage",
        dimensions="12' x 40'",
        equipment="Batting tee, balls, Blast Technology, L-screen",
        hourly_rate=Decimal("30.00"),
    ),
    Space(
        id="C",
        name="Space C",
        description="12' x 40' Batting Cage",
        dimensions="12' x 40'",
        equipment="Batting tee, balls, L-screen, Blast Technology, Hack Attack Jr pitching machine",
        hourly_rate=Decimal("50.00"),
    ),
    Space(
        id="D",
        name="Space D",
        description="12' x 70' Batting Cage",
        dimensions="12' x 70'",
        equipment="Batting tee, balls, L-screen, Hit Tracks, Hack Attack Elite pitching machine",
        hourly_rate=Decimal("100.00"),
    ),
]

_SEED_BUNDLES: list[Bundle] = [
    Bundle(
        id="bundle2",
        name="Team Bundle 1",
        description="Spaces A, B & C - practice area plus batting cages",
        space_ids=["A", "B", "C"],
        hourly_rate=Decimal("120.00"),
    ),
    Bundle(
        id="bundle3",
        name="Team Bundle 2",
        description="Entire facility - Spaces A, B, C & D",
        space_ids=["A", "B", "C", "D"],
        hourly_rate=Decimal("200.00"),
    ),
]


# ── Helpers ───────────────────────────────────────────────────────────────


def _iso(dt: datetime) -> str:
    """Fixed-width UTC ISO string so lexical order matches time order."""
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _now_iso() -> str:
    return _iso(datetime.now(timezone.utc))


def _row_to_space(row: aiosqlite.Row) -> Space:
    return Space(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        dimensions=row["dimensions"],
        equipment=row["equipment"],
        hourly_rate=Decimal(row["hourly_rate"]),
        is_active=bool(row["is_active"]),
    )


def _row_to_bundle(row: aiosqlite.Row) -> Bundle:
    return Bundle(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        space_ids=json.loads(row["space_ids"]),
        hourly_rate=Decimal(row["hourly_rate"]),
        is_active=bool(row["is_active"]),
    )


def _row_to_blocked(row: aiosqlite.Row) -> BlockedDate:
    return BlockedDate(
        id=row["id"],
        blocked_date=date.fromisoformat(row["date"]),
        reason=row["reason"],
        created_by=row["created_by"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_booking(row: aiosqlite.Row) -> Booking:
    return Booking(
        id=row["id"],
        user_email=row["user_email"],
        space_id=row["space_id"],
        bundle_id=row["bundle_id"],
        start_time=datetime.fromisoformat(row["start_time"]),
        end_time=datetime.fromisoformat(row["end_time"]),
        total_amount=Decimal(row["total_amount"]),
        status=BookingStatus(row["status"]),
        payment_method=row["payment_method"],
        payment_intent_id=row["payment_intent_id"],
        reminder_sent=bool(row["reminder_sent"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _placeholders(values: Iterable) -> str:
    return ", ".join("?" for _ in values)


# ══════════════════════════════════════════════════════════════════════════
#                    CATALOG REPOSITORY
# ══════════════════════════════════════════════════════════════════════════


async def _seed_catalog() -> None:
    """Insert the default spaces and bundles into an empty catalog."""
    db = get_db()
    async with db.execute("SELECT COUNT(*) FROM spaces") as cur:
        (count,) = await cur.fetchone()
    if count:
        return

    await db.executemany(
        """
        INSERT INTO spaces (id, name, description, dimensions, equipment, hourly_rate, is_active)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        [
            (s.id, s.name, s.description, s.dimensions, s.equipment, str(s.hourly_rate), int(s.is_active))
            for s in _SEED_SPACES
        ],
    )
    await db.executemany(
        """
        INSERT INTO bundles (id, name, description, space_ids, hourly_rate, is_active)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        [
            (b.id, b.name, b.description, json.dumps(b.space_ids), str(b.hourly_rate), int(b.is_active))
            for b in _SEED_BUNDLES
        ],
    )
    await db.commit()
    logger.info("Seeded catalog with %d spaces and %d bundles", len(_SEED_SPACES), len(_SEED_BUNDLES))


async def list_spaces(*, active_only: bool = True) -> list[Space]:
    db = get_db()
    sql = "SELECT * FROM spaces"
    if active_only:
        sql += " WHERE is_active = 1"
    sql += " ORDER BY id"
    async with db.execute(sql) as cur:
        rows = await cur.fetchall()
    return [_row_to_space(r) for r in rows]


async def get_space(space_id: str) -> Space | None:
    db = get_db()
    async with db.execute("SELECT * FROM spaces WHERE id = ?", (space_id,)) as cur:
        row = await cur.fetchone()
    return _row_to_space(row) if row else None


async def update_space(
    space_id: str,
    *,
    hourly_rate: Decimal | None = None,
    is_active: bool | None = None,
) -> Space | None:
    """Change a space's price and/or active flag."""
    await _update_resource("spaces", space_id, hourly_rate, is_active)
    return await get_space(space_id)


async def _update_resource(
    table: str,
    resource_id: str,
    hourly_rate: Decimal | None,
    is_active: bool | None,
) -> None:
    sets: list[str] = []
    params: list = []
    if hourly_rate is not None:
        sets.append("hourly_rate = ?")
        params.append(str(hourly_rate))
    if is_active is not None:
        sets.append("is_active = ?")
        params.append(int(is_active))
    if not sets:
        return
    await _execute_write(
        f"UPDATE {table} SET {', '.join(sets)} WHERE id = ?", (*params, resource_id)
    )


async def list_bundles(*, active_only: bool = True) -> list[Bundle]:
    db = get_db()
    sql = "SELECT * FROM bundles"
    if active_only:
        sql += " WHERE is_active = 1"
    sql += " ORDER BY id"
    async with db.execute(sql) as cur:
        rows = await cur.fetchall()
    return [_row_to_bundle(r) for r in rows]


async def get_bundle(bundle_id: str) -> Bundle | None:
    db = get_db()
    async with db.execute("SELECT * FROM bundles WHERE id = ?", (bundle_id,)) as cur:
        row = await cur.fetchone()
    return _row_to_bundle(row) if row else None


async def update_bundle(
    bundle_id: str,
    *,
    hourly_rate: Decimal | None = None,
    is_active: bool | None = None,
) -> Bundle | None:
    """Change a bundle's price and/or active flag."""
    await _update_resource("bundles", bundle_id, hourly_rate, is_active)
    return await get_bundle(bundle_id)


# ══════════════════════════════════════════════════════════════════════════
#                    FACILITY CALENDAR REPOSITORY
# ══════════════════════════════════════════════════════════════════════════


async def get_facility_policy() -> FacilityPolicy:
    """Return the facility policy, creating the default row on first use."""
    db = get_db()
    async with db.execute(
        "SELECT * FROM facility_policy WHERE id = ?", (_POLICY_ID,)
    ) as cur:
        row = await cur.fetchone()
    if row is None:
        return await update_facility_policy(FacilityPolicy())
    return FacilityPolicy(
        opening_time=row["opening_time"],
        closing_time=row["closing_time"],
        **{col: bool(row[col]) for col in _DAY_COLUMNS},
    )


async def update_facility_policy(policy: FacilityPolicy) -> FacilityPolicy:
    """Replace the facility policy."""
    await _execute_write(
        f"""
        INSERT INTO facility_policy (id, opening_time, closing_time, {", ".join(_DAY_COLUMNS)}, updated_at)
        VALUES (?, ?, ?, {_placeholders(_DAY_COLUMNS)}, ?)
        ON CONFLICT(id) DO UPDATE SET
            opening_time = excluded.opening_time,
            closing_time = excluded.closing_time,
            {", ".join(f"{col} = excluded.{col}" for col in _DAY_COLUMNS)},
            updated_at = excluded.updated_at
        """,
        (
            _POLICY_ID,
            policy.opening_time,
            policy.closing_time,
            *(int(getattr(policy, col)) for col in _DAY_COLUMNS),
            _now_iso(),
        ),
    )
    logger.info(
        "Facility policy set: %02d:00–%02d:00, open days %s",
        policy.opening_time,
        policy.closing_time,
        [col.removesuffix("_open") for col in _DAY_COLUMNS if getattr(policy, col)],
    )
    return policy


async def list_blocked_dates(*, date_from: date | None = None) -> list[BlockedDate]:
    db = get_db()
    sql = "SELECT * FROM blocked_dates"
    params: list = []
    if date_from is not None:
        sql += " WHERE date >= ?"
        params.append(date_from.isoformat())
    sql += " ORDER BY date"
    async with db.execute(sql, params) as cur:
        rows = await cur.fetchall()
    return [_row_to_blocked(r) for r in rows]


async def get_blocked_date_for(day: date) -> BlockedDate | None:
    db = get_db()
    async with db.execute(
        "SELECT * FROM blocked_dates WHERE date = ?", (day.isoformat(),)
    ) as cur:
        row = await cur.fetchone()
    return _row_to_blocked(row) if row else None


async def create_blocked_date(day: date, reason: str, created_by: str | None) -> BlockedDate:
    """Block a calendar date. Raises aiosqlite.IntegrityError if already blocked."""
    blocked = BlockedDate(
        id=str(uuid4()),
        blocked_date=day,
        reason=reason,
        created_by=created_by,
        created_at=datetime.now(timezone.utc),
    )
    await _execute_write(
        "INSERT INTO blocked_dates (id, date, reason, created_by, created_at) VALUES (?, ?, ?, ?, ?)",
        (blocked.id, day.isoformat(), reason, created_by, _iso(blocked.created_at)),
    )
    return blocked


async def delete_blocked_date(blocked_id: str) -> bool:
    """Unblock a date. Returns True if a row was actually deleted."""
    return await _execute_write("DELETE FROM blocked_dates WHERE id = ?", (blocked_id,)) > 0


# ══════════════════════════════════════════════════════════════════════════
#                    BOOKING LEDGER
# ══════════════════════════════════════════════════════════════════════════


async def _select_holding(
    db: aiosqlite.Connection, start: datetime, end: datetime
) -> list[Booking]:
    async with db.execute(
        f"""
        SELECT * FROM bookings
        WHERE status IN ({_placeholders(HOLDING_STATUSES)})
          AND start_time < ? AND end_time > ?
        ORDER BY start_time
        """,
        (*HOLDING_STATUSES, _iso(end), _iso(start)),
    ) as cur:
        rows = await cur.fetchall()
    return [_row_to_booking(r) for r in rows]


async def _fetch_booking(db: aiosqlite.Connection, booking_id: str) -> Booking | None:
    async with db.execute("SELECT * FROM bookings WHERE id = ?", (booking_id,)) as cur:
        row = await cur.fetchone()
    return _row_to_booking(row) if row else None


async def list_holding_bookings(start: datetime, end: datetime) -> list[Booking]:
    """Bookings that occupy any part of [start, end)."""
    return await _select_holding(get_db(), start, end)


async def insert_booking(
    draft: Booking,
    guard: Callable[[list[Booking]], None],
) -> Booking:
    """
    Persist *draft* after *guard* has approved it.

    *guard* receives the holding bookings overlapping the draft's span, read
    inside the same write transaction, and raises to abort the insert.
    """

    async def work(db: aiosqlite.Connection) -> Booking:
        guard(await _select_holding(db, draft.start_time, draft.end_time))
        await db.execute(
            """
            INSERT INTO bookings (
                id, user_email, space_id, bundle_id, start_time, end_time,
                total_amount, status, payment_method, payment_intent_id,
                reminder_sent, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                draft.id,
                draft.user_email,
                draft.space_id,
                draft.bundle_id,
                _iso(draft.start_time),
                _iso(draft.end_time),
                str(draft.total_amount),
                draft.status.value,
                draft.payment_method,
                draft.payment_intent_id,
                int(draft.reminder_sent),
                _iso(draft.created_at),
                _iso(draft.updated_at),
            ),
        )
        return draft

    return await _transaction(work)


async def transition_status(
    booking_id: str,
    status: BookingStatus,
    check: Callable[[Booking, list[Booking]], None] | None = None,
    *,
    now: datetime | None = None,
) -> Booking | None:
    """
    Atomically move a booking to *status*.

    The booking is re-read inside the transaction.  Moving to the status it
    already has is a no-op.  Otherwise *check* is called with the current
    booking and the other holding bookings overlapping it, and may raise to
    veto the change.  Returns None if the booking does not exist.
    """

    async def work(db: aiosqlite.Connection) -> Booking | None:
        current = await _fetch_booking(db, booking_id)
        if current is None or current.status == status:
            return current
        if check is not None:
            overlapping = [
                b
                for b in await _select_holding(db, current.start_time, current.end_time)
                if b.id != current.id
            ]
            check(current, overlapping)
        stamp = now or datetime.now(timezone.utc)
        await db.execute(
            "UPDATE bookings SET status = ?, updated_at = ? WHERE id = ?",
            (status.value, _iso(stamp), booking_id),
        )
        return current.model_copy(update={"status": status, "updated_at": stamp})

    return await _transaction(work)


async def set_payment_intent(
    booking_id: str, payment_intent_id: str, *, now: datetime | None = None
) -> Booking | None:
    await _execute_write(
        "UPDATE bookings SET payment_intent_id = ?, updated_at = ? WHERE id = ?",
        (payment_intent_id, _iso(now) if now else _now_iso(), booking_id),
    )
    return await get_booking(booking_id)


async def get_booking(booking_id: str) -> Booking | None:
    """Fetch a single booking by ID."""
    return await _fetch_booking(get_db(), booking_id)


async def find_booking_by_payment_intent(payment_intent_id: str) -> Booking | None:
    db = get_db()
    async with db.execute(
        "SELECT * FROM bookings WHERE payment_intent_id = ?", (payment_intent_id,)
    ) as cur:
        row = await cur.fetchone()
    return _row_to_booking(row) if row else None


async def list_bookings(
    *,
    user_email: str | None = None,
    status: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[Booking]:
    """List bookings newest-first, with optional filters."""
    db = get_db()
    sql = "SELECT * FROM bookings WHERE 1 = 1"
    params: list = []

    if user_email is not None:
        sql += " AND user_email = ?"
        params.append(user_email)
    if status is not None:
        sql += " AND status = ?"
        params.append(status)
    if date_from is not None:
        sql += " AND start_time >= ?"
        params.append(_iso(date_from))
    if date_to is not None:
        sql += " AND start_time < ?"
        params.append(_iso(date_to))

    sql += " ORDER BY start_time DESC"

    async with db.execute(sql, params) as cur:
        rows = await cur.fetchall()
    return [_row_to_booking(r) for r in rows]


async def delete_booking(booking_id: str) -> bool:
    """Physically remove a booking. Returns True if a row was deleted."""
    return await _execute_write("DELETE FROM bookings WHERE id = ?", (booking_id,)) > 0


# ── Sweeps ────────────────────────────────────────────────────────────────


async def list_reminder_candidates(window_start: datetime, window_end: datetime) -> list[Booking]:
    """Confirmed, not-yet-reminded bookings starting inside the window (inclusive)."""
    db = get_db()
    async with db.execute(
        """
        SELECT * FROM bookings
        WHERE status = ? AND reminder_sent = 0
          AND start_time >= ? AND start_time <= ?
        ORDER BY start_time
        """,
        (BookingStatus.CONFIRMED.value, _iso(window_start), _iso(window_end)),
    ) as cur:
        rows = await cur.fetchall()
    return [_row_to_booking(r) for r in rows]


async def claim_reminder(booking_id: str) -> bool:
    """
    Mark a reminder as sent.  Only one caller can win the claim, so a
    reminder is dispatched at most once even if scans overlap.
    """
    updated = await _execute_write(
        """
        UPDATE bookings SET reminder_sent = 1, updated_at = ?
        WHERE id = ? AND reminder_sent = 0 AND status = ?
        """,
        (_now_iso(), booking_id, BookingStatus.CONFIRMED.value),
    )
    return updated == 1


async def _sweep(
    from_statuses: Iterable[str],
    to_status: BookingStatus,
    where: str,
    params: tuple,
    now: datetime,
) -> list[Booking]:
    from_statuses = tuple(str(s) for s in from_statuses)

    async def work(db: aiosqlite.Connection) -> list[Booking]:
        async with db.execute(
            f"SELECT * FROM bookings WHERE status IN ({_placeholders(from_statuses)}) AND {where}",
            (*from_statuses, *params),
        ) as cur:
            rows = await cur.fetchall()
        swept = [_row_to_booking(r) for r in rows]
        if swept:
            ids = [b.id for b in swept]
            await db.execute(
                f"UPDATE bookings SET status = ?, updated_at = ? WHERE id IN ({_placeholders(ids)})",
                (to_status.value, _iso(now), *ids),
            )
        return [b.model_copy(update={"status": to_status, "updated_at": now}) for b in swept]

    return await _transaction(work)


async def expire_stale(cutoff: datetime, *, now: datetime | None = None) -> list[Booking]:
    """Expire unpaid bookings created at or before *cutoff*."""
    return await _sweep(
        (BookingStatus.PENDING, BookingStatus.PAYMENT_FAILED),
        BookingStatus.EXPIRED,
        "created_at <= ?",
        (_iso(cutoff),),
        now or datetime.now(timezone.utc),
    )


async def complete_finished(now: datetime) -> list[Booking]:
    """Mark confirmed bookings that have ended as completed."""
    return await _sweep(
        (BookingStatus.CONFIRMED,),
        BookingStatus.COMPLETED,
        "end_time < ?",
        (_iso(now),),
        now,
    )
