"""
Shared test fixtures.

Provides a FastAPI TestClient wired to:
  • a temporary SQLite database (via app lifespan)
  • a fixed clock (see tests.mocks.models.FIXED_NOW)
  • recording email and payment collaborators
  • no-op background workers

One TestClient runs the full lifespan (DB init / shutdown) per test.  The
`client` fixture sends requests as a customer, `admin_client` as staff and
`unauthed_client` with whatever session cookie it carries; a test may use
several of them at once.  Service level tests use the `ledger` fixture,
which opens the same kind of temporary database without the HTTP layer.
"""

from __future__ import annotations

from typing import Annotated

import pytest
from fastapi import Cookie
from fastapi.testclient import TestClient

from app import db
from app.dependencies import get_current_user
from app.main import app
from app.models import UserInfo
from app.services.booking_service import BookingService, booking_service
from tests.mocks.models import FACILITY_TZ, FIXED_NOW, MOCK_ADMIN, MOCK_USER
from tests.mocks.services import FakePaymentGateway, NoopWorker, RecordingNotifier


# ── Helpers ────────────────────────────────────────────────────────────────


class Clock:
    """Settable clock; call it to read the time."""

    def __init__(self, now=FIXED_NOW) -> None:
        self.now = now

    def __call__(self):
        return self.now


class ActingUser:
    """Who the overridden auth dependency says is signed in (None = read the cookie)."""

    def __init__(self) -> None:
        self.user: UserInfo | None = None


class UserClient:
    """Sends every request through the shared TestClient as one user."""

    def __init__(self, tc: TestClient, acting: ActingUser, user: UserInfo | None) -> None:
        self._tc = tc
        self._acting = acting
        self.user = user

    @property
    def cookies(self):
        return self._tc.cookies

    def run(self, fn, *args):
        """Await ``fn(*args)`` on the app's event loop (where the DB lives)."""
        return self._tc.portal.call(fn, *args)

    def request(self, method: str, url: str, **kwargs):
        self._acting.user = self.user
        return self._tc.request(method, url, **kwargs)

    def get(self, url: str, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs):
        return self.request("POST", url, **kwargs)

    def put(self, url: str, **kwargs):
        return self.request("PUT", url, **kwargs)

    def patch(self, url: str, **kwargs):
        return self.request("PATCH", url, **kwargs)

    def delete(self, url: str, **kwargs):
        return self.request("DELETE", url, **kwargs)


# ── Fixtures ───────────────────────────────────────────────────────────────


@pytest.fixture()
def clock() -> Clock:
    return Clock()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture()
def _test_env(monkeypatch, tmp_path, clock, notifier, gateway):
    """
    Internal fixture that patches the DB path, collaborators and workers
    so that the app lifespan runs cleanly against a temp database.
    """
    # ── Temp database ─────────────────────────────────────────────────
    monkeypatch.setattr(db, "DB_PATH", str(tmp_path / "test.db"))

    # ── Deterministic booking service ─────────────────────────────────
    monkeypatch.setattr(booking_service, "tz", FACILITY_TZ)
    monkeypatch.setattr(booking_service, "clock", clock)
    monkeypatch.setattr(booking_service, "notifier", notifier)
    monkeypatch.setattr("app.main.create_payment_gateway", lambda: gateway)
    monkeypatch.setattr("app.routers.payments.STRIPE_WEBHOOK_SECRET", "")
    monkeypatch.setattr("app.routers.payments.payments_enabled", lambda: False)

    # ── No-op workers ─────────────────────────────────────────────────
    monkeypatch.setattr("app.main.reminder_scanner", NoopWorker())
    monkeypatch.setattr("app.main.housekeeper", NoopWorker())

    # ── Disable rate limiting in tests ────────────────────────────────
    from app.rate_limit import limiter as _limiter
    monkeypatch.setattr(_limiter, "enabled", False)


@pytest.fixture()
def _app(_test_env):
    """The running app plus the switch that decides who is signed in."""
    acting = ActingUser()

    async def _mock_current_user(
        session: Annotated[str | None, Cookie()] = None,
    ) -> UserInfo:
        if acting.user is None:
            return await get_current_user(session)
        return acting.user

    app.dependency_overrides[get_current_user] = _mock_current_user
    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc, acting
    app.dependency_overrides.clear()


@pytest.fixture()
def client(_app) -> UserClient:
    """Client signed in as MOCK_USER (a customer)."""
    return UserClient(*_app, MOCK_USER)


@pytest.fixture()
def admin_client(_app) -> UserClient:
    """Client signed in as MOCK_ADMIN."""
    return UserClient(*_app, MOCK_ADMIN)


@pytest.fixture()
def unauthed_client(_app) -> UserClient:
    """
    Client without an auth override – requests are rejected unless a
    session cookie is provided.
    """
    return UserClient(*_app, None)


@pytest.fixture()
async def ledger(monkeypatch, tmp_path):
    """Open a fresh seeded database for service-level tests."""
    monkeypatch.setattr(db, "DB_PATH", str(tmp_path / "ledger.db"))
    await db.init_db()
    yield
    await db.close_db()


@pytest.fixture()
def service(ledger, clock, notifier, gateway) -> BookingService:
    """A BookingService on the temp database with a fixed clock."""
    return BookingService(tz=FACILITY_TZ, clock=clock, payments=gateway, notifier=notifier)
