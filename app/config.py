"""
Application configuration from environment variables.

All settings have sensible defaults for local development.
A .env file in the project root is loaded automatically (if present).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file before reading any env vars
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# ── Environment ───────────────────────────────────────────────────────────

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "info").upper()
APP_VERSION: str = "0.1.0"

# ── Paths ─────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# SQLite database file
DB_PATH: str = os.getenv("DB_PATH", str(DATA_DIR / "barn_booking.db"))

# ── JWT ───────────────────────────────────────────────────────────────────

JWT_SECRET: str = os.getenv("JWT_SECRET", "dev-secret-change-me-in-production")
JWT_ALGORITHM: str = "HS256"
JWT_EXPIRY_DAYS: int = int(os.getenv("JWT_EXPIRY_DAYS", "7"))

# ── Facility ──────────────────────────────────────────────────────────────

FACILITY_NAME: str = os.getenv("FACILITY_NAME", "The Barn")

# IANA zone every availability decision is evaluated in.  Stored
# timestamps are always UTC.
FACILITY_TIMEZONE: str = os.getenv("FACILITY_TIMEZONE", "America/Detroit")

BOOKING_HORIZON_MONTHS: int = int(os.getenv("BOOKING_HORIZON_MONTHS", "4"))
MIN_NOTICE_MINUTES: int = int(os.getenv("MIN_NOTICE_MINUTES", "60"))
CANCELLATION_CUTOFF_HOURS: int = int(os.getenv("CANCELLATION_CUTOFF_HOURS", "24"))

# Unpaid bookings are expired this long after they were created.
PENDING_EXPIRY_MINUTES: int = int(os.getenv("PENDING_EXPIRY_MINUTES", "30"))

# ── Scheduler ─────────────────────────────────────────────────────────────

# Reminders go out for bookings starting between START and END hours from now.
REMINDER_WINDOW_START_HOURS: int = int(os.getenv("REMINDER_WINDOW_START_HOURS", "23"))
REMINDER_WINDOW_END_HOURS: int = int(os.getenv("REMINDER_WINDOW_END_HOURS", "24"))

# How often the reminder scanner and the housekeeper run (seconds).
SCHEDULER_INTERVAL: float = float(os.getenv("SCHEDULER_INTERVAL", "300"))

# ── Rate limits (slowapi syntax) ──────────────────────────────────────────

RATE_LIMIT_BOOKING: str = os.getenv("RATE_LIMIT_BOOKING", "10/minute")
RATE_LIMIT_DEFAULT: str = os.getenv("RATE_LIMIT_DEFAULT", "60/minute")

# ── SMTP ──────────────────────────────────────────────────────────────────

SMTP_HOST: str = os.getenv("SMTP_HOST", "")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM_EMAIL: str = os.getenv("SMTP_FROM_EMAIL", "bookings@thebarn.local")
SMTP_USE_TLS: bool = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

# Set to "false" to force console-only mode even when SMTP credentials are present.
_SMTP_ENABLED_OVERRIDE: str = os.getenv("SMTP_ENABLED", "auto")


def smtp_enabled() -> bool:
    """True when SMTP should actually send emails.

    Controlled by SMTP_ENABLED env var:
      • "auto" (default) — send if credentials are configured
      • "true"  — always send (will fail if credentials are missing)
      • "false" — never send, print to console instead
    """
    if _SMTP_ENABLED_OVERRIDE.lower() == "false":
        return False
    if _SMTP_ENABLED_OVERRIDE.lower() == "true":
        return True
    return bool(SMTP_HOST and SMTP_USERNAME and SMTP_PASSWORD)


# ── Payments ──────────────────────────────────────────────────────────────

STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")
PAYMENT_CURRENCY: str = os.getenv("PAYMENT_CURRENCY", "usd")


def payments_enabled() -> bool:
    """True when a real card processor is configured.

    Without a secret key the console gateway hands out development
    payment handles so the booking flow can be exercised locally.
    """
    return bool(STRIPE_SECRET_KEY)
