"""
Email service — sends booking confirmations and reminders via SMTP.

In development (no SMTP configured), emails are printed to the console
so you can see what *would* be sent without configuring a mail server.
"""

from __future__ import annotations

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from zoneinfo import ZoneInfo

from app.config import (
    FACILITY_NAME,
    FACILITY_TIMEZONE,
    SMTP_FROM_EMAIL,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_USE_TLS,
    SMTP_USERNAME,
    smtp_enabled,
)
from app.models import Booking

logger = logging.getLogger(__name__)


def _build_booking_summary(booking: Booking, resource_name: str, tz: ZoneInfo) -> str:
    """One-line human-readable summary of a booking in facility-local time."""
    start = booking.start_time.astimezone(tz)
    end = booking.end_time.astimezone(tz)
    day = start.strftime("%a %d %b %Y")
    span = f"{start.strftime('%H:%M')}–{end.strftime('%H:%M')}"
    return f"{resource_name} · {day} {span} · ${booking.total_amount}"


def _build_html_body(heading: str, intro: str, booking: Booking, resource_name: str, tz: ZoneInfo) -> str:
    """Build a simple HTML email body describing one booking."""
    start = booking.start_time.astimezone(tz)
    end = booking.end_time.astimezone(tz)
    return f"""
    <html>
    <body style="font-family:sans-serif;color:#333">
      <h2>{heading}</h2>
      <p>{intro}</p>
      <table border="0" cellpadding="6" cellspacing="0"
             style="border-collapse:collapse;border:1px solid #ddd">
        <tr><th align="left">Space</th><td>{resource_name}</td></tr>
        <tr><th align="left">Date</th><td>{start.strftime('%A, %B %d, %Y')}</td></tr>
        <tr><th align="left">Time</th><td>{start.strftime('%H:%M')}–{end.strftime('%H:%M')}</td></tr>
        <tr><th align="left">Total</th><td>${booking.total_amount}</td></tr>
        <tr><th align="left">Booking ID</th><td>{booking.id}</td></tr>
      </table>
      <p style="margin-top:1em;font-size:0.9em;color:#888">
        Need to cancel? Bookings can be cancelled up to 24 hours before they start.
      </p>
    </body>
    </html>
    """


async def send_email(to_email: str, subject: str, plain: str, html_body: str) -> None:
    """
    Send (or log) one email.

    If SMTP is not configured, falls back to console output.
    """
    # ── Console fallback (dev mode) ───────────────────────────────────
    if not smtp_enabled():
        logger.info(
            "📧 [DEV] Would send email to %s:\n  Subject: %s\n  %s",
            to_email,
            subject,
            plain.replace("\n", "\n  "),
        )
        return

    # ── Real SMTP send ────────────────────────────────────────────────
    import aiosmtplib

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = SMTP_FROM_EMAIL
    msg["To"] = to_email
    msg.attach(MIMEText(plain, "plain"))
    msg.attach(MIMEText(html_body, "html"))

    try:
        await aiosmtplib.send(
            msg,
            hostname=SMTP_HOST,
            port=SMTP_PORT,
            username=SMTP_USERNAME,
            password=SMTP_PASSWORD,
            start_tls=SMTP_USE_TLS,
        )
        logger.info("Email sent to %s (%s)", to_email, subject)
    except Exception:
        logger.exception("Failed to send email to %s", to_email)
        raise


class EmailNotifier:
    """Notification collaborator backed by SMTP (or the console in dev)."""

    def __init__(self, tz: ZoneInfo | None = None) -> None:
        self._tz = tz or ZoneInfo(FACILITY_TIMEZONE)

    async def send_confirmation(self, booking: Booking, resource_name: str) -> None:
        summary = _build_booking_summary(booking, resource_name, self._tz)
        await send_email(
            booking.user_email,
            f"Booking confirmed — {resource_name} at {FACILITY_NAME}",
            f"Your booking is confirmed:\n\n• {summary}\n\nBooking ID: {booking.id}",
            _build_html_body(
                "Booking confirmed",
                f"Thanks for booking with {FACILITY_NAME}. See you soon!",
                booking,
                resource_name,
                self._tz,
            ),
        )

    async def send_reminder(self, booking: Booking, resource_name: str) -> None:
        summary = _build_booking_summary(booking, resource_name, self._tz)
        await send_email(
            booking.user_email,
            f"Reminder: {resource_name} tomorrow at {FACILITY_NAME}",
            f"A reminder about your booking tomorrow:\n\n• {summary}",
            _build_html_body(
                "See you tomorrow",
                "This is a reminder about your upcoming booking.",
                booking,
                resource_name,
                self._tz,
            ),
        )
