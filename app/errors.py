"""
Booking error taxonomy.

Every error here is an expected, user-recoverable outcome.  The API layer
renders them through a single exception handler as::

    {"error": "<code>", "message": "<human readable>", "details": {...}}
"""

from __future__ import annotations

from typing import Any


class BookingError(Exception):
    """Base class for user-facing booking failures."""

    code = "booking_error"
    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(BookingError):
    """Malformed or missing input; ``details["fields"]`` maps field → message."""

    code = "validation_error"
    status_code = 422

    def __init__(self, fields: dict[str, str], message: str | None = None) -> None:
        super().__init__(
            message or "; ".join(fields.values()),
            {"fields": fields},
        )
        self.fields = fields


class PolicyError(BookingError):
    """A facility rule rejects the slot (horizon, hours, notice, closed days)."""

    code = "policy_error"
    status_code = 422

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message, {"reason": reason})
        self.reason = reason


class ConflictError(BookingError):
    """The slot overlaps an existing booking for one of the same spaces."""

    code = "conflict"
    status_code = 409

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message
            or "That time is no longer available. Please pick another time or space.",
            {"reason": "conflict", **(details or {})},
        )
        self.reason = "conflict"


class CancellationWindowError(BookingError):
    code = "cancellation_window"
    status_code = 409


class InvalidTransitionError(BookingError):
    code = "invalid_transition"
    status_code = 409


class NotFoundError(BookingError):
    code = "not_found"
    status_code = 404

    def __init__(self, what: str = "Booking") -> None:
        super().__init__(f"{what} not found")


class PaymentUnavailableError(BookingError):
    code = "payment_unavailable"
    status_code = 503
