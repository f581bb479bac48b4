"""
Payment collaborator.

``StripeGateway`` creates PaymentIntents through the Stripe SDK; without a
configured secret key the ``ConsoleGateway`` hands out development payment
handles and logs what it would have charged.  Payment *results* arrive
through the webhook endpoint, which verifies events with
``stripe.Webhook.construct_event``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol
from uuid import uuid4

import stripe

from app.config import PAYMENT_CURRENCY, STRIPE_SECRET_KEY, payments_enabled

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentHandle:
    payment_intent_id: str
    client_secret: str | None = None


class PaymentGateway(Protocol):
    async def create_payment(self, booking_id: str, amount: Decimal) -> PaymentHandle: ...

    async def close(self) -> None: ...


def to_minor_units(amount: Decimal) -> int:
    """Dollars → cents."""
    return int((amount * 100).quantize(Decimal("1")))


class StripeGateway:
    def __init__(self, secret_key: str, *, currency: str = PAYMENT_CURRENCY) -> None:
        self._api_key = secret_key
        self._currency = currency

    async def close(self) -> None:
        pass

    async def create_payment(self, booking_id: str, amount: Decimal) -> PaymentHandle:
        # The SDK is blocking; keep it off the event loop.
        intent = await asyncio.to_thread(self._create_intent, booking_id, amount)
        logger.info("Payment intent %s created for booking %s", intent.id, booking_id)
        return PaymentHandle(
            payment_intent_id=intent.id,
            client_secret=getattr(intent, "client_secret", None),
        )

    def _create_intent(self, booking_id: str, amount: Decimal):
        # The idempotency key makes the single retry safe.
        for attempt in (1, 2):
            try:
                return stripe.PaymentIntent.create(
                    api_key=self._api_key,
                    idempotency_key=f"booking-{booking_id}",
                    amount=to_minor_units(amount),
                    currency=self._currency,
                    metadata={"booking_id": booking_id},
                    automatic_payment_methods={"enabled": True},
                )
            except stripe.APIConnectionError:
                if attempt == 2:
                    raise
                logger.warning("Stripe unreachable creating intent for booking %s — retrying once", booking_id)
        raise AssertionError("unreachable")


class ConsoleGateway:
    """Development gateway: no money moves, handles are logged."""

    async def create_payment(self, booking_id: str, amount: Decimal) -> PaymentHandle:
        handle = PaymentHandle(payment_intent_id=f"dev_pi_{uuid4().hex}")
        logger.info(
            "💳 [DEV] Would charge $%s for booking %s (intent %s)",
            amount,
            booking_id,
            handle.payment_intent_id,
        )
        return handle

    async def close(self) -> None:
        pass


def create_payment_gateway() -> PaymentGateway:
    if payments_enabled():
        return StripeGateway(STRIPE_SECRET_KEY)
    logger.info("No STRIPE_SECRET_KEY configured — using the console payment gateway")
    return ConsoleGateway()
