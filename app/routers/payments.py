"""
Payment endpoints – create a payment handle and receive processor events.
"""

import json
import logging

import stripe
from fastapi import APIRouter, Header, HTTPException, Request, status

from app.config import STRIPE_WEBHOOK_SECRET, payments_enabled
from app.dependencies import CurrentUser
from app.errors import BookingError
from app.models import PaymentIntentRequest, PaymentIntentResponse, WebhookAck
from app.rate_limit import BOOKING, limiter
from app.services.booking_service import booking_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])

# Stripe event type → payment succeeded?
_RESULT_EVENTS = {
    "payment_intent.succeeded": True,
    "payment_intent.payment_failed": False,
}


@router.post(
    "/intent",
    response_model=PaymentIntentResponse,
    status_code=status.HTTP_201_CREATED,
    operation_id="createPaymentIntent",
    summary="Create a card payment for a pending booking",
)
@limiter.limit(BOOKING)
async def create_payment_intent(
    request: Request,
    body: PaymentIntentRequest,
    current_user: CurrentUser,
) -> PaymentIntentResponse:
    booking, handle = await booking_service.attach_payment(body.booking_id, current_user.email)
    return PaymentIntentResponse(
        booking_id=booking.id,
        payment_intent_id=handle.payment_intent_id,
        client_secret=handle.client_secret,
        amount=booking.total_amount,
    )


@router.post(
    "/webhook",
    response_model=WebhookAck,
    operation_id="paymentWebhook",
    summary="Receive payment results from the processor",
)
async def payment_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
) -> WebhookAck:
    payload = await request.body()
    event = _parse_event(payload, stripe_signature)
    try:
        event_type = event["type"]
        intent = event["data"]["object"]
        metadata = intent.get("metadata") or {}
    except (KeyError, TypeError, AttributeError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed event payload"
        ) from None

    succeeded = _RESULT_EVENTS.get(event_type)
    if succeeded is None:
        logger.debug("Ignoring payment event %s", event_type)
        return WebhookAck()

    booking_id = metadata.get("booking_id")
    if not booking_id and intent.get("id"):
        booking = await booking_service.find_by_payment_intent(intent["id"])
        booking_id = booking.id if booking else None
    if not booking_id:
        logger.warning("Payment event %s does not reference a known booking", event_type)
        return WebhookAck()

    logger.info("Payment event %s for booking %s", event_type, booking_id)
    try:
        booking = await booking_service.record_payment_result(booking_id, succeeded=succeeded)
    except BookingError as exc:
        # Redelivery would not change the outcome; acknowledge and leave it to staff.
        logger.warning("Payment event %s for booking %s not applied: %s", event_type, booking_id, exc.message)
        return WebhookAck(booking_id=booking_id)
    return WebhookAck(booking_id=booking.id, status=booking.status)


def _parse_event(payload: bytes, signature: str | None) -> stripe.Event:
    """
    Turn a webhook body into a Stripe event.

    With a webhook secret the signature must verify.  Without one, unsigned
    events are accepted only while the console gateway is in use.
    """
    if not STRIPE_WEBHOOK_SECRET:
        if payments_enabled():
            logger.error("Payment webhook received but STRIPE_WEBHOOK_SECRET is not set — rejecting")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Webhook secret not configured",
            )
        try:
            data = json.loads(payload)
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed event payload"
            )
        return stripe.Event.construct_from(data, None)

    if not signature:
        logger.warning("Rejected payment webhook without a signature")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")
    try:
        return stripe.Webhook.construct_event(payload, signature, STRIPE_WEBHOOK_SECRET)
    except stripe.SignatureVerificationError:
        logger.warning("Rejected payment webhook with a bad signature")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature"
        ) from None
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed event payload"
        ) from None

