"""
FastAPI application for the Barn Booking service.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from app import db
from app.config import APP_VERSION, FACILITY_NAME, LOG_LEVEL, STRIPE_WEBHOOK_SECRET, payments_enabled
from app.errors import BookingError
from app.models import Error
from app.rate_limit import limiter
from app.routers import admin, auth, availability, bookings, catalog, health, payments
from app.services.booking_service import booking_service
from app.services.payments import create_payment_gateway
from app.services.scheduler import BookingHousekeeper, ReminderScanner

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

reminder_scanner = ReminderScanner(booking_service)
housekeeper = BookingHousekeeper(booking_service)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await db.init_db()
    gateway = create_payment_gateway()
    booking_service.payments = gateway
    if payments_enabled() and not STRIPE_WEBHOOK_SECRET:
        logger.error("STRIPE_WEBHOOK_SECRET is not set — payment webhooks will be rejected")
    await housekeeper.start()
    await reminder_scanner.start()
    logger.info("%s booking service ready", FACILITY_NAME)
    try:
        yield
    finally:
        await reminder_scanner.stop()
        await housekeeper.stop()
        await gateway.close()
        booking_service.payments = None
        await db.close_db()


app = FastAPI(
    title="Barn Booking API",
    description="Availability, booking and payment API for a sports training facility",
    version=APP_VERSION,
    lifespan=lifespan,
)

app.state.limiter = limiter


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=Error(error=exc.code, message=exc.message, details=exc.details or None).model_dump(),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit hit by %s on %s", request.client.host if request.client else "?", request.url.path)
    return JSONResponse(
        status_code=429,
        content=Error(error="rate_limited", message=f"Rate limit exceeded: {exc.detail}").model_dump(),
    )


for _router in (health, auth, catalog, availability, bookings, payments, admin):
    app.include_router(_router.router)
