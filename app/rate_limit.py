"""
Rate limiting configuration using slowapi.

Two tiers:
  • booking – RATE_LIMIT_BOOKING, 10/min by default (booking creation and
    payment intents)
  • default – RATE_LIMIT_DEFAULT, 60/min by default (everything else)

Signed-in callers are counted per session, anonymous ones per client IP.
"""

import hashlib

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import RATE_LIMIT_BOOKING, RATE_LIMIT_DEFAULT


def rate_limit_key(request: Request) -> str:
    session = request.cookies.get("session")
    if session:
        return "session:" + hashlib.sha256(session.encode()).hexdigest()[:32]
    return get_remote_address(request)


limiter = Limiter(key_func=rate_limit_key, default_limits=[RATE_LIMIT_DEFAULT])

# Named rate strings for use in @limiter.limit() decorators
BOOKING = RATE_LIMIT_BOOKING    # booking creation, payment intent creation
