import logging
from datetime import UTC, datetime, timedelta
from typing import Annotated

import jwt
from fastapi import Cookie, Depends, HTTPException, Query, status

from app.config import JWT_ALGORITHM, JWT_EXPIRY_DAYS, JWT_SECRET
from app.models import PaginationMeta, UserInfo

logger = logging.getLogger(__name__)


# ── Pagination ─────────────────────────────────────────────────────────────


class PaginationParams:
    def __init__(
        self,
        page: Annotated[int, Query(ge=1, description="Page number (1-indexed)")] = 1,
        page_size: Annotated[int, Query(ge=1, le=100, description="Items per page")] = 20,
    ):
        self.page = page
        self.page_size = page_size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def paginate(items: list, pagination: PaginationParams, response_cls: type):
    total = len(items)
    start = pagination.offset
    end = start + pagination.page_size
    return response_cls(
        items=items[start:end],
        meta=PaginationMeta(
            page=pagination.page,
            page_size=pagination.page_size,
            total_items=total,
            total_pages=max(1, -(-total // pagination.page_size)),
        ),
    )


# ── JWT / Session ──────────────────────────────────────────────────────────
# Sessions are issued by the identity provider; this service only verifies
# them.  ``create_jwt`` mints compatible tokens for tooling and tests.


def create_jwt(email: str, role: str = "customer", name: str | None = None) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": email,
        "role": role,
        "iat": now,
        "exp": now + timedelta(days=JWT_EXPIRY_DAYS),
    }
    if name:
        payload["name"] = name
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


async def get_current_user(
    session: Annotated[str | None, Cookie()] = None,
) -> UserInfo:
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required. Please sign in.",
        )

    try:
        payload = jwt.decode(session, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired. Please sign in again.",
        ) from None
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session. Please sign in again.",
        ) from None

    email: str | None = payload.get("sub")
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload.",
        )

    role = payload.get("role", "customer")
    if role not in ("customer", "admin"):
        logger.warning("Session for %s carries unknown role %r", email, role)
        role = "customer"

    return UserInfo(email=email, name=payload.get("name"), role=role)


CurrentUser = Annotated[UserInfo, Depends(get_current_user)]


async def require_admin(current_user: CurrentUser) -> UserInfo:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required.",
        )
    return current_user


AdminUser = Annotated[UserInfo, Depends(require_admin)]
