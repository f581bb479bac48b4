"""
Session endpoints.

Sessions are issued by the identity provider as a ``session`` JWT cookie;
this service only reads them back and lets the browser drop them.
"""

from fastapi import APIRouter, Response

from app.dependencies import CurrentUser
from app.models import MessageResponse, UserInfo

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get(
    "/me",
    response_model=UserInfo,
    operation_id="getMe",
    summary="Get current authenticated user info",
)
async def get_me(current_user: CurrentUser) -> UserInfo:
    return current_user


@router.post(
    "/logout",
    response_model=MessageResponse,
    operation_id="logout",
    summary="Clear the session cookie",
)
async def logout(current_user: CurrentUser, response: Response) -> MessageResponse:
    response.delete_cookie("session")
    return MessageResponse(message="Logged out successfully")
