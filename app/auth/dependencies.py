"""FastAPI dependencies for session authentication.

The session token is read from the ``auth_token`` cookie set at login.
API clients that cannot keep cookies may send the same token as
``Authorization: Bearer <token>``; the cookie wins when both are present.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt_handler import decode_session_token
from app.config import get_settings
from app.database import get_db_session
from app.errors import AccessDenied, Unauthenticated, UserNotFound
from app.users.repository import SQLUserRepository, UserRecord

logger = logging.getLogger(__name__)


def get_session_token(request: Request) -> str | None:
    """Extract the raw session token from the cookie or Bearer header."""
    settings = get_settings()
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if token:
        return token

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):].strip() or None
    return None


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
) -> UserRecord:
    """Resolve the calling user from the session token.

    The user is re-read on every request so status, role and balance
    changes take effect immediately.

    Raises:
        Unauthenticated: No token was presented.
        InvalidToken: Token is malformed, expired or badly signed.
        UserNotFound: Token refers to a deleted user.
    """
    token = get_session_token(request)
    if not token:
        raise Unauthenticated()

    claims = decode_session_token(token)

    user = await SQLUserRepository(session).find_by_id(claims.user_id)
    if user is None:
        logger.warning(f"Session token for unknown user {claims.user_id}")
        raise UserNotFound()
    return user


async def require_admin(user: UserRecord = Depends(get_current_user)) -> UserRecord:
    """Require the caller to be an administrator.

    Raises:
        AccessDenied: The caller is not an admin.
    """
    if not user.is_admin:
        raise AccessDenied("Forbidden. Admin access required.")
    return user
