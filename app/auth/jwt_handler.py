"""JWT session token management.

Session tokens: HS256, carry {sub: user_id, role, type: "session"},
valid for JWT_EXPIRE_DAYS (7 by default). Sessions are stateless:
logout only clears the cookie on the client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from app.config import get_settings
from app.errors import InvalidToken

logger = logging.getLogger(__name__)

TOKEN_TYPE = "session"


@dataclass(frozen=True)
class SessionClaims:
    """Verified contents of a session token."""

    user_id: str
    role: str


def create_session_token(user_id: str, role: str) -> str:
    """Create a signed session token.

    Args:
        user_id: The user's UUID.
        role: The user's role at issue time.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "role": role,
        "iat": now,
        "exp": now + timedelta(days=settings.JWT_EXPIRE_DAYS),
        "type": TOKEN_TYPE,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm="HS256")


def decode_session_token(token: str) -> SessionClaims:
    """Decode and validate a session token.

    Args:
        token: The encoded JWT.

    Returns:
        SessionClaims with the user id and role.

    Raises:
        InvalidToken: If the token is malformed, expired, badly signed,
            or not a session token.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=["HS256"]
        )
    except jwt.ExpiredSignatureError:
        raise InvalidToken("Session has expired.")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Rejected session token: {e}")
        raise InvalidToken("Invalid token.")

    if payload.get("type") != TOKEN_TYPE:
        raise InvalidToken("Token is not a session token.")

    sub = payload.get("sub")
    if not sub:
        raise InvalidToken("Token missing subject.")
    return SessionClaims(user_id=sub, role=payload.get("role", "user"))


def session_max_age_seconds() -> int:
    """Cookie lifetime matching the token expiry."""
    return get_settings().JWT_EXPIRE_DAYS * 24 * 60 * 60
