"""Auth module - password hashing, session tokens and request dependencies."""

from app.auth.dependencies import get_current_user, require_admin
from app.auth.jwt_handler import (
    SessionClaims,
    create_session_token,
    decode_session_token,
    session_max_age_seconds,
)
from app.auth.passwords import MIN_PASSWORD_LENGTH, hash_password, verify_password

__all__ = [
    "MIN_PASSWORD_LENGTH",
    "SessionClaims",
    "create_session_token",
    "decode_session_token",
    "get_current_user",
    "hash_password",
    "require_admin",
    "session_max_age_seconds",
    "verify_password",
]
