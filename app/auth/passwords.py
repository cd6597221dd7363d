"""Password hashing with bcrypt."""

from __future__ import annotations

import bcrypt

from app.config import get_settings

MIN_PASSWORD_LENGTH = 6

# bcrypt only uses the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: int | None = None) -> str:
    """Hash a plaintext password.

    Args:
        password: Plaintext password.
        rounds: bcrypt cost factor, PASSWORD_HASH_ROUNDS when omitted.

    Raises:
        ValueError: If the password is empty.
    """
    if not password:
        raise ValueError("password cannot be empty")
    rounds = rounds or get_settings().PASSWORD_HASH_ROUNDS
    hashed = bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against a stored bcrypt hash."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
    except ValueError:
        return False
