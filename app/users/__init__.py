"""User store, moderation and bootstrap accounts."""

from app.users.repository import (
    SQLUserRepository,
    StoredCredentials,
    UserRecord,
    UserRepository,
    normalize_email,
)

__all__ = [
    "SQLUserRepository",
    "StoredCredentials",
    "UserRecord",
    "UserRepository",
    "normalize_email",
]
