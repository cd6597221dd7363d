"""Admin moderation - list accounts, change status and balance.

Tests:
    - tests/test_admin.py
"""

from __future__ import annotations

import logging
from decimal import Decimal

from app.database import get_session
from app.errors import AccessDenied, NotFound, ValidationError
from app.ledger.credits import set_balance, user_lock
from app.models import UserStatus
from app.users.repository import SQLUserRepository, UserRecord

logger = logging.getLogger(__name__)


def _require_admin(actor: UserRecord) -> None:
    if not actor.is_admin:
        raise AccessDenied("Forbidden. Admin access required.")


async def list_users(actor: UserRecord) -> list[UserRecord]:
    """Every user (no credential hashes) in insertion order."""
    _require_admin(actor)
    async with get_session() as session:
        return await SQLUserRepository(session).list_all()


async def apply_user_update(
    user_id: str,
    status: UserStatus | None = None,
    credits: Decimal | None = None,
    description: str | None = None,
) -> UserRecord:
    """Apply a status and/or absolute balance change in one transaction.

    The balance change is recorded as an admin adjustment entry.

    Raises:
        NotFound: If no user has this id.
    """
    async with user_lock(user_id):
        async with get_session() as session:
            repo = SQLUserRepository(session)
            if await repo.find_by_id(user_id) is None:
                raise NotFound("User not found.")
            if credits is not None:
                await set_balance(session, user_id, credits, description=description)
            return await repo.update(user_id, status=status)


async def update_user(
    actor: UserRecord,
    user_id: str,
    status: UserStatus | None = None,
    credits: Decimal | None = None,
) -> UserRecord:
    """Change a user's status and/or balance.

    Raises:
        AccessDenied: If the actor is not an admin.
        ValidationError: If neither field is given.
        NotFound: If no user has this id.
    """
    _require_admin(actor)
    if status is None and credits is None:
        raise ValidationError("No valid update fields provided.")

    updated = await apply_user_update(
        user_id, status=status, credits=credits, description=f"Set by admin {actor.email}"
    )

    logger.info(
        f"Admin {actor.id} updated user {user_id}: "
        f"status={updated.status.value} credits={updated.credits}"
    )
    return updated
