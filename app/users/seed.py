"""Startup seeding of the administrator and optional demo accounts."""

from __future__ import annotations

import logging
from decimal import Decimal

from app.auth.passwords import hash_password
from app.config import Settings, get_settings
from app.database import get_session
from app.ledger.credits import set_balance
from app.models import UserRole, UserStatus
from app.users.repository import SQLUserRepository

logger = logging.getLogger(__name__)

ADMIN_CREDITS = Decimal("99999")

DEMO_USERS = [
    ("user@example.com", "user123", UserStatus.PENDING, Decimal("0")),
    ("approved@example.com", "user123", UserStatus.APPROVED, Decimal("100")),
]


async def _ensure_user(
    repo: SQLUserRepository,
    email: str,
    password: str,
    status: UserStatus,
    role: UserRole,
    credits: Decimal,
) -> bool:
    if await repo.find_by_email(email) is not None:
        return False
    user = await repo.create(email, hash_password(password), status=status, role=role)
    if credits:
        await set_balance(repo.session, user.id, credits, description="Initial balance")
    logger.info(f"Seeded {role.value} {email} ({status.value})")
    return True


async def seed_users(settings: Settings | None = None) -> int:
    """Create missing bootstrap accounts.

    Returns:
        Number of accounts created.
    """
    settings = settings or get_settings()
    created = 0

    async with get_session() as session:
        repo = SQLUserRepository(session)

        if settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD:
            created += await _ensure_user(
                repo,
                settings.ADMIN_EMAIL,
                settings.ADMIN_PASSWORD,
                UserStatus.APPROVED,
                UserRole.ADMIN,
                ADMIN_CREDITS,
            )
        elif settings.ADMIN_EMAIL:
            logger.warning("ADMIN_EMAIL set without ADMIN_PASSWORD; no admin seeded")

        if settings.SEED_DEMO_USERS:
            for email, password, status, credits in DEMO_USERS:
                created += await _ensure_user(
                    repo, email, password, status, UserRole.USER, credits
                )

    return created
