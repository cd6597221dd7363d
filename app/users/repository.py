"""User store - repository over the users table.

The repository hands out ``UserRecord`` values, which never carry the
password hash. The hash is only reachable through
``find_credentials_by_email`` for login verification.

Balance changes do not go through ``update``; they belong to the credit
ledger (app.ledger.credits) so every change leaves a ledger entry.

Tests:
    - tests/test_users.py
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import Conflict, NotFound
from app.models import User, UserRole, UserStatus, utcnow

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True)
class UserRecord:
    """A user as seen outside the store (no credential hash)."""

    id: str
    email: str
    status: UserStatus
    role: UserRole
    credits: Decimal
    created_at: datetime | None = None
    last_login_at: datetime | None = None

    @classmethod
    def from_model(cls, user: User) -> "UserRecord":
        return cls(
            id=user.id,
            email=user.email,
            status=user.status,
            role=user.role,
            credits=user.credits,
            created_at=user.created_at,
            last_login_at=user.last_login_at,
        )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_approved(self) -> bool:
        return self.status == UserStatus.APPROVED


@dataclass(frozen=True)
class StoredCredentials:
    """Login material for one user."""

    user: UserRecord
    password_hash: str


class UserRepository(Protocol):
    """Capabilities the rest of the application needs from a user store."""

    async def find_by_email(self, email: str) -> UserRecord | None: ...
    async def find_credentials_by_email(self, email: str) -> StoredCredentials | None: ...
    async def find_by_id(self, user_id: str) -> UserRecord | None: ...
    async def create(
        self,
        email: str,
        password_hash: str,
        status: UserStatus = UserStatus.PENDING,
        role: UserRole = UserRole.USER,
    ) -> UserRecord: ...
    async def update(
        self,
        user_id: str,
        status: UserStatus | None = None,
        role: UserRole | None = None,
    ) -> UserRecord: ...
    async def list_all(self) -> list[UserRecord]: ...


class SQLUserRepository:
    """UserRepository backed by an AsyncSession (caller commits)."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(
            select(User).where(func.lower(User.email) == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def find_by_email(self, email: str) -> UserRecord | None:
        user = await self._get_by_email(email)
        return UserRecord.from_model(user) if user else None

    async def find_credentials_by_email(self, email: str) -> StoredCredentials | None:
        user = await self._get_by_email(email)
        if user is None:
            return None
        return StoredCredentials(
            user=UserRecord.from_model(user), password_hash=user.password_hash
        )

    async def find_by_id(self, user_id: str) -> UserRecord | None:
        user = await self.session.get(User, user_id)
        return UserRecord.from_model(user) if user else None

    async def create(
        self,
        email: str,
        password_hash: str,
        status: UserStatus = UserStatus.PENDING,
        role: UserRole = UserRole.USER,
    ) -> UserRecord:
        """Insert a new user with zero credits.

        Raises:
            Conflict: If the email is already registered (case-insensitive).
        """
        if await self._get_by_email(email) is not None:
            raise Conflict("User with this email already exists.")

        user = User(
            email=normalize_email(email),
            password_hash=password_hash,
            status=status,
            role=role,
            credits=Decimal("0"),
        )
        self.session.add(user)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise Conflict("User with this email already exists.") from e

        logger.info(f"User created: {user.id} ({user.email})")
        return UserRecord.from_model(user)

    async def update(
        self,
        user_id: str,
        status: UserStatus | None = None,
        role: UserRole | None = None,
    ) -> UserRecord:
        """Apply non-balance field changes.

        Raises:
            NotFound: If no user has this id.
        """
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFound("User not found.")
        if status is not None:
            user.status = status
        if role is not None:
            user.role = role
        await self.session.flush()
        return UserRecord.from_model(user)

    async def record_login(self, user_id: str) -> None:
        user = await self.session.get(User, user_id)
        if user is not None:
            user.last_login_at = utcnow()
            await self.session.flush()

    async def list_all(self) -> list[UserRecord]:
        """All users in insertion order."""
        result = await self.session.execute(
            select(User).order_by(User.created_at, User.id)
        )
        return [UserRecord.from_model(u) for u in result.scalars()]
