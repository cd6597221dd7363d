"""SQLAlchemy models for AI Studio.

Defines User, CreditTransaction (immutable ledger) and VideoJob
(job-to-charge correlation for asynchronous video generation).

Examples:
    >>> from app.models import User, UserStatus
    >>> user = User(email="a@x.com", password_hash="$2b$...", status=UserStatus.PENDING)

Tests:
    - tests/test_credits.py::TestLedgerInvariant
    - tests/test_video_jobs.py
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

CREDIT_AMOUNT = Numeric(12, 2, asdecimal=True)


def _enum_column(enum_cls: type[Enum]) -> SQLEnum:
    """Enum column storing member values ('pending'), matching the migrations."""
    return SQLEnum(enum_cls, values_callable=lambda e: [m.value for m in e])


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to timezone-naive datetimes read back from SQLite."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


class UserStatus(str, Enum):
    """Moderation state of an account.

    States:
        PENDING: Signed up, waiting for an administrator
        APPROVED: May use paid features
        REJECTED: Refused by an administrator
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class UserRole(str, Enum):
    """Single role flag."""

    USER = "user"
    ADMIN = "admin"


class TransactionType(str, Enum):
    """Credit transaction types."""

    CHARGE = "charge"
    REFUND = "refund"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class VideoJobStatus(str, Enum):
    """Server-side view of a video generation job.

    States:
        PENDING: Submitted upstream, not yet terminal
        SUCCEEDED: Upstream finished with a video
        FAILED: Upstream failed, timed out or could not be checked (charge refunded)
    """

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class User(Base):
    """Email/password account with a denormalized credit balance."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[UserStatus] = mapped_column(
        _enum_column(UserStatus), default=UserStatus.PENDING, nullable=False
    )
    role: Mapped[UserRole] = mapped_column(
        _enum_column(UserRole), default=UserRole.USER, nullable=False
    )
    credits: Mapped[Decimal] = mapped_column(
        CREDIT_AMOUNT, default=Decimal("0"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    # Relationships
    transactions: Mapped[list["CreditTransaction"]] = relationship(
        back_populates="user"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id!r}, email={self.email!r}, status={self.status.value})>"


class CreditTransaction(Base):
    """Immutable ledger entry for credit changes. Append-only."""

    __tablename__ = "credit_transactions"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        index=True,
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(CREDIT_AMOUNT, nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(CREDIT_AMOUNT, nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(
        _enum_column(TransactionType), nullable=False
    )
    operation: Mapped[str | None] = mapped_column(String(64), default=None)
    reference_id: Mapped[str | None] = mapped_column(
        String(255), index=True, default=None
    )
    description: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="transactions")

    def __repr__(self) -> str:
        return (
            f"<CreditTransaction(amount={self.amount}, "
            f"type={self.transaction_type.value})>"
        )


class VideoJob(Base):
    """Correlates an upstream video operation with the charge that paid for it."""

    __tablename__ = "video_jobs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    operation_name: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), index=True, nullable=False
    )
    charge_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("credit_transactions.id"), nullable=False
    )
    cost: Mapped[Decimal] = mapped_column(CREDIT_AMOUNT, nullable=False)
    status: Mapped[VideoJobStatus] = mapped_column(
        _enum_column(VideoJobStatus), default=VideoJobStatus.PENDING, nullable=False
    )
    video_uri: Mapped[str | None] = mapped_column(Text, default=None)
    error: Mapped[str | None] = mapped_column(Text, default=None)
    poll_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    next_poll_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    @property
    def is_terminal(self) -> bool:
        return self.status != VideoJobStatus.PENDING

    def __repr__(self) -> str:
        return f"<VideoJob(operation={self.operation_name!r}, status={self.status.value})>"
