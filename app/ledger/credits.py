"""Credit balance management - check, spend, refund, adjust.

All operations are atomic within the caller's DB session.
CreditTransaction is an append-only immutable ledger: every balance
change appends one signed entry, and ``User.credits`` is the cached sum.

Callers that mutate a balance should hold ``user_lock(user_id)`` for the
whole read-modify-write (see app.ledger.operations).
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import AccessDenied, InsufficientCredits, NotFound, ValidationError
from app.models import CreditTransaction, TransactionType, User, UserStatus

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
# Largest amount a Numeric(12, 2) column holds
MAX_CREDITS = Decimal("9999999999.99")

# Credit costs per operation
CREDIT_COSTS: dict[str, Decimal] = {
    "image_edit": Decimal("1"),
    "ad_image": Decimal("2"),
    "video_generation": Decimal("5"),
    "prompt_optimization": Decimal("0.1"),
    "video_prompt_optimization": Decimal("0.1"),
}

_user_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def user_lock(user_id: str) -> asyncio.Lock:
    """Per-user lock serializing balance mutations within this process."""
    lock = _user_locks.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        _user_locks[user_id] = lock
    return lock


def format_credits(amount: Decimal) -> str:
    """Render an amount without trailing zeros or exponent (5, 0.1, 9.9)."""
    return f"{Decimal(amount).normalize():f}"


def to_credits(value: object) -> Decimal:
    """Convert a number to a non-negative credit amount with cent precision.

    Raises:
        ValidationError: If the value is not a finite non-negative number
            or exceeds MAX_CREDITS.
    """
    if isinstance(value, bool):
        raise ValidationError("Credits must be a number.")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("Credits must be a number.")
    if not amount.is_finite() or amount < 0:
        raise ValidationError("Credits must be a non-negative number.")
    if amount > MAX_CREDITS:
        raise ValidationError(f"Credits must not exceed {MAX_CREDITS}.")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


async def _get_user(
    session: AsyncSession, user_id: str, for_update: bool = False
) -> User:
    """Fetch a user row, optionally locking it.

    Raises:
        NotFound: If no user has this id.
    """
    stmt = select(User).where(User.id == user_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt.execution_options(populate_existing=True))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found.")
    return user


async def spend_credits(
    session: AsyncSession,
    user_id: str,
    cost: Decimal,
    operation: str,
    reference_id: str | None = None,
    description: str | None = None,
    allow_partial: bool = False,
) -> CreditTransaction:
    """Deduct credits and record a charge entry.

    Args:
        session: DB session (caller must commit).
        user_id: User UUID.
        cost: Non-negative amount to deduct.
        operation: Name of the paid operation (key of CREDIT_COSTS).
        reference_id: Optional upstream job or request id.
        description: Human-readable note.
        allow_partial: Accept any positive balance and charge at most
            what is left, so the balance never goes negative.

    Returns:
        The created CreditTransaction.

    Raises:
        AccessDenied: If the account is not approved.
        InsufficientCredits: If the balance cannot cover the charge.
    """
    cost = to_credits(cost)
    user = await _get_user(session, user_id, for_update=True)

    if user.status != UserStatus.APPROVED:
        raise AccessDenied(f"Your account status is: {user.status.value}. Access denied.")

    if allow_partial:
        if user.credits <= 0:
            raise InsufficientCredits("Insufficient credits.")
        amount = min(cost, user.credits)
    else:
        if user.credits < cost:
            raise InsufficientCredits(
                f"Insufficient credits. This operation requires {format_credits(cost)} credits."
            )
        amount = cost

    user.credits = user.credits - amount

    txn = CreditTransaction(
        user_id=user.id,
        amount=-amount,
        balance_after=user.credits,
        transaction_type=TransactionType.CHARGE,
        operation=operation,
        reference_id=reference_id,
        description=description,
    )
    session.add(txn)
    await session.flush()
    logger.info(f"Charged {amount} credits to {user.id} for {operation} (balance {user.credits})")
    return txn


async def refund_charge(
    session: AsyncSession,
    charge_id: str,
    description: str | None = None,
) -> CreditTransaction:
    """Return a charge's amount to the user, at most once per charge.

    The refund re-adds the charged amount rather than restoring an old
    balance, so it stays correct when other charges happened meanwhile.

    Args:
        session: DB session (caller must commit).
        charge_id: Id of the CHARGE entry to compensate.
        description: Human-readable note.

    Returns:
        The refund entry (the existing one if already refunded).

    Raises:
        NotFound: If the charge does not exist.
        ValidationError: If the entry is not a charge.
    """
    charge = await session.get(CreditTransaction, charge_id)
    if charge is None:
        raise NotFound("Charge not found.")
    if charge.transaction_type != TransactionType.CHARGE:
        raise ValidationError("Only charges can be refunded.")

    existing = await session.execute(
        select(CreditTransaction).where(
            CreditTransaction.transaction_type == TransactionType.REFUND,
            CreditTransaction.reference_id == charge.id,
        )
    )
    already = existing.scalar_one_or_none()
    if already is not None:
        return already

    user = await _get_user(session, charge.user_id, for_update=True)
    amount = -charge.amount
    user.credits = user.credits + amount

    txn = CreditTransaction(
        user_id=user.id,
        amount=amount,
        balance_after=user.credits,
        transaction_type=TransactionType.REFUND,
        operation=charge.operation,
        reference_id=charge.id,
        description=description,
    )
    session.add(txn)
    await session.flush()
    logger.info(f"Refunded {amount} credits to {user.id} for {charge.operation} (balance {user.credits})")
    return txn


async def set_balance(
    session: AsyncSession,
    user_id: str,
    credits: Decimal,
    description: str | None = None,
) -> CreditTransaction | None:
    """Set a balance to an absolute value, recording the delta.

    Returns:
        The adjustment entry, or None when the balance already matches.

    Raises:
        NotFound: If no user has this id.
        ValidationError: If credits is negative.
    """
    credits = to_credits(credits)
    user = await _get_user(session, user_id, for_update=True)

    delta = credits - user.credits
    if delta == 0:
        return None

    user.credits = credits
    txn = CreditTransaction(
        user_id=user.id,
        amount=delta,
        balance_after=credits,
        transaction_type=TransactionType.ADMIN_ADJUSTMENT,
        description=description,
    )
    session.add(txn)
    await session.flush()
    logger.info(f"Balance of {user.id} set to {credits} ({delta:+})")
    return txn


async def get_balance(session: AsyncSession, user_id: str) -> Decimal:
    user = await _get_user(session, user_id)
    return user.credits


async def list_transactions(
    session: AsyncSession,
    user_id: str,
    limit: int = 20,
    offset: int = 0,
) -> list[CreditTransaction]:
    """Newest-first page of a user's ledger."""
    result = await session.execute(
        select(CreditTransaction)
        .where(CreditTransaction.user_id == user_id)
        .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id)
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())
