"""Paid operations - debit, run, compensate.

``execute_paid_operation`` charges a user before running a unit of work
and refunds the charge if the work fails for any reason. Each ledger
step runs in its own short transaction under the user's lock, so the
charge is visible to concurrent requests while the (slow) external call
is in flight and no database transaction is held across it.

Examples:
    >>> result = await execute_paid_operation(
    ...     user.id,
    ...     CREDIT_COSTS["image_edit"],
    ...     lambda: service.edit_image(images, prompt),
    ...     operation="image_edit",
    ... )
    >>> result.value, result.balance

Tests:
    - tests/test_paid_operations.py
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Awaitable, Callable, Generic, TypeVar

from app.database import get_session
from app.ledger.credits import refund_charge, spend_credits, user_lock
from app.models import CreditTransaction

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class PaidResult(Generic[T]):
    """Outcome of a successful paid operation."""

    value: T
    charge: CreditTransaction

    @property
    def balance(self) -> Decimal:
        """Balance right after the charge."""
        return self.charge.balance_after


async def charge(
    user_id: str,
    cost: Decimal,
    operation: str,
    reference_id: str | None = None,
    description: str | None = None,
    allow_partial: bool = False,
) -> CreditTransaction:
    """Charge a user in a committed transaction of its own."""
    async with user_lock(user_id):
        async with get_session() as session:
            return await spend_credits(
                session,
                user_id,
                cost,
                operation,
                reference_id=reference_id,
                description=description,
                allow_partial=allow_partial,
            )


async def refund(user_id: str, charge_id: str, reason: str | None = None) -> CreditTransaction:
    """Compensate a charge in a committed transaction of its own (idempotent)."""
    async with user_lock(user_id):
        async with get_session() as session:
            return await refund_charge(session, charge_id, description=reason)


async def execute_paid_operation(
    user_id: str,
    cost: Decimal,
    work: Callable[[], Awaitable[T]],
    *,
    operation: str,
    allow_partial: bool = False,
    reference_id: str | None = None,
) -> PaidResult[T]:
    """Charge ``cost``, run ``work`` and refund if it fails.

    Args:
        user_id: Paying user.
        cost: Credits to charge.
        work: Zero-argument coroutine factory performing the operation.
        operation: Ledger operation name.
        allow_partial: Require only a positive balance (prompt optimization).
        reference_id: Optional id stored on the charge entry.

    Returns:
        PaidResult with the work's value and the charge entry.

    Raises:
        AccessDenied: Account not approved (nothing charged, work not run).
        InsufficientCredits: Balance too low (nothing charged, work not run).
        Exception: Whatever ``work`` raised, after the charge was refunded.
    """
    charge_txn = await charge(
        user_id,
        cost,
        operation,
        reference_id=reference_id,
        allow_partial=allow_partial,
    )

    try:
        value = await work()
    except (Exception, asyncio.CancelledError) as e:
        logger.warning(f"{operation} failed for {user_id}, refunding charge {charge_txn.id}: {e!r}")
        await refund(user_id, charge_txn.id, reason=f"{operation} failed")
        raise

    return PaidResult(value=value, charge=charge_txn)
