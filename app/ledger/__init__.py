"""Credit ledger - balances, charges, refunds and paid operations."""

from app.ledger.credits import (
    CREDIT_COSTS,
    format_credits,
    get_balance,
    list_transactions,
    refund_charge,
    set_balance,
    spend_credits,
    to_credits,
    user_lock,
)
from app.ledger.operations import (
    PaidResult,
    charge,
    execute_paid_operation,
    refund,
)

__all__ = [
    "CREDIT_COSTS",
    "PaidResult",
    "charge",
    "execute_paid_operation",
    "format_credits",
    "get_balance",
    "list_transactions",
    "refund",
    "refund_charge",
    "set_balance",
    "spend_credits",
    "to_credits",
    "user_lock",
]
