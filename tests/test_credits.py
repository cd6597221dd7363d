"""Tests for the credit ledger - costs, charges, refunds, adjustments, endpoints."""

from __future__ import annotations

from decimal import Decimal

import pytest

from app.errors import AccessDenied, InsufficientCredits, NotFound, ValidationError
from app.ledger.credits import (
    CREDIT_COSTS,
    MAX_CREDITS,
    format_credits,
    get_balance,
    list_transactions,
    refund_charge,
    set_balance,
    spend_credits,
    to_credits,
)
from app.models import TransactionType, UserStatus
from tests.utils.test_helpers import auth_headers, get_transactions, get_user, ledger_sum


@pytest.mark.fast
class TestCreditCosts:
    """Verify all paid operations have cost entries."""

    def test_all_operations_have_costs(self):
        for op in ["image_edit", "ad_image", "video_generation",
                   "prompt_optimization", "video_prompt_optimization"]:
            assert op in CREDIT_COSTS, f"Missing cost for {op}"
            assert CREDIT_COSTS[op] > 0

    def test_cost_table(self):
        assert CREDIT_COSTS["video_generation"] == Decimal("5")
        assert CREDIT_COSTS["image_edit"] == Decimal("1")
        assert CREDIT_COSTS["ad_image"] == Decimal("2")
        assert CREDIT_COSTS["prompt_optimization"] == Decimal("0.1")


@pytest.mark.fast
class TestAmounts:
    @pytest.mark.parametrize("value,expected", [
        (10, Decimal("10.00")),
        (9.9, Decimal("9.90")),
        ("0.1", Decimal("0.10")),
        (Decimal("1.005"), Decimal("1.01")),
        (0, Decimal("0.00")),
    ])
    def test_to_credits(self, value, expected):
        assert to_credits(value) == expected

    @pytest.mark.parametrize("value", [-1, "-0.01", "abc", True, None, float("nan"), float("inf")])
    def test_to_credits_rejects(self, value):
        with pytest.raises(ValidationError):
            to_credits(value)

    @pytest.mark.parametrize("value", ["10000000000", "9999999999.995", "1e30", 10**40])
    def test_to_credits_upper_bound(self, value):
        with pytest.raises(ValidationError, match="Credits must not exceed 9999999999.99."):
            to_credits(value)

    def test_to_credits_accepts_column_maximum(self):
        assert to_credits("9999999999.99") == MAX_CREDITS

    @pytest.mark.parametrize("value,text", [
        (Decimal("5.00"), "5"),
        (Decimal("0.10"), "0.1"),
        (Decimal("9.90"), "9.9"),
        (Decimal("100"), "100"),
    ])
    def test_format_credits(self, value, text):
        assert format_credits(value) == text


class TestSpend:
    @pytest.mark.asyncio
    async def test_spend_appends_charge(self, db_session, approved_user):
        txn = await spend_credits(db_session, approved_user.id, Decimal("1"), "image_edit")
        assert txn.transaction_type == TransactionType.CHARGE
        assert txn.amount == Decimal("-1")
        assert txn.balance_after == Decimal("9")
        assert txn.operation == "image_edit"
        assert await get_balance(db_session, approved_user.id) == Decimal("9")

    @pytest.mark.asyncio
    async def test_decimal_arithmetic_is_exact(self, db_session, approved_user):
        txn = await spend_credits(
            db_session, approved_user.id, Decimal("0.1"), "prompt_optimization"
        )
        assert txn.balance_after == Decimal("9.9")

    @pytest.mark.asyncio
    async def test_insufficient_credits(self, db_session, make_user):
        user = await make_user("poor@example.com", credits=4)
        with pytest.raises(InsufficientCredits) as exc:
            await spend_credits(db_session, user.id, Decimal("5"), "video_generation")
        assert exc.value.status_code == 402
        assert str(exc.value) == "Insufficient credits. This operation requires 5 credits."
        assert await get_balance(db_session, user.id) == Decimal("4")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [UserStatus.PENDING, UserStatus.REJECTED])
    async def test_unapproved_users_cannot_spend(self, db_session, make_user, status):
        user = await make_user("waiting@example.com", status=status, credits=100)
        with pytest.raises(AccessDenied) as exc:
            await spend_credits(db_session, user.id, Decimal("1"), "image_edit")
        assert str(exc.value) == f"Your account status is: {status.value}. Access denied."

    @pytest.mark.asyncio
    async def test_partial_charge_never_goes_negative(self, db_session, make_user):
        user = await make_user("almost@example.com", credits="0.05")
        txn = await spend_credits(
            db_session, user.id, Decimal("0.1"), "prompt_optimization", allow_partial=True
        )
        assert txn.amount == Decimal("-0.05")
        assert txn.balance_after == Decimal("0")

    @pytest.mark.asyncio
    async def test_partial_charge_requires_positive_balance(self, db_session, make_user):
        user = await make_user("empty@example.com", credits=0)
        with pytest.raises(InsufficientCredits, match="^Insufficient credits.$"):
            await spend_credits(
                db_session, user.id, Decimal("0.1"), "prompt_optimization", allow_partial=True
            )

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session):
        with pytest.raises(NotFound):
            await spend_credits(db_session, "missing", Decimal("1"), "image_edit")


class TestRefund:
    @pytest.mark.asyncio
    async def test_refund_restores_charged_amount(self, db_session, approved_user):
        charge = await spend_credits(db_session, approved_user.id, Decimal("5"), "video_generation")
        refund = await refund_charge(db_session, charge.id, description="failed")
        assert refund.transaction_type == TransactionType.REFUND
        assert refund.amount == Decimal("5")
        assert refund.reference_id == charge.id
        assert refund.balance_after == Decimal("10")

    @pytest.mark.asyncio
    async def test_refund_is_idempotent(self, db_session, approved_user):
        charge = await spend_credits(db_session, approved_user.id, Decimal("5"), "video_generation")
        first = await refund_charge(db_session, charge.id)
        second = await refund_charge(db_session, charge.id)
        assert first.id == second.id
        assert await get_balance(db_session, approved_user.id) == Decimal("10")

    @pytest.mark.asyncio
    async def test_refund_is_relative_to_current_balance(self, db_session, approved_user):
        """A refund re-adds the charge even when other charges happened meanwhile."""
        first = await spend_credits(db_session, approved_user.id, Decimal("5"), "video_generation")
        await spend_credits(db_session, approved_user.id, Decimal("1"), "image_edit")
        await refund_charge(db_session, first.id)
        assert await get_balance(db_session, approved_user.id) == Decimal("9")

    @pytest.mark.asyncio
    async def test_only_charges_can_be_refunded(self, db_session, approved_user):
        charge = await spend_credits(db_session, approved_user.id, Decimal("1"), "image_edit")
        refund = await refund_charge(db_session, charge.id)
        with pytest.raises(ValidationError):
            await refund_charge(db_session, refund.id)

    @pytest.mark.asyncio
    async def test_unknown_charge(self, db_session):
        with pytest.raises(NotFound):
            await refund_charge(db_session, "missing")


class TestAdjustments:
    @pytest.mark.asyncio
    async def test_set_balance_records_delta(self, db_session, approved_user):
        txn = await set_balance(db_session, approved_user.id, Decimal("25"), description="bonus")
        assert txn.transaction_type == TransactionType.ADMIN_ADJUSTMENT
        assert txn.amount == Decimal("15")
        assert txn.balance_after == Decimal("25")

    @pytest.mark.asyncio
    async def test_set_same_balance_is_noop(self, db_session, approved_user):
        assert await set_balance(db_session, approved_user.id, Decimal("10")) is None

    @pytest.mark.asyncio
    async def test_negative_balance_rejected(self, db_session, approved_user):
        with pytest.raises(ValidationError):
            await set_balance(db_session, approved_user.id, Decimal("-1"))


class TestLedgerInvariant:
    @pytest.mark.asyncio
    async def test_ledger_sums_to_cached_balance(self, approved_user):
        from app.database import get_session

        async with get_session() as session:
            charge = await spend_credits(session, approved_user.id, Decimal("5"), "video_generation")
            await spend_credits(session, approved_user.id, Decimal("0.1"), "prompt_optimization")
            await refund_charge(session, charge.id)
            await set_balance(session, approved_user.id, Decimal("3.3"))
            await spend_credits(session, approved_user.id, Decimal("1"), "image_edit")

        user = await get_user(approved_user.id)
        assert user.credits == Decimal("2.3")
        assert await ledger_sum(approved_user.id) == user.credits

        entries = await get_transactions(approved_user.id)
        assert [e.transaction_type for e in entries][-1] == TransactionType.CHARGE

    @pytest.mark.asyncio
    async def test_history_is_newest_first(self, db_session, approved_user):
        await spend_credits(db_session, approved_user.id, Decimal("1"), "image_edit")
        await spend_credits(db_session, approved_user.id, Decimal("2"), "ad_image")
        page = await list_transactions(db_session, approved_user.id, limit=2)
        assert [t.operation for t in page] == ["ad_image", "image_edit"]


class TestCreditsEndpoints:
    @pytest.mark.asyncio
    async def test_balance(self, test_client, approved_user):
        response = await test_client.get("/api/credits/balance", headers=auth_headers(approved_user))
        assert response.status_code == 200
        assert response.json() == {"credits": 10}

    @pytest.mark.asyncio
    async def test_history(self, test_client, approved_user):
        response = await test_client.get(
            "/api/credits/history?limit=5", headers=auth_headers(approved_user)
        )
        assert response.status_code == 200
        data = response.json()
        assert data["limit"] == 5
        assert len(data["transactions"]) == 1
        entry = data["transactions"][0]
        assert entry["transactionType"] == "admin_adjustment"
        assert entry["amount"] == 10
        assert entry["balanceAfter"] == 10

    @pytest.mark.asyncio
    async def test_history_requires_auth(self, test_client):
        response = await test_client.get("/api/credits/history")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_costs_are_public(self, test_client):
        response = await test_client.get("/api/credits/costs")
        assert response.status_code == 200
        costs = response.json()["costs"]
        assert costs["video_generation"] == 5
        assert costs["prompt_optimization"] == 0.1
