"""Credits API endpoints - balance, history, costs.

Endpoints:
    GET /api/credits/balance - Current credit balance
    GET /api/credits/history - Paginated ledger, newest first
    GET /api/credits/costs   - Credit cost table
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.database import get_db_session
from app.ledger.credits import CREDIT_COSTS, get_balance, list_transactions
from app.schemas import (
    BalanceResponse,
    CostsResponse,
    TransactionHistoryResponse,
    TransactionResponse,
)
from app.users.repository import UserRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/credits", tags=["credits"])


@router.get("/balance", response_model=BalanceResponse)
async def get_credit_balance(
    user: UserRecord = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> BalanceResponse:
    """Return the current user's credit balance."""
    credits = await get_balance(session, user.id)
    return BalanceResponse(credits=float(credits))


@router.get("/history", response_model=TransactionHistoryResponse)
async def get_history(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: UserRecord = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> TransactionHistoryResponse:
    """Return paginated credit transaction history."""
    transactions = await list_transactions(session, user.id, limit=limit, offset=offset)
    return TransactionHistoryResponse(
        transactions=[TransactionResponse.from_model(t) for t in transactions],
        limit=limit,
        offset=offset,
    )


@router.get("/costs", response_model=CostsResponse)
async def get_costs() -> CostsResponse:
    """Return the credit cost table so clients know prices."""
    return CostsResponse(costs={name: float(cost) for name, cost in CREDIT_COSTS.items()})
