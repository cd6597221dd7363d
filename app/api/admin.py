"""Admin API endpoints - user moderation.

Endpoints:
    GET  /api/admin              - All users
    POST /api/admin              - {userId, status?, credits?}
    GET  /api/admin/users        - All users
    POST /api/admin/update-user  - {userId, status?, credits?}
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from app.auth.dependencies import require_admin
from app.errors import ValidationError
from app.ledger.credits import to_credits
from app.models import UserStatus
from app.schemas import (
    AdminUpdateRequest,
    AdminUpdateResponse,
    UserListResponse,
    UserResponse,
)
from app.users import moderation
from app.users.repository import UserRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _parse_status(value: str | None) -> UserStatus | None:
    if value is None:
        return None
    try:
        return UserStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid status. Must be one of: {', '.join(s.value for s in UserStatus)}."
        )


@router.get("", response_model=UserListResponse)
@router.get("/users", response_model=UserListResponse)
async def list_users(admin: UserRecord = Depends(require_admin)) -> UserListResponse:
    """List every user, oldest first."""
    users = await moderation.list_users(admin)
    return UserListResponse(users=[UserResponse.from_record(u) for u in users])


@router.post("", response_model=AdminUpdateResponse)
@router.post("/update-user", response_model=AdminUpdateResponse)
async def update_user(
    request: AdminUpdateRequest,
    admin: UserRecord = Depends(require_admin),
) -> AdminUpdateResponse:
    """Change a user's status and/or credit balance."""
    if not request.user_id:
        raise ValidationError("User ID is required.")

    new_status = _parse_status(request.status)
    credits = to_credits(request.credits) if request.credits is not None else None

    user = await moderation.update_user(admin, request.user_id, status=new_status, credits=credits)
    return AdminUpdateResponse(
        message="User updated successfully.", user=UserResponse.from_record(user)
    )
