"""Auth API endpoints - signup, login, logout, current user.

Endpoints:
    POST /api/auth         - {action: login|signup|logout, email, password}
    GET  /api/auth         - Current user
    POST /api/auth/signup  - Create a pending account
    POST /api/auth/login   - Verify credentials, set the session cookie
    POST /api/auth/logout  - Clear the session cookie
    GET  /api/auth/me      - Current user
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.auth.dependencies import get_current_user
from app.auth.jwt_handler import create_session_token, session_max_age_seconds
from app.auth.passwords import MIN_PASSWORD_LENGTH, hash_password, verify_password
from app.config import get_settings
from app.database import get_session
from app.errors import Unauthenticated, ValidationError
from app.schemas import (
    AuthActionRequest,
    CredentialsRequest,
    LoginResponse,
    MessageResponse,
    UserEnvelope,
    UserResponse,
)
from app.users.repository import SQLUserRepository, UserRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

SIGNUP_MESSAGE = "Signup successful! Your account is pending approval from an administrator."


def _json(model: BaseModel, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=model.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


async def signup(email: str | None, password: str | None) -> JSONResponse:
    """Register a pending account with zero credits.

    Raises:
        ValidationError: Missing email or password shorter than 6 characters.
        Conflict: Email already registered.
    """
    email = (email or "").strip()
    if not email or not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Email and a password of at least {MIN_PASSWORD_LENGTH} characters are required."
        )

    password_hash = await asyncio.to_thread(hash_password, password)
    async with get_session() as session:
        await SQLUserRepository(session).create(email, password_hash)

    return _json(MessageResponse(message=SIGNUP_MESSAGE), status.HTTP_201_CREATED)


async def login(email: str | None, password: str | None) -> JSONResponse:
    """Verify credentials and start a session.

    Pending and rejected users may log in; paid operations check status.

    Raises:
        Unauthenticated: Unknown email or wrong password (same message).
    """
    if not email or not password:
        raise ValidationError("Email and password are required.")

    async with get_session() as session:
        repo = SQLUserRepository(session)
        credentials = await repo.find_credentials_by_email(email)
        valid = credentials is not None and await asyncio.to_thread(
            verify_password, password, credentials.password_hash
        )
        if not valid:
            logger.info(f"Failed login for {email}")
            raise Unauthenticated("Invalid credentials.")
        await repo.record_login(credentials.user.id)

    user = credentials.user
    token = create_session_token(user.id, user.role.value)
    response = _json(LoginResponse(message="Login successful", user=UserResponse.from_record(user)))

    settings = get_settings()
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=session_max_age_seconds(),
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="strict",
    )
    logger.info(f"User logged in: {user.id}")
    return response


def logout() -> JSONResponse:
    """Clear the session cookie. Tokens are stateless, nothing is revoked."""
    settings = get_settings()
    response = _json(MessageResponse(message="Logout successful"))
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="strict",
    )
    return response


@router.post("")
async def auth_action(request: AuthActionRequest) -> JSONResponse:
    """Dispatch on ``action``: login, signup or logout."""
    if request.action == "login":
        return await login(request.email, request.password)
    if request.action == "signup":
        return await signup(request.email, request.password)
    if request.action == "logout":
        return logout()
    raise ValidationError("Invalid action.")


@router.get("", response_model=UserEnvelope)
async def get_me_action(user: UserRecord = Depends(get_current_user)) -> UserEnvelope:
    """Return the current user."""
    return UserEnvelope(user=UserResponse.from_record(user))


@router.post("/signup", status_code=status.HTTP_201_CREATED, response_model=MessageResponse)
async def signup_route(request: CredentialsRequest) -> JSONResponse:
    return await signup(request.email, request.password)


@router.post("/login", response_model=LoginResponse)
async def login_route(request: CredentialsRequest) -> JSONResponse:
    return await login(request.email, request.password)


@router.post("/logout", response_model=MessageResponse)
async def logout_route() -> JSONResponse:
    return logout()


@router.get("/me", response_model=UserEnvelope)
async def get_me(user: UserRecord = Depends(get_current_user)) -> UserEnvelope:
    """Return the current user profile."""
    return UserEnvelope(user=UserResponse.from_record(user))
