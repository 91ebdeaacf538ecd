"""Authentication router — all /api/v1/auth/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from routeplanner.auth.dependencies import get_current_user, get_optional_user, get_session_store
from routeplanner.auth.password import PasswordStrengthError
from routeplanner.auth.schemas import (
    AuthStatusResponse,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from routeplanner.auth.service import authenticate_user, register_user, start_session
from routeplanner.auth.session_store import SessionStore
from routeplanner.cache.response_cache import ResponseCache
from routeplanner.config import get_settings
from routeplanner.database import get_session
from routeplanner.db.models import User
from routeplanner.dependencies import get_response_cache
from routeplanner.errors import ValidationError
from routeplanner.schemas import Envelope

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def _token_response(user: User, token: str) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=token,
        expires_in=settings.jwt_access_token_expire_days * 24 * 60 * 60,
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=Envelope[TokenResponse], status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_session),
    sessions: SessionStore = Depends(get_session_store),
) -> Envelope[TokenResponse]:
    """Register with email + password and start a session."""
    try:
        user = await register_user(
            db,
            email=body.email,
            password=body.password,
            display_name=body.display_name,
            phone=body.phone,
        )
    except PasswordStrengthError as e:
        raise ValidationError(str(e)) from e

    token = await start_session(sessions, user)
    return Envelope(message="User created", data=_token_response(user, token))


@router.post("/login", response_model=Envelope[TokenResponse])
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),
    sessions: SessionStore = Depends(get_session_store),
    cache: ResponseCache = Depends(get_response_cache),
) -> Envelope[TokenResponse]:
    """Login with email + password. Replaces any earlier session of this user."""
    user = await authenticate_user(db, body.email, body.password, cache)
    token = await start_session(sessions, user)
    return Envelope(message="Login successful", data=_token_response(user, token))


@router.post("/logout", response_model=Envelope[None])
async def logout(
    user: User = Depends(get_current_user),
    sessions: SessionStore = Depends(get_session_store),
) -> Envelope[None]:
    """Revoke the caller's session. The token stops working immediately."""
    await sessions.revoke(user.id)
    return Envelope(message="Logged out")


@router.get("/verify", response_model=Envelope[UserResponse])
async def verify(user: User = Depends(get_current_user)) -> Envelope[UserResponse]:
    """Confirm the token is still honoured and return the user."""
    return Envelope(message="Token valid", data=UserResponse.model_validate(user))


@router.get("/status", response_model=Envelope[AuthStatusResponse])
async def auth_status(user: User | None = Depends(get_optional_user)) -> Envelope[AuthStatusResponse]:
    """Report whether the caller is authenticated. Never fails on a bad token."""
    return Envelope(
        data=AuthStatusResponse(
            authenticated=user is not None,
            user=UserResponse.model_validate(user) if user else None,
        )
    )
