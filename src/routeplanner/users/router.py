"""User management router — all /api/v1/users/me endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from routeplanner.auth.dependencies import get_current_user, get_session_store
from routeplanner.auth.password import PasswordStrengthError
from routeplanner.auth.schemas import UserResponse
from routeplanner.auth.session_store import SessionStore
from routeplanner.cache.response_cache import SCOPE_PROFILE, ResponseCache
from routeplanner.config import get_settings
from routeplanner.database import get_session
from routeplanner.db.models import User
from routeplanner.dependencies import get_response_cache
from routeplanner.errors import ValidationError
from routeplanner.routes.query import RouteQueryService
from routeplanner.routes.schemas import RouteStatsResponse
from routeplanner.schemas import Envelope, ok
from routeplanner.users.schemas import AccountDeleteRequest, PasswordChangeRequest, ProfileUpdateRequest
from routeplanner.users.service import change_password, delete_account, update_profile

router = APIRouter(prefix="/api/v1/users", tags=["Users"])

PROFILE_SIGNATURE = "/api/v1/users/me"


def _user_response(user: User) -> dict[str, Any]:
    return UserResponse.model_validate(user).model_dump(mode="json")


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.get("/me", response_model=Envelope[UserResponse])
async def get_profile(
    response: Response,
    user: User = Depends(get_current_user),
    cache: ResponseCache = Depends(get_response_cache),
) -> dict[str, Any]:
    """Get own profile."""

    async def load() -> dict[str, Any]:
        return ok(_user_response(user))

    body, hit = await cache.get_or_load(
        user.id, SCOPE_PROFILE, PROFILE_SIGNATURE, load, get_settings().cache_profile_ttl_seconds
    )
    response.headers["X-Cache"] = "HIT" if hit else "MISS"
    return body


@router.put("/me", response_model=Envelope[UserResponse])
async def update_my_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    cache: ResponseCache = Depends(get_response_cache),
) -> dict[str, Any]:
    """Update display name and/or phone."""
    user = await update_profile(db, cache, user, body.model_dump(exclude_unset=True))
    return ok(_user_response(user), "Profile updated")


@router.put("/me/password", response_model=Envelope[None])
async def change_my_password(
    body: PasswordChangeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    cache: ResponseCache = Depends(get_response_cache),
) -> dict[str, Any]:
    try:
        await change_password(db, cache, user, body.current_password, body.new_password)
    except PasswordStrengthError as e:
        raise ValidationError(str(e)) from e
    return ok(message="Password updated")


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@router.get("/me/stats", response_model=Envelope[RouteStatsResponse])
async def get_my_stats(
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    cache: ResponseCache = Depends(get_response_cache),
) -> dict[str, Any]:
    """Route totals, distance and per-weekday counts."""
    body, hit = await RouteQueryService(db, cache).route_stats(user.id)
    response.headers["X-Cache"] = "HIT" if hit else "MISS"
    return body


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------


@router.delete("/me", response_model=Envelope[None])
async def delete_my_account(
    body: AccountDeleteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    cache: ResponseCache = Depends(get_response_cache),
    sessions: SessionStore = Depends(get_session_store),
) -> dict[str, Any]:
    """Soft-delete the account. Requires the current password."""
    await delete_account(db, cache, sessions, user, body.password)
    return ok(message="Account deleted")
