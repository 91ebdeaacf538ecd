"""
Authentication business logic.

Handles registration, credential checks and issuing a token + session pair.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from routeplanner.auth.jwt import create_access_token
from routeplanner.auth.password import (
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from routeplanner.cache.response_cache import SCOPE_PROFILE
from routeplanner.config import get_settings
from routeplanner.database import atomic
from routeplanner.db.models import User
from routeplanner.errors import Conflict, InvalidCredentials, StoreUnavailable, UserInactive

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from routeplanner.auth.session_store import SessionStore
    from routeplanner.cache.response_cache import ResponseCache

logger = structlog.get_logger()


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Fetch a live (not soft-deleted) user by ID."""
    result = await db.execute(select(User).where(User.id == user_id).where(User.deleted_at.is_(None)))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a live user by e-mail (case-insensitive)."""
    result = await db.execute(
        select(User).where(User.email == normalize_email(email)).where(User.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Registration & login
# ---------------------------------------------------------------------------


async def register_user(
    db: AsyncSession,
    email: str,
    password: str,
    display_name: str,
    phone: str | None = None,
) -> User:
    """
    Create a new active, unverified user.

    Raises:
        PasswordStrengthError: If the password is too short or too long.
        Conflict: If a live user already has this e-mail.
    """
    validate_password_strength(password)
    email = normalize_email(email)

    if await get_user_by_email(db, email) is not None:
        msg = "Email already registered"
        raise Conflict(msg)

    user = User(
        email=email,
        password_hash=hash_password(password),
        display_name=display_name.strip(),
        phone=(phone or "").strip() or None,
        is_active=True,
        email_verified=False,
        last_login=datetime.now(timezone.utc),
    )
    try:
        async with atomic(db, "register_user"):
            db.add(user)
            await db.flush()
    except StoreUnavailable as e:
        # Two concurrent registrations for one address: the partial unique index decides.
        if isinstance(e.__cause__, IntegrityError):
            msg = "Email already registered"
            raise Conflict(msg) from e
        raise

    logger.info("user_created", user_id=user.id, email=email)
    return user


async def authenticate_user(
    db: AsyncSession,
    email: str,
    password: str,
    cache: ResponseCache | None = None,
) -> User:
    """
    Check e-mail + password and record the login.

    The cached profile carries ``last_login``, so it is dropped after commit.

    Raises:
        InvalidCredentials: If the user does not exist or the password is wrong.
        UserInactive: If the account is disabled.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        raise InvalidCredentials

    if not user.is_active:
        raise UserInactive

    if not verify_password(password, user.password_hash):
        logger.info("login_failed", user_id=user.id)
        raise InvalidCredentials

    async with atomic(db, "record_login"):
        user.last_login = datetime.now(timezone.utc)
        if check_needs_rehash(user.password_hash):
            user.password_hash = hash_password(password)
            logger.info("password_rehashed", user_id=user.id)

    if cache is not None:
        await cache.invalidate(user.id, SCOPE_PROFILE)

    return user


async def start_session(sessions: SessionStore, user: User) -> str:
    """Issue an access token and register it as the user's only live session."""
    settings = get_settings()
    token = create_access_token(user.id, user.email)
    await sessions.create(
        user.id,
        token,
        settings.session_ttl_seconds,
        email=user.email,
        display_name=user.display_name,
    )
    logger.info("session_started", user_id=user.id)
    return token
