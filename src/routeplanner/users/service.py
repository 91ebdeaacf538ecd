"""
Account self-service: profile edits, password change and account deletion.

Every write goes through ``atomic`` and then drops the owner's cached responses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from routeplanner.auth.password import hash_password, validate_password_strength, verify_password
from routeplanner.cache.response_cache import SCOPE_PROFILE
from routeplanner.database import atomic
from routeplanner.errors import ValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from routeplanner.auth.session_store import SessionStore
    from routeplanner.cache.response_cache import ResponseCache
    from routeplanner.db.models import User

logger = structlog.get_logger()

PROFILE_FIELDS = ("display_name", "phone")


async def update_profile(
    db: AsyncSession,
    cache: ResponseCache | None,
    user: User,
    fields: dict[str, Any],
) -> User:
    """
    Update display name and/or phone. An empty phone clears it.

    Raises:
        ValidationError: Nothing to update, or a null display name.
    """
    changes = {k: v for k, v in fields.items() if k in PROFILE_FIELDS}
    if not changes:
        msg = "No fields to update"
        raise ValidationError(msg)
    if "display_name" in changes and changes["display_name"] is None:
        msg = "display_name cannot be null"
        raise ValidationError(msg)

    async with atomic(db, "update_profile"):
        if "display_name" in changes:
            user.display_name = changes["display_name"]
        if "phone" in changes:
            user.phone = (changes["phone"] or "").strip() or None

    if cache is not None:
        await cache.invalidate(user.id, SCOPE_PROFILE)
    logger.info("profile_updated", user_id=user.id, fields=sorted(changes))
    return user


async def change_password(
    db: AsyncSession,
    cache: ResponseCache | None,
    user: User,
    current_password: str,
    new_password: str,
) -> None:
    """
    Replace the password digest after checking the current password.

    The live session is kept; the user stays logged in on this device.

    Raises:
        ValidationError: Current password wrong or new password too weak.
    """
    if not verify_password(current_password, user.password_hash):
        msg = "Current password is incorrect"
        raise ValidationError(msg)
    validate_password_strength(new_password)

    async with atomic(db, "change_password"):
        user.password_hash = hash_password(new_password)

    if cache is not None:
        await cache.invalidate(user.id)
    logger.info("password_changed", user_id=user.id)


async def delete_account(
    db: AsyncSession,
    cache: ResponseCache | None,
    sessions: SessionStore,
    user: User,
    password: str,
) -> None:
    """
    Soft-delete the account, end its session and drop all of its cached responses.

    Routes are left as they are; they become unreachable with their owner.

    Raises:
        ValidationError: The confirmation password is wrong.
    """
    if not verify_password(password, user.password_hash):
        msg = "Password is incorrect"
        raise ValidationError(msg)

    async with atomic(db, "delete_account"):
        user.mark_deleted()
        user.is_active = False

    await sessions.revoke(user.id)
    if cache is not None:
        await cache.invalidate(user.id)
    logger.info("account_deleted", user_id=user.id)
