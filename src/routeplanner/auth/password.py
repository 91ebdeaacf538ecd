"""
argon2id password digests.

Cost parameters come from settings. A stored digest made with other parameters
still verifies; ``check_needs_rehash`` tells the login path to replace it.
"""

from __future__ import annotations

import argon2
from argon2.exceptions import InvalidHashError, VerificationError

from routeplanner.config import get_settings


class PasswordStrengthError(ValueError):
    """Password is blank or outside the configured length bounds."""


def _hasher() -> argon2.PasswordHasher:
    settings = get_settings()
    return argon2.PasswordHasher(
        time_cost=settings.password_hash_time_cost,
        memory_cost=settings.password_hash_memory_kib,
        parallelism=1,
        type=argon2.Type.ID,
    )


def hash_password(password: str) -> str:
    return _hasher().hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """True if ``password`` matches ``password_hash``. A malformed digest is a mismatch."""
    try:
        return _hasher().verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def check_needs_rehash(password_hash: str) -> bool:
    return _hasher().check_needs_rehash(password_hash)


def validate_password_strength(password: str) -> None:
    """
    Enforce the configured length bounds.

    Raises:
        PasswordStrengthError: Blank, too short or too long.
    """
    settings = get_settings()
    if not password.strip():
        msg = "Password cannot be empty"
        raise PasswordStrengthError(msg)
    if len(password) < settings.password_min_length:
        msg = f"Password must be at least {settings.password_min_length} characters"
        raise PasswordStrengthError(msg)
    if len(password) > settings.password_max_length:
        msg = f"Password must not exceed {settings.password_max_length} characters"
        raise PasswordStrengthError(msg)
