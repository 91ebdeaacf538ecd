"""
HS256 JWT access tokens signed with a shared secret.

A token only proves who it was issued to and that it has not expired. Whether it
is still honoured is decided by the session store (see ``auth.gateway``).
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from routeplanner.config import get_settings


def create_access_token(user_id: str, email: str) -> str:
    """
    Create an access token for a user.

    Every token gets a unique ``jti`` so two logins within the same second still
    produce distinct tokens.

    Args:
        user_id: The user's identifier.
        email: The user's normalized e-mail.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": user_id,
        "email": email,
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_access_token_expire_days),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify signature, issuer and expiry of an access token and decode it.

    Raises:
        jwt.InvalidTokenError: If the token is malformed, expired, or of the wrong type.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != "access":
        msg = f"Expected token type 'access', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)

    return payload
