"""
Bearer-token authentication against the revocable session store.

A request is authenticated only if all of these hold, checked in order:

1. the token's signature, issuer and expiry verify (``InvalidToken``);
2. a session exists for the embedded user id and was issued for this very
   token (``SessionExpired``);
3. the user row is live (``UserNotFound``) and active (``UserInactive``).

On success the session TTL slides forward.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import jwt
import structlog

from routeplanner.auth.jwt import verify_token
from routeplanner.auth.service import get_user_by_id
from routeplanner.errors import AppError, InvalidToken, SessionExpired, UserInactive, UserNotFound

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from routeplanner.auth.session_store import SessionStore
    from routeplanner.db.models import User

logger = structlog.get_logger()


class AuthGateway:
    def __init__(self, sessions: SessionStore, session_ttl: int) -> None:
        self.sessions = sessions
        self.session_ttl = session_ttl

    async def authenticate(self, db: AsyncSession, token: str) -> User:
        """Resolve a bearer token to its user or raise an auth error."""
        try:
            payload = verify_token(token)
        except jwt.InvalidTokenError as e:
            raise InvalidToken from e

        user_id = str(payload["sub"])

        session = await self.sessions.get(user_id)
        if session is None or not session.matches(token):
            raise SessionExpired

        user = await get_user_by_id(db, user_id)
        if user is None:
            raise UserNotFound
        if not user.is_active:
            raise UserInactive

        await self.sessions.extend(user_id, self.session_ttl)
        return user

    async def authenticate_optional(self, db: AsyncSession, token: str | None) -> User | None:
        """Same checks as ``authenticate``, but any failure resolves to anonymous (None)."""
        if not token:
            return None
        try:
            return await self.authenticate(db, token)
        except AppError as e:
            logger.debug("optional_auth_anonymous", reason=e.code)
            return None
