"""FastAPI authentication dependencies."""

from __future__ import annotations

from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from routeplanner.auth.gateway import AuthGateway
from routeplanner.auth.session_store import SessionStore
from routeplanner.config import get_settings
from routeplanner.database import get_session
from routeplanner.db.models import User
from routeplanner.errors import AuthInvalid
from routeplanner.redis_client import get_redis

_bearer = HTTPBearer(auto_error=False)


def get_session_store() -> SessionStore:
    """Session store bound to the shared Redis pool."""
    return SessionStore(get_redis(), timeout=get_settings().cache_timeout_seconds)


def get_auth_gateway(sessions: SessionStore = Depends(get_session_store)) -> AuthGateway:
    return AuthGateway(sessions, session_ttl=get_settings().session_ttl_seconds)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
    gateway: AuthGateway = Depends(get_auth_gateway),
) -> User:
    """
    Extract and verify the bearer token, return the User model.

    Raises AuthInvalid / AuthExpired subclasses, rendered as 401 by the error handlers.
    """
    if credentials is None:
        msg = "Access token required"
        raise AuthInvalid(msg)
    return await gateway.authenticate(db, credentials.credentials)


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
    gateway: AuthGateway = Depends(get_auth_gateway),
) -> User | None:
    """Like get_current_user, but resolves to None (anonymous) instead of failing."""
    token = credentials.credentials if credentials else None
    return await gateway.authenticate_optional(db, token)
