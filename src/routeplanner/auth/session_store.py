"""
Server-side login sessions in Redis.

One session per user, stored under ``session:{user_id}``. Creating a session
overwrites whatever was there, so a fresh login retires the previous token: the
gateway compares the presented token's digest against the stored one.

Writes are best-effort. If Redis is down, ``create``, ``extend`` and ``revoke``
log and return. ``get`` also logs and returns None, which callers must read as
"no session", never as "valid".
"""

from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

import redis.asyncio as aioredis
import structlog

from routeplanner.errors import CacheUnavailable
from routeplanner.redis_client import bounded

logger = structlog.get_logger()

SESSION_KEY = "session:{user_id}"


def token_digest(token: str) -> str:
    """SHA-256 hex digest of a bearer token."""
    return hashlib.sha256(token.encode()).hexdigest()


@dataclass(frozen=True)
class Session:
    user_id: str
    token_hash: str
    email: str
    display_name: str
    created_at: str

    def matches(self, token: str) -> bool:
        """Constant-time check that ``token`` is the one this session was issued for."""
        return hmac.compare_digest(self.token_hash, token_digest(token))


class SessionStore:
    """Single-active-session store keyed by user id."""

    def __init__(self, redis: aioredis.Redis, timeout: float = 0.5) -> None:
        self.redis = redis
        self.timeout = timeout

    @staticmethod
    def key(user_id: str) -> str:
        return SESSION_KEY.format(user_id=user_id)

    async def create(
        self,
        user_id: str,
        token: str,
        ttl: int,
        email: str = "",
        display_name: str = "",
    ) -> None:
        """Store a session for ``user_id``, replacing any previous one."""
        session = Session(
            user_id=user_id,
            token_hash=token_digest(token),
            email=email,
            display_name=display_name,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        try:
            await bounded(self.redis.set(self.key(user_id), json.dumps(asdict(session)), ex=ttl), self.timeout)
        except CacheUnavailable as e:
            logger.warning("session_store_unavailable", op="create", user_id=user_id, error=e.message)

    async def get(self, user_id: str) -> Session | None:
        """Return the live session for ``user_id``, or None if absent or unreadable."""
        try:
            raw = await bounded(self.redis.get(self.key(user_id)), self.timeout)
        except CacheUnavailable as e:
            logger.error("session_lookup_failed", user_id=user_id, error=e.message)
            return None
        if raw is None:
            return None
        try:
            return Session(**json.loads(raw))
        except (TypeError, ValueError):
            logger.warning("session_corrupt", user_id=user_id)
            return None

    async def extend(self, user_id: str, ttl: int) -> None:
        """Reset the session TTL (sliding expiration)."""
        try:
            await bounded(self.redis.expire(self.key(user_id), ttl), self.timeout)
        except CacheUnavailable as e:
            logger.warning("session_store_unavailable", op="extend", user_id=user_id, error=e.message)

    async def revoke(self, user_id: str) -> None:
        """Delete the session (logout)."""
        try:
            await bounded(self.redis.delete(self.key(user_id)), self.timeout)
        except CacheUnavailable as e:
            logger.warning("session_store_unavailable", op="revoke", user_id=user_id, error=e.message)
        else:
            logger.info("session_revoked", user_id=user_id)
