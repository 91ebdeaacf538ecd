"""
Read-through cache for idempotent query responses.

Entries live at ``cache:{user_id}:{scope}:{signature}``. Writers never update an
entry, they only delete it, so a missed invalidation costs at most one TTL of
staleness. Every ``put`` also records the key in the per-user index set
``cache_index:{user_id}`` so invalidation can delete a known list of keys; with
``scan`` enabled it additionally sweeps ``SCAN MATCH`` for keys the index missed.

Nothing in here raises past the public methods: an unreachable Redis reads as a
miss and invalidation becomes a logged no-op.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable, Mapping
from typing import Any
from urllib.parse import urlencode

import redis.asyncio as aioredis
import structlog

from routeplanner.errors import CacheUnavailable
from routeplanner.redis_client import bounded

logger = structlog.get_logger()

ENTRY_KEY = "cache:{user_id}:{scope}:{signature}"
INDEX_KEY = "cache_index:{user_id}"

SCOPE_ROUTES = "routes"
SCOPE_PROFILE = "profile"
SCOPE_STATS = "stats"


def build_signature(path: str, params: Mapping[str, Any] | None = None) -> str:
    """
    Canonical request signature: path plus query parameters sorted by name.

    Parameters whose value is None are dropped so ``?a=1`` and ``?a=1&b=`` style
    differences in optional filters don't fragment the key space.
    """
    if not params:
        return path
    items = sorted((k, _canonical(v)) for k, v in params.items() if v is not None)
    if not items:
        return path
    return f"{path}?{urlencode(items)}"


def _canonical(value: Any) -> str:  # noqa: ANN401
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ResponseCache:
    """Per-user response cache with delete-only invalidation."""

    def __init__(
        self,
        redis: aioredis.Redis,
        timeout: float = 0.5,
        scan: bool = True,
        index_ttl: int = 3600,
    ) -> None:
        self.redis = redis
        self.timeout = timeout
        self.scan = scan
        self.index_ttl = index_ttl

    @staticmethod
    def entry_key(user_id: str, scope: str, signature: str) -> str:
        return ENTRY_KEY.format(user_id=user_id, scope=scope, signature=signature)

    @staticmethod
    def index_key(user_id: str) -> str:
        return INDEX_KEY.format(user_id=user_id)

    # ------------------------------------------------------------------
    # Reads / writes
    # ------------------------------------------------------------------

    async def get(self, user_id: str, scope: str, signature: str) -> Any | None:  # noqa: ANN401
        """Return the cached body, or None on miss (including when Redis is down)."""
        key = self.entry_key(user_id, scope, signature)
        try:
            raw = await bounded(self.redis.get(key), self.timeout)
        except CacheUnavailable as e:
            logger.warning("cache_unavailable", op="get", key=key, error=e.message)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("cache_entry_corrupt", key=key)
            return None

    async def put(self, user_id: str, scope: str, signature: str, body: Any, ttl: int) -> None:  # noqa: ANN401
        """Store a body for ``ttl`` seconds and register its key in the user's index."""
        key = self.entry_key(user_id, scope, signature)
        index = self.index_key(user_id)
        try:
            pipe = self.redis.pipeline(transaction=False)
            pipe.set(key, json.dumps(body, default=str), ex=ttl)
            pipe.sadd(index, key)
            # The index lives as long as the longest-lived entry type.
            pipe.expire(index, max(ttl, self.index_ttl))
            await bounded(pipe.execute(), self.timeout)
        except CacheUnavailable as e:
            logger.warning("cache_unavailable", op="put", key=key, error=e.message)

    async def get_or_load(
        self,
        user_id: str,
        scope: str,
        signature: str,
        loader: Callable[[], Awaitable[Any]],
        ttl: int,
    ) -> tuple[Any, bool]:
        """
        Read-through lookup.

        Returns ``(body, hit)``. On a miss ``loader`` runs and its result is cached.
        If ``loader`` raises, nothing is cached and the error propagates.
        """
        cached = await self.get(user_id, scope, signature)
        if cached is not None:
            return cached, True
        body = await loader()
        await self.put(user_id, scope, signature, body, ttl)
        return body, False

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    async def invalidate(self, user_id: str, scope: str | None = None) -> int:
        """
        Delete every entry of ``user_id`` (optionally only within ``scope``).

        Returns the number of keys deleted. Zero matches is success. Redis
        failures are logged and reported as 0.
        """
        prefix = self.entry_key(user_id, scope, "") if scope else f"cache:{user_id}:"
        index = self.index_key(user_id)
        try:
            members = await bounded(self.redis.smembers(index), self.timeout)
            keys = {k for k in members if k.startswith(prefix)}
            if self.scan:
                keys |= await bounded(self._scan(prefix + "*"), self.timeout)
            if not keys:
                return 0
            pipe = self.redis.pipeline(transaction=False)
            pipe.delete(*keys)
            pipe.srem(index, *keys)
            results = await bounded(pipe.execute(), self.timeout)
        except CacheUnavailable as e:
            logger.warning("cache_unavailable", op="invalidate", user_id=user_id, scope=scope, error=e.message)
            return 0

        deleted = int(results[0])
        logger.info("cache_invalidated", user_id=user_id, scope=scope or "*", keys=deleted)
        return deleted

    async def invalidate_scopes(self, user_id: str, *scopes: str) -> None:
        for scope in scopes:
            await self.invalidate(user_id, scope)

    async def _scan(self, pattern: str) -> set[str]:
        return {key async for key in self.redis.scan_iter(match=pattern, count=500)}
