"""Redis connection pool and time-bounded command helper."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import redis.asyncio as redis
from redis.exceptions import RedisError

from routeplanner.errors import CacheUnavailable

T = TypeVar("T")

# Anything the cache service can throw at us: protocol errors, socket errors, timeouts.
CACHE_ERRORS: tuple[type[BaseException], ...] = (RedisError, OSError, asyncio.TimeoutError)

_pool: redis.Redis | None = None


async def init_redis(url: str, timeout: float = 0.5) -> None:
    """Initialize the Redis connection pool."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
    )


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """Get the Redis client (FastAPI dependency)."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


async def bounded(awaitable: Awaitable[T], timeout: float) -> T:
    """
    Await a Redis command, giving up after ``timeout`` seconds.

    Raises:
        CacheUnavailable: If the command fails or times out.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except CACHE_ERRORS as e:
        raise CacheUnavailable(str(e) or type(e).__name__) from e
