"""Shared FastAPI dependencies."""

from routeplanner.cache.response_cache import ResponseCache
from routeplanner.config import get_settings
from routeplanner.redis_client import get_redis as _get_redis


def get_response_cache() -> ResponseCache:
    """Response cache bound to the shared Redis pool."""
    settings = get_settings()
    return ResponseCache(
        _get_redis(),
        timeout=settings.cache_timeout_seconds,
        scan=settings.cache_invalidation_scan,
        index_ttl=max(
            settings.cache_routes_ttl_seconds,
            settings.cache_profile_ttl_seconds,
            settings.cache_stats_ttl_seconds,
        ),
    )
