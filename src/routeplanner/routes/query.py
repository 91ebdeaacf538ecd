"""
Cached read paths for routes.

Each read is keyed by the owner plus a canonical signature of its parameters and
served from the response cache when possible. Free-text searches always go to
the database: their key space is unbounded.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any

from routeplanner.cache.response_cache import SCOPE_ROUTES, SCOPE_STATS, build_signature
from routeplanner.config import get_settings
from routeplanner.routes import service
from routeplanner.routes.schemas import DAY_NAMES, RouteListParams, serialize_route
from routeplanner.schemas import ok

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from routeplanner.cache.response_cache import ResponseCache

ROUTES_PATH = "/api/v1/routes"


def pagination(page: int, limit: int, total: int) -> dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "current_page": page,
        "total_pages": total_pages,
        "total_items": total,
        "items_per_page": limit,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


class RouteQueryService:
    """Read-through cache in front of the route persistence reads.

    Every method returns ``(body, hit)`` where ``body`` is the success envelope
    and ``hit`` tells whether it came from the cache.
    """

    def __init__(self, db: AsyncSession, cache: ResponseCache) -> None:
        self.db = db
        self.cache = cache
        self.settings = get_settings()

    async def list_routes(self, user_id: str, params: RouteListParams) -> tuple[dict[str, Any], bool]:
        async def load() -> dict[str, Any]:
            routes, total = await service.list_routes(self.db, user_id, **params.model_dump())
            return ok(
                {
                    "routes": [serialize_route(r) for r in routes],
                    "pagination": pagination(params.page, params.limit, total),
                }
            )

        if params.search:
            return await load(), False

        signature = build_signature(ROUTES_PATH, params.model_dump())
        return await self.cache.get_or_load(
            user_id, SCOPE_ROUTES, signature, load, self.settings.cache_routes_ttl_seconds
        )

    async def list_by_day(self, user_id: str, day: int) -> tuple[dict[str, Any], bool]:
        service.check_day(day)

        async def load() -> dict[str, Any]:
            routes = await service.list_routes_by_day(self.db, user_id, day)
            return ok(
                {
                    "day_of_week": day,
                    "day_name": DAY_NAMES[day],
                    "routes": [serialize_route(r) for r in routes],
                }
            )

        return await self.cache.get_or_load(
            user_id,
            SCOPE_ROUTES,
            f"{ROUTES_PATH}/day/{day}",
            load,
            self.settings.cache_routes_ttl_seconds,
        )

    async def get_route(self, user_id: str, route_id: str) -> tuple[dict[str, Any], bool]:
        async def load() -> dict[str, Any]:
            return ok(serialize_route(await service.get_route(self.db, route_id, user_id)))

        return await self.cache.get_or_load(
            user_id,
            SCOPE_ROUTES,
            f"{ROUTES_PATH}/{route_id}",
            load,
            self.settings.cache_routes_ttl_seconds,
        )

    async def route_stats(self, user_id: str) -> tuple[dict[str, Any], bool]:
        async def load() -> dict[str, Any]:
            return ok(await service.get_route_stats(self.db, user_id))

        return await self.cache.get_or_load(
            user_id,
            SCOPE_STATS,
            "/api/v1/users/me/stats",
            load,
            self.settings.cache_stats_ttl_seconds,
        )
