"""Routes router — all /api/v1/routes/* endpoints."""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from routeplanner.auth.dependencies import get_current_user
from routeplanner.cache.response_cache import ResponseCache
from routeplanner.database import get_session
from routeplanner.db.models import User
from routeplanner.dependencies import get_response_cache
from routeplanner.routes import service
from routeplanner.routes.query import RouteQueryService
from routeplanner.routes.schemas import (
    DayRoutesResponse,
    RouteCreateRequest,
    RouteDuplicateRequest,
    RouteListParams,
    RouteListResponse,
    RouteResponse,
    RouteUpdateRequest,
    SortField,
    serialize_route,
)
from routeplanner.schemas import Envelope, ok

router = APIRouter(prefix="/api/v1/routes", tags=["Routes"])


def _mark(response: Response, hit: bool) -> None:
    response.headers["X-Cache"] = "HIT" if hit else "MISS"


def get_route_queries(
    db: AsyncSession = Depends(get_session),
    cache: ResponseCache = Depends(get_response_cache),
) -> RouteQueryService:
    return RouteQueryService(db, cache)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


@router.post("", response_model=Envelope[RouteResponse], status_code=status.HTTP_201_CREATED)
async def create_route(
    body: RouteCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    cache: ResponseCache = Depends(get_response_cache),
) -> dict[str, Any]:
    """Create a route with at least two waypoints."""
    route = await service.create_route(
        db,
        cache,
        user.id,
        name=body.name,
        day_of_week=body.day_of_week,
        waypoints=[w.model_dump() for w in body.waypoints],
        description=body.description,
        start_time=body.start_time,
        estimated_duration=body.estimated_duration,
        total_distance=body.total_distance,
        distance_override=body.distance_override,
    )
    return ok(serialize_route(route), "Route created")


@router.put("/{route_id}", response_model=Envelope[RouteResponse])
async def update_route(
    route_id: str,
    body: RouteUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    cache: ResponseCache = Depends(get_response_cache),
) -> dict[str, Any]:
    """Partial update. A ``waypoints`` list replaces all existing waypoints."""
    route = await service.update_route(
        db,
        cache,
        route_id,
        user.id,
        body.route_fields(),
        waypoints=[w.model_dump() for w in body.waypoints] if body.waypoints is not None else None,
        total_distance=body.total_distance,
        distance_override=body.distance_override,
    )
    return ok(serialize_route(route), "Route updated")


@router.delete("/{route_id}", response_model=Envelope[None])
async def delete_route(
    route_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    cache: ResponseCache = Depends(get_response_cache),
) -> dict[str, Any]:
    await service.soft_delete_route(db, cache, route_id, user.id)
    return ok(message="Route deleted")


@router.post(
    "/{route_id}/duplicate",
    response_model=Envelope[RouteResponse],
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_route(
    route_id: str,
    body: RouteDuplicateRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    cache: ResponseCache = Depends(get_response_cache),
) -> dict[str, Any]:
    """Copy a route with its waypoints, optionally renamed or moved to another day."""
    body = body or RouteDuplicateRequest()
    route = await service.duplicate_route(
        db,
        cache,
        route_id,
        user.id,
        new_name=body.new_name,
        new_day_of_week=body.new_day_of_week,
    )
    return ok(serialize_route(route), "Route duplicated")


# ---------------------------------------------------------------------------
# Cached reads
# ---------------------------------------------------------------------------


@router.get("", response_model=Envelope[RouteListResponse])
async def list_routes(
    response: Response,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    day_of_week: int | None = Query(None),
    is_active: bool | None = Query(True),
    search: str | None = Query(None, max_length=100),
    sort: SortField = Query("created_at"),
    order: Literal["asc", "desc"] = Query("desc"),
    user: User = Depends(get_current_user),
    queries: RouteQueryService = Depends(get_route_queries),
) -> dict[str, Any]:
    """List routes. Free-text searches bypass the cache."""
    params = RouteListParams(
        page=page,
        limit=limit,
        day_of_week=day_of_week,
        is_active=is_active,
        search=search or None,
        sort=sort,
        order=order,
    )
    body, hit = await queries.list_routes(user.id, params)
    _mark(response, hit)
    return body


@router.get("/day/{day}", response_model=Envelope[DayRoutesResponse])
async def list_routes_by_day(
    day: int,
    response: Response,
    user: User = Depends(get_current_user),
    queries: RouteQueryService = Depends(get_route_queries),
) -> dict[str, Any]:
    """Active routes for one weekday (0 = Sunday .. 6 = Saturday)."""
    body, hit = await queries.list_by_day(user.id, day)
    _mark(response, hit)
    return body


@router.get("/{route_id}", response_model=Envelope[RouteResponse])
async def get_route(
    route_id: str,
    response: Response,
    user: User = Depends(get_current_user),
    queries: RouteQueryService = Depends(get_route_queries),
) -> dict[str, Any]:
    body, hit = await queries.get_route(user.id, route_id)
    _mark(response, hit)
    return body
