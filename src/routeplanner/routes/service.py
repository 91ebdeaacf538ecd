"""
Route persistence: transactional writes over the Route + Waypoint aggregate.

Every write runs inside ``atomic`` so a route and its waypoints are either both
visible or both absent. Cache invalidation for the owner happens after commit;
it never undoes or fails a committed write.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import asc, case, delete, desc, func, or_, select
from sqlalchemy.orm import selectinload

from routeplanner.cache.response_cache import SCOPE_ROUTES, SCOPE_STATS
from routeplanner.config import get_settings
from routeplanner.database import atomic
from routeplanner.db.models import Route, Waypoint
from routeplanner.errors import InvalidDay, InvalidRoute, RouteNotFound, ValidationError
from routeplanner.routes.distance import total_distance_km
from routeplanner.routes.schemas import DAY_NAMES

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql.elements import ColumnElement

    from routeplanner.cache.response_cache import ResponseCache

logger = structlog.get_logger()

SORT_COLUMNS = {
    "created_at": Route.created_at,
    "updated_at": Route.updated_at,
    "name": Route.name,
    "day_of_week": Route.day_of_week,
}

# Route columns a partial update may touch.
UPDATABLE_FIELDS = frozenset(
    {"name", "description", "day_of_week", "start_time", "estimated_duration", "is_active"}
)
NOT_NULL_FIELDS = frozenset({"name", "day_of_week", "is_active"})


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def check_day(day: int) -> int:
    """Return ``day`` if it is 0 (Sunday) .. 6 (Saturday), else raise InvalidDay."""
    if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
        raise InvalidDay
    return day


def _clean_name(name: str) -> str:
    name = name.strip()
    if not name:
        msg = "Route name cannot be blank"
        raise ValidationError(msg)
    return name


def _role_for(position: int, count: int) -> str:
    if position == 0:
        return "start"
    if position == count - 1:
        return "end"
    return "stop"


def normalize_waypoints(waypoints: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """
    Validate a client waypoint list and assign order and type.

    If every waypoint carries an ``order_index`` the list is sorted by it,
    otherwise list order is kept. Indexes are then renumbered 0..n-1 and each
    type is derived from position. An explicit type that contradicts its
    position is rejected.

    Raises:
        InvalidRoute: Fewer than two waypoints, duplicate indexes or a bad type.
    """
    if len(waypoints) < 2:
        raise InvalidRoute

    items = [dict(w) for w in waypoints]
    if all(w.get("order_index") is not None for w in items):
        indexes = [w["order_index"] for w in items]
        if len(set(indexes)) != len(indexes):
            msg = "Waypoint order_index values must be unique"
            raise InvalidRoute(msg)
        items.sort(key=lambda w: w["order_index"])

    count = len(items)
    normalized = []
    for position, item in enumerate(items):
        role = _role_for(position, count)
        given = item.get("waypoint_type")
        if given is not None and given != role:
            msg = f"Waypoint {position} must be of type '{role}'"
            raise InvalidRoute(msg)
        normalized.append(
            {
                "name": item["name"],
                "description": item.get("description"),
                "address": item.get("address"),
                "latitude": float(item["latitude"]),
                "longitude": float(item["longitude"]),
                "order_index": position,
                "estimated_duration": item.get("estimated_duration") or 0,
                "waypoint_type": role,
            }
        )
    return normalized


def resolve_distance(
    waypoints: Sequence[Mapping[str, Any]],
    client_distance: float | None = None,
    override: bool = False,
) -> float:
    """
    Distance to persist for an ordered waypoint list.

    The server-side figure wins unless the caller explicitly asks for an
    override and overrides are enabled.
    """
    computed = total_distance_km((w["latitude"], w["longitude"]) for w in waypoints)
    if client_distance is None:
        return computed

    if client_distance < 0 or not math.isfinite(client_distance):
        msg = "total_distance must be a non-negative number"
        raise ValidationError(msg)

    if override and get_settings().allow_distance_override:
        accepted = round(client_distance, 2)
        logger.warning("route_distance_override", client=accepted, computed=computed)
        return accepted

    if abs(client_distance - computed) >= 0.01:
        logger.info("route_distance_hint_ignored", client=client_distance, computed=computed)
    return computed


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def _owned(route_id: str, user_id: str) -> list[ColumnElement[bool]]:
    return [Route.id == route_id, Route.user_id == user_id, Route.deleted_at.is_(None)]


async def _load_route(db: AsyncSession, route_id: str, user_id: str) -> Route:
    """Fetch a live route owned by ``user_id`` with its waypoints, fresh from the store."""
    result = await db.execute(
        select(Route)
        .options(selectinload(Route.waypoints))
        .where(*_owned(route_id, user_id))
        .execution_options(populate_existing=True)
    )
    route = result.scalar_one_or_none()
    if route is None:
        raise RouteNotFound
    return route


async def get_route(db: AsyncSession, route_id: str, user_id: str) -> Route:
    """
    Get one route with its ordered waypoints.

    Raises:
        RouteNotFound: Absent, soft-deleted or owned by someone else.
    """
    return await _load_route(db, route_id, user_id)


async def list_routes_by_day(db: AsyncSession, user_id: str, day: int) -> list[Route]:
    """Active, live routes for one weekday; by start time (nulls last), newest first."""
    check_day(day)
    result = await db.execute(
        select(Route)
        .options(selectinload(Route.waypoints))
        .where(
            Route.user_id == user_id,
            Route.day_of_week == day,
            Route.is_active == True,  # noqa: E712
            Route.deleted_at.is_(None),
        )
        .order_by(Route.start_time.asc().nulls_last(), Route.created_at.desc(), Route.id)
    )
    return list(result.scalars().all())


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def list_routes(
    db: AsyncSession,
    user_id: str,
    *,
    page: int = 1,
    limit: int = 10,
    day_of_week: int | None = None,
    is_active: bool | None = True,
    search: str | None = None,
    sort: str = "created_at",
    order: str = "desc",
) -> tuple[list[Route], int]:
    """
    Page through a user's live routes.

    Returns ``(routes, total_items)``. Unknown sort fields fall back to
    ``created_at``.
    """
    conditions: list[ColumnElement[bool]] = [Route.user_id == user_id, Route.deleted_at.is_(None)]
    if day_of_week is not None:
        conditions.append(Route.day_of_week == check_day(day_of_week))
    if is_active is not None:
        conditions.append(Route.is_active == is_active)
    if search:
        pattern = f"%{_escape_like(search.strip())}%"
        conditions.append(
            or_(Route.name.ilike(pattern, escape="\\"), Route.description.ilike(pattern, escape="\\"))
        )

    total = await db.scalar(select(func.count()).select_from(Route).where(*conditions)) or 0

    column = SORT_COLUMNS.get(sort, Route.created_at)
    direction = asc if order.lower() == "asc" else desc
    page = max(page, 1)
    limit = max(1, min(limit, get_settings().routes_page_size_max))

    result = await db.execute(
        select(Route)
        .options(selectinload(Route.waypoints))
        .where(*conditions)
        .order_by(direction(column), Route.id)
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return list(result.scalars().all()), int(total)


async def get_route_stats(db: AsyncSession, user_id: str) -> dict[str, Any]:
    """Counts and distance totals over the user's live routes."""
    live = [Route.user_id == user_id, Route.deleted_at.is_(None)]

    totals = await db.execute(
        select(
            func.count(Route.id),
            func.coalesce(func.sum(case((Route.is_active == True, 1), else_=0)), 0),  # noqa: E712
            func.coalesce(func.sum(Route.total_distance), 0.0),
        ).where(*live)
    )
    total_routes, active_routes, total_distance = totals.one()

    by_day = await db.execute(
        select(Route.day_of_week, func.count(Route.id)).where(*live).group_by(Route.day_of_week)
    )
    routes_by_day = {name: 0 for name in DAY_NAMES}
    for day, count in by_day.all():
        routes_by_day[DAY_NAMES[day]] = int(count)

    return {
        "total_routes": int(total_routes),
        "active_routes": int(active_routes),
        "total_distance_km": round(float(total_distance), 2),
        "routes_by_day": routes_by_day,
    }


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


async def _invalidate(cache: ResponseCache | None, user_id: str) -> None:
    if cache is not None:
        await cache.invalidate_scopes(user_id, SCOPE_ROUTES, SCOPE_STATS)


async def create_route(
    db: AsyncSession,
    cache: ResponseCache | None,
    user_id: str,
    *,
    name: str,
    day_of_week: int,
    waypoints: Sequence[Mapping[str, Any]],
    description: str | None = None,
    start_time: Any = None,  # noqa: ANN401
    estimated_duration: int | None = None,
    total_distance: float | None = None,
    distance_override: bool = False,
) -> Route:
    """
    Create a route and its waypoints in one transaction.

    Raises:
        InvalidRoute: Fewer than two waypoints or inconsistent waypoint types.
        InvalidDay: ``day_of_week`` outside 0..6.
        ValidationError: Blank name.
        StoreUnavailable: The database failed; nothing was written.
    """
    name = _clean_name(name)
    check_day(day_of_week)
    points = normalize_waypoints(waypoints)
    distance = resolve_distance(points, total_distance, distance_override)

    route = Route(
        user_id=user_id,
        name=name,
        description=description,
        day_of_week=day_of_week,
        start_time=start_time,
        estimated_duration=estimated_duration,
        is_active=True,
        total_distance=distance,
    )
    async with atomic(db, "create_route"):
        db.add(route)
        await db.flush()
        db.add_all(Waypoint(route_id=route.id, **point) for point in points)
        await db.flush()

    await _invalidate(cache, user_id)
    logger.info("route_created", route_id=route.id, user_id=user_id, waypoints=len(points))
    return await _load_route(db, route.id, user_id)


async def update_route(
    db: AsyncSession,
    cache: ResponseCache | None,
    route_id: str,
    user_id: str,
    fields: Mapping[str, Any],
    waypoints: Sequence[Mapping[str, Any]] | None = None,
    total_distance: float | None = None,
    distance_override: bool = False,
) -> Route:
    """
    Apply a partial update; a supplied waypoint list replaces the old one.

    Raises:
        RouteNotFound: Absent, soft-deleted or not owned.
        ValidationError: Unknown field, null for a required column or a blank name.
        InvalidRoute / InvalidDay: Bad waypoints or weekday.
    """
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        msg = f"Cannot update field(s): {', '.join(sorted(unknown))}"
        raise ValidationError(msg)
    for key in NOT_NULL_FIELDS & set(fields):
        if fields[key] is None:
            msg = f"{key} cannot be null"
            raise ValidationError(msg)
    fields = dict(fields)
    if "name" in fields:
        fields["name"] = _clean_name(fields["name"])
    if "day_of_week" in fields:
        check_day(fields["day_of_week"])

    points = normalize_waypoints(waypoints) if waypoints is not None else None

    async with atomic(db, "update_route"):
        result = await db.execute(select(Route).where(*_owned(route_id, user_id)))
        route = result.scalar_one_or_none()
        if route is None:
            raise RouteNotFound

        for key, value in fields.items():
            setattr(route, key, value)

        if points is not None:
            await db.execute(delete(Waypoint).where(Waypoint.route_id == route.id))
            db.add_all(Waypoint(route_id=route.id, **point) for point in points)
            route.total_distance = resolve_distance(points, total_distance, distance_override)
        elif total_distance is not None and distance_override and get_settings().allow_distance_override:
            if total_distance < 0 or not math.isfinite(total_distance):
                msg = "total_distance must be a non-negative number"
                raise ValidationError(msg)
            route.total_distance = round(total_distance, 2)
            logger.warning("route_distance_override", route_id=route.id, client=route.total_distance)

        route.updated_at = datetime.now(timezone.utc)
        await db.flush()

    await _invalidate(cache, user_id)
    logger.info(
        "route_updated",
        route_id=route_id,
        user_id=user_id,
        fields=sorted(fields),
        waypoints_replaced=points is not None,
    )
    return await _load_route(db, route_id, user_id)


async def soft_delete_route(
    db: AsyncSession,
    cache: ResponseCache | None,
    route_id: str,
    user_id: str,
) -> None:
    """
    Mark a route deleted. A second delete of the same route is RouteNotFound.

    Waypoint rows are left in place; they are unreachable through a deleted route.
    """
    async with atomic(db, "delete_route"):
        result = await db.execute(select(Route).where(*_owned(route_id, user_id)))
        route = result.scalar_one_or_none()
        if route is None:
            raise RouteNotFound
        route.mark_deleted()

    await _invalidate(cache, user_id)
    logger.info("route_deleted", route_id=route_id, user_id=user_id)


async def duplicate_route(
    db: AsyncSession,
    cache: ResponseCache | None,
    route_id: str,
    user_id: str,
    new_name: str | None = None,
    new_day_of_week: int | None = None,
) -> Route:
    """Copy a route and all its waypoints. Distance is copied, not recomputed."""
    if new_day_of_week is not None:
        check_day(new_day_of_week)

    async with atomic(db, "duplicate_route"):
        source = await _load_route(db, route_id, user_id)
        copy = Route(
            user_id=user_id,
            name=(new_name or "").strip() or f"{source.name} (Copy)",
            description=source.description,
            day_of_week=source.day_of_week if new_day_of_week is None else new_day_of_week,
            start_time=source.start_time,
            estimated_duration=source.estimated_duration,
            is_active=source.is_active,
            total_distance=source.total_distance,
        )
        db.add(copy)
        await db.flush()
        db.add_all(
            Waypoint(
                route_id=copy.id,
                name=w.name,
                description=w.description,
                address=w.address,
                latitude=w.latitude,
                longitude=w.longitude,
                order_index=w.order_index,
                estimated_duration=w.estimated_duration,
                waypoint_type=w.waypoint_type,
            )
            for w in source.waypoints
        )
        await db.flush()

    await _invalidate(cache, user_id)
    logger.info("route_duplicated", source_id=route_id, route_id=copy.id, user_id=user_id)
    return await _load_route(db, copy.id, user_id)
