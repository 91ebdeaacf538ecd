"""Request/response schemas for route endpoints."""

from __future__ import annotations

from datetime import datetime, time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from routeplanner.db.models import Route

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

SortField = Literal["created_at", "updated_at", "name", "day_of_week"]


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


def _strip_name(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    if not v:
        msg = "Name cannot be blank"
        raise ValueError(msg)
    return v


class WaypointIn(BaseModel):
    """One stop as sent by the client. Order and type default from list position."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    address: str | None = None
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    order_index: int | None = Field(None, ge=0)
    estimated_duration: int = Field(0, ge=0)
    waypoint_type: Literal["start", "stop", "end"] | None = None


class RouteCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    day_of_week: int
    start_time: time | None = None
    estimated_duration: int | None = Field(None, ge=0)
    waypoints: list[WaypointIn]
    total_distance: float | None = Field(None, ge=0)
    distance_override: bool = False

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        return _strip_name(v)


class RouteUpdateRequest(BaseModel):
    """Partial update. Only fields present in the body are applied."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    day_of_week: int | None = None
    start_time: time | None = None
    estimated_duration: int | None = Field(None, ge=0)
    is_active: bool | None = None
    waypoints: list[WaypointIn] | None = None
    total_distance: float | None = Field(None, ge=0)
    distance_override: bool = False

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        return _strip_name(v)

    def route_fields(self) -> dict[str, Any]:
        """Scalar route columns the client explicitly sent."""
        return self.model_dump(
            exclude_unset=True,
            exclude={"waypoints", "total_distance", "distance_override"},
        )


class RouteDuplicateRequest(BaseModel):
    new_name: str | None = Field(None, min_length=1, max_length=255)
    new_day_of_week: int | None = None

    @field_validator("new_name")
    @classmethod
    def strip_new_name(cls, v: str | None) -> str | None:
        return _strip_name(v)


class RouteListParams(BaseModel):
    """Filter, sort and pagination parameters for the route listing."""

    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    day_of_week: int | None = None
    is_active: bool | None = True
    search: str | None = None
    sort: SortField = "created_at"
    order: Literal["asc", "desc"] = "desc"


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class WaypointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None = None
    address: str | None = None
    latitude: float
    longitude: float
    order_index: int
    estimated_duration: int
    waypoint_type: str


class RouteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    description: str | None = None
    day_of_week: int
    start_time: time | None = None
    estimated_duration: int | None = None
    is_active: bool
    total_distance: float
    created_at: datetime
    updated_at: datetime
    waypoints: list[WaypointResponse] = []


class PaginationInfo(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next: bool
    has_prev: bool


class RouteListResponse(BaseModel):
    routes: list[RouteResponse]
    pagination: PaginationInfo


class DayRoutesResponse(BaseModel):
    day_of_week: int
    day_name: str
    routes: list[RouteResponse]


class RouteStatsResponse(BaseModel):
    total_routes: int
    active_routes: int
    total_distance_km: float
    routes_by_day: dict[str, int]


def serialize_route(route: Route) -> dict[str, Any]:
    """JSON-ready dict of a route with its ordered waypoints."""
    return RouteResponse.model_validate(route).model_dump(mode="json")
