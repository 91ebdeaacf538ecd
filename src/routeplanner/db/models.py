"""ORM models for users, routes and their waypoints.

Soft deletion is stored as a nullable ``deleted_at`` column. Code outside this
module reads it through ``lifecycle`` (``Active`` / ``Deleted``) and changes it
through ``mark_deleted()``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, time, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from routeplanner.db.base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Active:
    """Row is live."""


@dataclass(frozen=True)
class Deleted:
    """Row was soft-deleted at ``at``. There is no way back."""

    at: datetime


Lifecycle = Active | Deleted


class SoftDeleteMixin:
    """Maps the nullable ``deleted_at`` column onto a tagged lifecycle."""

    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def lifecycle(self) -> Lifecycle:
        if self.deleted_at is None:
            return Active()
        return Deleted(at=self.deleted_at)

    @property
    def is_deleted(self) -> bool:
        return isinstance(self.lifecycle, Deleted)

    def mark_deleted(self, at: datetime | None = None) -> None:
        """Move the row to Deleted. Calling it on a deleted row keeps the first timestamp."""
        if isinstance(self.lifecycle, Active):
            self.deleted_at = at or _now()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(SoftDeleteMixin, Base):
    """Maps to the 'users' table."""

    __tablename__ = "users"
    __table_args__ = (
        # E-mail is unique only among rows that have not been soft-deleted.
        Index(
            "ix_users_email_live",
            "email",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=text("true"))
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"))
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now, nullable=False
    )

    routes: Mapped[list[Route]] = relationship("Route", back_populates="user", lazy="raise")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


class Route(SoftDeleteMixin, Base):
    """A named, schedulable path owned by one user."""

    __tablename__ = "routes"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_routes_day_of_week"),
        CheckConstraint("total_distance >= 0", name="ck_routes_total_distance"),
        Index("ix_routes_user_day", "user_id", "day_of_week"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    day_of_week: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    estimated_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # minutes
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=text("true"))
    total_distance: Mapped[float] = mapped_column(Float, default=0.0, server_default=text("0"))  # km
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now, nullable=False
    )

    user: Mapped[User] = relationship("User", back_populates="routes", lazy="raise")
    waypoints: Mapped[list[Waypoint]] = relationship(
        "Waypoint",
        back_populates="route",
        order_by="Waypoint.order_index",
        lazy="raise",
        passive_deletes=True,
    )


class Waypoint(Base):
    """An ordered stop within a route."""

    __tablename__ = "route_waypoints"
    __table_args__ = (
        UniqueConstraint("route_id", "order_index", name="uq_route_waypoints_route_order"),
        CheckConstraint("waypoint_type IN ('start', 'stop', 'end')", name="ck_route_waypoints_type"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    route_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("routes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_duration: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"))  # minutes
    waypoint_type: Mapped[str] = mapped_column(String(8), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now, nullable=False
    )

    route: Mapped[Route] = relationship("Route", back_populates="waypoints", lazy="raise")
