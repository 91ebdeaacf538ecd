"""Shared test fixtures.

Tests run without external services: the database is a per-test SQLite file
(aiosqlite) and Redis is fakeredis, patched in as the shared pool.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

os.environ.setdefault("RP_JWT_SECRET", "test-secret-do-not-use-in-production")
os.environ.setdefault("RP_LOG_FORMAT", "console")
os.environ.setdefault("RP_LOG_LEVEL", "WARNING")
os.environ.setdefault("RP_ENVIRONMENT", "test")
os.environ.setdefault("RP_PASSWORD_HASH_MEMORY_KIB", "8192")

import fakeredis
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from routeplanner import redis_client
from routeplanner.cache.response_cache import ResponseCache
from routeplanner.config import get_settings
from routeplanner.database import close_db, get_engine, get_session, init_db
from routeplanner.db import models
from routeplanner.db.base import Base
from routeplanner.main import create_app

PASSWORD = "SecureP@ss1"

RegisterFn = Callable[..., Awaitable[dict[str, Any]]]


@pytest.fixture(autouse=True)
def _fresh_settings() -> None:
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def fake_redis(monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
    """In-memory Redis installed as the application's shared pool."""
    server = fakeredis.FakeServer()
    rc = fakeredis.FakeAsyncRedis(server=server, decode_responses=True)
    monkeypatch.setattr(redis_client, "_pool", rc)
    yield rc
    await rc.flushall()
    await rc.aclose()


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[None, None]:
    """Fresh SQLite database with the full schema."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'routeplanner.db'}")
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(db_engine: None) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for service-level tests and assertions."""
    async for session in get_session():
        yield session


@pytest.fixture
def app() -> FastAPI:
    return create_app()


@pytest_asyncio.fixture
async def client(
    app: FastAPI, db_engine: None, fake_redis: fakeredis.FakeAsyncRedis
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app, backed by SQLite and fakeredis."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def register(client: AsyncClient) -> RegisterFn:
    """Register a user through the API; returns its id, token and credentials."""

    async def _register(
        email: str = "rider@example.com",
        password: str = PASSWORD,
        display_name: str = "Test Rider",
    ) -> dict[str, Any]:
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": password, "display_name": display_name},
        )
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        return {
            "email": email,
            "password": password,
            "user_id": data["user"]["id"],
            "access_token": data["access_token"],
            "headers": {"Authorization": f"Bearer {data['access_token']}"},
        }

    return _register


@pytest_asyncio.fixture
async def registered_user(register: RegisterFn) -> dict[str, Any]:
    return await register()


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, registered_user: dict[str, Any]) -> AsyncClient:
    """Client carrying the registered user's bearer token."""
    client.headers["Authorization"] = f"Bearer {registered_user['access_token']}"
    return client


def _waypoint(name: str, lat: float, lng: float, **extra: Any) -> dict[str, Any]:  # noqa: ANN401
    return {"name": name, "latitude": lat, "longitude": lng, **extra}


@pytest.fixture
def route_payload() -> dict[str, Any]:
    """Three stops one degree of longitude apart along the equator (~222.39 km)."""
    return {
        "name": "Morning Loop",
        "description": "Office run",
        "day_of_week": 1,
        "start_time": "08:30:00",
        "waypoints": [
            _waypoint("Home", 0.0, 0.0),
            _waypoint("Bakery", 0.0, 1.0),
            _waypoint("Office", 0.0, 2.0),
        ],
    }


@pytest_asyncio.fixture
async def user(db_session: AsyncSession) -> models.User:
    """A live user created directly through the auth service."""
    from routeplanner.auth.service import register_user

    return await register_user(db_session, "owner@example.com", PASSWORD, "Route Owner")


@pytest.fixture
def cache(fake_redis: fakeredis.FakeAsyncRedis) -> ResponseCache:
    return ResponseCache(fake_redis, timeout=0.5)
