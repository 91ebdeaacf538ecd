"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from routeplanner.auth.router import router as auth_router
from routeplanner.config import get_settings
from routeplanner.database import close_db, init_db
from routeplanner.health.router import router as health_router
from routeplanner.middleware import setup_middleware
from routeplanner.redis_client import close_redis, init_redis
from routeplanner.routes.router import router as routes_router
from routeplanner.users.router import router as users_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url, timeout=settings.cache_timeout_seconds)
    logger.info("app_started", version=settings.app_version, environment=settings.environment)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Route Planner API",
        description="Backend API for planning weekly routes with ordered waypoints",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(routes_router)
    app.include_router(users_router)

    return app


app = create_app()
