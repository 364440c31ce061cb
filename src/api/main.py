"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures routers and lifespan events.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import PostgresAccountRepository, run_migrations
from src.api.v1 import router as v1_router
from src.config.settings import get_settings
from src.domain.reaper import AbandonmentReaper

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Signup Stage Progression API v1 - Register, advance and complete accounts",
    },
]


async def run_reaper_periodically(reaper: AbandonmentReaper, interval_seconds: int) -> None:
    """
    Sweep abandoned signups every ``interval_seconds`` until cancelled.

    The sweep runs in a worker thread so the event loop keeps serving
    requests. A failed sweep is logged and retried on the next tick.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(reaper.sweep)
        except Exception:
            logger.exception("Abandoned signup sweep failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Refuses to start without a token signing secret
    - Creates database connection pool on startup
    - Runs migrations on startup
    - Starts the periodic abandoned signup sweep
    - Stops the sweep and closes connection pool on shutdown
    """
    settings = get_settings()
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET is not set; refusing to sign tokens with a default key")

    logger.info("Starting application...")
    logger.info("Connecting to database...")

    # Create connection pool with explicit sizing
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
    )

    logger.info("Running database migrations...")
    run_migrations(pool)

    # Store pool in app state for dependency injection
    app.state.pool = pool

    reaper_task = None
    if settings.reaper_interval_seconds > 0:
        reaper = AbandonmentReaper(
            repository=PostgresAccountRepository(pool),
            retention_seconds=settings.retention_minutes * 60,
        )
        reaper_task = asyncio.create_task(
            run_reaper_periodically(reaper, settings.reaper_interval_seconds)
        )
        logger.info(
            "Abandoned signup sweep every %ds (retention %d min)",
            settings.reaper_interval_seconds,
            settings.retention_minutes,
        )

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if reaper_task is not None:
        reaper_task.cancel()
        with suppress(asyncio.CancelledError):
            await reaper_task
    pool.close()
    logger.info("Database connection pool closed")


app = FastAPI(
    title="quotebid-onboarding",
    description="Signup Stage Progression API - Drives new expert accounts from "
    "registration through payment and profile to an active account",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if application and database are healthy.
    Raises exception if database connection fails.
    """
    pool = request.app.state.pool
    with pool.connection() as conn:
        conn.execute("SELECT 1")

    return {"status": "healthy"}
