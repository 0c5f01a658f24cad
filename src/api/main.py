"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures routers and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import AsyncConnectionPool

from src.adapters.repository.memory import InMemoryAccountLedger
from src.adapters.repository.postgres import PostgresAccountLedger, run_migrations
from src.api.v1 import router as v1_router
from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Credential Lifecycle API v1 - Registration, login, 2FA, token rotation",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates the account ledger (database pool or in-memory) on startup
    - Runs migrations on startup
    - Closes connection pool on shutdown
    """
    settings = get_settings()

    logger.info("Starting application...")

    pool = None
    if settings.storage_backend == "memory":
        logger.warning("Using in-memory account ledger; accounts are lost on restart")
        app.state.ledger = InMemoryAccountLedger()
    else:
        logger.info("Connecting to database...")
        pool = AsyncConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
            open=False,
        )
        await pool.open()

        logger.info("Running database migrations...")
        await run_migrations(pool)
        app.state.ledger = PostgresAccountLedger(pool)

    # Store pool in app state for health checks
    app.state.pool = pool

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if pool is not None:
        await pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="credential-lifecycle",
    description="Credential Lifecycle API - Registration, email verification, "
    "login with optional TOTP, token rotation, password reset and logout",
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
    pool = getattr(request.app.state, "pool", None)
    if pool is not None:
        async with pool.connection() as conn:
            await conn.execute("SELECT 1")

    return {"status": "healthy"}
