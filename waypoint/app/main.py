"""
FastAPI Application Entry Point.

This is the main application file for the Waypoint presence engine.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from waypoint.app.core.config import settings
from waypoint.app.api.v1.router import router as api_v1_router
from waypoint.app.db.session import engine, Base
from waypoint.app.core.observability import ObservabilityMiddleware, configure_logging
from waypoint.app.core.redis_client import ping_redis
from waypoint.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from waypoint.app.services.routing_engine import resolve_routing_engine_url

# Import models to ensure they are registered with Base
from waypoint.app.models.group_session import GroupSession
from waypoint.app.models.participant import Participant
from waypoint.app.models.presence import Presence
from waypoint.app.models.route import Route

logger = logging.getLogger("waypoint")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Configures logging and checks the routing engine URL
       (required in production).
    2. Creates database tables on startup.
    """
    configure_logging(settings.log_level)
    resolve_routing_engine_url()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s started (%s)", settings.app_name, settings.environment)
    yield
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Live presence, shared destination and cached ETAs for small groups",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status, application information and Redis reachability
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": await ping_redis(),
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to the Waypoint Presence Engine API",
        "docs": "/docs",
        "health": "/health",
    }
