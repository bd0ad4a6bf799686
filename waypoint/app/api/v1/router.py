"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from waypoint.app.api.v1.endpoints import sessions, presence, routes

router = APIRouter()

# Session lifecycle and roster
router.include_router(sessions.router)

# Location ingestion, delay overlay, live view
router.include_router(presence.router)

# Destination, ETAs, route cache
router.include_router(routes.router)
