"""
Shared destination management.

Setting or clearing the destination deletes every cached route of the
session in the same transaction: old geometry points at the wrong target.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession

from waypoint.app.core.clock import utcnow
from waypoint.app.core.dependencies import DeviceIdentity
from waypoint.app.models.group_session import GroupSession
from waypoint.app.services.route_cache import invalidate_session_routes
from waypoint.app.services.session_gate import require_active_membership, require_active_session

logger = logging.getLogger("waypoint.destination")


async def set_destination(
    db: AsyncSession,
    session_id: int,
    identity: DeviceIdentity,
    latitude: float,
    longitude: float,
    name: Optional[str] = None,
    now: Optional[datetime] = None
) -> Tuple[GroupSession, int]:
    """
    Set the session destination and invalidate all cached routes.

    Returns:
        (session, number of routes deleted)
    """
    now = now or utcnow()
    session, _ = await require_active_membership(db, session_id, identity, now)

    session.destination_latitude = latitude
    session.destination_longitude = longitude
    session.destination_name = name
    session.destination_updated_at = now

    invalidated = await invalidate_session_routes(db, session_id)
    await db.flush()

    logger.info("Session %s destination set; %d cached routes invalidated", session_id, invalidated)
    return session, invalidated


async def clear_destination(
    db: AsyncSession,
    session_id: int,
    identity: DeviceIdentity,
    now: Optional[datetime] = None
) -> Tuple[GroupSession, int]:
    """Clear the session destination and invalidate all cached routes."""
    now = now or utcnow()
    session, _ = await require_active_membership(db, session_id, identity, now)

    session.destination_latitude = None
    session.destination_longitude = None
    session.destination_name = None
    session.destination_updated_at = now

    invalidated = await invalidate_session_routes(db, session_id)
    await db.flush()

    logger.info("Session %s destination cleared; %d cached routes invalidated", session_id, invalidated)
    return session, invalidated


async def get_destination(
    db: AsyncSession,
    session_id: int,
    now: Optional[datetime] = None
) -> Optional[GroupSession]:
    """The session if it has a destination, else None."""
    session = await require_active_session(db, session_id, now)
    return session if session.has_destination else None
