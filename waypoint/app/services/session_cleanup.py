"""
Session expiry sweep.

Meant to be run periodically by an external scheduler (see
waypoint/expire_sessions.py). The engine itself never runs it; it only
refuses operations on sessions the sweep has not caught yet.
"""

import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from waypoint.app.core.clock import utcnow
from waypoint.app.models.enums import SessionStatus
from waypoint.app.models.group_session import GroupSession
from waypoint.app.models.participant import Participant
from waypoint.app.models.presence import Presence
from waypoint.app.models.route import Route

logger = logging.getLogger("waypoint.cleanup")


async def expire_stale_sessions(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    End active sessions past expires_at and delete their participants,
    presence and routes. The caller commits.

    Returns:
        Number of sessions expired
    """
    now = now or utcnow()
    result = await db.execute(
        select(GroupSession).where(
            GroupSession.status == SessionStatus.ACTIVE,
            GroupSession.expires_at < now
        )
    )
    expired = result.scalars().all()

    for session in expired:
        session.status = SessionStatus.ENDED
        await db.execute(delete(Presence).where(Presence.session_id == session.id))
        await db.execute(delete(Route).where(Route.session_id == session.id))
        await db.execute(delete(Participant).where(Participant.session_id == session.id))

    await db.flush()

    if expired:
        logger.info("Expired %d sessions", len(expired))
    return len(expired)
