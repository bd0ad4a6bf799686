"""
Session lifecycle gate.

Every presence, delay, destination and route operation runs these checks
first: the session must be active and unexpired, and the calling device
must be one of its participants.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from waypoint.app.core.clock import utcnow
from waypoint.app.core.dependencies import DeviceIdentity
from waypoint.app.core.exceptions import SessionNotActiveError, NotInSessionError
from waypoint.app.models.enums import SessionStatus
from waypoint.app.models.group_session import GroupSession
from waypoint.app.models.participant import Participant


def is_session_open(session: GroupSession, now: datetime) -> bool:
    """True while the session is active and not past its expiry."""
    return session.status == SessionStatus.ACTIVE and now <= session.expires_at


async def require_active_session(
    db: AsyncSession,
    session_id: int,
    now: Optional[datetime] = None
) -> GroupSession:
    """
    Load a session that is open for presence/route operations.

    Sessions past expires_at are refused even if the expiry sweep has not
    marked them ended yet.

    Raises:
        SessionNotActiveError: session missing, ended, or expired
    """
    now = now or utcnow()
    result = await db.execute(
        select(GroupSession).where(GroupSession.id == session_id)
    )
    session = result.scalar_one_or_none()

    if session is None or not is_session_open(session, now):
        raise SessionNotActiveError(session_id)

    return session


async def find_participant(
    db: AsyncSession,
    session_id: int,
    identity: DeviceIdentity
) -> Optional[Participant]:
    result = await db.execute(
        select(Participant).where(
            Participant.session_id == session_id,
            Participant.device_id == identity.device_id
        )
    )
    return result.scalar_one_or_none()


async def require_participant(
    db: AsyncSession,
    session_id: int,
    identity: DeviceIdentity
) -> Participant:
    """
    Resolve the calling device to its participant row.

    Raises:
        NotInSessionError: device has not joined the session
    """
    participant = await find_participant(db, session_id, identity)
    if participant is None:
        raise NotInSessionError(session_id)
    return participant


async def require_active_membership(
    db: AsyncSession,
    session_id: int,
    identity: DeviceIdentity,
    now: Optional[datetime] = None
) -> tuple[GroupSession, Participant]:
    """Both gate checks, in order: session first, then membership."""
    session = await require_active_session(db, session_id, now)
    participant = await require_participant(db, session_id, identity)
    return session, participant
