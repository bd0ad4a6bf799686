"""
Session service: create, join, leave, end and look up sessions.

Sessions are the primary unit of scale. A session lives for a fixed TTL,
ends when its last participant leaves, and every participant gets a marker
color cycled from a fixed palette by join order.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple
from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError

from waypoint.app.core.clock import utcnow
from waypoint.app.core.config import settings
from waypoint.app.core.dependencies import DeviceIdentity
from waypoint.app.core.exceptions import AppException, SessionNotFoundError, SessionNotActiveError
from waypoint.app.models.enums import SessionStatus
from waypoint.app.models.group_session import GroupSession
from waypoint.app.models.participant import Participant
from waypoint.app.models.presence import Presence
from waypoint.app.models.route import Route
from waypoint.app.services.session_gate import find_participant, is_session_open, require_active_membership

logger = logging.getLogger("waypoint.sessions")

# Participant marker colors, creator first
PALETTE = [
    "#34D399",  # Emerald
    "#60A5FA",  # Blue
    "#F472B6",  # Pink
    "#FBBF24",  # Amber
    "#A78BFA",  # Purple
    "#FB923C",  # Orange
    "#14B8A6",  # Teal
    "#EC4899",  # Fuchsia
]

# No 0/O, 1/I
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6
MAX_CODE_ATTEMPTS = 10


def generate_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def color_for_position(position: int) -> str:
    """Marker color for the participant joining at 0-based position."""
    return PALETTE[position % len(PALETTE)]


async def get_session(db: AsyncSession, session_id: int) -> GroupSession:
    result = await db.execute(
        select(GroupSession)
        .where(GroupSession.id == session_id)
        .execution_options(populate_existing=True)
    )
    session = result.scalar_one_or_none()
    if session is None:
        raise SessionNotFoundError(session_id)
    return session


async def get_session_by_code(db: AsyncSession, code: str) -> GroupSession:
    result = await db.execute(
        select(GroupSession).where(GroupSession.code == code.strip().upper())
    )
    session = result.scalar_one_or_none()
    if session is None:
        raise SessionNotFoundError(code)
    return session


async def _unused_code(db: AsyncSession) -> str:
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_code()
        existing = await db.execute(select(GroupSession.id).where(GroupSession.code == code))
        if existing.scalar_one_or_none() is None:
            return code
    raise AppException(
        message="Could not allocate a session code",
        error_code="ERR_SESSION_003",
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE
    )


async def create_session(
    db: AsyncSession,
    identity: DeviceIdentity,
    display_name: str,
    now: Optional[datetime] = None
) -> Tuple[GroupSession, Participant]:
    """
    Create a session and add the creator as its first participant.

    No presence row is created; the creator appears on the map after their
    first accepted location sample. The caller commits.
    """
    now = now or utcnow()
    code = await _unused_code(db)

    session = GroupSession(
        code=code,
        status=SessionStatus.ACTIVE,
        created_at=now,
        expires_at=now + timedelta(hours=settings.session_ttl_hours),
    )
    db.add(session)
    await db.flush()

    participant = Participant(
        session_id=session.id,
        device_id=identity.device_id,
        display_name=display_name,
        color=color_for_position(0),
        joined_at=now,
        last_seen_at=now,
    )
    db.add(participant)
    await db.flush()

    logger.info("Session %s created (code=%s)", session.id, session.code)
    return session, participant


async def join_session(
    db: AsyncSession,
    code: str,
    identity: DeviceIdentity,
    display_name: str,
    now: Optional[datetime] = None
) -> Tuple[GroupSession, Participant, bool]:
    """
    Join a session by code (case-insensitive).

    Joining again from the same device returns the existing participant.

    Returns:
        (session, participant, already_joined)

    Raises:
        SessionNotFoundError: unknown code
        SessionNotActiveError: session ended or expired
    """
    now = now or utcnow()
    session = await get_session_by_code(db, code)

    if not is_session_open(session, now):
        raise SessionNotActiveError(session.id)

    existing = await find_participant(db, session.id, identity)
    if existing is not None:
        return session, existing, True

    count_result = await db.execute(
        select(func.count(Participant.id)).where(Participant.session_id == session.id)
    )
    position = count_result.scalar_one()

    participant = Participant(
        session_id=session.id,
        device_id=identity.device_id,
        display_name=display_name,
        color=color_for_position(position),
        joined_at=now,
        last_seen_at=now,
    )
    db.add(participant)

    try:
        await db.flush()
    except IntegrityError:
        # Same device joined concurrently; the other request won
        await db.rollback()
        session = await get_session_by_code(db, code)
        existing = await find_participant(db, session.id, identity)
        if existing is None:
            raise
        return session, existing, True

    logger.info("Participant %s joined session %s", participant.id, session.id)
    return session, participant, False


async def leave_session(
    db: AsyncSession,
    session_id: int,
    identity: DeviceIdentity,
    now: Optional[datetime] = None
) -> bool:
    """
    Remove the caller and their presence and route rows.

    Ends the session when the last participant leaves.

    Returns:
        True if the session was ended as a result
    """
    now = now or utcnow()
    session, participant = await require_active_membership(db, session_id, identity, now)

    await db.execute(delete(Presence).where(Presence.participant_id == participant.id))
    await db.execute(delete(Route).where(Route.participant_id == participant.id))
    await db.delete(participant)
    await db.flush()

    remaining = await db.execute(
        select(Participant.id).where(Participant.session_id == session_id).limit(1)
    )
    if remaining.scalar_one_or_none() is None:
        session.status = SessionStatus.ENDED
        await db.flush()
        logger.info("Session %s ended: last participant left", session_id)
        return True

    return False


async def end_session(
    db: AsyncSession,
    session_id: int,
    identity: DeviceIdentity,
    now: Optional[datetime] = None
) -> GroupSession:
    """Explicitly end a session. Any participant may end it."""
    session, _ = await require_active_membership(db, session_id, identity, now)
    session.status = SessionStatus.ENDED
    await db.flush()
    logger.info("Session %s ended explicitly", session_id)
    return session
