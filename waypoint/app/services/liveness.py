"""
Liveness filter.

Derives "who is on the map" from participants' last_seen_at and shapes the
live view published to subscribers. Pure reads: nothing here writes.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from waypoint.app.core.clock import utcnow
from waypoint.app.models.participant import Participant
from waypoint.app.models.presence import Presence
from waypoint.app.services.delay import ActiveDelay, active_delay
from waypoint.app.services.presence import list_session_presence
from waypoint.app.services.session_gate import require_active_session

# Configuration
LIVENESS_WINDOW = timedelta(seconds=60)


@dataclass
class LiveParticipant:
    participant: Participant
    presence: Optional[Presence]
    delay: Optional[ActiveDelay]


@dataclass
class RosterEntry:
    participant: Participant
    is_active: bool


def is_live(participant: Participant, now: datetime) -> bool:
    """Seen within the last 60 seconds (strictly)."""
    return now - participant.last_seen_at < LIVENESS_WINDOW


async def list_participants(db: AsyncSession, session_id: int) -> List[Participant]:
    result = await db.execute(
        select(Participant)
        .where(Participant.session_id == session_id)
        .order_by(Participant.joined_at, Participant.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_live_participants(
    db: AsyncSession,
    session_id: int,
    now: Optional[datetime] = None
) -> List[LiveParticipant]:
    """
    Live map view of a session.

    Only participants passing is_live() are included. Each carries its
    presence snapshot (None if it never reported) and its delay annotation
    with read-time expiry already applied.
    """
    now = now or utcnow()
    await require_active_session(db, session_id, now)

    participants = await list_participants(db, session_id)
    presence_by_participant = await list_session_presence(db, session_id)

    live = []
    for participant in participants:
        if not is_live(participant, now):
            continue
        presence = presence_by_participant.get(participant.id)
        live.append(LiveParticipant(
            participant=participant,
            presence=presence,
            delay=active_delay(presence, now),
        ))
    return live


async def get_roster(
    db: AsyncSession,
    session_id: int,
    now: Optional[datetime] = None
) -> List[RosterEntry]:
    """Every participant of the session, stale ones included."""
    now = now or utcnow()
    await require_active_session(db, session_id, now)

    participants = await list_participants(db, session_id)
    return [RosterEntry(participant=p, is_active=is_live(p, now)) for p in participants]
