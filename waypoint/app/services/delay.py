"""
Delay signal overlay.

A participant can declare they are running late. The annotation lives on
their presence row, expires 15 minutes after it was declared, and is
evaluated at read time only: nothing sweeps expired annotations. It never
feeds route or ETA computation.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from waypoint.app.core.clock import utcnow
from waypoint.app.core.dependencies import DeviceIdentity
from waypoint.app.core.exceptions import NoPresenceRecordError
from waypoint.app.models.enums import DelayKind
from waypoint.app.models.presence import Presence
from waypoint.app.services.presence import get_presence
from waypoint.app.services.session_gate import require_active_membership

# Configuration
DELAY_EXPIRY = timedelta(minutes=15)


@dataclass
class ActiveDelay:
    kind: DelayKind
    minutes: int
    reported_at: datetime


def active_delay(presence: Optional[Presence], now: datetime) -> Optional[ActiveDelay]:
    """
    The presence row's delay annotation, or None if absent or expired.

    Expired means now - reported_at > 15 minutes.
    """
    if presence is None or presence.delay_kind is None or presence.delay_reported_at is None:
        return None
    if now - presence.delay_reported_at > DELAY_EXPIRY:
        return None
    return ActiveDelay(
        kind=presence.delay_kind,
        minutes=presence.delay_minutes,
        reported_at=presence.delay_reported_at,
    )


async def _require_presence(
    db: AsyncSession,
    session_id: int,
    identity: DeviceIdentity,
    now: datetime
) -> Presence:
    _, participant = await require_active_membership(db, session_id, identity, now)
    presence = await get_presence(db, participant.id)
    if presence is None:
        raise NoPresenceRecordError(participant.id)
    return presence


async def declare_delay(
    db: AsyncSession,
    session_id: int,
    identity: DeviceIdentity,
    kind: DelayKind,
    minutes: int,
    now: Optional[datetime] = None
) -> Presence:
    """
    Replace the caller's delay annotation with {kind, minutes, now}.

    Raises:
        SessionNotActiveError, NotInSessionError, NoPresenceRecordError
        ValueError: negative minutes
    """
    if minutes < 0:
        raise ValueError("Delay minutes must be non-negative")

    now = now or utcnow()
    presence = await _require_presence(db, session_id, identity, now)

    presence.delay_kind = kind
    presence.delay_minutes = minutes
    presence.delay_reported_at = now
    await db.flush()

    return presence


async def clear_delay(
    db: AsyncSession,
    session_id: int,
    identity: DeviceIdentity,
    now: Optional[datetime] = None
) -> Presence:
    """Remove the caller's delay annotation. Idempotent."""
    now = now or utcnow()
    presence = await _require_presence(db, session_id, identity, now)

    presence.delay_kind = None
    presence.delay_minutes = None
    presence.delay_reported_at = None
    await db.flush()

    return presence
