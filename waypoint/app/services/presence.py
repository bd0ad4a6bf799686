"""
Presence store: the location ingestion gate.

Raw GPS samples pass the session gate, then two sanity checks (accuracy
ceiling, implied-speed ceiling) before being written as the participant's
single presence snapshot. Soft rejections are results, not errors.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from waypoint.app.core.clock import utcnow
from waypoint.app.core.dependencies import DeviceIdentity
from waypoint.app.db.upsert import upsert_by_owner
from waypoint.app.models.enums import RejectionReason
from waypoint.app.models.presence import Presence
from waypoint.app.services.geo import haversine_distance
from waypoint.app.services.session_gate import require_active_membership

logger = logging.getLogger("waypoint.presence")

# Configuration
MAX_ACCURACY_METERS = 100.0
MAX_SPEED_MPS = 50.0  # ~180 km/h


@dataclass
class LocationUpdateResult:
    accepted: bool
    reason: Optional[RejectionReason] = None
    presence: Optional[Presence] = None


async def get_presence(db: AsyncSession, participant_id: int) -> Optional[Presence]:
    result = await db.execute(
        select(Presence)
        .where(Presence.participant_id == participant_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_session_presence(db: AsyncSession, session_id: int) -> dict[int, Presence]:
    """Presence rows of a session keyed by participant id."""
    result = await db.execute(
        select(Presence)
        .where(Presence.session_id == session_id)
        .execution_options(populate_existing=True)
    )
    return {row.participant_id: row for row in result.scalars().all()}


def implied_speed(previous: Presence, latitude: float, longitude: float, now: datetime) -> Optional[float]:
    """
    Speed in m/s implied by moving from the previous snapshot to a new sample.

    Returns None when no time has elapsed (the check is skipped then).
    """
    elapsed = (now - previous.updated_at).total_seconds()
    if elapsed <= 0:
        return None
    distance = haversine_distance(previous.latitude, previous.longitude, latitude, longitude)
    return distance / elapsed


async def submit_location_update(
    db: AsyncSession,
    session_id: int,
    identity: DeviceIdentity,
    latitude: float,
    longitude: float,
    heading: Optional[float] = None,
    speed: Optional[float] = None,
    accuracy: Optional[float] = None,
    now: Optional[datetime] = None
) -> LocationUpdateResult:
    """
    Validate a GPS sample and upsert the participant's presence snapshot.

    Checks, in order:
    1. Session active and unexpired (SessionNotActiveError)
    2. Device is a participant (NotInSessionError)
    3. accuracy <= 100 m, else soft rejection LowAccuracy
    4. implied speed from the previous snapshot <= 50 m/s, else soft
       rejection ImpossibleSpeed (skipped on the first sample)

    last_seen_at is touched once checks 1 and 2 pass, whatever the outcome
    of 3 and 4. The caller commits.
    """
    now = now or utcnow()
    _, participant = await require_active_membership(db, session_id, identity, now)

    participant.last_seen_at = now

    if accuracy is not None and accuracy > MAX_ACCURACY_METERS:
        logger.info("Rejected sample for participant %s: %s (accuracy=%.1f)",
                    participant.id, RejectionReason.LOW_ACCURACY.value, accuracy)
        await db.flush()
        return LocationUpdateResult(accepted=False, reason=RejectionReason.LOW_ACCURACY)

    previous = await get_presence(db, participant.id)
    if previous is not None:
        calculated_speed = implied_speed(previous, latitude, longitude, now)
        if calculated_speed is not None and calculated_speed > MAX_SPEED_MPS:
            logger.info("Rejected sample for participant %s: %s (%.1f m/s)",
                        participant.id, RejectionReason.IMPOSSIBLE_SPEED.value, calculated_speed)
            await db.flush()
            return LocationUpdateResult(accepted=False, reason=RejectionReason.IMPOSSIBLE_SPEED)

    presence = await upsert_by_owner(
        db,
        Presence,
        owner_column="participant_id",
        owner_value=participant.id,
        values={
            "latitude": latitude,
            "longitude": longitude,
            "heading": heading,
            "speed": speed,
            "accuracy": accuracy,
            "updated_at": now,
        },
        insert_only={"session_id": session_id},
    )
    await db.flush()

    return LocationUpdateResult(accepted=True, presence=presence)
