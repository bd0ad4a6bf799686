"""
Presence API Endpoints.

GPS ingestion, delay signals and the live map view.
"""

from typing import List
from fastapi import APIRouter, Depends, Path, Body
from sqlalchemy.ext.asyncio import AsyncSession

from waypoint.app.db.session import get_db
from waypoint.app.core.dependencies import DeviceIdentity, get_device_identity
from waypoint.app.schemas.presence import (
    LocationUpdate, LocationUpdateResponse, DelayReport, DelayResponse,
    DelayInfo, LocationInfo, LiveParticipantResponse
)
from waypoint.app.services.presence import submit_location_update
from waypoint.app.services.delay import declare_delay, clear_delay
from waypoint.app.services.liveness import get_live_participants

router = APIRouter(prefix="/sessions", tags=["Presence"])


@router.post("/{session_id}/location", response_model=LocationUpdateResponse)
async def record_location(
    session_id: int = Path(..., description="Session ID"),
    location: LocationUpdate = Body(...),
    identity: DeviceIdentity = Depends(get_device_identity),
    db: AsyncSession = Depends(get_db)
):
    """
    Submit a GPS sample.

    Soft rejections (LowAccuracy, ImpossibleSpeed) return 200 with
    accepted=false; the client retries on its next natural tick.
    """
    result = await submit_location_update(
        db,
        session_id,
        identity,
        latitude=location.latitude,
        longitude=location.longitude,
        heading=location.heading,
        speed=location.speed,
        accuracy=location.accuracy,
    )
    await db.commit()

    return LocationUpdateResponse(accepted=result.accepted, reason=result.reason)


@router.put("/{session_id}/delay", response_model=DelayResponse)
async def report_delay(
    session_id: int = Path(..., description="Session ID"),
    report: DelayReport = Body(...),
    identity: DeviceIdentity = Depends(get_device_identity),
    db: AsyncSession = Depends(get_db)
):
    """Declare a delay. Expires 15 minutes after it is declared."""
    await declare_delay(db, session_id, identity, report.kind, report.minutes)
    await db.commit()
    return DelayResponse(success=True)


@router.delete("/{session_id}/delay", response_model=DelayResponse)
async def remove_delay(
    session_id: int = Path(..., description="Session ID"),
    identity: DeviceIdentity = Depends(get_device_identity),
    db: AsyncSession = Depends(get_db)
):
    await clear_delay(db, session_id, identity)
    await db.commit()
    return DelayResponse(success=True)


@router.get("/{session_id}/participants/live", response_model=List[LiveParticipantResponse])
async def live_participants(
    session_id: int = Path(..., description="Session ID"),
    db: AsyncSession = Depends(get_db)
):
    """
    Live map view.

    Only participants seen in the last 60 seconds; expired delays omitted.
    """
    live = await get_live_participants(db, session_id)
    return [
        LiveParticipantResponse(
            participant_id=entry.participant.id,
            display_name=entry.participant.display_name,
            color=entry.participant.color,
            location=LocationInfo.model_validate(entry.presence) if entry.presence else None,
            delay=DelayInfo.model_validate(entry.delay) if entry.delay else None,
        )
        for entry in live
    ]
