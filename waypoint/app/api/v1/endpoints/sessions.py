"""
Session API Endpoints.

Create, join, leave, end and look up sessions; participant roster.
"""

from typing import List
from fastapi import APIRouter, Depends, Path, Body, status
from sqlalchemy.ext.asyncio import AsyncSession

from waypoint.app.db.session import get_db
from waypoint.app.core.dependencies import DeviceIdentity, get_device_identity
from waypoint.app.schemas.session import (
    SessionCreate, SessionJoin, SessionResponse, SessionMembershipResponse,
    LeaveResponse, RosterEntryResponse
)
from waypoint.app.services import sessions as session_service
from waypoint.app.services.liveness import get_roster

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SessionMembershipResponse)
async def create_session(
    payload: SessionCreate = Body(...),
    identity: DeviceIdentity = Depends(get_device_identity),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a session.

    The calling device becomes the first participant.
    """
    session, participant = await session_service.create_session(db, identity, payload.display_name)
    await db.commit()

    return SessionMembershipResponse(
        session_id=session.id,
        code=session.code,
        participant_id=participant.id,
        color=participant.color,
    )


@router.post("/join", response_model=SessionMembershipResponse)
async def join_session(
    payload: SessionJoin = Body(...),
    identity: DeviceIdentity = Depends(get_device_identity),
    db: AsyncSession = Depends(get_db)
):
    """Join a session by its 6-character code. Idempotent per device."""
    session, participant, already_joined = await session_service.join_session(
        db, payload.code, identity, payload.display_name
    )
    await db.commit()

    return SessionMembershipResponse(
        session_id=session.id,
        code=session.code,
        participant_id=participant.id,
        color=participant.color,
        already_joined=already_joined,
    )


@router.get("/code/{code}", response_model=SessionResponse)
async def get_session_by_code(
    code: str = Path(..., description="Session code"),
    db: AsyncSession = Depends(get_db)
):
    session = await session_service.get_session_by_code(db, code)
    return SessionResponse.from_session(session)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: int = Path(..., description="Session ID"),
    db: AsyncSession = Depends(get_db)
):
    session = await session_service.get_session(db, session_id)
    return SessionResponse.from_session(session)


@router.post("/{session_id}/leave", response_model=LeaveResponse)
async def leave_session(
    session_id: int = Path(..., description="Session ID"),
    identity: DeviceIdentity = Depends(get_device_identity),
    db: AsyncSession = Depends(get_db)
):
    """
    Leave a session.

    Deletes the caller's presence and cached route; the last leaver ends
    the session.
    """
    session_ended = await session_service.leave_session(db, session_id, identity)
    await db.commit()
    return LeaveResponse(success=True, session_ended=session_ended)


@router.post("/{session_id}/end", response_model=SessionResponse)
async def end_session(
    session_id: int = Path(..., description="Session ID"),
    identity: DeviceIdentity = Depends(get_device_identity),
    db: AsyncSession = Depends(get_db)
):
    session = await session_service.end_session(db, session_id, identity)
    await db.commit()
    return SessionResponse.from_session(session)


@router.get("/{session_id}/participants", response_model=List[RosterEntryResponse])
async def get_participants(
    session_id: int = Path(..., description="Session ID"),
    db: AsyncSession = Depends(get_db)
):
    """Full roster, including participants not currently live."""
    roster = await get_roster(db, session_id)
    return [
        RosterEntryResponse(
            participant_id=entry.participant.id,
            display_name=entry.participant.display_name,
            color=entry.participant.color,
            is_active=entry.is_active,
            joined_at=entry.participant.joined_at,
        )
        for entry in roster
    ]
