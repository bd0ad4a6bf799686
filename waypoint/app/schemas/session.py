"""
Session, participant and destination schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from waypoint.app.models.group_session import GroupSession


class SessionCreate(BaseModel):
    """Schema for creating a session."""
    display_name: str = Field(..., min_length=1, max_length=64)


class SessionJoin(BaseModel):
    """Schema for joining a session by code."""
    code: str = Field(..., min_length=6, max_length=6)
    display_name: str = Field(..., min_length=1, max_length=64)


class DestinationSet(BaseModel):
    """Shared destination. One coordinate representation: latitude/longitude."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    name: Optional[str] = Field(None, max_length=255)


class DestinationResponse(BaseModel):
    latitude: float
    longitude: float
    name: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_session(cls, session: GroupSession) -> Optional["DestinationResponse"]:
        if not session.has_destination:
            return None
        return cls(
            latitude=session.destination_latitude,
            longitude=session.destination_longitude,
            name=session.destination_name,
            updated_at=session.destination_updated_at,
        )


class SessionResponse(BaseModel):
    """Session details."""
    id: int
    code: str
    status: str
    destination: Optional[DestinationResponse] = None
    created_at: datetime
    expires_at: datetime

    @classmethod
    def from_session(cls, session: GroupSession) -> "SessionResponse":
        return cls(
            id=session.id,
            code=session.code,
            status=session.status.value,
            destination=DestinationResponse.from_session(session),
            created_at=session.created_at,
            expires_at=session.expires_at,
        )


class SessionMembershipResponse(BaseModel):
    """Response after creating or joining a session."""
    session_id: int
    code: str
    participant_id: int
    color: str
    already_joined: bool = False


class LeaveResponse(BaseModel):
    success: bool
    session_ended: bool


class DestinationChangeResponse(BaseModel):
    success: bool
    invalidated_routes: int


class RosterEntryResponse(BaseModel):
    """Roster entry; stale participants included."""
    participant_id: int
    display_name: str
    color: str
    is_active: bool
    joined_at: datetime
