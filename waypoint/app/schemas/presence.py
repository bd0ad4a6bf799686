"""
Presence, delay and live view schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from waypoint.app.models.enums import DelayKind, RejectionReason


class LocationUpdate(BaseModel):
    """Schema for submitting a GPS sample."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    heading: Optional[float] = None  # degrees; some devices send -1 when unknown
    speed: Optional[float] = None  # m/s
    accuracy: Optional[float] = Field(None, ge=0)  # meters


class LocationUpdateResponse(BaseModel):
    """Accepted, or soft-rejected with a reason."""
    accepted: bool
    reason: Optional[RejectionReason] = None


class DelayReport(BaseModel):
    """Self-declared delay."""
    kind: DelayKind
    minutes: int = Field(..., ge=0)


class DelayResponse(BaseModel):
    success: bool


class DelayInfo(BaseModel):
    kind: DelayKind
    minutes: int
    reported_at: datetime

    class Config:
        from_attributes = True


class LocationInfo(BaseModel):
    latitude: float
    longitude: float
    heading: Optional[float] = None
    speed: Optional[float] = None
    accuracy: Optional[float] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class LiveParticipantResponse(BaseModel):
    """One marker on the live map."""
    participant_id: int
    display_name: str
    color: str
    location: Optional[LocationInfo] = None
    delay: Optional[DelayInfo] = None
