"""
ETA and route recomputation schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

from waypoint.app.models.enums import RecomputeReason
from waypoint.app.models.route import Route
from waypoint.app.schemas.session import DestinationResponse
from waypoint.app.services.geo import format_distance, format_duration


class Coordinate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


class RouteRecomputeRequest(BaseModel):
    """
    Route recompute request.

    origin defaults to the caller's presence snapshot, destination to the
    session's shared destination.
    """
    origin: Optional[Coordinate] = None
    destination: Optional[Coordinate] = None


class RouteRecomputeResponse(BaseModel):
    success: bool
    geometry: Optional[str] = None
    distance_meters: Optional[float] = None
    eta_seconds: Optional[float] = None
    error: Optional[str] = None


class EtaEntry(BaseModel):
    participant_id: int
    geometry: str
    distance_meters: float
    eta_seconds: float
    distance_text: str
    eta_text: str
    computed_at: datetime
    is_stale: bool

    @classmethod
    def from_route(cls, route: Route, is_stale: bool) -> "EtaEntry":
        return cls(
            participant_id=route.participant_id,
            geometry=route.geometry,
            distance_meters=route.distance_meters,
            eta_seconds=route.duration_seconds,
            distance_text=format_distance(route.distance_meters),
            eta_text=format_duration(route.duration_seconds),
            computed_at=route.computed_at,
            is_stale=is_stale,
        )


class EtaResponse(BaseModel):
    has_destination: bool
    destination: Optional[DestinationResponse] = None
    etas: List[EtaEntry] = []


class RouteStatusResponse(BaseModel):
    needs_compute: bool
    reasons: List[RecomputeReason]
    computed_at: Optional[datetime] = None


class RouteRefreshResponse(BaseModel):
    reasons: List[RecomputeReason]
    computed: bool
    result: Optional[RouteRecomputeResponse] = None
