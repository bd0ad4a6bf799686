"""
Destination, ETA and Route API Endpoints.

Shared destination management, cached ETAs and route recomputation.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Body
from sqlalchemy.ext.asyncio import AsyncSession

from waypoint.app.db.session import get_db
from waypoint.app.core.dependencies import DeviceIdentity, get_device_identity
from waypoint.app.core.redis_client import get_redis
from waypoint.app.schemas.session import DestinationSet, DestinationResponse, DestinationChangeResponse
from waypoint.app.schemas.eta import (
    EtaEntry, EtaResponse, RouteRecomputeRequest, RouteRecomputeResponse,
    RouteStatusResponse, RouteRefreshResponse
)
from waypoint.app.services.destination import set_destination, clear_destination, get_destination
from waypoint.app.services.route_cache import (
    RouteComputation, compute_route, get_etas, get_route_status, refresh_route_if_needed
)
from waypoint.app.services.routing_engine import RoutingEngineClient, get_routing_engine

router = APIRouter(prefix="/sessions", tags=["Destination & ETA"])


def _computation_response(computation: RouteComputation) -> RouteRecomputeResponse:
    if not computation.success:
        return RouteRecomputeResponse(success=False, error=computation.error)
    return RouteRecomputeResponse(
        success=True,
        geometry=computation.route.geometry,
        distance_meters=computation.route.distance_meters,
        eta_seconds=computation.route.duration_seconds,
    )


@router.put("/{session_id}/destination", response_model=DestinationChangeResponse)
async def put_destination(
    session_id: int = Path(..., description="Session ID"),
    payload: DestinationSet = Body(...),
    identity: DeviceIdentity = Depends(get_device_identity),
    db: AsyncSession = Depends(get_db)
):
    """Set the shared destination. Deletes every cached route of the session."""
    _, invalidated = await set_destination(
        db, session_id, identity, payload.latitude, payload.longitude, payload.name
    )
    await db.commit()
    return DestinationChangeResponse(success=True, invalidated_routes=invalidated)


@router.delete("/{session_id}/destination", response_model=DestinationChangeResponse)
async def delete_destination(
    session_id: int = Path(..., description="Session ID"),
    identity: DeviceIdentity = Depends(get_device_identity),
    db: AsyncSession = Depends(get_db)
):
    _, invalidated = await clear_destination(db, session_id, identity)
    await db.commit()
    return DestinationChangeResponse(success=True, invalidated_routes=invalidated)


@router.get("/{session_id}/destination", response_model=Optional[DestinationResponse])
async def read_destination(
    session_id: int = Path(..., description="Session ID"),
    db: AsyncSession = Depends(get_db)
):
    session = await get_destination(db, session_id)
    return DestinationResponse.from_session(session) if session else None


@router.get("/{session_id}/etas", response_model=EtaResponse)
async def read_etas(
    session_id: int = Path(..., description="Session ID"),
    db: AsyncSession = Depends(get_db)
):
    """
    Cached ETAs for every participant with a route.

    Stale routes are included and flagged; clients decide whether to
    request a recompute.
    """
    snapshot = await get_etas(db, session_id)
    if not snapshot.has_destination:
        return EtaResponse(has_destination=False)

    return EtaResponse(
        has_destination=True,
        destination=DestinationResponse.from_session(snapshot.destination),
        etas=[EtaEntry.from_route(item.route, item.is_stale) for item in snapshot.etas],
    )


@router.get("/{session_id}/route/status", response_model=RouteStatusResponse)
async def read_route_status(
    session_id: int = Path(..., description="Session ID"),
    identity: DeviceIdentity = Depends(get_device_identity),
    db: AsyncSession = Depends(get_db)
):
    """Which recompute triggers currently apply to the caller's route."""
    route, reasons = await get_route_status(db, session_id, identity)
    return RouteStatusResponse(
        needs_compute=bool(reasons),
        reasons=reasons,
        computed_at=route.computed_at if route else None,
    )


@router.post("/{session_id}/route/recompute", response_model=RouteRecomputeResponse)
async def recompute_route(
    session_id: int = Path(..., description="Session ID"),
    payload: Optional[RouteRecomputeRequest] = Body(None),
    identity: DeviceIdentity = Depends(get_device_identity),
    db: AsyncSession = Depends(get_db),
    engine: RoutingEngineClient = Depends(get_routing_engine),
    redis=Depends(get_redis)
):
    """
    Recompute the caller's route through the external routing engine.

    Always 200: engine failures come back as success=false and leave the
    cached route untouched.
    """
    payload = payload or RouteRecomputeRequest()
    computation = await compute_route(
        db,
        engine,
        redis,
        session_id,
        identity,
        origin=payload.origin.as_tuple() if payload.origin else None,
        destination=payload.destination.as_tuple() if payload.destination else None,
    )
    return _computation_response(computation)


@router.post("/{session_id}/route/refresh", response_model=RouteRefreshResponse)
async def refresh_route(
    session_id: int = Path(..., description="Session ID"),
    identity: DeviceIdentity = Depends(get_device_identity),
    db: AsyncSession = Depends(get_db),
    engine: RoutingEngineClient = Depends(get_routing_engine),
    redis=Depends(get_redis)
):
    """Recompute the caller's route only if a recompute trigger applies."""
    reasons, computation = await refresh_route_if_needed(db, engine, redis, session_id, identity)
    return RouteRefreshResponse(
        reasons=reasons,
        computed=computation is not None,
        result=_computation_response(computation) if computation else None,
    )
