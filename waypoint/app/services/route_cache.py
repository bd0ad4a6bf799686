"""
Route cache and staleness policy.

One cached route per participant, filled from the external routing engine.
Staleness (age or drift) is computed at read time and only flagged; stale
routes are still served. Destination changes delete the session's routes
outright. Recomputation is decided by the caller from the trigger list.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from waypoint.app.core.clock import utcnow
from waypoint.app.core.config import settings
from waypoint.app.core.dependencies import DeviceIdentity
from waypoint.app.core.redis_client import acquire_guard, release_guard
from waypoint.app.core.exceptions import NoDestinationError, NoPresenceRecordError
from waypoint.app.db.upsert import upsert_by_owner
from waypoint.app.models.enums import RecomputeReason
from waypoint.app.models.group_session import GroupSession
from waypoint.app.models.participant import Participant
from waypoint.app.models.presence import Presence
from waypoint.app.models.route import Route
from waypoint.app.services.geo import haversine_distance
from waypoint.app.services.presence import get_presence, list_session_presence
from waypoint.app.services.routing_engine import RouteResult, RoutingEngineClient, RoutingEngineError
from waypoint.app.services.session_gate import require_active_membership, require_active_session

logger = logging.getLogger("waypoint.routes")

# Configuration
ROUTE_MAX_AGE = timedelta(minutes=5)
ROUTE_DRIFT_METERS = 500.0

Coordinate = Tuple[float, float]


@dataclass
class RouteEta:
    route: Route
    is_stale: bool


@dataclass
class EtaSnapshot:
    has_destination: bool
    destination: Optional[GroupSession] = None
    etas: List[RouteEta] = field(default_factory=list)


@dataclass
class RouteComputation:
    success: bool
    route: Optional[Route] = None
    error: Optional[str] = None


async def get_route(db: AsyncSession, participant_id: int) -> Optional[Route]:
    result = await db.execute(
        select(Route)
        .where(Route.participant_id == participant_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_session_routes(db: AsyncSession, session_id: int) -> List[Route]:
    result = await db.execute(
        select(Route)
        .where(Route.session_id == session_id)
        .order_by(Route.participant_id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


def route_drift(route: Route, presence: Optional[Presence]) -> Optional[float]:
    """Meters between the route's origin and the participant's snapshot."""
    if presence is None:
        return None
    return haversine_distance(
        route.origin_latitude, route.origin_longitude,
        presence.latitude, presence.longitude
    )


def is_route_too_old(route: Route, now: datetime) -> bool:
    return now - route.computed_at > ROUTE_MAX_AGE


def is_route_drifted(route: Route, presence: Optional[Presence]) -> bool:
    drift = route_drift(route, presence)
    return drift is not None and drift > ROUTE_DRIFT_METERS


def is_route_off_target(route: Route, destination: Optional[Coordinate]) -> bool:
    if destination is None:
        return False
    return (route.destination_latitude, route.destination_longitude) != tuple(destination)


def is_route_stale(
    route: Route,
    presence: Optional[Presence],
    now: datetime,
    destination: Optional[Coordinate] = None
) -> bool:
    """
    Stale when older than 5 minutes, drifted more than 500 m, or leading
    somewhere other than the given session destination.
    """
    return (
        is_route_too_old(route, now)
        or is_route_drifted(route, presence)
        or is_route_off_target(route, destination)
    )


def evaluate_recompute_triggers(
    route: Optional[Route],
    presence: Optional[Presence],
    destination: Optional[Coordinate],
    now: datetime
) -> List[RecomputeReason]:
    """
    Every recompute trigger that currently applies, in evaluation order.

    An empty list means the cached route is fresh. No destination means
    nothing to compute.
    """
    if destination is None:
        return []
    if route is None:
        return [RecomputeReason.NO_ROUTE]

    reasons = []
    if is_route_off_target(route, destination):
        reasons.append(RecomputeReason.DESTINATION_CHANGED)
    if is_route_drifted(route, presence):
        reasons.append(RecomputeReason.DRIFT)
    if is_route_too_old(route, now):
        reasons.append(RecomputeReason.TIME_STALE)
    return reasons


def session_destination(session: GroupSession) -> Optional[Coordinate]:
    if not session.has_destination:
        return None
    return (session.destination_latitude, session.destination_longitude)


async def cache_route(
    db: AsyncSession,
    session_id: int,
    participant_id: int,
    result: RouteResult,
    origin: Coordinate,
    destination: Coordinate,
    now: Optional[datetime] = None
) -> Route:
    """Upsert the participant's cached route. The caller commits."""
    now = now or utcnow()
    route = await upsert_by_owner(
        db,
        Route,
        owner_column="participant_id",
        owner_value=participant_id,
        values={
            "geometry": result.geometry,
            "distance_meters": result.distance_meters,
            "duration_seconds": result.duration_seconds,
            "origin_latitude": origin[0],
            "origin_longitude": origin[1],
            "destination_latitude": destination[0],
            "destination_longitude": destination[1],
            "computed_at": now,
        },
        insert_only={"session_id": session_id},
    )
    await db.flush()
    return route


async def invalidate_session_routes(db: AsyncSession, session_id: int) -> int:
    """Delete every cached route of a session. Returns the number deleted."""
    result = await db.execute(
        delete(Route).where(Route.session_id == session_id)
    )
    return result.rowcount or 0


async def get_etas(
    db: AsyncSession,
    session_id: int,
    now: Optional[datetime] = None
) -> EtaSnapshot:
    """
    Cached ETAs of a session with their staleness flags.

    Stale entries are returned, flagged. The delay overlay is not consulted.
    """
    now = now or utcnow()
    session = await require_active_session(db, session_id, now)

    if not session.has_destination:
        return EtaSnapshot(has_destination=False)

    routes = await list_session_routes(db, session_id)
    presence_by_participant = await list_session_presence(db, session_id)
    destination = session_destination(session)

    return EtaSnapshot(
        has_destination=True,
        destination=session,
        etas=[
            RouteEta(
                route=route,
                is_stale=is_route_stale(
                    route, presence_by_participant.get(route.participant_id), now, destination
                ),
            )
            for route in routes
        ],
    )


async def get_route_status(
    db: AsyncSession,
    session_id: int,
    identity: DeviceIdentity,
    now: Optional[datetime] = None
) -> Tuple[Optional[Route], List[RecomputeReason]]:
    """The caller's cached route and the recompute triggers that apply to it."""
    now = now or utcnow()
    session, participant = await require_active_membership(db, session_id, identity, now)

    route = await get_route(db, participant.id)
    presence = await get_presence(db, participant.id)
    return route, evaluate_recompute_triggers(route, presence, session_destination(session), now)


def _inflight_key(participant_id: int) -> str:
    return f"route:inflight:{participant_id}"


async def _acquire_inflight(redis, participant_id: int) -> Optional[bool]:
    """
    Take the per-participant in-flight guard.

    True if acquired, False if another computation holds it, None if Redis
    is unavailable (the caller proceeds unguarded).
    """
    return await acquire_guard(redis, _inflight_key(participant_id), settings.route_inflight_ttl_seconds)


async def compute_route(
    db: AsyncSession,
    engine: RoutingEngineClient,
    redis,
    session_id: int,
    identity: DeviceIdentity,
    origin: Optional[Coordinate] = None,
    destination: Optional[Coordinate] = None,
    now: Optional[datetime] = None
) -> RouteComputation:
    """
    Compute the caller's route through the external engine and cache it.

    origin defaults to the caller's presence snapshot and destination to
    the session's. The read transaction is committed before the engine is
    called so no database transaction is held across the network call; the
    cache write runs in its own transaction, committed here. On any engine
    failure the cache is left untouched and a failed result is returned.

    Raises:
        SessionNotActiveError, NotInSessionError
        NoDestinationError: no destination given and none set on the session
        NoPresenceRecordError: no origin given and no presence snapshot
    """
    now = now or utcnow()
    session, participant = await require_active_membership(db, session_id, identity, now)
    participant_id = participant.id

    if destination is None:
        destination = session_destination(session)
        if destination is None:
            raise NoDestinationError(session_id)

    if origin is None:
        presence = await get_presence(db, participant_id)
        if presence is None:
            raise NoPresenceRecordError(participant_id)
        origin = (presence.latitude, presence.longitude)

    await db.commit()

    guard = await _acquire_inflight(redis, participant_id)
    if guard is False:
        return RouteComputation(success=False, error="Route computation already in progress")

    try:
        try:
            result = await engine.route(origin[0], origin[1], destination[0], destination[1])
        except RoutingEngineError as exc:
            logger.warning("Route computation failed for participant %s: %s", participant_id, exc)
            return RouteComputation(success=False, error=str(exc))

        still_member = await db.execute(
            select(Participant.id).where(Participant.id == participant_id)
        )
        if still_member.scalar_one_or_none() is None:
            logger.info("Participant %s left during route computation; result dropped", participant_id)
            return RouteComputation(success=False, error="Participant left the session")

        route = await cache_route(db, session_id, participant_id, result, origin, destination, now)
        await db.commit()
    finally:
        if guard:
            await release_guard(redis, _inflight_key(participant_id))

    logger.info("Cached route for participant %s: %.0f m, %.0f s",
                participant_id, route.distance_meters, route.duration_seconds)
    return RouteComputation(success=True, route=route)


async def refresh_route_if_needed(
    db: AsyncSession,
    engine: RoutingEngineClient,
    redis,
    session_id: int,
    identity: DeviceIdentity,
    now: Optional[datetime] = None
) -> Tuple[List[RecomputeReason], Optional[RouteComputation]]:
    """
    Evaluate the caller's recompute triggers and, if any apply, recompute once.

    Returns the triggers and the computation (None when nothing was due or
    the caller has no position to route from yet).
    """
    now = now or utcnow()
    session, participant = await require_active_membership(db, session_id, identity, now)

    presence = await get_presence(db, participant.id)
    route = await get_route(db, participant.id)
    reasons = evaluate_recompute_triggers(route, presence, session_destination(session), now)
    if not reasons or presence is None:
        return reasons, None

    origin = (presence.latitude, presence.longitude)
    return reasons, await compute_route(db, engine, redis, session_id, identity, origin=origin, now=now)
