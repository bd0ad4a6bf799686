"""
External road-routing engine client (OSRM HTTP API).

The engine is an untrusted, possibly slow network dependency. Calls get a
bounded timeout, a few retries with backoff on transport errors and 5xx
responses, and a shared circuit breaker. Every failure surfaces as
RoutingEngineError.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from waypoint.app.core.config import settings
from waypoint.app.core.reliability import CircuitBreaker, CircuitOpenError, retry_with_backoff

logger = logging.getLogger("waypoint.routing")

# Public demo server, development only
DEV_FALLBACK_URL = "https://router.project-osrm.org"


class RoutingEngineError(Exception):
    """The routing engine returned no usable route."""


class RoutingEngineUnavailable(RoutingEngineError):
    """Transport failure or 5xx; worth retrying."""


@dataclass
class RouteResult:
    geometry: str
    distance_meters: float
    duration_seconds: float


def resolve_routing_engine_url() -> str:
    """
    Base URL of the routing engine.

    Production requires ROUTING_ENGINE_URL; development falls back to the
    public OSRM demo server.
    """
    if settings.routing_engine_url:
        return settings.routing_engine_url.rstrip("/")

    if settings.environment == "production":
        raise RuntimeError("ROUTING_ENGINE_URL is required in production")

    logger.warning("ROUTING_ENGINE_URL not set; using public OSRM fallback %s", DEV_FALLBACK_URL)
    return DEV_FALLBACK_URL


# Shared across requests so repeated outages open the circuit
routing_circuit_breaker = CircuitBreaker("routing-engine", failure_threshold=5, reset_timeout=30)


class RoutingEngineClient:
    """Thin async client for OSRM's /route/v1/driving service."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.circuit_breaker = circuit_breaker or CircuitBreaker("routing-engine")
        self.transport = transport

    def _route_url(self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float) -> str:
        # OSRM takes lng,lat pairs
        return f"{self.base_url}/route/v1/driving/{origin_lng},{origin_lat};{dest_lng},{dest_lat}"

    async def _fetch(self, url: str) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, params={"overview": "full", "geometries": "geojson"})
        except httpx.TransportError as exc:
            raise RoutingEngineUnavailable(f"Routing engine unreachable: {exc}") from exc

        if response.status_code >= 500:
            raise RoutingEngineUnavailable(f"Routing engine error: {response.status_code}")
        return response

    async def route(self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float) -> RouteResult:
        """
        Fetch a driving route between two coordinates.

        Raises:
            RoutingEngineError: unreachable, non-success response, circuit
                open, or no route in the response
        """
        url = self._route_url(origin_lat, origin_lng, dest_lat, dest_lng)

        try:
            response = await self.circuit_breaker.call(
                retry_with_backoff,
                self._fetch,
                url,
                retries=self.max_retries,
                backoff_seconds=self.backoff_seconds,
                retry_on=(RoutingEngineUnavailable,),
            )
        except CircuitOpenError as exc:
            raise RoutingEngineError(str(exc)) from exc

        if response.status_code != 200:
            raise RoutingEngineError(f"Routing engine error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise RoutingEngineError("Routing engine returned invalid JSON") from exc

        if not isinstance(data, dict):
            raise RoutingEngineError("Malformed routing engine response")

        if data.get("code", "Ok") != "Ok" or not data.get("routes"):
            raise RoutingEngineError("No route found")

        try:
            route = data["routes"][0]
            return RouteResult(
                geometry=json.dumps(route["geometry"]),
                distance_meters=float(route["distance"]),
                duration_seconds=float(route["duration"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise RoutingEngineError("Malformed route in routing engine response") from exc


_client: Optional[RoutingEngineClient] = None


def get_routing_engine() -> RoutingEngineClient:
    """
    FastAPI dependency returning the process-wide routing engine client.

    Tests override it with a client backed by httpx.MockTransport.
    """
    global _client
    if _client is None:
        _client = RoutingEngineClient(
            base_url=resolve_routing_engine_url(),
            timeout=settings.routing_timeout_seconds,
            max_retries=settings.routing_max_retries,
            backoff_seconds=settings.routing_backoff_seconds,
            circuit_breaker=routing_circuit_breaker,
        )
    return _client
