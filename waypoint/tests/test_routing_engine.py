"""
Routing engine client tests against a mocked OSRM transport.
"""

import json

import httpx
import pytest

from waypoint.app.core.config import settings
from waypoint.app.core.reliability import CircuitBreaker
from waypoint.app.services.routing_engine import (
    DEV_FALLBACK_URL,
    RoutingEngineClient,
    RoutingEngineError,
    RoutingEngineUnavailable,
    resolve_routing_engine_url,
)


def client_for(handler, **kwargs):
    options = {"max_retries": 2, "backoff_seconds": 0}
    options.update(kwargs)
    return RoutingEngineClient("http://osrm.test/", transport=httpx.MockTransport(handler), **options)


@pytest.mark.asyncio
async def test_route_parses_first_route(osrm):
    engine = client_for(osrm)

    result = await engine.route(12.9, 77.6, 12.9716, 77.5946)

    assert result.distance_meters == 1834.2
    assert result.duration_seconds == 312.5
    assert json.loads(result.geometry)["coordinates"][0] == [77.6, 12.9]

    request = osrm.requests[0]
    assert request.url.host == "osrm.test"
    assert request.url.params["geometries"] == "geojson"
    assert request.url.params["overview"] == "full"


@pytest.mark.asyncio
async def test_server_errors_are_retried(osrm):
    osrm.queue(httpx.Response(502), httpx.Response(503), httpx.Response(200, json={
        "code": "Ok",
        "routes": [{"geometry": {"type": "LineString", "coordinates": []}, "distance": 10, "duration": 2}],
    }))
    engine = client_for(osrm)

    result = await engine.route(0, 0, 0, 0.001)

    assert result.distance_meters == 10.0
    assert len(osrm.requests) == 3


@pytest.mark.asyncio
async def test_gives_up_after_retries(osrm):
    osrm.queue(httpx.Response(500))
    engine = client_for(osrm, max_retries=1)

    with pytest.raises(RoutingEngineUnavailable):
        await engine.route(0, 0, 1, 1)
    assert len(osrm.requests) == 2


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(osrm):
    osrm.queue(httpx.Response(400, json={"code": "InvalidQuery"}))
    engine = client_for(osrm)

    with pytest.raises(RoutingEngineError, match="400"):
        await engine.route(0, 0, 1, 1)
    assert len(osrm.requests) == 1


@pytest.mark.asyncio
async def test_transport_failure_is_unavailable(osrm):
    osrm.queue(httpx.ConnectTimeout("timed out"))
    engine = client_for(osrm, max_retries=0)

    with pytest.raises(RoutingEngineUnavailable):
        await engine.route(0, 0, 1, 1)


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"code": "NoRoute", "routes": []},
    {"code": "Ok", "routes": []},
    {"code": "Ok"},
    {"code": "Ok", "routes": [{"distance": 1}]},
    {"code": "Ok", "routes": {"fastest": {}}},
    {"code": "Ok", "routes": ["not-a-route"]},
    [],
    "Ok",
])
async def test_unusable_responses_raise(osrm, payload):
    osrm.queue(httpx.Response(200, json=payload))
    engine = client_for(osrm)

    with pytest.raises(RoutingEngineError):
        await engine.route(0, 0, 1, 1)


@pytest.mark.asyncio
async def test_invalid_json_raises(osrm):
    osrm.queue(httpx.Response(200, content=b"<html>gateway</html>"))
    engine = client_for(osrm)

    with pytest.raises(RoutingEngineError, match="invalid JSON"):
        await engine.route(0, 0, 1, 1)


@pytest.mark.asyncio
async def test_circuit_opens_after_repeated_outages(osrm):
    osrm.queue(httpx.Response(503))
    engine = client_for(
        osrm, max_retries=0, circuit_breaker=CircuitBreaker("osrm-test", failure_threshold=2, reset_timeout=60)
    )

    for _ in range(2):
        with pytest.raises(RoutingEngineUnavailable):
            await engine.route(0, 0, 1, 1)

    with pytest.raises(RoutingEngineError, match="OPEN"):
        await engine.route(0, 0, 1, 1)
    # The open circuit short-circuits before any request
    assert len(osrm.requests) == 2


def test_engine_url_required_in_production(monkeypatch):
    monkeypatch.setattr(settings, "routing_engine_url", None)
    monkeypatch.setattr(settings, "environment", "production")

    with pytest.raises(RuntimeError):
        resolve_routing_engine_url()


def test_engine_url_falls_back_in_development(monkeypatch):
    monkeypatch.setattr(settings, "routing_engine_url", None)
    monkeypatch.setattr(settings, "environment", "development")
    assert resolve_routing_engine_url() == DEV_FALLBACK_URL

    monkeypatch.setattr(settings, "routing_engine_url", "http://osrm.internal:5000/")
    assert resolve_routing_engine_url() == "http://osrm.internal:5000"
