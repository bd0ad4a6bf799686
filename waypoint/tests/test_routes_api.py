"""
Destination, ETA and route recomputation API tests.
"""

import httpx
import pytest


def device(name: str) -> dict:
    return {"X-Device-ID": f"device-{name}"}


@pytest.fixture
async def session_id(client):
    created = await client.post("/v1/sessions", json={"display_name": "Alice"}, headers=device("alice"))
    sid = created.json()["session_id"]
    await client.post(f"/v1/sessions/{sid}/location", json={"latitude": 12.9, "longitude": 77.6}, headers=device("alice"))
    return sid


async def set_destination(client, sid, name="alice"):
    return await client.put(
        f"/v1/sessions/{sid}/destination",
        json={"latitude": 12.9716, "longitude": 77.5946, "name": "Cubbon Park"},
        headers=device(name),
    )


@pytest.mark.asyncio
async def test_destination_lifecycle(client, session_id):
    assert (await client.get(f"/v1/sessions/{session_id}/destination")).json() is None

    response = await set_destination(client, session_id)
    assert response.json() == {"success": True, "invalidated_routes": 0}

    destination = (await client.get(f"/v1/sessions/{session_id}/destination")).json()
    assert destination["name"] == "Cubbon Park"
    assert destination["latitude"] == 12.9716

    cleared = await client.delete(f"/v1/sessions/{session_id}/destination", headers=device("alice"))
    assert cleared.status_code == 200
    assert (await client.get(f"/v1/sessions/{session_id}/destination")).json() is None


@pytest.mark.asyncio
async def test_etas_without_destination(client, session_id):
    response = await client.get(f"/v1/sessions/{session_id}/etas")

    assert response.json() == {"has_destination": False, "destination": None, "etas": []}


@pytest.mark.asyncio
async def test_recompute_then_etas(client, session_id):
    await set_destination(client, session_id)

    status = await client.get(f"/v1/sessions/{session_id}/route/status", headers=device("alice"))
    assert status.json()["needs_compute"] is True
    assert status.json()["reasons"] == ["no_route"]

    response = await client.post(f"/v1/sessions/{session_id}/route/recompute", headers=device("alice"))
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["eta_seconds"] == 312.5
    assert body["distance_meters"] == 1834.2

    etas = (await client.get(f"/v1/sessions/{session_id}/etas")).json()
    assert etas["has_destination"] is True
    assert etas["destination"]["name"] == "Cubbon Park"
    [entry] = etas["etas"]
    assert entry["distance_text"] == "1.8km"
    assert entry["eta_text"] == "5 min"
    assert entry["is_stale"] is False

    status = await client.get(f"/v1/sessions/{session_id}/route/status", headers=device("alice"))
    assert status.json()["needs_compute"] is False


@pytest.mark.asyncio
async def test_destination_change_invalidates_routes(client, session_id):
    await set_destination(client, session_id)
    await client.post(f"/v1/sessions/{session_id}/route/recompute", headers=device("alice"))

    response = await client.put(
        f"/v1/sessions/{session_id}/destination", json={"latitude": 13.0, "longitude": 77.7}, headers=device("alice")
    )

    assert response.json()["invalidated_routes"] == 1
    etas = (await client.get(f"/v1/sessions/{session_id}/etas")).json()
    assert etas["etas"] == []


@pytest.mark.asyncio
async def test_recompute_failure_is_reported_not_raised(client, session_id, osrm):
    await set_destination(client, session_id)
    osrm.queue(httpx.Response(503))

    response = await client.post(f"/v1/sessions/{session_id}/route/recompute", headers=device("alice"))

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["error"]


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [[], "Ok", 42])
async def test_recompute_with_non_object_engine_body(client, session_id, osrm, body):
    await set_destination(client, session_id)
    osrm.queue(httpx.Response(200, json=body))

    response = await client.post(f"/v1/sessions/{session_id}/route/recompute", headers=device("alice"))

    assert response.status_code == 200
    assert response.json() == {
        "success": False,
        "geometry": None,
        "distance_meters": None,
        "eta_seconds": None,
        "error": "Malformed routing engine response",
    }


@pytest.mark.asyncio
async def test_recompute_with_explicit_endpoints(client, session_id, osrm):
    response = await client.post(
        f"/v1/sessions/{session_id}/route/recompute",
        json={"origin": {"latitude": 12.8, "longitude": 77.5}, "destination": {"latitude": 12.95, "longitude": 77.65}},
        headers=device("alice"),
    )

    assert response.json()["success"] is True
    assert osrm.requests[-1].url.path == "/route/v1/driving/77.5,12.8;77.65,12.95"


@pytest.mark.asyncio
async def test_recompute_without_destination(client, session_id):
    response = await client.post(f"/v1/sessions/{session_id}/route/recompute", headers=device("alice"))

    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_ROUTE_001"


@pytest.mark.asyncio
async def test_refresh_only_computes_when_needed(client, session_id, osrm):
    await set_destination(client, session_id)

    first = (await client.post(f"/v1/sessions/{session_id}/route/refresh", headers=device("alice"))).json()
    assert first["reasons"] == ["no_route"]
    assert first["computed"] is True
    assert first["result"]["success"] is True

    second = (await client.post(f"/v1/sessions/{session_id}/route/refresh", headers=device("alice"))).json()
    assert second == {"reasons": [], "computed": False, "result": None}
    assert len(osrm.requests) == 1


@pytest.mark.asyncio
async def test_route_to_explicit_destination_shows_stale_eta(client, session_id):
    await set_destination(client, session_id)
    await client.post(
        f"/v1/sessions/{session_id}/route/recompute",
        json={"destination": {"latitude": 28.6, "longitude": 77.2}},
        headers=device("alice"),
    )

    [entry] = (await client.get(f"/v1/sessions/{session_id}/etas")).json()["etas"]
    assert entry["is_stale"] is True

    status = await client.get(f"/v1/sessions/{session_id}/route/status", headers=device("alice"))
    assert status.json()["reasons"] == ["destination_changed"]
