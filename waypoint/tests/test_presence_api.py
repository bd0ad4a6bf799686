"""
Presence, delay and live view API tests.
"""

import pytest


def device(name: str) -> dict:
    return {"X-Device-ID": f"device-{name}"}


@pytest.fixture
async def session(client):
    created = await client.post("/v1/sessions", json={"display_name": "Alice"}, headers=device("alice"))
    data = created.json()
    await client.post(
        "/v1/sessions/join", json={"code": data["code"], "display_name": "Bob"}, headers=device("bob")
    )
    return data


@pytest.mark.asyncio
async def test_location_accepted(client, session):
    response = await client.post(
        f"/v1/sessions/{session['session_id']}/location",
        json={"latitude": 12.9, "longitude": 77.6, "heading": 90, "speed": 4.2, "accuracy": 12},
        headers=device("alice"),
    )

    assert response.status_code == 200
    assert response.json() == {"accepted": True, "reason": None}


@pytest.mark.asyncio
async def test_low_accuracy_is_soft_rejection(client, session):
    response = await client.post(
        f"/v1/sessions/{session['session_id']}/location",
        json={"latitude": 12.9, "longitude": 77.6, "accuracy": 250},
        headers=device("alice"),
    )

    assert response.status_code == 200
    assert response.json() == {"accepted": False, "reason": "LowAccuracy"}


@pytest.mark.asyncio
async def test_teleport_is_soft_rejection(client, session):
    url = f"/v1/sessions/{session['session_id']}/location"
    await client.post(url, json={"latitude": 12.9, "longitude": 77.6}, headers=device("alice"))

    # Tens of kilometers within the same request burst
    response = await client.post(url, json={"latitude": 13.5, "longitude": 77.6}, headers=device("alice"))

    assert response.json()["accepted"] is False
    assert response.json()["reason"] == "ImpossibleSpeed"


@pytest.mark.asyncio
async def test_out_of_range_coordinates_are_invalid(client, session):
    response = await client.post(
        f"/v1/sessions/{session['session_id']}/location",
        json={"latitude": 91, "longitude": 77.6},
        headers=device("alice"),
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_location_from_non_member(client, session):
    response = await client.post(
        f"/v1/sessions/{session['session_id']}/location",
        json={"latitude": 12.9, "longitude": 77.6},
        headers=device("mallory"),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_live_view(client, session):
    session_id = session["session_id"]
    await client.post(
        f"/v1/sessions/{session_id}/location",
        json={"latitude": 12.9, "longitude": 77.6, "accuracy": 5},
        headers=device("alice"),
    )

    response = await client.get(f"/v1/sessions/{session_id}/participants/live")

    assert response.status_code == 200
    by_name = {p["display_name"]: p for p in response.json()}
    assert by_name["Alice"]["location"]["latitude"] == 12.9
    assert by_name["Alice"]["location"]["accuracy"] == 5
    assert by_name["Alice"]["delay"] is None
    assert by_name["Bob"]["location"] is None


@pytest.mark.asyncio
async def test_delay_roundtrip(client, session):
    session_id = session["session_id"]
    url = f"/v1/sessions/{session_id}/delay"

    # No presence yet
    response = await client.put(url, json={"kind": "traffic", "minutes": 10}, headers=device("alice"))
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_PRESENCE_001"

    await client.post(
        f"/v1/sessions/{session_id}/location", json={"latitude": 12.9, "longitude": 77.6}, headers=device("alice")
    )
    response = await client.put(url, json={"kind": "traffic", "minutes": 10}, headers=device("alice"))
    assert response.json() == {"success": True}

    live = await client.get(f"/v1/sessions/{session_id}/participants/live")
    alice = next(p for p in live.json() if p["display_name"] == "Alice")
    assert alice["delay"]["kind"] == "traffic"
    assert alice["delay"]["minutes"] == 10

    for _ in range(2):
        response = await client.delete(url, headers=device("alice"))
        assert response.status_code == 200

    live = await client.get(f"/v1/sessions/{session_id}/participants/live")
    alice = next(p for p in live.json() if p["display_name"] == "Alice")
    assert alice["delay"] is None


@pytest.mark.asyncio
async def test_delay_rejects_unknown_kind_and_negative_minutes(client, session):
    url = f"/v1/sessions/{session['session_id']}/delay"

    unknown = await client.put(url, json={"kind": "aliens", "minutes": 5}, headers=device("alice"))
    negative = await client.put(url, json={"kind": "slow", "minutes": -5}, headers=device("alice"))

    assert unknown.status_code == 422
    assert negative.status_code == 422
