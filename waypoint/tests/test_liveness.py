"""
Liveness filter tests.
"""

from datetime import timedelta

import pytest

from waypoint.app.core.exceptions import SessionNotActiveError
from waypoint.app.models.enums import SessionStatus
from waypoint.app.services.liveness import get_live_participants, get_roster, is_live
from waypoint.app.services.presence import submit_location_update


@pytest.mark.asyncio
async def test_seen_59_seconds_ago_is_live(db_session, group, t0):
    live = await get_live_participants(db_session, group.session.id, now=t0 + timedelta(seconds=59))
    assert {e.participant.id for e in live} == {group.alice.id, group.bob.id}


@pytest.mark.asyncio
async def test_seen_61_seconds_ago_is_not_live(db_session, group, t0):
    live = await get_live_participants(db_session, group.session.id, now=t0 + timedelta(seconds=61))
    assert live == []


@pytest.mark.asyncio
async def test_window_is_exclusive_at_60_seconds(group, t0):
    assert is_live(group.alice, t0 + timedelta(seconds=60)) is False


@pytest.mark.asyncio
async def test_live_view_carries_snapshot_or_none(db_session, group, alice, t0):
    later = t0 + timedelta(seconds=20)
    await submit_location_update(db_session, group.session.id, alice, 12.9, 77.6, accuracy=4.0, now=later)
    await db_session.commit()

    live = await get_live_participants(db_session, group.session.id, now=later)
    by_id = {e.participant.id: e for e in live}

    assert by_id[group.alice.id].presence.latitude == 12.9
    # Bob joined but never reported: live, no position
    assert by_id[group.bob.id].presence is None


@pytest.mark.asyncio
async def test_roster_includes_stale_participants(db_session, group, alice, t0):
    later = t0 + timedelta(minutes=5)
    await submit_location_update(db_session, group.session.id, alice, 12.9, 77.6, now=later)
    await db_session.commit()

    roster = await get_roster(db_session, group.session.id, now=later)

    assert [e.participant.display_name for e in roster] == ["Alice", "Bob"]
    assert [e.is_active for e in roster] == [True, False]


@pytest.mark.asyncio
async def test_live_view_of_ended_session_fails(db_session, group, t0):
    group.session.status = SessionStatus.ENDED
    await db_session.commit()

    with pytest.raises(SessionNotActiveError):
        await get_live_participants(db_session, group.session.id, now=t0)
