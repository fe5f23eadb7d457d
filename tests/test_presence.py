"""Presence tracker: sync replaces, join/leave patch, leavers drop out."""

import pytest

from groupchat.errors import ConnectionError
from groupchat.models.events import C2SEvent, S2CEvent
from groupchat.presence import PRESENCE_TOPIC, PresenceTracker


def meta(user_id, ref):
    return {"user_id": user_id, "online_at": "2024-05-17T12:00:00+00:00", "presence_ref": ref}


@pytest.fixture
def tracker(realtime, auth):
    return PresenceTracker(realtime, auth)


@pytest.mark.asyncio
async def test_start_joins_and_tracks_current_user(tracker, realtime):
    await tracker.start()
    assert realtime.joined == [(PRESENCE_TOPIC, {"presence": {"key": "user"}})]
    event, data, topic = realtime.emitted[0]
    assert event == C2SEvent.PRESENCE_TRACK
    assert data["user_id"] == "u1"
    assert "online_at" in data
    assert topic == PRESENCE_TOPIC


@pytest.mark.asyncio
async def test_sync_sets_exact_membership(tracker, realtime):
    await tracker.start()
    realtime.push(S2CEvent.PRESENCE_SYNC, PRESENCE_TOPIC, {"state": {"user": [meta("u1", "a"), meta("u2", "b")]}})
    assert tracker.online_ids == {"u1", "u2"}

    realtime.push(S2CEvent.PRESENCE_SYNC, PRESENCE_TOPIC, {"state": {"user": [meta("u3", "c")]}})
    assert tracker.online_ids == {"u3"}
    assert tracker.is_online("u3")
    assert not tracker.is_online("u1")


@pytest.mark.asyncio
async def test_join_and_leave(tracker, realtime):
    await tracker.start()
    realtime.push(S2CEvent.PRESENCE_SYNC, PRESENCE_TOPIC, {"state": {"user": [meta("u1", "a")]}})
    realtime.push(S2CEvent.PRESENCE_JOIN, PRESENCE_TOPIC, {"key": "user", "metas": [meta("u2", "b")]})
    assert tracker.online_ids == {"u1", "u2"}

    realtime.push(S2CEvent.PRESENCE_LEAVE, PRESENCE_TOPIC, {"key": "user", "metas": [meta("u2", "b")]})
    assert tracker.online_ids == {"u1"}


@pytest.mark.asyncio
async def test_user_with_two_connections_stays_online_until_both_leave(tracker, realtime):
    await tracker.start()
    realtime.push(S2CEvent.PRESENCE_JOIN, PRESENCE_TOPIC, {"key": "user", "metas": [meta("u2", "tab1")]})
    realtime.push(S2CEvent.PRESENCE_JOIN, PRESENCE_TOPIC, {"key": "user", "metas": [meta("u2", "tab2")]})
    realtime.push(S2CEvent.PRESENCE_LEAVE, PRESENCE_TOPIC, {"key": "user", "metas": [meta("u2", "tab1")]})
    assert tracker.is_online("u2")
    realtime.push(S2CEvent.PRESENCE_LEAVE, PRESENCE_TOPIC, {"key": "user", "metas": [meta("u2", "tab2")]})
    assert not tracker.is_online("u2")


@pytest.mark.asyncio
async def test_other_topics_ignored(tracker, realtime):
    await tracker.start()
    realtime.push(S2CEvent.PRESENCE_SYNC, "elsewhere", {"state": {"user": [meta("u9", "z")]}})
    assert tracker.online_ids == frozenset()


@pytest.mark.asyncio
async def test_listener_and_stop(tracker, realtime):
    seen = []
    tracker.add_listener(seen.append)
    async with tracker:
        realtime.push(S2CEvent.PRESENCE_SYNC, PRESENCE_TOPIC, {"state": {"user": [meta("u2", "b")]}})
    assert seen == [frozenset({"u2"}), frozenset()]
    assert realtime.left == [PRESENCE_TOPIC]
    assert tracker.online_ids == frozenset()
    realtime.push(S2CEvent.PRESENCE_SYNC, PRESENCE_TOPIC, {"state": {"user": [meta("u3", "c")]}})
    assert tracker.online_ids == frozenset()


@pytest.mark.asyncio
async def test_join_failure_propagates_and_unregisters(tracker, realtime):
    realtime.join_error = "rejected"
    with pytest.raises(ConnectionError):
        await tracker.start()
    assert realtime.handler_count == 0
