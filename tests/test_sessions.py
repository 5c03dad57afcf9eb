import asyncio
import re

import pytest

from skytour.models.telemetry import normalize
from skytour.runtime_state import ConnectionRegistry, SessionNotFound, SessionStore, Turn


def test_create_session_ids_are_unique_and_prefixed() -> None:
    store = SessionStore()
    ids = {store.create_session() for _ in range(50)}

    assert len(ids) == 50
    assert all(re.fullmatch(r"tour-\d+-[a-z0-9]{9}", session_id) for session_id in ids)
    session = store.get_session(next(iter(ids)))
    assert session.passenger_name == "Guest"
    assert session.tour_type == "scenic"
    assert session.turns == [] and session.telemetry is None


def test_append_turn_and_history_snapshot() -> None:
    store = SessionStore()
    session_id = store.create_session("Alice", "athens")
    store.append_turn(session_id, Turn(role="passenger", text="Hi"))

    snapshot = store.history(session_id)
    store.append_turn(session_id, Turn(role="agent", text="Hello"))

    assert [t.text for t in snapshot] == ["Hi"]
    assert [t.role for t in store.history(session_id)] == ["passenger", "agent"]


def test_unknown_session_behaviour() -> None:
    store = SessionStore()

    with pytest.raises(SessionNotFound):
        store.append_turn("tour-missing", Turn(role="passenger", text="Hi"))
    store.update_telemetry("tour-missing", normalize({"altitude": 1}))
    assert store.history("tour-missing") == ()
    assert store.get_session("tour-missing") is None
    assert "tour-missing" not in store


def test_sessions_are_isolated() -> None:
    store = SessionStore()
    a = store.create_session("A")
    b = store.create_session("B")
    store.append_turn(a, Turn(role="passenger", text="only in A"))
    store.update_telemetry(a, normalize({"altitude": 3000}))

    assert store.history(b) == ()
    assert store.get_session(b).telemetry is None
    assert store.get_session(a).telemetry.altitude == 3000.0


def test_end_session_is_idempotent() -> None:
    store = SessionStore()
    session_id = store.create_session()

    assert store.end_session(session_id) is True
    assert store.end_session(session_id) is False
    assert store.get_session(session_id) is None
    assert len(store) == 0


def test_end_session_cancels_background_task() -> None:
    async def scenario():
        store = SessionStore()
        session_id = store.create_session()
        task = asyncio.create_task(asyncio.sleep(10))
        store.get_session(session_id).replace_background(task)

        store.end_session(session_id)
        await asyncio.gather(task, return_exceptions=True)
        return task

    assert asyncio.run(scenario()).cancelled()


def test_connection_registry_routes_by_session() -> None:
    class Channel:
        def __init__(self):
            self.events = []

        async def send_event(self, event):
            self.events.append(event)

    async def scenario():
        registry = ConnectionRegistry()
        old, new = Channel(), Channel()
        registry.bind("s1", old)
        registry.bind("s1", new)

        registry.unbind("s1", old)
        delivered = await registry.send_to_session("s1", {"type": "ping"})
        registry.unbind("s1")
        dropped = await registry.send_to_session("s1", {"type": "ping"})
        return old, new, delivered, dropped

    old, new, delivered, dropped = asyncio.run(scenario())
    assert delivered is True and dropped is False
    assert old.events == [] and new.events == [{"type": "ping"}]


def test_release_tells_the_bound_channel() -> None:
    class Channel:
        def __init__(self):
            self.ended = []

        async def send_event(self, event):
            pass

        async def session_ended(self, session_id):
            self.ended.append(session_id)

    async def scenario():
        registry = ConnectionRegistry()
        channel = Channel()
        registry.bind("s1", channel)
        first = await registry.release("s1")
        second = await registry.release("s1")
        return channel, first, second, registry.channel_for("s1")

    channel, first, second, bound = asyncio.run(scenario())
    assert (first, second) == (True, False)
    assert channel.ended == ["s1"]
    assert bound is None
