import asyncio

import pytest

from skytour.core.goal_notifier import GoalNotifier
from skytour.core.tour_service import TourService
from skytour.core.types import Reply
from skytour.models.events import InvalidRequest
from skytour.runtime_state import SessionNotFound, SessionStore


class SlowResolver:
    """Yields to the loop a few times so concurrent messages could interleave."""

    def __init__(self):
        self.seen = []

    async def resolve(self, utterance, telemetry, session_id, history):
        self.seen.append((utterance, len(history), telemetry.altitude))
        for _ in range(3):
            await asyncio.sleep(0)
        return Reply(text=f"re: {utterance}", policy="model")


def _service(settings):
    resolver = SlowResolver()
    return TourService(settings, SessionStore(), resolver, GoalNotifier(settings)), resolver


def test_start_tour_returns_greeting_without_recording_it(make_settings) -> None:
    service, _ = _service(make_settings())
    start = service.start_tour("Alice", "athens")

    assert start.welcome_message.startswith("Welcome aboard!")
    assert service.history(start.session_id) == ()


def test_history_alternates_under_concurrent_messages(make_settings) -> None:
    service, resolver = _service(make_settings())

    async def scenario():
        session_id = service.start_tour().session_id
        await asyncio.gather(*(service.send_message(session_id, f"m{i}") for i in range(4)))
        return session_id

    session_id = asyncio.run(scenario())
    turns = service.history(session_id)

    assert len(turns) == 8
    assert [t.role for t in turns] == ["passenger", "agent"] * 4
    for passenger, agent in zip(turns[::2], turns[1::2]):
        assert agent.text == f"re: {passenger.text}"
    assert [seen[1] for seen in resolver.seen] == [0, 2, 4, 6]


def test_message_telemetry_updates_session_and_is_reused(make_settings) -> None:
    service, resolver = _service(make_settings())

    async def scenario():
        session_id = service.start_tour().session_id
        await service.send_message(session_id, "first", {"altitude": 4500})
        await service.send_message(session_id, "second")
        return session_id

    session_id = asyncio.run(scenario())
    assert [seen[2] for seen in resolver.seen] == [4500.0, 4500.0]
    assert all(t.telemetry.altitude == 4500.0 for t in service.history(session_id))


def test_update_flight_data_for_unknown_session_is_ignored(make_settings) -> None:
    service, _ = _service(make_settings())
    telemetry = service.update_flight_data("tour-missing", {"altitude": "900"})
    assert telemetry.altitude == 900.0


def test_send_message_rejects_empty_text_and_unknown_sessions(make_settings) -> None:
    service, resolver = _service(make_settings())
    session_id = service.start_tour().session_id

    with pytest.raises(InvalidRequest):
        asyncio.run(service.send_message(session_id, "   \n"))
    with pytest.raises(SessionNotFound):
        asyncio.run(service.send_message("tour-missing", "hello"))
    assert resolver.seen == []
    assert service.history(session_id) == ()


def test_end_tour_is_idempotent(make_settings) -> None:
    service, _ = _service(make_settings())
    session_id = service.start_tour().session_id

    assert service.end_tour(session_id) is True
    assert service.end_tour(session_id) is False
    with pytest.raises(SessionNotFound):
        asyncio.run(service.send_message(session_id, "still there?"))


def test_non_object_flight_data_keeps_last_snapshot(make_settings) -> None:
    service, resolver = _service(make_settings())

    async def scenario():
        session_id = service.start_tour().session_id
        await service.send_message(session_id, "first", {"altitude": 4500})
        await service.send_message(session_id, "second", "x")
        return session_id

    session_id = asyncio.run(scenario())
    assert [seen[2] for seen in resolver.seen] == [4500.0, 4500.0]
    assert service.sessions.get_session(session_id).telemetry.altitude == 4500.0
