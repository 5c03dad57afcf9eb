import asyncio

import requests

from conftest import FakeResponse
from skytour.core.goal_notifier import GoalNotifier, build_goal_text
from skytour.runtime_state import SessionStore, Turn

WEBHOOK = "http://langflow.test/api/v1/webhook/goal"


def _notifier(make_settings, **overrides):
    values = {"goal_webhook_url": WEBHOOK, "goal_resend_interval_s": 0.0, "goal_max_attempts": 3}
    values.update(overrides)
    return GoalNotifier(make_settings(**values))


def test_goal_text_contains_context_and_transcript() -> None:
    turns = [Turn(role="passenger", text="Can we see the Acropolis?"), Turn(role="agent", text="Heading towards it now!")]
    text = build_goal_text(turns, "Heading towards it now!", "athens")

    assert text.startswith("MASTER CONTEXT: Tour destination is Athens.")
    assert 'Latest pilot message: "Heading towards it now!"' in text
    assert text.endswith("PASSENGER: Can we see the Acropolis?\n\nPILOT: Heading towards it now!")


def test_delivery_retries_are_capped(make_settings, monkeypatch) -> None:
    calls = []

    def failing_post(url, data=None, headers=None, timeout=None):
        calls.append(url)
        return FakeResponse(502, text="bad gateway")

    monkeypatch.setattr("skytour.core.goal_notifier.requests.post", failing_post)
    delivered = asyncio.run(_notifier(make_settings).deliver("tour-1", "hello"))

    assert delivered is False
    assert calls == [WEBHOOK] * 3


def test_delivery_stops_after_first_success(make_settings, monkeypatch) -> None:
    calls = []

    def flaky_post(url, data=None, headers=None, timeout=None):
        calls.append(data)
        if len(calls) == 1:
            raise requests.ConnectionError("refused")
        return FakeResponse(200, text="ok")

    monkeypatch.setattr("skytour.core.goal_notifier.requests.post", flaky_post)
    delivered = asyncio.run(_notifier(make_settings).deliver("tour-1", "hello"))

    assert delivered is True
    assert calls == [b"hello", b"hello"]


def test_disabled_without_webhook(make_settings) -> None:
    notifier = GoalNotifier(make_settings())
    store = SessionStore()
    session = store.get_session(store.create_session())

    assert notifier.enabled is False
    assert notifier.schedule(session, "hi") is None


def test_newer_reply_replaces_pending_delivery(make_settings, monkeypatch) -> None:
    monkeypatch.setattr(
        "skytour.core.goal_notifier.requests.post",
        lambda *a, **kw: FakeResponse(200, text="ok"),
    )
    notifier = _notifier(make_settings)

    async def scenario():
        store = SessionStore()
        session = store.get_session(store.create_session(tour_type="athens"))
        first = notifier.schedule(session, "one")
        second = notifier.schedule(session, "two")
        results = await asyncio.gather(first, second, return_exceptions=True)
        return first, second, results

    first, second, results = asyncio.run(scenario())
    assert first.cancelled()
    assert results[1] is True
