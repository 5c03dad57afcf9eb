from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import pytest

from skytour.core.config import Settings

_NO_JSON = object()


class FakeResponse:
    """Just enough of requests.Response for the provider code."""

    def __init__(self, status_code: int = 200, payload: Any = _NO_JSON, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self) -> Any:
        if self._payload is _NO_JSON:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class EventRecorder:
    """Async send callable that keeps every event a channel emits."""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []

    async def __call__(self, event: Dict[str, Any]) -> None:
        self.events.append(event)

    def types(self) -> List[str]:
        return [event["type"] for event in self.events]

    def last(self, event_type: str) -> Optional[Dict[str, Any]]:
        for event in reversed(self.events):
            if event["type"] == event_type:
                return event
        return None


def langflow_chat_payload(text: str) -> Dict[str, Any]:
    return {"outputs": [{"outputs": [{"messages": [{"message": text}]}]}]}


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    def _make(**overrides: Any) -> Settings:
        values: Dict[str, Any] = {
            "environment": "test",
            "debug": False,
            "tour_guide_flow_id": "",
            "flight_info_flow_id": "",
            "goal_webhook_url": None,
            "upstream_timeout_s": 2.0,
            "poll_interval_s": 0.01,
        }
        values.update(overrides)
        return Settings(**values)

    return _make
