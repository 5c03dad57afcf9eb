# skytour/core/resolver.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Response Resolver
----------------------------------
Produces exactly one pilot reply for one passenger utterance:

    1) Tour guide flow (Langflow), single attempt with timeout
    2) Template fallback (fully offline, via providers.fallback)

The caller sees an infallible coroutine: missing configuration, network
errors, non-2xx answers, timeouts and unreadable payloads are all logged and
turned into a fallback reply.

It does NOT write to the session store; the caller appends the returned
reply as an agent turn.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from skytour.core.config import Settings
from skytour.core.safety import clamp_reply_text
from skytour.core.types import Reply
from skytour.models.telemetry import Telemetry
from skytour.providers.agent_flow import AgentFlowClient, UpstreamUnavailable
from skytour.providers.fallback import fallback_reply
from skytour.runtime_state.sessions import Turn

logger = logging.getLogger(__name__)

_SPEAKERS = {"passenger": "Passenger", "agent": "Captain Sarah"}


def build_context_message(utterance: str, history: Sequence[Turn], window: int) -> str:
    """
    Build the `input_value` sent upstream.

    Only the most recent `window` turns are included; with no history the
    utterance is sent as-is.
    """
    recent = list(history)[-window:] if window > 0 else []
    if not recent:
        return utterance

    lines: List[str] = [f"{_SPEAKERS.get(turn.role, turn.role)}: {turn.text}" for turn in recent]
    return "Previous conversation:\n" + "\n".join(lines) + f"\n\nPassenger: {utterance}"


class ResponseResolver:
    """
    Parameters
    ----------
    settings:
        Flow configuration, context window and reply length cap.
    client:
        Shared Langflow client.
    """

    def __init__(self, settings: Settings, client: AgentFlowClient) -> None:
        self.settings = settings
        self.client = client

    def _fallback(self, utterance: str, telemetry: Telemetry, reason: str) -> Reply:
        return Reply(
            text=fallback_reply(utterance, telemetry),
            policy="fallback",
            raw={"reason": reason},
        )

    async def resolve(
        self,
        utterance: str,
        telemetry: Telemetry,
        session_id: str,
        history: Sequence[Turn],
    ) -> Reply:
        """
        Return a reply for `utterance`; never raises.

        `history` holds the session's turns *before* this utterance.
        """
        if not self.settings.tour_guide_configured:
            logger.debug("[Resolver] No tour guide flow configured; using fallback.")
            return self._fallback(utterance, telemetry, "not_configured")

        input_value = build_context_message(utterance, history, self.settings.history_window)
        flight_context: Dict[str, Any] = telemetry.flight_context()

        try:
            text = await self.client.ask_tour_guide(input_value, session_id, flight_context)
        except UpstreamUnavailable as exc:
            logger.warning("[Resolver] Tour guide flow failed for %s: %s", session_id, exc)
            return self._fallback(utterance, telemetry, type(exc).__name__)
        except Exception:  # noqa: BLE001
            logger.exception("[Resolver] Unexpected error calling tour guide flow for %s", session_id)
            return self._fallback(utterance, telemetry, "unexpected_error")

        return Reply(
            text=clamp_reply_text(text, self.settings.max_reply_chars),
            policy="model",
            raw={"flow_id": self.settings.tour_guide_flow_id},
        )
