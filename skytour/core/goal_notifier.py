# skytour/core/goal_notifier.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Flight goal notifier
-------------------------------------
After every pilot reply, post the conversation to a Langflow webhook whose
flow watches for flight-operation decisions ("gear down", "heading towards
the Acropolis", ...) and steers the simulator accordingly.

Delivery runs as a background task owned by the session:

- a newer pilot reply cancels the pending delivery and starts a fresh one,
- ending the session cancels it,
- failures are retried every `goal_resend_interval_s`, at most
  `goal_max_attempts` attempts in total; a successful post is never repeated.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

import requests

from skytour.core.config import Settings
from skytour.runtime_state.sessions import Session, Turn
from skytour.utils import Stopwatch

logger = logging.getLogger(__name__)

_ROLE_LABELS = {"passenger": "PASSENGER", "agent": "PILOT"}

_WATCH_LIST = (
    "TAKEOFF OPERATIONS:\n"
    '- Engine start: "starting engines", "engines on", "power up"\n'
    '- Ready state: "ready for takeoff", "let\'s begin", "cleared for takeoff", "let\'s go flying"\n'
    '- Throttle: "full throttle", "increasing power", "throttle up"\n'
    "\n"
    "NAVIGATION & COURSE:\n"
    '- Direction changes: "heading towards", "turning to", "let\'s go to", "flying to", "head over to"\n'
    '- Path adjustments: "adjust our flight path", "change course", "alter our route", "we\'ll fly over"\n'
    '- Altitude changes: "climbing to", "descending to", "let\'s go higher", "dropping altitude"\n'
    '- Speed changes: "speeding up", "slowing down", "reducing speed", "increasing airspeed"\n'
    "\n"
    "AIRCRAFT SYSTEMS:\n"
    '- Landing gear: "gear up", "gear down", "retracting landing gear", "extending gear"\n'
    '- Flaps: "flaps down", "extending flaps", "retracting flaps", "setting flaps"\n'
    '- Lights: "landing lights on", "beacon on", "nav lights", "strobe on"\n'
    '- Autopilot: "engaging autopilot", "autopilot on", "switching to manual"\n'
    "\n"
    "APPROACH & LANDING:\n"
    '- Approach: "beginning approach", "on final approach", "turning base", "entering pattern"\n'
    '- Landing prep: "prepare for landing", "configuring for landing", "landing checklist"\n'
    '- Descent: "starting descent", "descending", "beginning our descent"\n'
    '- Airport: "returning to airport", "heading back", "approaching the field"\n'
    "\n"
    "EMERGENCY/SPECIAL:\n"
    '- Go-around: "going around", "aborting landing", "missed approach"\n'
    '- Emergency: "declaring emergency", "mayday", "pan-pan"\n'
)


def _destination_label(tour_type: str) -> str:
    label = (tour_type or "athens").replace("-", " ")
    return label[:1].upper() + label[1:]


def build_goal_text(turns: Sequence[Turn], latest_pilot_message: str, tour_type: str) -> str:
    """Master context + plain-text transcript, as the goal flow expects it."""
    master = (
        f"MASTER CONTEXT: Tour destination is {_destination_label(tour_type)}. "
        "Monitor pilot messages for ALL flight operation decisions:\n\n"
        f"{_WATCH_LIST}\n"
        f'Act on ANY pilot flight operation decision. Latest pilot message: "{latest_pilot_message}"\n\n'
    )
    transcript = "\n\n".join(f"{_ROLE_LABELS.get(t.role, t.role.upper())}: {t.text}" for t in turns)
    return master + transcript


class GoalNotifier:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def enabled(self) -> bool:
        return bool(self.settings.goal_webhook_url)

    def _post(self, text: str) -> bool:
        try:
            with Stopwatch("[GoalNotifier] Webhook post", logger, slow_after=self.settings.upstream_timeout_s / 2):
                resp = requests.post(
                    self.settings.goal_webhook_url,
                    data=text.encode("utf-8"),
                    headers={"Content-Type": "text/plain; charset=utf-8"},
                    timeout=self.settings.upstream_timeout_s,
                )
        except requests.RequestException as exc:
            logger.warning("[GoalNotifier] Webhook error: %s", exc)
            return False

        if not 200 <= resp.status_code < 300:
            logger.warning(
                "[GoalNotifier] Webhook HTTP %s: %s",
                resp.status_code,
                (resp.text or "")[:200].replace("\n", " "),
            )
            return False
        return True

    async def deliver(self, session_id: str, text: str) -> bool:
        """Post `text`, retrying failures up to the configured cap."""
        attempts = max(1, self.settings.goal_max_attempts)
        for attempt in range(1, attempts + 1):
            if await asyncio.to_thread(self._post, text):
                logger.info("[GoalNotifier] Conversation update sent for %s (attempt %d)", session_id, attempt)
                return True
            if attempt < attempts:
                await asyncio.sleep(self.settings.goal_resend_interval_s)

        logger.warning("[GoalNotifier] Giving up on %s after %d attempts", session_id, attempts)
        return False

    def schedule(self, session: Session, latest_pilot_message: str) -> Optional[asyncio.Task]:
        """
        Start delivery for the session's current transcript.

        The task is owned by the session; any earlier pending delivery for
        the same session is cancelled.
        """
        if not self.enabled:
            return None

        text = build_goal_text(session.turns, latest_pilot_message, session.tour_type)
        task = asyncio.create_task(
            self.deliver(session.session_id, text),
            name=f"goal-notify-{session.session_id}",
        )
        session.replace_background(task)
        return task
