# skytour/core/tour_service.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Tour service
-----------------------------
Use cases shared by the WebSocket channel and the REST fallback API:

    start_tour      -> new session + static greeting (no upstream call)
    send_message    -> passenger turn -> resolver -> agent turn
    update_flight_data
    end_tour
    history

`send_message` holds the session's lock from the passenger turn until the
agent turn is appended, so two messages on the same session can never
interleave and the history always alternates passenger/agent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from skytour.core.config import Settings
from skytour.core.goal_notifier import GoalNotifier
from skytour.core.resolver import ResponseResolver
from skytour.core.safety import sanitize_passenger_text
from skytour.core.types import Reply
from skytour.models.events import InvalidRequest
from skytour.models.telemetry import Telemetry, normalize, telemetry_pair
from skytour.runtime_state.sessions import SessionStore, Turn

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TourStart:
    session_id: str
    welcome_message: str


class TourService:
    def __init__(
        self,
        settings: Settings,
        sessions: SessionStore,
        resolver: ResponseResolver,
        notifier: GoalNotifier,
    ) -> None:
        self.settings = settings
        self.sessions = sessions
        self.resolver = resolver
        self.notifier = notifier

    def start_tour(self, passenger_name: str = "Guest", tour_type: str = "scenic") -> TourStart:
        session_id = self.sessions.create_session(passenger_name, tour_type)
        return TourStart(session_id=session_id, welcome_message=self.settings.welcome_message)

    @staticmethod
    def validate_message(message: Any) -> str:
        """Return cleaned passenger text or raise InvalidRequest if nothing is left."""
        cleaned = sanitize_passenger_text(message)
        if cleaned.empty:
            raise InvalidRequest("Message text is required.")
        return cleaned.sanitized

    async def send_message(
        self,
        session_id: str,
        message: Any,
        flight_data: Optional[Any] = None,
    ) -> Reply:
        """
        Record the passenger turn, resolve a reply and record it.

        Raises InvalidRequest for empty text and SessionNotFound when the
        session does not exist (or was ended while the reply was pending).
        """
        text = self.validate_message(message)
        session = self.sessions.require_session(session_id)

        async with session.lock:
            # The session may have been ended while we waited for the lock.
            session = self.sessions.require_session(session_id)

            telemetry, provided = telemetry_pair(flight_data, session.telemetry)
            if provided:
                self.sessions.update_telemetry(session_id, telemetry)

            history = self.sessions.history(session_id)
            self.sessions.append_turn(
                session_id, Turn(role="passenger", text=text, telemetry=telemetry)
            )

            reply = await self.resolver.resolve(text, telemetry, session_id, history)

            self.sessions.append_turn(
                session_id, Turn(role="agent", text=reply.text, telemetry=telemetry)
            )
            self.notifier.schedule(session, reply.text)

        logger.info(
            "[TourService] session=%s policy=%s turns=%d",
            session_id,
            reply.policy,
            len(session.turns),
        )
        return reply

    def update_flight_data(self, session_id: str, flight_data: Any) -> Telemetry:
        telemetry = normalize(flight_data)
        self.sessions.update_telemetry(session_id, telemetry)
        return telemetry

    def end_tour(self, session_id: str) -> bool:
        return self.sessions.end_session(session_id)

    def history(self, session_id: str) -> Tuple[Turn, ...]:
        return self.sessions.history(session_id)
