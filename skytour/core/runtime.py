# skytour/core/runtime.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Runtime container
----------------------------------
Builds every long-lived object once and wires them together:

- AgentFlowClient (shared Langflow client)
- ResponseResolver, GoalNotifier, SessionStore -> TourService
- ConnectionRegistry (session id -> live channel)

The FastAPI lifespan creates one `TourRuntime`, stores it on `app.state`
and calls `shutdown()` on exit, which cancels push loops and session
background tasks. Tests build their own runtime, so no state leaks between
them.
"""

from __future__ import annotations

import logging
from typing import Optional, Set

from fastapi import Request

from skytour.core.config import Settings
from skytour.core.goal_notifier import GoalNotifier
from skytour.core.relay import SendFn, TourChannel
from skytour.core.resolver import ResponseResolver
from skytour.core.telemetry_source import TelemetrySource
from skytour.core.tour_service import TourService
from skytour.providers.agent_flow import AgentFlowClient
from skytour.runtime_state import ConnectionRegistry, SessionStore

logger = logging.getLogger(__name__)


class TourRuntime:
    def __init__(
        self,
        settings: Settings,
        *,
        client: Optional[AgentFlowClient] = None,
    ) -> None:
        self.settings = settings
        self.client = client or AgentFlowClient(settings)
        self.sessions = SessionStore()
        self.connections = ConnectionRegistry()
        self.resolver = ResponseResolver(settings, self.client)
        self.notifier = GoalNotifier(settings)
        self.tours = TourService(settings, self.sessions, self.resolver, self.notifier)
        self._channels: Set[TourChannel] = set()

    def new_telemetry_source(self) -> TelemetrySource:
        return TelemetrySource(self.client)

    def open_channel(self, send: SendFn) -> TourChannel:
        channel = TourChannel(self, send)
        self._channels.add(channel)
        return channel

    async def close_channel(self, channel: TourChannel, *, cancel_replies: bool = False) -> None:
        await channel.close(cancel_replies=cancel_replies)
        self._channels.discard(channel)

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    async def end_tour(self, session_id: str) -> bool:
        """
        End a session from outside its channel (REST).

        The bound channel, if any, stops its push loop and pending reply and
        sends "tour_ended". Idempotent.
        """
        ended = self.tours.end_tour(session_id)
        await self.connections.release(session_id)
        return ended

    async def shutdown(self) -> None:
        logger.info(
            "[Runtime] Shutting down (%d channels, %d sessions)",
            len(self._channels),
            len(self.sessions),
        )
        for channel in list(self._channels):
            await self.close_channel(channel, cancel_replies=True)
        self.sessions.close()
        self.connections.clear()


def get_runtime(request: Request) -> TourRuntime:
    """FastAPI dependency for HTTP routes."""
    return request.app.state.runtime
