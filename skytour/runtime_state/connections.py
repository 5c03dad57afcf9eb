# skytour/runtime_state/connections.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Connection registry
------------------------------------

Maps session id -> the channel currently bound to it, so server-initiated
events (telemetry pushes) can be addressed by session rather than by
connection.

- At most one channel per session; binding again replaces the old one.
- Sending to a session with no bound channel is a silent no-op: nothing is
  queued or retried.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class EventChannel(Protocol):
    """Anything that can push one JSON event to a client."""

    async def send_event(self, event: Dict[str, Any]) -> None: ...

    async def session_ended(self, session_id: str) -> None: ...


class ConnectionRegistry:
    def __init__(self) -> None:
        self._channels: Dict[str, EventChannel] = {}

    def __len__(self) -> int:
        return len(self._channels)

    def bind(self, session_id: str, channel: EventChannel) -> None:
        if self._channels.get(session_id) not in (None, channel):
            logger.info("[Connections] Session %s rebound to a new channel", session_id)
        self._channels[session_id] = channel

    def unbind(self, session_id: str, channel: Optional[EventChannel] = None) -> None:
        """
        Drop the binding for `session_id`.

        When `channel` is given, only drop it if that channel still owns the
        session (a newer connection may have taken over).
        """
        current = self._channels.get(session_id)
        if current is None:
            return
        if channel is not None and current is not channel:
            return
        del self._channels[session_id]

    async def release(self, session_id: str) -> bool:
        """
        The session was ended: drop its binding and let the channel stop its
        background work. Returns False if no channel was bound.
        """
        channel = self._channels.pop(session_id, None)
        if channel is None:
            return False
        await channel.session_ended(session_id)
        return True

    def channel_for(self, session_id: str) -> Optional[EventChannel]:
        return self._channels.get(session_id)

    async def send_to_session(self, session_id: str, event: Dict[str, Any]) -> bool:
        """Deliver `event` to the bound channel. Returns False if nothing was sent."""
        channel = self._channels.get(session_id)
        if channel is None:
            return False
        await channel.send_event(event)
        return True

    def clear(self) -> None:
        self._channels.clear()
