"""
Runtime state package for the Sky Tour relay.

Tracks live tour sessions and which connection currently serves each one.
Both objects are built by `skytour.core.runtime.TourRuntime` and passed
around explicitly:

    runtime = TourRuntime(settings)
    session_id = runtime.sessions.create_session("Alice", "scenic")
    runtime.sessions.append_turn(session_id, Turn(role="passenger", text="Hi"))
    await runtime.connections.send_to_session(session_id, event)
"""

from .connections import ConnectionRegistry, EventChannel
from .sessions import (
    Session,
    SessionNotFound,
    SessionStore,
    Turn,
)

__all__ = [
    "ConnectionRegistry",
    "EventChannel",
    "Session",
    "SessionNotFound",
    "SessionStore",
    "Turn",
]
