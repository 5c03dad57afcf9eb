# skytour/runtime_state/sessions.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Runtime Session State
--------------------------------------

In-memory registry of active tour sessions.

Purpose
~~~~~~~
- Track each passenger's tour conversation (append-only turn list) so the
  pilot agent can answer with context and sessions never mix.
- Remember the last telemetry snapshot the passenger's client reported.
- Own per-session background work (the flight-goal webhook task) so it is
  cancelled exactly once when the session ends.

Design notes
~~~~~~~~~~~~
- Single asyncio event loop; every method here is synchronous, so a method
  never interleaves with another one.
- Nothing is persisted: a restart forgets all tours.
- The store is constructed by `TourRuntime`, never at import time.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from skytour.models.telemetry import Telemetry

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_SUFFIX_LEN = 9
_MAX_ID_ATTEMPTS = 16


class SessionNotFound(LookupError):
    """The referenced session id has no entry in the store."""

    code = "session_not_found"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id
        self.message = "No active session with that id."


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class Turn(BaseModel):
    """One recorded utterance. Frozen: turns are never edited after append."""

    model_config = ConfigDict(frozen=True)

    role: Literal["passenger", "agent"]
    text: str
    telemetry: Telemetry = Field(default_factory=Telemetry)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_wire(self) -> dict:
        return {
            "role": self.role,
            "content": self.text,
            "timestamp": self.created_at.isoformat(),
            "flightData": self.telemetry.to_wire(),
        }


class Session(BaseModel):
    """
    Per-passenger tour state.

    Attributes
    ----------
    session_id:
        Opaque id generated by the store, never reused.
    passenger_name / tour_type:
        From the start-tour request ("Guest" / "scenic" by default).
    turns:
        Append-only conversation history. Only the store appends to it.
    telemetry:
        Last-known snapshot, None until the first update.
    """

    session_id: str
    passenger_name: str
    tour_type: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    turns: List[Turn] = Field(default_factory=list)
    telemetry: Optional[Telemetry] = None

    # Serializes "append passenger turn -> resolve -> append reply".
    _lock: asyncio.Lock = PrivateAttr(default_factory=asyncio.Lock)
    _background: Optional[asyncio.Task] = PrivateAttr(default=None)

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    def replace_background(self, task: Optional[asyncio.Task]) -> None:
        """Cancel the currently owned background task (if any) and own `task`."""
        previous = self._background
        if previous is not None and not previous.done():
            previous.cancel()
        self._background = task

    @property
    def background(self) -> Optional[asyncio.Task]:
        return self._background


# ---------------------------------------------------------------------------
# Session store implementation
# ---------------------------------------------------------------------------


class SessionStore:
    """Sole owner and mutator of session state."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    # ------------------------------------------------------------------
    # Ids
    # ------------------------------------------------------------------

    @staticmethod
    def _new_id() -> str:
        suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_SUFFIX_LEN))
        return f"tour-{int(time.time() * 1000)}-{suffix}"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_session(self, passenger_name: str = "Guest", tour_type: str = "scenic") -> str:
        for _ in range(_MAX_ID_ATTEMPTS):
            session_id = self._new_id()
            if session_id not in self._sessions:
                break
        else:  # pragma: no cover - 36**9 ids per millisecond
            raise RuntimeError("Could not generate a unique session id.")

        self._sessions[session_id] = Session(
            session_id=session_id,
            passenger_name=passenger_name,
            tour_type=tour_type,
        )
        logger.info(
            "[SessionStore] Created session %s (passenger=%r, tour=%r)",
            session_id,
            passenger_name,
            tour_type,
        )
        return session_id

    def get_session(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def require_session(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def append_turn(self, session_id: str, turn: Turn) -> None:
        """Append `turn`; raises SessionNotFound if the session is gone."""
        self.require_session(session_id).turns.append(turn)

    def update_telemetry(self, session_id: str, telemetry: Telemetry) -> None:
        """
        Replace the last-known telemetry.

        Silently ignored for unknown ids: updates may race with end-tour.
        """
        session = self._sessions.get(session_id)
        if session is None:
            logger.debug("[SessionStore] Telemetry for unknown session %s ignored", session_id)
            return
        session.telemetry = telemetry

    def history(self, session_id: str) -> Tuple[Turn, ...]:
        session = self._sessions.get(session_id)
        return tuple(session.turns) if session is not None else ()

    def end_session(self, session_id: str) -> bool:
        """
        Remove a session and cancel its background task.

        Idempotent. Returns True if a session was actually removed.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.replace_background(None)
        logger.info(
            "[SessionStore] Ended session %s after %d turns",
            session_id,
            len(session.turns),
        )
        return True

    def close(self) -> None:
        """End every session (process shutdown)."""
        for session_id in list(self._sessions):
            self.end_session(session_id)
