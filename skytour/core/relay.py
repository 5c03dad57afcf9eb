# skytour/core/relay.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Channel multiplexer
------------------------------------
One `TourChannel` per connected browser. It turns inbound events into tour
service calls and sends the resulting events back.

Connection states:

    UNBOUND --start_tour--> BOUND --end_tour / session ended--> CLOSED
    any     --disconnect--> CLOSED

- passenger_message: "message_received" right away, then "pilot_message"
  once the resolver has answered. The reply runs as a task owned by the
  channel, so the socket keeps reading frames (update_flight_data,
  end_tour, ...) while the upstream flow is thinking.
- request_flight_info: (re)starts the telemetry push loop. Pushes are
  addressed by session id through the connection registry.
- The session can also be ended from outside (REST /api/chat/end); the
  registry then calls `session_ended()` on the bound channel.
- A disconnect cancels the push loop but keeps the session alive; replies
  already in flight finish so the history keeps its passenger/agent pairs.

The channel only needs an async `send(dict)` callable, so it runs the same
behind a FastAPI WebSocket or inside a unit test.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Set, Tuple

from skytour.core.telemetry_source import TelemetrySource
from skytour.models.events import (
    EventType,
    InvalidRequest,
    PassengerMessagePayload,
    ProtocolError,
    StartTourPayload,
    UpdateFlightDataPayload,
    connected_event,
    decode_frame,
    error_event,
    flight_info_update_event,
    message_received_event,
    parse_payload,
    pilot_message_event,
    tour_ended_event,
    tour_started_event,
)
from skytour.runtime_state.sessions import SessionNotFound
from skytour.utils import FRAME_LOGGER

if TYPE_CHECKING:
    from skytour.core.runtime import TourRuntime

logger = logging.getLogger(__name__)
frame_logger = logging.getLogger(FRAME_LOGGER)

SendFn = Callable[[Dict[str, Any]], Awaitable[None]]
Handler = Callable[[Dict[str, Any]], Awaitable[None]]


class ChannelState(str, Enum):
    UNBOUND = "unbound"
    BOUND = "bound"
    CLOSED = "closed"


class NoActiveSession(InvalidRequest):
    code = "no_active_session"

    def __init__(self) -> None:
        super().__init__("No active session. Send start_tour first.")


class TourChannel:
    """
    Parameters
    ----------
    runtime:
        Shared services (sessions, registry, tour service, settings).
    send:
        Coroutine that delivers one JSON event to this connection.
    telemetry_source:
        Source for the push loop; one per channel so each passenger gets
        their own mock flight.
    """

    def __init__(
        self,
        runtime: "TourRuntime",
        send: SendFn,
        telemetry_source: Optional[TelemetrySource] = None,
    ) -> None:
        self.runtime = runtime
        self._send = send
        self.telemetry_source = telemetry_source or runtime.new_telemetry_source()
        self.state = ChannelState.UNBOUND
        self.session_id: Optional[str] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._replies: Set[asyncio.Task] = set()
        self._handlers: Dict[str, Handler] = {
            EventType.START_TOUR.value: self._on_start_tour,
            EventType.PASSENGER_MESSAGE.value: self._on_passenger_message,
            EventType.UPDATE_FLIGHT_DATA.value: self._on_update_flight_data,
            EventType.END_TOUR.value: self._on_end_tour,
            EventType.REQUEST_FLIGHT_INFO.value: self._on_request_flight_info,
        }

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send_event(self, event: Dict[str, Any]) -> None:
        try:
            await self._send(event)
        except Exception:  # noqa: BLE001
            # The receive loop notices a dead socket on its own.
            logger.debug("Failed to send %s event", event.get("type"), exc_info=True)

    async def _send_error(self, code: str, message: str, details: Any | None = None) -> None:
        await self.send_event(error_event(code, message, details))

    @property
    def poll_task(self) -> Optional[asyncio.Task]:
        return self._poll_task

    @property
    def pending_replies(self) -> Tuple[asyncio.Task, ...]:
        return tuple(self._replies)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        await self.send_event(connected_event("Connected to tour guide service"))

    async def close(self, *, cancel_replies: bool = False) -> None:
        """
        Connection went away: stop pushes, keep the session.

        Pending replies are left to finish unless `cancel_replies` is set
        (process shutdown).
        """
        self._cancel_poll()
        if cancel_replies:
            self._cancel_replies()
        if self.session_id is not None:
            self.runtime.connections.unbind(self.session_id, self)
        if self.state is not ChannelState.CLOSED:
            logger.info("[Channel] closed (session=%s)", self.session_id)
        self.state = ChannelState.CLOSED

    async def session_ended(self, session_id: str) -> None:
        """
        The bound session was ended somewhere else (REST end, shutdown).

        Stops the push loop and any pending reply, then tells the passenger.
        """
        if session_id != self.session_id or self.state is not ChannelState.BOUND:
            return
        self._cancel_poll()
        self._cancel_replies()
        self.state = ChannelState.CLOSED
        logger.info("[Channel] session %s ended elsewhere; channel closed", session_id)
        await self.send_event(tour_ended_event(self.runtime.settings.tour_ended_message))

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def handle_frame(self, raw: str | bytes) -> None:
        frame_logger.debug("[Channel] <- %r", raw)
        try:
            event_type, payload = decode_frame(raw)
        except ProtocolError as exc:
            logger.warning("[Channel] Bad frame: %s", exc.message)
            await self._send_error(exc.code, exc.message)
            return
        await self.handle_event(event_type, payload)

    async def handle_event(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.state is ChannelState.CLOSED:
            await self._send_error("tour_closed", "This tour has ended. Open a new connection.")
            return

        handler = self._handlers.get(event_type.lower())
        if handler is None:
            logger.warning("[Channel] Unknown event type: %r", event_type)
            await self._send_error("unknown_type", f"Unknown message type: {event_type!r}")
            return

        try:
            await handler(payload)
        except (InvalidRequest, SessionNotFound) as exc:
            await self._send_error(exc.code, exc.message, getattr(exc, "details", None))
        except Exception:  # noqa: BLE001
            logger.exception("[Channel] Failed to handle %s", event_type)
            await self._send_error("internal_error", "Failed to process message.")

    def _require_session(self) -> str:
        if self.state is not ChannelState.BOUND or self.session_id is None:
            raise NoActiveSession()
        return self.session_id

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _on_start_tour(self, payload: Dict[str, Any]) -> None:
        request = parse_payload(StartTourPayload, payload)

        if self.session_id is not None:
            # Rebinding: the previous session stays in the store.
            self._cancel_poll()
            self.runtime.connections.unbind(self.session_id, self)

        start = self.runtime.tours.start_tour(request.passenger_name, request.tour_type)
        self.session_id = start.session_id
        self.state = ChannelState.BOUND
        self.runtime.connections.bind(start.session_id, self)
        self.telemetry_source.reset()

        await self.send_event(tour_started_event(start.session_id, start.welcome_message))

    async def _on_passenger_message(self, payload: Dict[str, Any]) -> None:
        session_id = self._require_session()
        request = parse_payload(PassengerMessagePayload, payload)
        text = self.runtime.tours.validate_message(request.message)

        await self.send_event(message_received_event())

        task = asyncio.create_task(
            self._reply(session_id, text, request.flight_data),
            name=f"pilot-reply-{session_id}",
        )
        self._replies.add(task)
        task.add_done_callback(self._replies.discard)

    async def _reply(self, session_id: str, text: str, flight_data: Any) -> None:
        try:
            reply = await self.runtime.tours.send_message(session_id, text, flight_data)
        except (InvalidRequest, SessionNotFound) as exc:
            await self._send_error(exc.code, exc.message, getattr(exc, "details", None))
            return
        except Exception:  # noqa: BLE001
            logger.exception("[Channel] Reply for %s failed", session_id)
            await self._send_error("internal_error", "Failed to process message.")
            return
        await self.send_event(pilot_message_event(reply.text))

    async def _on_update_flight_data(self, payload: Dict[str, Any]) -> None:
        session_id = self._require_session()
        request = parse_payload(UpdateFlightDataPayload, payload)
        self.runtime.tours.update_flight_data(session_id, request.flight_data)

    async def _on_request_flight_info(self, payload: Dict[str, Any]) -> None:
        session_id = self._require_session()
        self._cancel_poll()
        self._poll_task = asyncio.create_task(
            self._poll_loop(session_id),
            name=f"flight-info-{session_id}",
        )

    async def _on_end_tour(self, payload: Dict[str, Any]) -> None:
        session_id = self._require_session()
        self._cancel_poll()
        self._cancel_replies()
        self.runtime.tours.end_tour(session_id)
        self.runtime.connections.unbind(session_id, self)
        self.state = ChannelState.CLOSED

        await self.send_event(tour_ended_event(self.runtime.settings.tour_ended_message))

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    def _cancel_replies(self) -> None:
        for task in list(self._replies):
            if not task.done():
                task.cancel()
        self._replies.clear()

    def _cancel_poll(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done():
            task.cancel()

    async def _poll_loop(self, session_id: str) -> None:
        interval = self.runtime.settings.poll_interval_s
        try:
            while session_id in self.runtime.sessions:
                telemetry, source = await self.telemetry_source.read()
                frame_logger.debug("[Channel] -> flight_info_update (%s) for %s", source, session_id)
                await self.runtime.connections.send_to_session(
                    session_id,
                    flight_info_update_event(telemetry.to_wire(), source),
                )
                await asyncio.sleep(interval)
            logger.info("[Channel] Session %s is gone; telemetry push loop stopped", session_id)
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            logger.exception("[Channel] Telemetry push loop for %s stopped", session_id)
