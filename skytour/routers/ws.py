# skytour/routers/ws.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - WebSocket router
---------------------------------
/ws/tour
    Persistent passenger channel. Every connection gets its own
    `TourChannel`; this module only moves frames between the socket and
    the channel.

Protocol summary (client -> server):

    {"type": "start_tour", "payload": {"passengerName": "Alice", "tourType": "scenic"}}
    {"type": "passenger_message", "payload": {"message": "How high are we?", "flightData": {...}}}
    {"type": "update_flight_data", "payload": {"flightData": {...}}}
    {"type": "request_flight_info"}
    {"type": "end_tour"}

Server -> client: connected, tour_started, message_received, pilot_message,
flight_info_update, tour_ended, error.

Malformed frames never close the connection; they get an "error" event.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from skytour.core.runtime import TourRuntime

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


@router.websocket("/ws/tour")
async def websocket_tour(websocket: WebSocket) -> None:
    await websocket.accept()
    runtime: TourRuntime = websocket.app.state.runtime
    channel = runtime.open_channel(websocket.send_json)
    logger.info("WebSocket /ws/tour connected (%d open)", runtime.channel_count)

    try:
        await channel.open()
        while True:
            # Returns quickly: pilot replies run as channel-owned tasks.
            await channel.handle_frame(await websocket.receive_text())

    except WebSocketDisconnect:
        logger.info("WebSocket /ws/tour disconnected (session=%s)", channel.session_id)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error in WS /ws/tour: %s", exc)
        try:
            await websocket.close(code=1011)
        except Exception:  # noqa: BLE001
            pass
    finally:
        await runtime.close_channel(channel)
