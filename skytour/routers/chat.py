# skytour/routers/chat.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - /api/chat router
---------------------------------
Synchronous REST mirror of the WebSocket tour flow, for clients that cannot
keep a socket open:

    POST /api/chat/start              -> new session + greeting
    POST /api/chat/message            -> pilot reply (same resolver path)
    GET  /api/chat/history/{id}       -> recorded turns
    POST /api/chat/end                -> end session (idempotent)
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from skytour.core.runtime import TourRuntime, get_runtime
from skytour.models.events import (
    EndTourRequest,
    InvalidRequest,
    MessageRequest,
    StartTourRequest,
)
from skytour.runtime_state import SessionNotFound

router = APIRouter(prefix="/api/chat", tags=["chat"])
logger = logging.getLogger(__name__)


@router.post("/start")
async def start_tour(
    body: StartTourRequest,
    runtime: TourRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    start = runtime.tours.start_tour(body.passenger_name, body.tour_type)
    return {
        "success": True,
        "sessionId": start.session_id,
        "welcomeMessage": start.welcome_message,
    }


@router.post("/message")
async def send_message(
    body: MessageRequest,
    runtime: TourRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    logger.info("[/api/chat/message] session_id=%s text=%r", body.session_id, body.message)
    try:
        reply = await runtime.tours.send_message(body.session_id, body.message, body.flight_data)
    except InvalidRequest as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc
    except SessionNotFound as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc

    return {"success": True, "response": reply.text}


@router.get("/history/{session_id}")
async def get_history(
    session_id: str,
    runtime: TourRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    turns = runtime.tours.history(session_id)
    return {"success": True, "history": [turn.to_wire() for turn in turns]}


@router.post("/end")
async def end_tour(
    body: EndTourRequest,
    runtime: TourRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    # A socket still bound to this session is told and stops its pushes.
    await runtime.end_tour(body.session_id)
    return {"success": True, "message": "Tour ended successfully"}
