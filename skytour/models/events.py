# skytour/models/events.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Channel event models
-------------------------------------
Shapes of the JSON frames exchanged with the passenger's browser.

Inbound frames look like

    {"type": "passenger_message", "payload": {"message": "...", "flightData": {...}}}

Fields may also be sent at top level next to "type"; event names are
matched case-insensitively so the older "PASSENGER_MESSAGE" spelling works.

Outbound frames are built by the small helpers at the bottom of this module
so every event carries the same keys wherever it is emitted.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

M = TypeVar("M", bound=BaseModel)


# ---------------------------------------------------------------------------
# Errors surfaced to the passenger
# ---------------------------------------------------------------------------


class InvalidRequest(Exception):
    """A known event arrived without the fields it needs."""

    code = "invalid_request"

    def __init__(self, message: str, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ProtocolError(Exception):
    """The frame itself could not be decoded (not JSON, not an object, no type)."""

    code = "protocol_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ---------------------------------------------------------------------------
# Inbound
# ---------------------------------------------------------------------------


class EventType(str, Enum):
    START_TOUR = "start_tour"
    PASSENGER_MESSAGE = "passenger_message"
    UPDATE_FLIGHT_DATA = "update_flight_data"
    END_TOUR = "end_tour"
    REQUEST_FLIGHT_INFO = "request_flight_info"


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class StartTourPayload(_Payload):
    passenger_name: str = Field(default="Guest", alias="passengerName")
    tour_type: str = Field(default="scenic", alias="tourType")

    @field_validator("passenger_name", "tour_type", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info) -> Any:
        # null / "" from the UI means "use the default", not "invalid".
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields[info.field_name].default
        return value


class PassengerMessagePayload(_Payload):
    message: str
    flight_data: Optional[Any] = Field(default=None, alias="flightData")


class UpdateFlightDataPayload(_Payload):
    flight_data: Any = Field(..., alias="flightData")

    @field_validator("flight_data")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("flightData must not be null")
        return value


def decode_frame(raw: str | bytes) -> Tuple[str, Dict[str, Any]]:
    """
    Decode one inbound text frame into (event_type, payload).

    `event_type` is lower-cased but not validated here; the caller decides
    what to do with unknown types. Raises ProtocolError when the frame is
    not a JSON object carrying a string "type".
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ProtocolError("Frame is not valid JSON.") from exc

    if not isinstance(data, dict):
        raise ProtocolError("Frame must be a JSON object.")

    event_type = data.get("type")
    if not isinstance(event_type, str) or not event_type.strip():
        raise ProtocolError('Frame must include a string "type" field.')

    payload = data.get("payload")
    if not isinstance(payload, dict):
        payload = {k: v for k, v in data.items() if k != "type"}

    return event_type.strip().lower(), payload


def parse_payload(model: Type[M], payload: Dict[str, Any]) -> M:
    """Validate a payload dict, converting pydantic errors into InvalidRequest."""
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise InvalidRequest(
            f"Invalid payload (check: {fields}).",
            details=exc.errors(include_url=False, include_context=False),
        ) from exc


# ---------------------------------------------------------------------------
# REST request bodies (/api/chat)
# ---------------------------------------------------------------------------


class StartTourRequest(StartTourPayload):
    pass


class MessageRequest(_Payload):
    session_id: str = Field(..., alias="sessionId", min_length=1)
    message: str
    flight_data: Optional[Any] = Field(default=None, alias="flightData")


class EndTourRequest(_Payload):
    session_id: str = Field(..., alias="sessionId", min_length=1)


# ---------------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------------


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def connected_event(message: str) -> Dict[str, Any]:
    return {"type": "connected", "message": message}


def tour_started_event(session_id: str, message: str) -> Dict[str, Any]:
    return {"type": "tour_started", "sessionId": session_id, "message": message}


def message_received_event() -> Dict[str, Any]:
    return {"type": "message_received", "timestamp": utc_timestamp()}


def pilot_message_event(text: str) -> Dict[str, Any]:
    return {"type": "pilot_message", "message": text, "timestamp": utc_timestamp()}


def flight_info_update_event(data: Dict[str, Any], source: str) -> Dict[str, Any]:
    return {
        "type": "flight_info_update",
        "data": data,
        "source": source,
        "timestamp": utc_timestamp(),
    }


def tour_ended_event(message: str) -> Dict[str, Any]:
    return {"type": "tour_ended", "message": message}


def error_event(code: str, message: str, details: Any | None = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"type": "error", "code": code, "message": message}
    if details is not None:
        payload["details"] = details
    return payload
