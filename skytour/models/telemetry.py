# skytour/models/telemetry.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Telemetry model
--------------------------------
Canonical flight-state snapshot shared by the whole relay.

Telemetry arrives from best-effort sources (browser UI, Langflow flight-info
flow, mock generator) with inconsistent field names and types. `normalize()`
turns any of them into one frozen `Telemetry` record:

- every numeric field is coerced to float, falling back to its default,
- booleans accept bools, numbers and "true"/"false" strings,
- `speed` is always populated (ground speed, else airspeed, else raw speed),
- a malformed or empty payload gives an all-defaults record, never an error.

Wire format is camelCase (`altitudeAGL`, `verticalSpeed`, `onGround`, ...)
so the browser client can consume `to_wire()` output directly.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DEFAULT_AIRCRAFT = "Cessna 172"
DEFAULT_FUEL_PERCENTAGE = 85.0

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})


class Telemetry(BaseModel):
    """Normalized flight state. Immutable; build it with `normalize()`."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    altitude: float = Field(default=0.0, description="Altitude MSL (ft).")
    altitude_agl: float = Field(default=0.0, alias="altitudeAGL", description="Altitude above ground (ft).")
    latitude: float = 0.0
    longitude: float = 0.0
    heading: float = Field(default=0.0, description="True heading (deg).")
    airspeed: float = Field(default=0.0, description="Indicated airspeed (kt).")
    ground_speed: float = Field(default=0.0, alias="groundSpeed", description="Ground speed (kt).")
    speed: float = Field(default=0.0, description="Ground speed, falling back to airspeed (kt).")
    vertical_speed: float = Field(default=0.0, alias="verticalSpeed", description="Vertical speed (ft/min).")
    pitch: float = 0.0
    bank: float = Field(default=0.0, description="Bank / roll angle (deg).")
    throttle: float = Field(default=0.0, description="Throttle (%).")
    gear: bool = Field(default=False, description="Landing gear down.")
    flaps: float = Field(default=0.0, description="Flap extension (%).")
    fuel_percentage: float = Field(default=DEFAULT_FUEL_PERCENTAGE, alias="fuelPercentage")
    engine_rpm: float = Field(default=0.0, alias="engineRPM")
    aircraft: str = DEFAULT_AIRCRAFT
    on_ground: bool = Field(default=False, alias="onGround")

    def to_wire(self) -> Dict[str, Any]:
        """camelCase dict for WebSocket / REST payloads."""
        return self.model_dump(mode="json", by_alias=True)

    def flight_context(self) -> Dict[str, Any]:
        """Subset forwarded to the tour guide flow as `tweaks.flight_context`."""
        return {
            "altitude": self.altitude,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "heading": self.heading,
            "speed": self.speed,
            "aircraft": self.aircraft,
            "onGround": self.on_ground,
        }


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def _as_number(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return default
    else:
        return default
    return number if math.isfinite(number) else default


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return math.isfinite(value) and value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def _lookup(raw: Mapping[str, Any], *paths: Sequence[str]) -> Any:
    """Return the first non-None value found along any of the key paths."""
    for path in paths:
        node: Any = raw
        for key in path:
            if not isinstance(node, Mapping):
                node = None
                break
            node = node.get(key)
        if node is not None:
            return node
    return None


def _number(raw: Mapping[str, Any], *keys: str, default: float = 0.0) -> float:
    return _as_number(_lookup(raw, *((k,) for k in keys)), default)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize(raw: Any) -> Telemetry:
    """
    Convert any telemetry-shaped payload into a canonical `Telemetry`.

    Total function: `None`, `{}`, lists, wrong-typed fields all produce a
    valid record with defaults filled in.
    """
    if isinstance(raw, Telemetry):
        return raw
    if isinstance(raw, BaseModel):
        raw = raw.model_dump(by_alias=True)
    if not isinstance(raw, Mapping):
        if raw is not None:
            logger.debug("normalize: non-mapping telemetry payload %r, using defaults", type(raw))
        raw = {}

    airspeed = _number(raw, "airspeed", "indicatedAirspeed")
    ground_speed = _number(raw, "groundSpeed", "ground_speed")
    if ground_speed > 0:
        speed = ground_speed
    elif airspeed > 0:
        speed = airspeed
    else:
        speed = _number(raw, "speed")

    aircraft_raw = raw.get("aircraft")
    aircraft = aircraft_raw.strip() if isinstance(aircraft_raw, str) else ""

    return Telemetry(
        altitude=_number(raw, "altitude"),
        altitude_agl=_number(raw, "altitudeAGL", "altitudeAgl", "altitude_agl"),
        latitude=_number(raw, "latitude", "lat"),
        longitude=_number(raw, "longitude", "lon"),
        heading=_number(raw, "heading"),
        airspeed=airspeed,
        ground_speed=ground_speed,
        speed=speed,
        vertical_speed=_number(raw, "verticalSpeed", "vertical_speed"),
        pitch=_number(raw, "pitch"),
        bank=_number(raw, "bank", "roll"),
        throttle=_number(raw, "throttle"),
        gear=_as_bool(raw.get("gear")),
        flaps=_number(raw, "flaps"),
        fuel_percentage=_as_number(
            _lookup(raw, ("fuelPercentage",), ("fuel", "percentage"), ("fuelQuantity",)),
            DEFAULT_FUEL_PERCENTAGE,
        ),
        engine_rpm=_as_number(
            _lookup(raw, ("engineRPM",), ("engine", "rpm"), ("engine1RPM",)),
        ),
        aircraft=aircraft or DEFAULT_AIRCRAFT,
        on_ground=_as_bool(_lookup(raw, ("onGround",), ("on_ground",))),
    )


def telemetry_pair(raw: Any, fallback: Optional[Telemetry]) -> Tuple[Telemetry, bool]:
    """
    Resolve the telemetry in effect for a passenger message.

    Returns (telemetry, provided): the normalized payload when the client sent
    a telemetry object, otherwise the session's last-known snapshot (or
    defaults). Strings, lists and other non-objects count as "not sent".
    """
    if isinstance(raw, (Mapping, BaseModel)):
        return normalize(raw), True
    if raw is not None:
        logger.debug("telemetry_pair: ignoring non-object flightData %r", type(raw))
    return (fallback if fallback is not None else Telemetry()), False


if __name__ == "__main__":
    samples = [
        {},
        None,
        {"altitude": "5000", "onGround": "false", "airspeed": 120},
        {"altitude": float("nan"), "groundSpeed": 140, "fuel": {"percentage": 40}},
        ["not", "a", "dict"],
    ]
    for sample in samples:
        print(repr(sample), "->", normalize(sample).to_wire())
