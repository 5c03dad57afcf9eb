# skytour/core/mock_flight.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Mock flight generator
--------------------------------------
Plausible, slowly evolving telemetry for when no live simulator is
reachable.

Each `step()` advances the flight by the wall-clock time since the previous
step:

- altitude integrates vertical speed (ft/min), clamped to [0, 45000] ft,
- below 100 ft the aircraft is considered landed (gear down, VS 0),
- heading, airspeed and vertical speed do a bounded random walk,
- position moves along the heading at the current airspeed,
- fuel only ever goes down.

Clock and RNG are injectable so tests can drive it deterministically.
"""

from __future__ import annotations

import math
import random
import time
from dataclasses import asdict, dataclass
from typing import Callable, Optional

from skytour.models.telemetry import Telemetry, normalize

GROUND_THRESHOLD_FT = 100.0
MAX_ALTITUDE_FT = 45000.0
MAX_AIRSPEED_KT = 350.0
MAX_VERTICAL_SPEED_FPM = 2000.0


@dataclass
class _FlightState:
    altitude: float = 2000.0
    airspeed: float = 150.0
    heading: float = 270.0
    verticalSpeed: float = 0.0
    throttle: float = 75.0
    flaps: float = 0.0
    gear: bool = False
    onGround: bool = False
    latitude: float = 47.4502
    longitude: float = -122.3088
    pitch: float = 0.0
    bank: float = 0.0
    engineRPM: float = 2400.0
    fuelPercentage: float = 85.0
    aircraft: str = "Cessna 172"


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class MockFlightGenerator:
    """
    Parameters
    ----------
    clock:
        Returns seconds; defaults to time.monotonic.
    rng:
        Source of randomness; defaults to a fresh random.Random().
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._clock = clock
        self._rng = rng or random.Random()
        self._state = _FlightState()
        self._last = self._clock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Start a new flight from the default cruise state."""
        self._state = _FlightState()
        self._last = self._clock()

    def seed_from(self, telemetry: Telemetry) -> None:
        """Continue from a real snapshot so the mock picks up where it left off."""
        self._state = _FlightState(
            altitude=telemetry.altitude,
            airspeed=telemetry.airspeed or telemetry.speed,
            heading=telemetry.heading % 360,
            verticalSpeed=telemetry.vertical_speed,
            throttle=telemetry.throttle,
            flaps=telemetry.flaps,
            gear=telemetry.gear,
            onGround=telemetry.on_ground,
            latitude=telemetry.latitude,
            longitude=telemetry.longitude,
            pitch=telemetry.pitch,
            bank=telemetry.bank,
            engineRPM=telemetry.engine_rpm,
            fuelPercentage=telemetry.fuel_percentage,
            aircraft=telemetry.aircraft,
        )
        self._last = self._clock()

    def land(self) -> Telemetry:
        """Put the aircraft on the ground immediately."""
        s = self._state
        s.altitude = 0.0
        s.verticalSpeed = 0.0
        s.onGround = True
        s.gear = True
        return self.snapshot()

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def _jitter(self, spread: float) -> float:
        return (self._rng.random() - 0.5) * spread

    def step(self) -> Telemetry:
        now = self._clock()
        dt = max(0.0, now - self._last)
        self._last = now
        s = self._state

        if s.onGround:
            s.airspeed = max(0.0, s.airspeed - dt * 5)
            s.altitude = 0.0
            s.verticalSpeed = 0.0
        else:
            s.altitude = _clamp(s.altitude + s.verticalSpeed * dt / 60, 0.0, MAX_ALTITUDE_FT)
            if s.altitude < GROUND_THRESHOLD_FT:
                s.onGround = True
                s.gear = True
                s.verticalSpeed = 0.0
            else:
                s.airspeed = _clamp(s.airspeed + self._jitter(2), 0.0, MAX_AIRSPEED_KT)
                s.verticalSpeed = _clamp(
                    s.verticalSpeed + self._jitter(100),
                    -MAX_VERTICAL_SPEED_FPM,
                    MAX_VERTICAL_SPEED_FPM,
                )

        s.heading = (s.heading + self._jitter(2)) % 360
        s.pitch = math.sin(now / 3) * 2 + self._jitter(0.5)
        s.bank = math.sin(now / 5) * 5 + self._jitter(1)

        # knots * hours -> nautical miles; 1 nm = 1/60 deg of latitude
        distance_nm = s.airspeed * dt / 3600
        heading_rad = math.radians(s.heading)
        s.latitude += math.cos(heading_rad) * distance_nm / 60
        cos_lat = max(0.01, math.cos(math.radians(s.latitude)))
        s.longitude += math.sin(heading_rad) * distance_nm / (60 * cos_lat)

        s.engineRPM = 2200 + s.throttle * 4 + self._jitter(50)
        s.fuelPercentage = max(0.0, s.fuelPercentage - dt * 0.01)

        return self.snapshot()

    def snapshot(self) -> Telemetry:
        raw = asdict(self._state)
        raw["groundSpeed"] = raw["airspeed"]
        raw["altitudeAGL"] = raw["altitude"]
        return normalize(raw)
