# skytour/core/telemetry_source.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Telemetry source
---------------------------------
Where the periodic `flight_info_update` push gets its data.

- If a flight info flow is configured, ask it first ("real").
- Otherwise, or when it fails, step the mock generator ("mock").

When the live source drops out mid-flight the mock generator is re-seeded
from the last real snapshot once, so the passenger does not see the
aircraft jump back to the default cruise state.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from skytour.core.mock_flight import MockFlightGenerator
from skytour.core.types import TelemetrySourceLabel
from skytour.models.telemetry import Telemetry, normalize
from skytour.providers.agent_flow import AgentFlowClient, UpstreamUnavailable

logger = logging.getLogger(__name__)


class TelemetrySource:
    def __init__(
        self,
        client: Optional[AgentFlowClient],
        generator: Optional[MockFlightGenerator] = None,
    ) -> None:
        self.client = client
        self.generator = generator or MockFlightGenerator()
        self._last_real: Optional[Telemetry] = None
        self._live = False

    @property
    def live_configured(self) -> bool:
        return self.client is not None and self.client.settings.flight_info_configured

    def reset(self) -> None:
        """New flight: forget the last real snapshot and restart the mock."""
        self._last_real = None
        self._live = False
        self.generator.reset()

    async def read(self) -> Tuple[Telemetry, TelemetrySourceLabel]:
        if self.live_configured:
            try:
                raw = await self.client.fetch_flight_info()
            except UpstreamUnavailable as exc:
                logger.warning("[TelemetrySource] Flight info flow failed: %s", exc)
            else:
                telemetry = normalize(raw)
                self._last_real = telemetry
                self._live = True
                return telemetry, "real"

        if self._live and self._last_real is not None:
            logger.info("[TelemetrySource] Live telemetry lost; continuing with mock data.")
            self.generator.seed_from(self._last_real)
        self._live = False
        return self.generator.step(), "mock"
