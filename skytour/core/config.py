# skytour/core/config.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Configuration
------------------------------
Central configuration for the tour relay server, including:

- app metadata
- API host/port
- upstream agent flows (Langflow tour guide + flight info),
- timeouts and context window for the Response Resolver,
- telemetry poll interval,
- flight-goal webhook resend policy,
- static pilot texts (greeting / goodbye).

Values come from environment variables or a `.env` file next to the
project root. Field names map 1:1 to upper-case env names, e.g.
`tour_guide_flow_id` <- TOUR_GUIDE_FLOW_ID.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# This file is: <root>/skytour/core/config.py
PACKAGE_DIR: Path = Path(__file__).resolve().parents[1]   # .../skytour
ROOT_DIR: Path = PACKAGE_DIR.parent                       # project root


class Settings(BaseSettings):
    """
    Typed configuration for the relay.

    One instance is built by the process entry point and handed to
    `create_app()`; tests construct their own instances with overrides.
    """

    model_config = SettingsConfigDict(
        env_file=ROOT_DIR / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- App / server basics -----------------------------------------------
    app_name: str = "Sky Tour Relay"
    environment: Literal["development", "production", "test"] = "development"
    debug: bool = True

    # One log line per inbound frame / telemetry push (skytour.frames).
    log_frames: bool = False

    api_host: str = "0.0.0.0"
    api_port: int = 3001

    # --- Upstream agent flows (Langflow) -----------------------------------
    langflow_base_url: str = "http://localhost:7860"

    # ENV: LANGFLOW_API_KEY=...  (sent as x-api-key when present)
    langflow_api_key: str | None = Field(
        default=None,
        description="API key for the Langflow server (env: LANGFLOW_API_KEY).",
    )

    # Empty flow ids mean "not configured": the resolver goes straight to the
    # deterministic fallback and the telemetry source uses the mock generator.
    tour_guide_flow_id: str = ""
    flight_info_flow_id: str = ""

    # Single attempt per passenger message, bounded by this timeout.
    upstream_timeout_s: float = 12.0

    # How many recent turns are forwarded upstream as context.
    history_window: int = 6

    # Hard cap on model reply length.
    max_reply_chars: int = 600

    # --- Telemetry push loop -------------------------------------------------
    poll_interval_s: float = 1.0

    # --- Flight-goal webhook -------------------------------------------------
    goal_webhook_url: str | None = Field(
        default=None,
        description=(
            "Optional Langflow webhook that receives the conversation after "
            "each pilot reply (env: GOAL_WEBHOOK_URL)."
        ),
    )
    goal_resend_interval_s: float = 5.0
    goal_max_attempts: int = 3

    # --- Pilot texts ---------------------------------------------------------
    pilot_name: str = "Captain Sarah Mitchell"
    welcome_message: str = (
        "Welcome aboard! I'm Captain Sarah Mitchell, your tour guide today. "
        "Feel free to ask me anything about our flight!"
    )
    tour_ended_message: str = "Thanks for flying with us today!"

    @property
    def tour_guide_configured(self) -> bool:
        return bool(self.tour_guide_flow_id.strip())

    @property
    def flight_info_configured(self) -> bool:
        return bool(self.flight_info_flow_id.strip())


# Default instance for the uvicorn entry point (`skytour.main:app`).
settings = Settings()


if __name__ == "__main__":
    print("Sky Tour Relay - Settings self-test")
    print(f"ROOT_DIR          : {ROOT_DIR}")
    print(f"Environment       : {settings.environment}")
    print(f"Langflow base URL : {settings.langflow_base_url}")
    print(f"API key set       : {bool(settings.langflow_api_key)}")
    print(f"Tour guide flow   : {settings.tour_guide_flow_id or '-'}")
    print(f"Flight info flow  : {settings.flight_info_flow_id or '-'}")
    print(f"Goal webhook      : {settings.goal_webhook_url or '-'}")
