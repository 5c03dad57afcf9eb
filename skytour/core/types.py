# skytour/core/types.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Shared type helpers
------------------------------------
- ReplyPolicy : where a pilot reply came from ("model" | "fallback")
- Reply       : result of one Response Resolver call
- TelemetrySourceLabel : provenance of a pushed telemetry frame
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal

ReplyPolicy = Literal["model", "fallback"]

TelemetrySourceLabel = Literal["real", "mock"]


@dataclass(frozen=True)
class Reply:
    """
    One pilot reply.

    Attributes
    ----------
    text:
        What the passenger will see. Never empty.
    policy:
        "model" when the tour guide flow answered, "fallback" otherwise.
        Used for logging only.
    raw:
        Optional backend metadata (flow id, failure reason).
    """
    text: str
    policy: ReplyPolicy
    raw: Dict[str, Any] = field(default_factory=dict)
