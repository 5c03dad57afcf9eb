# skytour/providers/fallback.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Template fallback pilot
----------------------------------------
Fully offline, deterministic replies for the tour guide pilot.

Design goals:
- NEVER touches the network.
- ALWAYS returns a friendly, non-empty sentence.
- Same (utterance, telemetry) in -> same text out.

The resolver uses it whenever the tour guide flow is not configured,
unreachable, slow, or answers with something we cannot read.
"""

from __future__ import annotations

from typing import Iterable

from skytour.models.telemetry import Telemetry


def _mentions(text: str, words: Iterable[str]) -> bool:
    return any(word in text for word in words)


def fallback_reply(utterance: str, telemetry: Telemetry) -> str:
    """
    Pick a canned, telemetry-aware reply for `utterance`.

    Flight phase is checked first (on the ground vs airborne), then topic
    keywords in the lower-cased text.
    """
    text = (utterance or "").lower()

    # ------------------------------------------------------------------
    # On the ground
    # ------------------------------------------------------------------
    if telemetry.on_ground:
        if _mentions(text, ("ready", "start")):
            return (
                "We're all set for takeoff! Just waiting for clearance from the tower. "
                "It's going to be a beautiful flight today!"
            )
        return (
            "We're currently on the ground preparing for our tour. "
            "I'll let you know when we're ready for takeoff!"
        )

    # ------------------------------------------------------------------
    # Airborne
    # ------------------------------------------------------------------
    if _mentions(text, ("altitude", "high")):
        return (
            f"We're currently cruising at {round(telemetry.altitude):,} feet. "
            "Perfect altitude for sightseeing!"
        )

    if _mentions(text, ("speed", "fast")):
        return (
            f"We're flying at {round(telemetry.speed):,} knots - a comfortable "
            f"cruising speed for our {telemetry.aircraft}."
        )

    if _mentions(text, ("scared", "safe")):
        return (
            "No need to worry! We're flying in perfect conditions, and safety is "
            "always my top priority. Just relax and enjoy the views!"
        )

    if _mentions(text, ("land", "long")):
        return (
            "We've got about 20 more minutes of scenic flying before we head back. "
            "Still plenty to see!"
        )

    return "That's a great observation! The views from up here really are spectacular, aren't they?"


if __name__ == "__main__":
    from skytour.models.telemetry import normalize

    samples = [
        ("ready to start", {"onGround": True}),
        ("where are we?", {"onGround": True}),
        ("How high are we?", {"altitude": 5000}),
        ("how fast is this?", {"groundSpeed": 112, "aircraft": "Cessna 172"}),
        ("I'm a bit scared", {}),
        ("when do we land", {}),
        ("look at that lake", {}),
    ]
    for text, raw in samples:
        print(f"{text!r:24} -> {fallback_reply(text, normalize(raw))}")
