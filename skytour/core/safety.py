# skytour/core/safety.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Text safety helpers
------------------------------------
- Cleaning passenger text before it reaches the session or the resolver.
- Clamping model reply length before it reaches the passenger.

Both functions are pure, so they are easy to test.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

# Hard cap for passenger text accepted into a session.
MAX_PASSENGER_CHARS: int = 1000


@dataclass
class SanitizedText:
    """
    Result of sanitize_passenger_text().

    Attributes
    ----------
    sanitized:
        Cleaned text stored as the passenger turn.
    truncated:
        True if the text was cut at MAX_PASSENGER_CHARS.
    empty:
        True if nothing printable is left; the caller must reject it.
    """
    sanitized: str
    truncated: bool
    empty: bool


_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_passenger_text(raw_text: Optional[str]) -> SanitizedText:
    """
    Strip control characters, collapse whitespace and cap the length.

    Non-string input is treated as empty.
    """
    original = raw_text if isinstance(raw_text, str) else ""

    cleaned = _CONTROL_CHARS_RE.sub("", original)
    cleaned = " ".join(cleaned.split())

    truncated = False
    if len(cleaned) > MAX_PASSENGER_CHARS:
        cleaned = cleaned[:MAX_PASSENGER_CHARS].rstrip()
        truncated = True
        logger.debug(
            "sanitize_passenger_text: truncated passenger text from %d chars",
            len(original),
        )

    return SanitizedText(sanitized=cleaned, truncated=truncated, empty=not cleaned)


def clamp_reply_text(reply_text: str, limit: int) -> str:
    """
    Cut an over-long reply to `limit` chars, ending with "..." when possible.
    """
    text = reply_text if isinstance(reply_text, str) else str(reply_text or "")

    if limit <= 0 or len(text) <= limit:
        return text

    if limit > 3:
        clamped = text[: limit - 3].rstrip() + "..."
    else:
        clamped = text[:limit]

    logger.debug(
        "clamp_reply_text: truncated reply from %d to %d chars (limit=%d)",
        len(text),
        len(clamped),
        limit,
    )
    return clamped
