# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Utility toolbox
--------------------------------
- logging : process logging setup (app, frame and third-party levels)
- timers  : Stopwatch for upstream latency

    from skytour.utils import setup_logging, get_logger, Stopwatch
"""

from __future__ import annotations

from .logging import (  # noqa: F401
    FRAME_LOGGER,
    setup_logging,
    get_logger,
)

from .timers import (  # noqa: F401
    Stopwatch,
)
