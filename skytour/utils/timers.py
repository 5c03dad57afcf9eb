# skytour/utils/timers.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - upstream latency timing
----------------------------------------
`Stopwatch` measures one upstream call (Langflow run, goal webhook).

Normal calls are logged at the quiet level given by the caller. A call that
takes longer than `slow_after` seconds, or that raises, is logged at
WARNING instead, so a degrading upstream shows up in the console before it
starts hitting the timeout and passengers get fallback replies.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional


class Stopwatch:
    """
    Context manager around one upstream call.

        with Stopwatch("tour guide flow", logger, slow_after=6.0):
            ...

    After the block, `.elapsed` holds the duration in seconds and `.slow`
    tells whether the threshold was crossed. Exceptions are never swallowed.
    """

    def __init__(
        self,
        label: str,
        logger: Optional[logging.Logger] = None,
        level: int = logging.DEBUG,
        *,
        slow_after: Optional[float] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.label = label
        self.logger = logger or logging.getLogger(__name__)
        self.level = level
        self.slow_after = slow_after
        self._clock = clock
        self._start = 0.0
        self.elapsed = 0.0

    @property
    def slow(self) -> bool:
        return self.slow_after is not None and self.elapsed > self.slow_after

    def __enter__(self) -> "Stopwatch":
        self._start = self._clock()
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.elapsed = self._clock() - self._start
        if exc_type is not None:
            self.logger.warning(
                "%s failed after %.3f s (%s)", self.label, self.elapsed, exc_type.__name__
            )
        elif self.slow:
            self.logger.warning(
                "%s was slow: %.3f s (threshold %.1f s)", self.label, self.elapsed, self.slow_after
            )
        else:
            self.logger.log(self.level, "%s took %.3f s", self.label, self.elapsed)
