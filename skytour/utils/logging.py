# skytour/utils/logging.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - logging utilities
----------------------------------
One place that decides what the relay prints.

Loggers in play:

    skytour.*        application modules (INFO, DEBUG when settings.debug)
    skytour.frames   one line per inbound frame / telemetry push; with a
                     1 s push loop per passenger this floods the console, so
                     it stays at WARNING unless frame logging is switched on
    third-party      uvicorn.access, websockets, urllib3, httpx, httpcore;
                     pinned to `noisy_level`

`setup_logging()` may run several times per process (uvicorn installs its
own handlers first, tests call `create_app()` repeatedly). Our handler is
added once and recognised by name; the levels are re-applied on every call.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Iterable, Optional, Union

HANDLER_NAME = "skytour-console"
FRAME_LOGGER = "skytour.frames"
NOISY_LOGGERS: tuple[str, ...] = (
    "uvicorn.access",
    "websockets",
    "urllib3",
    "httpx",
    "httpcore",
)

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

Level = Union[int, str]


def _resolve_level(value: Optional[Level], default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(str(value).strip().upper())
    return resolved if isinstance(resolved, int) else default


def _console_handler(root: logging.Logger) -> logging.Handler:
    for handler in root.handlers:
        if handler.get_name() == HANDLER_NAME:
            return handler
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
    root.addHandler(handler)
    return handler


def setup_logging(
    *,
    debug: bool = False,
    level: Optional[Level] = None,
    log_frames: bool = False,
    noisy_level: Optional[Level] = None,
    noisy_loggers: Iterable[str] = NOISY_LOGGERS,
) -> int:
    """
    Configure process logging and return the effective application level.

    Precedence for the application level: `level` argument, then the
    SKYTOUR_LOG_LEVEL env var, then DEBUG/INFO from `debug`.
    Third-party loggers use `noisy_level`, then SKYTOUR_NOISY_LOG_LEVEL,
    then WARNING.
    """
    app_level = _resolve_level(
        level if level is not None else os.getenv("SKYTOUR_LOG_LEVEL"),
        logging.DEBUG if debug else logging.INFO,
    )
    third_party_level = _resolve_level(
        noisy_level if noisy_level is not None else os.getenv("SKYTOUR_NOISY_LOG_LEVEL"),
        logging.WARNING,
    )

    root = logging.getLogger()
    root.setLevel(app_level)
    # The root level gates records; the handler itself lets everything through.
    _console_handler(root).setLevel(logging.NOTSET)

    logging.getLogger("skytour").setLevel(app_level)
    logging.getLogger(FRAME_LOGGER).setLevel(logging.DEBUG if log_frames else logging.WARNING)

    for name in noisy_loggers:
        logging.getLogger(name).setLevel(third_party_level)

    return app_level


def get_logger(name: str) -> logging.Logger:
    """Thin wrapper so modules can do `from skytour.utils import get_logger`."""
    return logging.getLogger(name)
