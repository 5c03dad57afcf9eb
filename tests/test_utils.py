import logging

import pytest

from skytour.utils import FRAME_LOGGER, Stopwatch, setup_logging
from skytour.utils.logging import HANDLER_NAME, NOISY_LOGGERS

TOUCHED = ("", "skytour", FRAME_LOGGER, *NOISY_LOGGERS)


@pytest.fixture
def restore_logging(monkeypatch):
    monkeypatch.delenv("SKYTOUR_LOG_LEVEL", raising=False)
    monkeypatch.delenv("SKYTOUR_NOISY_LOG_LEVEL", raising=False)
    root = logging.getLogger()
    handlers = list(root.handlers)
    levels = {name: logging.getLogger(name).level for name in TOUCHED}
    yield
    root.handlers[:] = handlers
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)


class FakeClock:
    def __init__(self, *readings):
        self.readings = list(readings)

    def __call__(self):
        return self.readings.pop(0)


def test_noisy_loggers_are_quieted_even_with_existing_handlers(restore_logging) -> None:
    logging.getLogger().addHandler(logging.NullHandler())

    setup_logging(debug=True, noisy_level="ERROR")

    for name in NOISY_LOGGERS:
        assert logging.getLogger(name).level == logging.ERROR
    assert logging.getLogger("skytour").level == logging.DEBUG


def test_repeated_setup_adds_one_handler_and_reapplies_levels(restore_logging) -> None:
    setup_logging(debug=True)
    setup_logging(debug=False)

    ours = [h for h in logging.getLogger().handlers if h.get_name() == HANDLER_NAME]
    assert len(ours) == 1
    assert logging.getLogger().level == logging.INFO
    assert logging.getLogger("skytour").level == logging.INFO


def test_frame_logging_is_off_unless_requested(restore_logging) -> None:
    setup_logging(debug=True)
    assert logging.getLogger(FRAME_LOGGER).level == logging.WARNING

    setup_logging(debug=True, log_frames=True)
    assert logging.getLogger(FRAME_LOGGER).level == logging.DEBUG


def test_env_overrides_levels(restore_logging, monkeypatch) -> None:
    monkeypatch.setenv("SKYTOUR_LOG_LEVEL", "warning")
    monkeypatch.setenv("SKYTOUR_NOISY_LOG_LEVEL", "not-a-level")

    assert setup_logging(debug=True) == logging.WARNING
    assert logging.getLogger("urllib3").level == logging.WARNING


def test_stopwatch_reports_fast_and_slow_calls(caplog) -> None:
    log = logging.getLogger("skytour.tests.timer")

    with caplog.at_level(logging.DEBUG, logger="skytour.tests.timer"):
        with Stopwatch("fast call", log, slow_after=1.0, clock=FakeClock(10.0, 10.25)) as fast:
            pass
        with Stopwatch("slow call", log, slow_after=1.0, clock=FakeClock(10.0, 13.0)) as slow:
            pass

    assert fast.elapsed == 0.25 and fast.slow is False
    assert slow.elapsed == 3.0 and slow.slow is True
    levels = [(r.levelno, r.getMessage().split(" ")[0]) for r in caplog.records]
    assert levels == [(logging.DEBUG, "fast"), (logging.WARNING, "slow")]


def test_stopwatch_logs_and_reraises_failures(caplog) -> None:
    log = logging.getLogger("skytour.tests.timer")

    with caplog.at_level(logging.DEBUG, logger="skytour.tests.timer"):
        with pytest.raises(TimeoutError):
            with Stopwatch("upstream", log, clock=FakeClock(0.0, 2.0)):
                raise TimeoutError("too slow")

    assert caplog.records[-1].levelno == logging.WARNING
    assert "failed after 2.000 s (TimeoutError)" in caplog.records[-1].getMessage()
