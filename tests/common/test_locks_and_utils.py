import logging
import threading
from datetime import date, datetime, timezone

import pytest

from src.pkl_attendance.pkl_attendance.attendance import service as attendance_service
from src.pkl_attendance.pkl_attendance.common.datetime_utils import hours_between, month_bounds, parse_hhmm, to_local_naive
from src.pkl_attendance.pkl_attendance.common.locks import KeyedLocks
from src.pkl_attendance.pkl_attendance.core.exceptions import ConcurrentModification
from src.pkl_attendance.pkl_attendance.core.logging import PACKAGE_LOGGER, build_logging_config, configure_logging


def test_same_key_times_out_with_concurrent_modification():
    locks = KeyedLocks(timeout=0.05)
    holding = threading.Event()
    release = threading.Event()

    def holder():
        with locks.hold(("attendance", 1, date(2025, 3, 3))):
            holding.set()
            release.wait(2)

    t = threading.Thread(target=holder)
    t.start()
    holding.wait(2)
    try:
        with pytest.raises(ConcurrentModification):
            with locks.hold(("attendance", 1, date(2025, 3, 3))):
                pass
        # A different key is never blocked.
        with locks.hold(("attendance", 2, date(2025, 3, 3))):
            pass
    finally:
        release.set()
        t.join(2)


def test_lock_is_released_after_an_error():
    locks = KeyedLocks(timeout=0.05)

    with pytest.raises(ValueError):
        with locks.hold("k"):
            raise ValueError("boom")

    with locks.hold("k"):
        pass


def test_month_bounds_wraps_december():
    assert month_bounds(date(2025, 12, 17)) == (date(2025, 12, 1), date(2026, 1, 1))
    assert month_bounds(date(2025, 3, 31)) == (date(2025, 3, 1), date(2025, 4, 1))


def test_hours_between_uses_whole_minutes():
    assert hours_between(datetime(2025, 3, 3, 8, 0, 0), datetime(2025, 3, 3, 8, 20, 59)) == 0.33


def test_parse_hhmm():
    assert parse_hhmm(" 23:59 ").hour == 23
    with pytest.raises(ValueError):
        parse_hhmm("24:00")


def test_logging_config_uses_colorlog_only_in_debug():
    debug = build_logging_config("INFO", debug=True)
    plain = build_logging_config("WARNING")

    assert debug["handlers"]["console"]["formatter"] == "colored"
    assert debug["formatters"]["colored"]["()"] == "colorlog.ColoredFormatter"
    assert plain["handlers"]["console"]["formatter"] == "standard"
    assert plain["loggers"][PACKAGE_LOGGER]["level"] == "WARNING"


def test_service_loggers_emit_info_after_configuration():
    configure_logging("INFO")

    service_logger = logging.getLogger(attendance_service.__name__)
    assert service_logger.name.startswith(PACKAGE_LOGGER + ".")
    assert service_logger.isEnabledFor(logging.INFO)
    assert not service_logger.isEnabledFor(logging.DEBUG)


def test_to_local_naive_shifts_aware_values_only():
    aware = datetime(2025, 3, 3, 2, 0, tzinfo=timezone.utc)

    assert to_local_naive(aware, "Asia/Jakarta") == datetime(2025, 3, 3, 9, 0)
    assert to_local_naive(datetime(2025, 3, 3, 2, 0), "Asia/Jakarta") == datetime(2025, 3, 3, 2, 0)
