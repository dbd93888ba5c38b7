from __future__ import annotations

from datetime import datetime, time

import pytest

from ring_to_open.errors import ConfigError, PolicyError
from ring_to_open.models import AccessWindow
from ring_to_open.window import build_window, describe_window, is_within_window, parse_time


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 7, 1, hour, minute)


def test_daytime_window_includes_hours_inside_range():
    window = build_window("08:00", "22:00", True)
    assert is_within_window(window, _at(9)) is True
    assert is_within_window(window, _at(21, 59)) is True


def test_daytime_window_excludes_hours_outside_range():
    window = build_window("08:00", "22:00", True)
    assert is_within_window(window, _at(7, 59)) is False
    assert is_within_window(window, _at(23)) is False


def test_daytime_window_bounds_are_inclusive():
    window = build_window("08:00", "22:00", True)
    assert is_within_window(window, _at(8)) is True
    assert is_within_window(window, _at(22)) is True


def test_overnight_window_wraps_past_midnight():
    window = build_window("22:00", "08:00", True)
    assert is_within_window(window, _at(23, 30)) is True
    assert is_within_window(window, _at(7)) is True
    assert is_within_window(window, _at(0)) is True
    assert is_within_window(window, _at(12)) is False


def test_disabled_window_never_permits():
    window = build_window("00:00", "23:59", False)
    for hour in range(24):
        assert is_within_window(window, _at(hour, 30)) is False


def test_equal_open_and_close_only_permits_that_minute():
    window = build_window("12:00", "12:00", True)
    assert is_within_window(window, _at(12, 0)) is True
    assert is_within_window(window, datetime(2024, 7, 1, 12, 0, 59)) is True
    assert is_within_window(window, _at(12, 1)) is False
    assert is_within_window(window, _at(11, 59)) is False


def test_parse_time_accepts_single_digit_hour_and_whitespace():
    assert parse_time(" 8:05 ") == time(8, 5)
    assert parse_time(time(7, 30, 15)) == time(7, 30)


@pytest.mark.parametrize("value", ["25:00", "12:60", "noon", "12", "", None, 800])
def test_parse_time_rejects_malformed_values(value):
    with pytest.raises(PolicyError):
        parse_time(value)


def test_policy_error_is_a_config_error():
    with pytest.raises(ConfigError):
        build_window("08:00", "bad", True)


def test_describe_window_formats_both_times():
    window = AccessWindow(open_time=time(8, 0), close_time=time(22, 0))
    assert describe_window(window) == "08:00 - 22:00"
