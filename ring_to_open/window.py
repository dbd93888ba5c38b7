"""Time-of-day access window policy.

The evaluator is a pure function of the configured window and a wall-clock
timestamp, so it can be exercised with fixed datetimes and no clock mocking.

When the open and close times are equal the window takes the non-wraparound
branch and is permitted only during that exact minute; an equal pair never
means "open around the clock".
"""
from __future__ import annotations

import re
from datetime import datetime, time
from typing import Any

from .errors import PolicyError
from .models import AccessWindow

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_time(value: Any) -> time:
    """Parse an ``HH:MM`` string into a ``time``; raise PolicyError if invalid."""

    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str):
        raise PolicyError(f"Time of day must be an 'HH:MM' string, got {value!r}")

    text = value.strip()
    match = _TIME_RE.match(text)
    if not match:
        raise PolicyError(f"Unparseable time of day {value!r}, expected 'HH:MM'")

    hours = int(match.group(1))
    minutes = int(match.group(2))
    if not 0 <= hours <= 23:
        raise PolicyError(f"Hour out of range in {value!r}")
    if not 0 <= minutes <= 59:
        raise PolicyError(f"Minute out of range in {value!r}")
    return time(hours, minutes)


def build_window(open_time: Any, close_time: Any, enabled: bool) -> AccessWindow:
    return AccessWindow(
        open_time=parse_time(open_time),
        close_time=parse_time(close_time),
        enabled=bool(enabled),
    )


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def is_within_window(window: AccessWindow, now: datetime) -> bool:
    """Return True when automatic actuation is permitted at *now*."""

    if not window.enabled:
        return False

    current = _minutes(now.time() if isinstance(now, datetime) else now)
    opens = _minutes(window.open_time)
    closes = _minutes(window.close_time)

    if closes < opens:
        # Spans midnight (e.g. 22:00 to 08:00)
        return current >= opens or current <= closes
    return opens <= current <= closes


def describe_window(window: AccessWindow) -> str:
    return f"{window.open_time.strftime('%H:%M')} - {window.close_time.strftime('%H:%M')}"
