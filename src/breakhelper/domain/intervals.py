"""Time-of-day primitives for the break schedule grid.

Every break schedule is laid out on 15-minute intervals identified by their
start time as an ``HH:MM:SS`` string. This module converts between clock
strings and minute offsets and generates the interval sequence of a shift.
"""

import re
from datetime import date, datetime

INTERVAL_MINUTES = 15
MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(r"^(\d{2}):(\d{2})(?::(\d{2}))?$")
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class MalformedTimeError(ValueError):
    """Raised when a clock string is not a valid ``HH:MM[:SS]`` time."""


class MalformedDateError(ValueError):
    """Raised when a date string is not a valid ``YYYY-MM-DD`` date."""


def time_to_minutes(t: str) -> int:
    """Convert ``HH:MM[:SS]`` to minutes since midnight.

    Seconds are validated but ignored for arithmetic.

    Raises:
        MalformedTimeError: If the string is not a valid 24-hour time.
    """
    match = _TIME_PATTERN.match(t) if isinstance(t, str) else None
    if match is None:
        raise MalformedTimeError(f"Invalid time {t!r}, expected HH:MM:SS")

    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3) or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise MalformedTimeError(f"Invalid time {t!r}, out of range")
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight to ``HH:MM:00``."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise MalformedTimeError(f"Minute offset {minutes} is outside the day")
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}:00"


def normalize_time(t: str) -> str:
    """Re-serialize a clock string as ``HH:MM:00``."""
    return minutes_to_time(time_to_minutes(t))


def short_time(t: str) -> str:
    """Render a clock string as ``HH:MM`` for display and CSV output."""
    return normalize_time(t)[:5]


def generate_intervals(start: str, end: str) -> list[str]:
    """Generate every 15-minute interval start in ``[start, end)``.

    Returns an empty list when ``end <= start``.
    """
    start_minutes = time_to_minutes(start)
    end_minutes = time_to_minutes(end)
    return [
        minutes_to_time(m)
        for m in range(start_minutes, end_minutes, INTERVAL_MINUTES)
    ]


def is_valid_15_minute_interval(t: str) -> bool:
    """Check that a clock string sits on a 15-minute boundary."""
    return time_to_minutes(t) % INTERVAL_MINUTES == 0


def round_down_to_interval(minutes: int) -> int:
    """Snap a minute offset down to the containing interval start."""
    return (minutes // INTERVAL_MINUTES) * INTERVAL_MINUTES


def round_up_to_interval(minutes: int) -> int:
    """Snap a minute offset up to the next interval boundary."""
    return -(-minutes // INTERVAL_MINUTES) * INTERVAL_MINUTES


def add_intervals(t: str, count: int) -> str:
    """Return the interval ``count`` steps after ``t``."""
    return minutes_to_time(time_to_minutes(t) + count * INTERVAL_MINUTES)


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string.

    Raises:
        MalformedDateError: If the string is not a real calendar date.
    """
    if not isinstance(value, str) or not _DATE_PATTERN.match(value):
        raise MalformedDateError(f"Invalid date {value!r}, expected YYYY-MM-DD")
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise MalformedDateError(f"Invalid date {value!r}: {exc}") from exc


def is_valid_date(value: str) -> bool:
    """Check that a string is a ``YYYY-MM-DD`` calendar date."""
    try:
        parse_date(value)
    except MalformedDateError:
        return False
    return True
