"""Wall-clock time arithmetic on ``HH:MM[:SS]`` strings and minutes since midnight."""

from __future__ import annotations

import re

from app.domain.errors import InvalidTimeFormat

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def _split(time: str) -> tuple[int, int, int]:
    match = _TIME_RE.match(time) if isinstance(time, str) else None
    if match is None:
        raise InvalidTimeFormat(f"Invalid time format {time!r}. Use HH:MM or HH:MM:SS")

    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3)) if match.group(3) is not None else 0
    if hours > 23 or minutes > 59 or seconds > 59:
        raise InvalidTimeFormat(f"Time out of range: {time!r}")
    return hours, minutes, seconds


def parse_time_to_minutes(time: str) -> int:
    """Return minutes since midnight for ``HH:MM`` or ``HH:MM:SS``.

    Seconds are validated but otherwise ignored.
    """
    hours, minutes, _ = _split(time)
    return hours * 60 + minutes


def format_minutes_to_time(minutes: int) -> str:
    """Render minutes since midnight as ``HH:MM:SS`` with seconds fixed at ``00``."""
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise InvalidTimeFormat(f"Minutes out of range for a wall-clock time: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}:00"


def normalize_time(time: str) -> str:
    """``9:30`` -> ``09:30:00``."""
    return format_minutes_to_time(parse_time_to_minutes(time))


def is_valid_time_format(time: str) -> bool:
    try:
        _split(time)
    except InvalidTimeFormat:
        return False
    return True


def add_minutes_to_time(time: str, minutes: int) -> str:
    return format_minutes_to_time(parse_time_to_minutes(time) + minutes)


def calculate_duration(start_time: str, end_time: str) -> int:
    """Duration in minutes between two times on the same day (negative if reversed)."""
    return parse_time_to_minutes(end_time) - parse_time_to_minutes(start_time)


def format_time_for_display(time: str) -> str:
    """``13:05:00`` -> ``1:05 PM``."""
    hours, minutes, _ = _split(time)
    period = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}:{minutes:02d} {period}"


def format_time_range_for_display(start_time: str, end_time: str) -> str:
    return f"{format_time_for_display(start_time)} - {format_time_for_display(end_time)}"
