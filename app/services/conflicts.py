"""Service for detecting scheduling conflicts between bookings."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TypeVar

from app.services.timeofday import parse_time_to_minutes

T = TypeVar("T")


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Return True if the half-open minute intervals ``[start, end)`` overlap.

    Overlap rule: conflict if start_a < end_b AND start_b < end_a.
    Exact boundary touches (end == start) are NOT considered conflicts, so
    back-to-back bookings are allowed.
    """
    return start_a < end_b and start_b < end_a


def time_ranges_overlap(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    """Same as :func:`overlaps` but on ``HH:MM[:SS]`` strings."""
    return overlaps(
        parse_time_to_minutes(start_a),
        parse_time_to_minutes(end_a),
        parse_time_to_minutes(start_b),
        parse_time_to_minutes(end_b),
    )


def find_conflicts(start_time: str, end_time: str, bookings: Iterable[T]) -> list[T]:
    """Return the bookings whose ``start_time``/``end_time`` overlap the given range."""
    return [
        booking
        for booking in bookings
        if time_ranges_overlap(start_time, end_time, booking.start_time, booking.end_time)
    ]
