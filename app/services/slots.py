"""Slot grid generation from a room's operating window."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from app.domain.models import TimeSlot
from app.services.conflicts import overlaps
from app.services.timeofday import format_minutes_to_time, parse_time_to_minutes


def generate_slots(
    operating_start: str,
    operating_end: str,
    slot_duration_minutes: int,
    existing_bookings: Sequence[Any],
) -> list[TimeSlot]:
    """Build the ordered slot grid for one day.

    Slots are contiguous and exactly ``slot_duration_minutes`` long, starting at
    ``operating_start``. A trailing remainder shorter than one slot is dropped.
    A slot is available iff it overlaps none of ``existing_bookings`` (anything
    with ``start_time``/``end_time`` strings).

    Returns an empty list when the window is empty or reversed, or when the
    duration is not positive.
    """
    start = parse_time_to_minutes(operating_start)
    end = parse_time_to_minutes(operating_end)
    if slot_duration_minutes <= 0 or end <= start:
        return []

    booked = [
        (parse_time_to_minutes(b.start_time), parse_time_to_minutes(b.end_time))
        for b in existing_bookings
    ]

    slots: list[TimeSlot] = []
    cursor = start
    while cursor + slot_duration_minutes <= end:
        slot_end = cursor + slot_duration_minutes
        is_available = not any(
            overlaps(cursor, slot_end, b_start, b_end) for b_start, b_end in booked
        )
        slots.append(
            TimeSlot(
                start_time=format_minutes_to_time(cursor),
                end_time=format_minutes_to_time(slot_end),
                is_available=is_available,
            )
        )
        cursor = slot_end

    return slots
