"""Per-room, per-day availability grid."""

from __future__ import annotations

import logging

from app.domain.errors import RoomInactive, RoomNotFound
from app.domain.models import RoomAvailability, RoomStatus
from app.repos.base import BookingStore
from app.services.slots import generate_slots

logger = logging.getLogger(__name__)


def get_room_availability(
    store: BookingStore, room_id: str, booking_date: str
) -> RoomAvailability:
    """Return the slot grid for *room_id* on *booking_date*.

    Advisory only: the result is not a reservation and may be stale by the time
    a booking is submitted. Booking mutations re-check availability themselves.
    """
    room = store.get_room_by_id(room_id)
    if room is None:
        raise RoomNotFound(room_id)
    if room.status != RoomStatus.ACTIVE:
        raise RoomInactive(room_id, room.status)

    bookings = store.list_confirmed_bookings(room_id, booking_date)
    slots = generate_slots(
        room.operating_hours_start,
        room.operating_hours_end,
        room.slot_duration_minutes,
        bookings,
    )
    logger.debug(
        "Availability for room %s on %s: %d/%d slots free",
        room_id,
        booking_date,
        sum(1 for s in slots if s.is_available),
        len(slots),
    )
    return RoomAvailability(room_id=room_id, booking_date=booking_date, slots=slots)
