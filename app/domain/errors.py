"""Error taxonomy for the booking engine."""

from __future__ import annotations


class BookingError(Exception):
    """Base class for all booking-engine errors."""


class InvalidTimeFormat(BookingError, ValueError):
    """A wall-clock time string or minute value could not be interpreted."""


class InvalidBookingTime(BookingError, ValueError):
    """A booking interval does not end strictly after it starts."""


class RoomNotFound(BookingError):
    def __init__(self, room_id: str) -> None:
        super().__init__(f"Room not found: {room_id}")
        self.room_id = room_id


class BookingNotFound(BookingError):
    def __init__(self, booking_id: str) -> None:
        super().__init__(f"Booking not found: {booking_id}")
        self.booking_id = booking_id


class RoomInactive(BookingError):
    def __init__(self, room_id: str, status: str) -> None:
        super().__init__(f"Room {room_id} is not available for booking (status: {status})")
        self.room_id = room_id
        self.status = status


class SlotConflict(BookingError):
    """The requested interval overlaps an existing confirmed booking."""

    def __init__(self, conflicting_booking_ids: list[str] | None = None) -> None:
        super().__init__("This time slot is already booked. Please choose another time.")
        self.conflicting_booking_ids = conflicting_booking_ids or []


class InvalidBookingTransition(BookingError):
    def __init__(self, booking_id: str, current: str, target: str) -> None:
        super().__init__(f"Booking {booking_id} cannot move from {current} to {target}")
        self.booking_id = booking_id
        self.current = current
        self.target = target


class StoreUnavailable(BookingError):
    """The backing store could not be reached. Safe for callers to retry."""


class ExclusionViolation(Exception):
    """Raised by a store when a write would overlap a confirmed booking."""

    def __init__(self, conflicting_booking_ids: list[str]) -> None:
        super().__init__(f"Overlaps confirmed bookings: {', '.join(conflicting_booking_ids)}")
        self.conflicting_booking_ids = conflicting_booking_ids


class StaleWrite(Exception):
    """Raised by a store when a conditional write finds the row has moved on."""

    def __init__(self, current) -> None:
        super().__init__(f"Booking {current.id} changed concurrently (status: {current.status})")
        self.current = current
