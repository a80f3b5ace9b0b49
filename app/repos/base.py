"""Storage interface consumed by the booking engine."""

from __future__ import annotations

from typing import Any, Protocol

from app.domain.models import Booking, BookingFilters, Room


class BookingStore(Protocol):
    """Data-access boundary for rooms and bookings.

    Implementations own the overlap-exclusion constraint: ``insert_booking`` and
    ``update_booking_fields`` must raise ``ExclusionViolation`` instead of
    committing a confirmed booking that overlaps another confirmed booking for
    the same room and date.

    ``update_booking_fields`` also takes an *expected* mapping of field values
    that must still hold at commit time; a mismatch raises ``StaleWrite``
    carrying the stored booking, so state transitions are compare-and-set.
    Any method may raise ``StoreUnavailable``.
    """

    def get_room_by_id(self, room_id: str) -> Room | None: ...

    def add_room(self, room: Room) -> Room: ...

    def list_rooms(self) -> list[Room]: ...

    def get_booking(self, booking_id: str) -> Booking | None: ...

    def list_confirmed_bookings(
        self, room_id: str, booking_date: str, exclude_id: str | None = None
    ) -> list[Booking]: ...

    def list_bookings(self, filters: BookingFilters | None = None) -> list[Booking]: ...

    def insert_booking(self, booking: Booking) -> Booking: ...

    def update_booking_fields(
        self,
        booking_id: str,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> Booking | None: ...

    def delete_booking(self, booking_id: str) -> bool: ...

    def mark_completed(self, booking_ids: list[str]) -> int: ...
