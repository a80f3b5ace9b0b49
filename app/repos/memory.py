"""In-memory repositories for rooms, bookings and notification records."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any

from app.domain.errors import ExclusionViolation, StaleWrite
from app.domain.models import (
    Booking,
    BookingFilters,
    BookingStatus,
    NotificationRecord,
    Room,
)
from app.services.conflicts import find_conflicts


class InMemoryBookingStore:
    """Dict-backed store for rooms and bookings, keyed by id.

    Every write runs under one lock, and the overlap check for confirmed
    bookings happens inside that lock, so two writers can never both commit
    overlapping bookings for the same room and date. Reads hand out copies.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, Room] = {}
        self._bookings: dict[str, Booking] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------

    def add_room(self, room: Room) -> Room:
        with self._lock:
            self._rooms[room.id] = room
            return room.model_copy()

    def get_room_by_id(self, room_id: str) -> Room | None:
        room = self._rooms.get(room_id)
        return room.model_copy() if room is not None else None

    def list_rooms(self) -> list[Room]:
        return sorted(
            (r.model_copy() for r in self._rooms.values()), key=lambda r: r.name
        )

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: str) -> Booking | None:
        booking = self._bookings.get(booking_id)
        return booking.model_copy() if booking is not None else None

    def list_confirmed_bookings(
        self, room_id: str, booking_date: str, exclude_id: str | None = None
    ) -> list[Booking]:
        with self._lock:
            return [
                b.model_copy()
                for b in self._bookings.values()
                if b.room_id == room_id
                and b.booking_date == booking_date
                and b.status == BookingStatus.CONFIRMED
                and b.id != exclude_id
            ]

    def list_bookings(self, filters: BookingFilters | None = None) -> list[Booking]:
        filters = filters or BookingFilters()
        with self._lock:
            matched = [b.model_copy() for b in self._bookings.values() if filters.matches(b)]
        return sorted(
            matched, key=lambda b: (b.booking_date, b.start_time), reverse=True
        )

    def insert_booking(self, booking: Booking) -> Booking:
        with self._lock:
            self._check_exclusion(booking)
            self._bookings[booking.id] = booking
            return booking.model_copy()

    def update_booking_fields(
        self,
        booking_id: str,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> Booking | None:
        """Apply *fields* to a booking.

        When *expected* is given, every key must still hold that value at commit
        time, otherwise ``StaleWrite`` is raised with the stored booking.
        """
        with self._lock:
            current = self._bookings.get(booking_id)
            if current is None:
                return None
            if expected and any(
                getattr(current, key) != value for key, value in expected.items()
            ):
                raise StaleWrite(current.model_copy())
            updated = Booking.model_validate(
                {
                    **current.model_dump(),
                    **fields,
                    "updated_at": datetime.now(timezone.utc),
                }
            )
            self._check_exclusion(updated)
            self._bookings[booking_id] = updated
            return updated.model_copy()

    def delete_booking(self, booking_id: str) -> bool:
        with self._lock:
            return self._bookings.pop(booking_id, None) is not None

    def mark_completed(self, booking_ids: list[str]) -> int:
        """Flip the given confirmed bookings to completed. Returns how many changed."""
        now = datetime.now(timezone.utc)
        count = 0
        with self._lock:
            for booking_id in booking_ids:
                booking = self._bookings.get(booking_id)
                if booking is None or booking.status != BookingStatus.CONFIRMED:
                    continue
                self._bookings[booking_id] = booking.model_copy(
                    update={"status": BookingStatus.COMPLETED, "updated_at": now}
                )
                count += 1
        return count

    def clear(self) -> None:
        with self._lock:
            self._rooms.clear()
            self._bookings.clear()

    def _check_exclusion(self, candidate: Booking) -> None:
        if candidate.status != BookingStatus.CONFIRMED:
            return
        others = [
            b
            for b in self._bookings.values()
            if b.id != candidate.id
            and b.room_id == candidate.room_id
            and b.booking_date == candidate.booking_date
            and b.status == BookingStatus.CONFIRMED
        ]
        clashes = find_conflicts(candidate.start_time, candidate.end_time, others)
        if clashes:
            raise ExclusionViolation([b.id for b in clashes])


class NotificationLogRepository:
    """List-backed store for NotificationRecord instances."""

    def __init__(self) -> None:
        self._records: list[NotificationRecord] = []
        self._lock = threading.Lock()

    def add(self, record: NotificationRecord) -> None:
        with self._lock:
            self._records.append(record)

    def list_for_booking(self, booking_id: str) -> list[NotificationRecord]:
        return sorted(
            [r for r in self._records if r.booking_id == booking_id],
            key=lambda r: r.created_at,
        )

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


# ---------------------------------------------------------------------------
# Seed data – a couple of rooms for local development
# ---------------------------------------------------------------------------


def _seed_rooms(store: InMemoryBookingStore) -> None:
    store.add_room(
        Room(
            name="Board Room",
            description="Large table, video conferencing",
            capacity=12,
            operating_hours_start="08:00",
            operating_hours_end="18:00",
            slot_duration_minutes=60,
        )
    )
    store.add_room(
        Room(
            name="Focus Pod",
            capacity=2,
            operating_hours_start="07:30",
            operating_hours_end="20:00",
            slot_duration_minutes=30,
        )
    )


def create_booking_store(seed: bool = False) -> InMemoryBookingStore:
    """Return an InMemoryBookingStore, optionally pre-loaded with sample rooms."""
    store = InMemoryBookingStore()
    if seed:
        _seed_rooms(store)
    return store
