"""Tests for overlap exclusion and status transitions under concurrent writers."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Callable

import pytest

from app.domain.bus import EventBus
from app.domain.errors import ExclusionViolation, InvalidBookingTransition, SlotConflict
from app.domain.events import BookingCancelled, BookingReminderDue, BookingUpdated
from app.domain.models import (
    Booking,
    BookingStatus,
    CancelBookingRequest,
    CreateBookingRequest,
    Room,
    UpdateBookingRequest,
)
from app.repos.memory import InMemoryBookingStore
from app.services.bookings import BookingService


class RacingStore(InMemoryBookingStore):
    """Holds every availability read until all writers have made theirs."""

    def __init__(self, parties: int) -> None:
        super().__init__()
        self.barrier = threading.Barrier(parties, timeout=5)

    def list_confirmed_bookings(self, room_id, booking_date, exclude_id=None):
        result = super().list_confirmed_bookings(room_id, booking_date, exclude_id)
        self.barrier.wait()
        return result


def test_concurrent_creates_cannot_double_book():
    writers = 4
    store = RacingStore(parties=writers)
    service = BookingService(store=store, bus=EventBus())
    room = store.add_room(
        Room(name="Board Room", operating_hours_start="08:00", operating_hours_end="18:00")
    )

    outcomes: list[object] = []
    lock = threading.Lock()

    def _attempt(user: str) -> None:
        try:
            result: object = service.create_booking(
                CreateBookingRequest(
                    user_id=user,
                    room_id=room.id,
                    booking_date="2026-06-02",
                    start_time="09:00",
                    end_time="10:00",
                )
            )
        except SlotConflict as exc:
            result = exc
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=_attempt, args=(f"user-{i}",)) for i in range(writers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    created = [o for o in outcomes if isinstance(o, Booking)]
    rejected = [o for o in outcomes if isinstance(o, SlotConflict)]
    assert len(created) == 1
    assert len(rejected) == writers - 1
    assert len(store.list_bookings()) == 1


def test_store_rejects_overlapping_insert_directly():
    store = InMemoryBookingStore()
    first = store.insert_booking(
        Booking(
            user_id="a",
            room_id="r",
            booking_date="2026-06-02",
            start_time="09:00",
            end_time="10:00",
        )
    )

    with pytest.raises(ExclusionViolation) as excinfo:
        store.insert_booking(
            Booking(
                user_id="b",
                room_id="r",
                booking_date="2026-06-02",
                start_time="09:30",
                end_time="10:30",
            )
        )
    assert excinfo.value.conflicting_booking_ids == [first.id]

    # Touching endpoints and other rooms are fine.
    store.insert_booking(
        Booking(user_id="b", room_id="r", booking_date="2026-06-02", start_time="10:00", end_time="11:00")
    )
    store.insert_booking(
        Booking(user_id="c", room_id="other", booking_date="2026-06-02", start_time="09:00", end_time="10:00")
    )
    assert len(store.list_bookings()) == 3


def test_concurrent_updates_cannot_move_into_the_same_slot():
    store = RacingStore(parties=2)
    service = BookingService(store=store, bus=EventBus())
    room = store.add_room(
        Room(name="Board Room", operating_hours_start="08:00", operating_hours_end="18:00")
    )
    a = store.insert_booking(
        Booking(user_id="a", room_id=room.id, booking_date="2026-06-02", start_time="09:00", end_time="10:00")
    )
    b = store.insert_booking(
        Booking(user_id="b", room_id=room.id, booking_date="2026-06-02", start_time="10:00", end_time="11:00")
    )

    outcomes: list[object] = []
    lock = threading.Lock()

    def _move(booking_id: str, start: str, end: str) -> None:
        try:
            result: object = service.update_booking(
                booking_id, UpdateBookingRequest(start_time=start, end_time=end)
            )
        except SlotConflict as exc:
            result = exc
        with lock:
            outcomes.append(result)

    threads = [
        threading.Thread(target=_move, args=(a.id, "13:00", "14:00")),
        threading.Thread(target=_move, args=(b.id, "13:30", "14:30")),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    moved = [o for o in outcomes if isinstance(o, Booking)]
    rejected = [o for o in outcomes if isinstance(o, SlotConflict)]
    assert len(moved) == 1
    assert len(rejected) == 1
    assert rejected[0].conflicting_booking_ids == [moved[0].id]

    loser = b if moved[0].id == a.id else a
    assert store.get_booking(loser.id).start_time == loser.start_time


# ---------------------------------------------------------------------------
# Status transitions racing a competing write
# ---------------------------------------------------------------------------


class InterleavingStore(InMemoryBookingStore):
    """Runs a competing write right after the service has read its data."""

    def __init__(self) -> None:
        super().__init__()
        self.after_get: dict[str, Callable[[], object]] = {}
        self.after_list: Callable[[], object] | None = None

    def get_booking(self, booking_id):
        booking = super().get_booking(booking_id)
        competing = self.after_get.pop(booking_id, None)
        if competing is not None:
            competing()
        return booking

    def list_bookings(self, filters=None):
        bookings = super().list_bookings(filters)
        competing, self.after_list = self.after_list, None
        if competing is not None:
            competing()
        return bookings


@pytest.fixture()
def interleaved():
    store = InterleavingStore()
    bus = EventBus()
    published: list = []
    for event_type in (BookingCancelled, BookingUpdated, BookingReminderDue):
        bus.subscribe(event_type, published.append)
    service = BookingService(
        store=store,
        bus=bus,
        clock=lambda: datetime(2026, 6, 2, 9, 45, tzinfo=timezone.utc),
    )
    room = store.add_room(
        Room(name="Board Room", operating_hours_start="08:00", operating_hours_end="18:00")
    )
    booking = store.insert_booking(
        Booking(user_id="a", room_id=room.id, booking_date="2026-06-02", start_time="10:00", end_time="11:00")
    )
    return store, service, booking, published


def test_cancel_does_not_overwrite_a_concurrent_completion(interleaved):
    store, service, booking, published = interleaved
    store.after_get[booking.id] = lambda: store.mark_completed([booking.id])

    with pytest.raises(InvalidBookingTransition):
        service.cancel_booking(booking.id)

    stored = store.get_booking(booking.id)
    assert stored.status == BookingStatus.COMPLETED
    assert stored.cancelled_at is None
    assert published == []


def test_update_does_not_edit_a_concurrently_completed_booking(interleaved):
    store, service, booking, published = interleaved
    store.after_get[booking.id] = lambda: store.mark_completed([booking.id])

    with pytest.raises(InvalidBookingTransition):
        service.update_booking(booking.id, UpdateBookingRequest(start_time="09:30"))

    stored = store.get_booking(booking.id)
    assert stored.status == BookingStatus.COMPLETED
    assert stored.start_time == "10:00:00"
    assert published == []


def test_concurrent_cancels_publish_once(interleaved):
    store, service, booking, published = interleaved
    first: list[Booking] = []
    store.after_get[booking.id] = lambda: first.append(
        service.cancel_booking(booking.id, CancelBookingRequest(cancellation_reason="first"))
    )

    second = service.cancel_booking(
        booking.id, CancelBookingRequest(cancellation_reason="second")
    )

    assert second.status == BookingStatus.CANCELLED
    assert second.cancellation_reason == "first"
    assert second.cancelled_at == first[0].cancelled_at
    assert [type(e) for e in published] == [BookingCancelled]


def test_concurrent_reminder_sweeps_remind_once(interleaved):
    store, service, booking, published = interleaved
    inner: list[list[str]] = []
    store.after_list = lambda: inner.append(service.send_due_reminders())

    outer = service.send_due_reminders()

    assert inner == [[booking.id]]
    assert outer == []
    assert [type(e) for e in published] == [BookingReminderDue]
