"""Tests for the event bus, notification handlers and failure isolation."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.domain.bus import EventBus
from app.domain.events import BookingConfirmed, BookingReminderDue
from app.domain.handlers import HandlerRegistry
from app.domain.models import (
    BookingStatus,
    CancelBookingRequest,
    CreateBookingRequest,
    NotificationStatus,
    NotificationType,
    Room,
    UpdateBookingRequest,
)
from app.repos.memory import InMemoryBookingStore, NotificationLogRepository
from app.services.bookings import BookingService
from app.services.notifications import LoggingDispatcher, render_message

_NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


class RecordingDispatcher:
    channel = "test"

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def dispatch(self, booking, subject: str, body: str) -> None:
        self.sent.append((booking.id, subject))


class BrokenDispatcher:
    channel = "broken"

    def dispatch(self, booking, subject: str, body: str) -> None:
        raise ConnectionError("smtp down")


def _build_env(dispatcher):
    bus = EventBus()
    store = InMemoryBookingStore()
    log_repo = NotificationLogRepository()
    HandlerRegistry(
        bus=bus,
        store=store,
        notification_log_repo=log_repo,
        dispatcher=dispatcher,
        reminder_minutes=15,
    )
    service = BookingService(store=store, bus=bus, clock=lambda: _NOW, reminder_minutes=15)
    room = store.add_room(
        Room(name="Board Room", operating_hours_start="08:00", operating_hours_end="18:00")
    )

    class Env:
        pass

    e = Env()
    e.bus = bus
    e.store = store
    e.log_repo = log_repo
    e.service = service
    e.room = room
    e.dispatcher = dispatcher
    return e


@pytest.fixture()
def env():
    return _build_env(RecordingDispatcher())


def _book(env, start="10:00", end="11:00", booking_date="2026-06-02"):
    return env.service.create_booking(
        CreateBookingRequest(
            user_id="user-1",
            room_id=env.room.id,
            booking_date=booking_date,
            start_time=start,
            end_time=end,
        )
    )


# ---------------------------------------------------------------------------
# Bus
# ---------------------------------------------------------------------------


def test_bus_calls_handlers_in_order():
    bus = EventBus()
    calls: list[str] = []
    bus.subscribe(BookingConfirmed, lambda e: calls.append("first"))
    bus.subscribe(BookingConfirmed, lambda e: calls.append("second"))

    bus.publish(BookingConfirmed(booking_id="b1"))

    assert calls == ["first", "second"]


def test_bus_isolates_failing_handler(caplog):
    bus = EventBus()
    calls: list[str] = []

    def _explode(event):
        raise RuntimeError("boom")

    bus.subscribe(BookingConfirmed, _explode)
    bus.subscribe(BookingConfirmed, lambda e: calls.append(e.booking_id))

    bus.publish(BookingConfirmed(booking_id="b1"))

    assert calls == ["b1"]
    assert "failed for BookingConfirmed" in caplog.text


# ---------------------------------------------------------------------------
# Notifications per mutation
# ---------------------------------------------------------------------------


def test_create_update_cancel_each_notify(env):
    booking = _book(env)
    env.service.update_booking(booking.id, UpdateBookingRequest(end_time="11:30"))
    env.service.cancel_booking(booking.id, CancelBookingRequest())
    env.service.cancel_booking(booking.id)

    records = env.log_repo.list_for_booking(booking.id)
    assert [r.notification_type for r in records] == [
        NotificationType.BOOKING_CONFIRMED,
        NotificationType.BOOKING_UPDATED,
        NotificationType.BOOKING_CANCELLED,
    ]
    assert all(r.status == NotificationStatus.SENT for r in records)
    assert [subject for _, subject in env.dispatcher.sent] == [
        "Booking Confirmed!",
        "Booking Updated",
        "Booking Cancelled",
    ]


def test_failed_notification_never_reverts_booking():
    env = _build_env(BrokenDispatcher())

    booking = _book(env)

    stored = env.store.get_booking(booking.id)
    assert stored is not None
    assert stored.status == BookingStatus.CONFIRMED

    records = env.log_repo.list_for_booking(booking.id)
    assert len(records) == 1
    assert records[0].status == NotificationStatus.FAILED
    assert records[0].error_message == "smtp down"


def test_reminder_sweep_notifies(env):
    booking = _book(env, start="12:10", end="13:00", booking_date="2026-06-01")

    assert env.service.send_due_reminders() == [booking.id]

    records = env.log_repo.list_for_booking(booking.id)
    assert records[-1].notification_type == NotificationType.BOOKING_REMINDER
    assert records[-1].body.endswith("starts in 15 minutes")


def test_event_for_deleted_booking_is_ignored(env):
    env.bus.publish(BookingReminderDue(booking_id="gone"))

    assert env.log_repo.list_for_booking("gone") == []


def test_render_message_uses_room_name_and_display_time(env):
    booking = _book(env, start="13:30", end="14:30")

    subject, body = render_message(
        NotificationType.BOOKING_CONFIRMED, booking, env.room, reminder_minutes=15
    )

    assert subject == "Booking Confirmed!"
    assert body == (
        "Your booking for Board Room on 2026-06-02 at 1:30 PM has been confirmed"
    )


def test_logging_dispatcher_writes_to_log(env, caplog):
    caplog.set_level("INFO")
    booking = _book(env)

    LoggingDispatcher().dispatch(booking, "Booking Confirmed!", "hello")

    assert "Booking Confirmed! - hello" in caplog.text
