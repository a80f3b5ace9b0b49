"""Domain event handlers: wired up at application startup."""

from __future__ import annotations

import logging

from app.domain.bus import EventBus
from app.domain.events import (
    BookingCancelled,
    BookingConfirmed,
    BookingReminderDue,
    BookingsCompleted,
    BookingUpdated,
)
from app.domain.models import NotificationType
from app.repos.base import BookingStore
from app.repos.memory import NotificationLogRepository
from app.services.notifications import NotificationDispatcher, send_booking_notification

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Wires domain-event handlers to the bus with access to the store and notifier."""

    def __init__(
        self,
        bus: EventBus,
        store: BookingStore,
        notification_log_repo: NotificationLogRepository,
        dispatcher: NotificationDispatcher,
        reminder_minutes: int = 30,
    ) -> None:
        self.bus = bus
        self.store = store
        self.notification_log_repo = notification_log_repo
        self.dispatcher = dispatcher
        self.reminder_minutes = reminder_minutes
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(BookingConfirmed, self.on_booking_confirmed)
        self.bus.subscribe(BookingUpdated, self.on_booking_updated)
        self.bus.subscribe(BookingCancelled, self.on_booking_cancelled)
        self.bus.subscribe(BookingReminderDue, self.on_booking_reminder_due)
        self.bus.subscribe(BookingsCompleted, self.on_bookings_completed)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_booking_confirmed(self, event: BookingConfirmed) -> None:
        self._notify(event.booking_id, NotificationType.BOOKING_CONFIRMED)

    def on_booking_updated(self, event: BookingUpdated) -> None:
        self._notify(event.booking_id, NotificationType.BOOKING_UPDATED)

    def on_booking_cancelled(self, event: BookingCancelled) -> None:
        self._notify(event.booking_id, NotificationType.BOOKING_CANCELLED)

    def on_booking_reminder_due(self, event: BookingReminderDue) -> None:
        self._notify(event.booking_id, NotificationType.BOOKING_REMINDER)

    def on_bookings_completed(self, event: BookingsCompleted) -> None:
        logger.info("Marked %d bookings completed", len(event.booking_ids))

    def _notify(self, booking_id: str, notification_type: NotificationType) -> None:
        booking = self.store.get_booking(booking_id)
        if booking is None:
            return
        room = self.store.get_room_by_id(booking.room_id)
        send_booking_notification(
            self.dispatcher,
            self.notification_log_repo,
            booking,
            room,
            notification_type,
            reminder_minutes=self.reminder_minutes,
        )
