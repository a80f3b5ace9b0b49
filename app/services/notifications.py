"""Best-effort booking notifications."""

from __future__ import annotations

import logging
from typing import Protocol

from app.domain.models import (
    Booking,
    NotificationRecord,
    NotificationStatus,
    NotificationType,
    Room,
)
from app.repos.memory import NotificationLogRepository
from app.services.timeofday import format_time_for_display

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    channel: str

    def dispatch(self, booking: Booking, subject: str, body: str) -> None:
        """Deliver a message about *booking*. Raise on delivery failure."""


class LoggingDispatcher:
    """Dispatcher that only writes the message to the application log."""

    def __init__(self, channel: str = "log") -> None:
        self.channel = channel

    def dispatch(self, booking: Booking, subject: str, body: str) -> None:
        logger.info("[%s] to user %s: %s - %s", self.channel, booking.user_id, subject, body)


def render_message(
    notification_type: NotificationType,
    booking: Booking,
    room: Room | None,
    reminder_minutes: int,
) -> tuple[str, str]:
    """Return ``(subject, body)`` for a notification."""
    room_name = room.name if room is not None else booking.room_id
    when = format_time_for_display(booking.start_time)

    if notification_type == NotificationType.BOOKING_CONFIRMED:
        return (
            "Booking Confirmed!",
            f"Your booking for {room_name} on {booking.booking_date} at {when} "
            "has been confirmed",
        )
    if notification_type == NotificationType.BOOKING_CANCELLED:
        return (
            "Booking Cancelled",
            f"Your booking for {room_name} on {booking.booking_date} has been cancelled",
        )
    if notification_type == NotificationType.BOOKING_REMINDER:
        return (
            "Booking Reminder",
            f"Your booking for {room_name} starts in {reminder_minutes} minutes",
        )
    return ("Booking Updated", f"Your booking for {room_name} has been updated")


def send_booking_notification(
    dispatcher: NotificationDispatcher,
    log_repo: NotificationLogRepository,
    booking: Booking,
    room: Room | None,
    notification_type: NotificationType,
    reminder_minutes: int = 30,
) -> NotificationRecord:
    """Dispatch one notification and record the outcome.

    Delivery failures are logged and recorded as ``failed``; they never
    propagate to the caller.
    """
    subject, body = render_message(notification_type, booking, room, reminder_minutes)
    record = NotificationRecord(
        booking_id=booking.id,
        notification_type=notification_type,
        channel=dispatcher.channel,
        status=NotificationStatus.SENT,
        subject=subject,
        body=body,
    )
    try:
        dispatcher.dispatch(booking, subject, body)
    except Exception as exc:
        logger.exception(
            "Failed to send %s for booking %s", notification_type, booking.id
        )
        record.status = NotificationStatus.FAILED
        record.error_message = str(exc)

    log_repo.add(record)
    return record
