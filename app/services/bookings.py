"""Conflict-checked booking mutations and maintenance sweeps."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Callable

from app.domain.bus import EventBus
from app.domain.errors import (
    BookingNotFound,
    ExclusionViolation,
    InvalidBookingTime,
    InvalidBookingTransition,
    RoomInactive,
    RoomNotFound,
    SlotConflict,
    StaleWrite,
)
from app.domain.events import (
    BookingCancelled,
    BookingConfirmed,
    BookingReminderDue,
    BookingsCompleted,
    BookingUpdated,
)
from app.domain.models import (
    Booking,
    BookingFilters,
    BookingStatus,
    CancelBookingRequest,
    CreateBookingRequest,
    Room,
    RoomStatus,
    UpdateBookingRequest,
    _utcnow,
)
from app.repos.base import BookingStore
from app.services.conflicts import find_conflicts
from app.services.timeofday import parse_time_to_minutes

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class BookingService:
    """Creates, edits and cancels bookings without double-booking a room.

    ``check_availability`` is the authoritative gate in front of every write.
    The store additionally enforces the overlap exclusion at commit time, which
    closes the window between the check and the write when two requests race
    for the same slot. Status transitions are compare-and-set against the
    status read here, so a concurrent sweep or cancel is never overwritten.
    Domain events are published only after the store has accepted the write.
    """

    def __init__(
        self,
        store: BookingStore,
        bus: EventBus,
        clock: Clock = _utcnow,
        tz: tzinfo = timezone.utc,
        reminder_minutes: int = 30,
    ) -> None:
        self.store = store
        self.bus = bus
        self.clock = clock
        self.tz = tz
        self.reminder_minutes = reminder_minutes

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.store.get_booking(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking

    def list_bookings(self, filters: BookingFilters | None = None) -> list[Booking]:
        return self.store.list_bookings(filters)

    def check_availability(
        self,
        room_id: str,
        booking_date: str,
        start_time: str,
        end_time: str,
        exclude_booking_id: str | None = None,
    ) -> bool:
        """Return True iff no other confirmed booking overlaps the interval."""
        if parse_time_to_minutes(end_time) <= parse_time_to_minutes(start_time):
            raise InvalidBookingTime("Booking end time must be after start time")
        return not self._conflicts(
            room_id, booking_date, start_time, end_time, exclude_booking_id
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_booking(self, request: CreateBookingRequest) -> Booking:
        self._require_active_room(request.room_id)
        self._require_free(
            request.room_id, request.booking_date, request.start_time, request.end_time
        )

        booking = Booking(
            user_id=request.user_id,
            room_id=request.room_id,
            booking_date=request.booking_date,
            start_time=request.start_time,
            end_time=request.end_time,
            notes=request.notes or None,
            status=BookingStatus.CONFIRMED,
        )
        try:
            stored = self.store.insert_booking(booking)
        except ExclusionViolation as exc:
            logger.warning(
                "Booking for room %s on %s %s-%s lost a race to %s",
                request.room_id,
                request.booking_date,
                request.start_time,
                request.end_time,
                exc.conflicting_booking_ids,
            )
            raise SlotConflict(exc.conflicting_booking_ids) from exc

        logger.info(
            "Created booking %s for room %s on %s %s-%s",
            stored.id,
            stored.room_id,
            stored.booking_date,
            stored.start_time,
            stored.end_time,
        )
        self.bus.publish(BookingConfirmed(booking_id=stored.id))
        return stored

    def update_booking(self, booking_id: str, request: UpdateBookingRequest) -> Booking:
        existing = self.get_booking(booking_id)
        if existing.status != BookingStatus.CONFIRMED:
            raise InvalidBookingTransition(
                booking_id, existing.status, BookingStatus.CONFIRMED
            )

        fields: dict[str, object] = {}
        if request.changes_slot():
            room_id = request.room_id or existing.room_id
            booking_date = request.booking_date or existing.booking_date
            start_time = request.start_time or existing.start_time
            end_time = request.end_time or existing.end_time

            if room_id != existing.room_id:
                self._require_active_room(room_id)
            if parse_time_to_minutes(end_time) <= parse_time_to_minutes(start_time):
                raise InvalidBookingTime("Booking end time must be after start time")
            self._require_free(
                room_id, booking_date, start_time, end_time, exclude_booking_id=booking_id
            )
            fields.update(
                room_id=room_id,
                booking_date=booking_date,
                start_time=start_time,
                end_time=end_time,
            )
        if "notes" in request.model_fields_set:
            fields["notes"] = request.notes or None

        changed = [k for k, v in fields.items() if getattr(existing, k) != v]
        if not changed:
            return existing

        try:
            updated = self.store.update_booking_fields(
                booking_id, fields, expected={"status": BookingStatus.CONFIRMED}
            )
        except ExclusionViolation as exc:
            raise SlotConflict(exc.conflicting_booking_ids) from exc
        except StaleWrite as exc:
            raise InvalidBookingTransition(
                booking_id, exc.current.status, BookingStatus.CONFIRMED
            ) from exc
        if updated is None:
            raise BookingNotFound(booking_id)

        logger.info("Updated booking %s (%s)", booking_id, ", ".join(changed))
        self.bus.publish(BookingUpdated(booking_id=booking_id, changed_fields=changed))
        return updated

    def cancel_booking(
        self, booking_id: str, request: CancelBookingRequest | None = None
    ) -> Booking:
        """Cancel a confirmed booking.

        Cancelling an already-cancelled booking is a no-op that returns it
        unchanged. Completed bookings cannot be cancelled.
        """
        request = request or CancelBookingRequest()
        existing = self.get_booking(booking_id)
        if existing.status == BookingStatus.CANCELLED:
            return existing
        if existing.status == BookingStatus.COMPLETED:
            raise InvalidBookingTransition(
                booking_id, existing.status, BookingStatus.CANCELLED
            )

        try:
            updated = self.store.update_booking_fields(
                booking_id,
                {
                    "status": BookingStatus.CANCELLED,
                    "cancelled_at": self.clock(),
                    "cancelled_by": request.cancelled_by or existing.user_id,
                    "cancellation_reason": request.cancellation_reason or None,
                },
                expected={"status": BookingStatus.CONFIRMED},
            )
        except StaleWrite as exc:
            if exc.current.status == BookingStatus.CANCELLED:
                return exc.current
            raise InvalidBookingTransition(
                booking_id, exc.current.status, BookingStatus.CANCELLED
            ) from exc
        if updated is None:
            raise BookingNotFound(booking_id)

        logger.info("Cancelled booking %s", booking_id)
        self.bus.publish(BookingCancelled(booking_id=booking_id))
        return updated

    def delete_booking(self, booking_id: str) -> None:
        if not self.store.delete_booking(booking_id):
            raise BookingNotFound(booking_id)
        logger.info("Deleted booking %s", booking_id)

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    def mark_past_bookings_as_completed(self) -> int:
        """Flip confirmed bookings that have already ended to completed.

        A booking has ended when its date is before today, or it is today and
        its end time is strictly before the current minute. Idempotent.
        """
        now = self.clock().astimezone(self.tz)
        today = now.date().isoformat()
        current_minute = now.hour * 60 + now.minute

        confirmed = self.store.list_bookings(
            BookingFilters(status=BookingStatus.CONFIRMED, end_date=today)
        )
        past_ids = [
            b.id
            for b in confirmed
            if b.booking_date < today
            or parse_time_to_minutes(b.end_time) < current_minute
        ]
        if not past_ids:
            return 0

        count = self.store.mark_completed(past_ids)
        self.bus.publish(BookingsCompleted(booking_ids=past_ids))
        return count

    def send_due_reminders(self) -> list[str]:
        """Publish a reminder for each confirmed booking starting soon.

        "Soon" means within ``reminder_minutes`` from now. Each booking is
        reminded at most once. Returns the reminded booking ids.
        """
        now = self.clock().astimezone(self.tz)
        horizon = now + timedelta(minutes=self.reminder_minutes)

        candidates = self.store.list_bookings(
            BookingFilters(
                status=BookingStatus.CONFIRMED,
                start_date=now.date().isoformat(),
                end_date=horizon.date().isoformat(),
            )
        )
        reminded: list[str] = []
        for booking in candidates:
            if booking.reminder_sent_at is not None:
                continue
            starts_at = self._starts_at(booking)
            if not now <= starts_at <= horizon:
                continue
            try:
                stamped = self.store.update_booking_fields(
                    booking.id,
                    {"reminder_sent_at": now},
                    expected={"status": BookingStatus.CONFIRMED, "reminder_sent_at": None},
                )
            except StaleWrite:
                continue
            if stamped is None:
                continue
            self.bus.publish(BookingReminderDue(booking_id=booking.id))
            reminded.append(booking.id)
        return reminded

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_active_room(self, room_id: str) -> Room:
        room = self.store.get_room_by_id(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        if room.status != RoomStatus.ACTIVE:
            raise RoomInactive(room_id, room.status)
        return room

    def _conflicts(
        self,
        room_id: str,
        booking_date: str,
        start_time: str,
        end_time: str,
        exclude_booking_id: str | None = None,
    ) -> list[Booking]:
        existing = self.store.list_confirmed_bookings(
            room_id, booking_date, exclude_id=exclude_booking_id
        )
        return find_conflicts(start_time, end_time, existing)

    def _require_free(
        self,
        room_id: str,
        booking_date: str,
        start_time: str,
        end_time: str,
        exclude_booking_id: str | None = None,
    ) -> None:
        conflicts = self._conflicts(
            room_id, booking_date, start_time, end_time, exclude_booking_id
        )
        if conflicts:
            ids = [b.id for b in conflicts]
            logger.warning(
                "Rejected %s-%s in room %s on %s: overlaps %s",
                start_time,
                end_time,
                room_id,
                booking_date,
                ids,
            )
            raise SlotConflict(ids)

    def _starts_at(self, booking: Booking) -> datetime:
        minutes = parse_time_to_minutes(booking.start_time)
        return datetime.combine(
            date.fromisoformat(booking.booking_date),
            time(minutes // 60, minutes % 60),
            tzinfo=self.tz,
        )
