"""Domain events emitted after booking mutations are committed."""

from __future__ import annotations

from pydantic import BaseModel


class BookingConfirmed(BaseModel):
    """Fired when a new booking is persisted."""

    booking_id: str


class BookingUpdated(BaseModel):
    """Fired when a confirmed booking is edited."""

    booking_id: str
    changed_fields: list[str]


class BookingCancelled(BaseModel):
    """Fired the first time a booking is cancelled."""

    booking_id: str


class BookingReminderDue(BaseModel):
    """Fired by the reminder sweep (via /tick) for an upcoming booking."""

    booking_id: str


class BookingsCompleted(BaseModel):
    booking_ids: list[str]
