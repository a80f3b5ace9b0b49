"""Domain models for rooms, bookings and availability grids."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator, model_validator

from app.services.timeofday import normalize_time, parse_time_to_minutes

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class RoomStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class BookingStatus(StrEnum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class NotificationType(StrEnum):
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_REMINDER = "booking_reminder"
    BOOKING_UPDATED = "booking_updated"


class NotificationStatus(StrEnum):
    SENT = "sent"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _check_end_after_start(start_time: str, end_time: str, what: str) -> None:
    if parse_time_to_minutes(end_time) <= parse_time_to_minutes(start_time):
        raise ValueError(f"{what} end time must be after start time")


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class Room(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    description: str | None = None
    capacity: int | None = Field(default=None, gt=0)
    status: RoomStatus = RoomStatus.ACTIVE
    operating_hours_start: str
    operating_hours_end: str
    slot_duration_minutes: int = Field(default=60, gt=0)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("operating_hours_start", "operating_hours_end")
    @classmethod
    def _normalize_hours(cls, value: str) -> str:
        return normalize_time(value)

    @model_validator(mode="after")
    def _end_after_start(self) -> Room:
        _check_end_after_start(
            self.operating_hours_start, self.operating_hours_end, "Operating hours"
        )
        return self


class Booking(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    room_id: str
    booking_date: str = Field(pattern=DATE_PATTERN)
    start_time: str
    end_time: str
    status: BookingStatus = BookingStatus.CONFIRMED
    notes: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    cancellation_reason: str | None = None
    reminder_sent_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_times(cls, value: str) -> str:
        return normalize_time(value)

    @model_validator(mode="after")
    def _end_after_start(self) -> Booking:
        _check_end_after_start(self.start_time, self.end_time, "Booking")
        return self


class TimeSlot(BaseModel):
    start_time: str
    end_time: str
    is_available: bool


class RoomAvailability(BaseModel):
    room_id: str
    booking_date: str
    slots: list[TimeSlot] = Field(default_factory=list)


class NotificationRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    booking_id: str
    notification_type: NotificationType
    channel: str
    status: NotificationStatus
    subject: str
    body: str
    error_message: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class CreateRoomRequest(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    capacity: int | None = Field(default=None, gt=0)
    status: RoomStatus = RoomStatus.ACTIVE
    operating_hours_start: str
    operating_hours_end: str
    slot_duration_minutes: int = Field(default=60, ge=15, le=480)

    @field_validator("operating_hours_start", "operating_hours_end")
    @classmethod
    def _normalize_hours(cls, value: str) -> str:
        return normalize_time(value)

    @model_validator(mode="after")
    def _end_after_start(self) -> CreateRoomRequest:
        _check_end_after_start(
            self.operating_hours_start, self.operating_hours_end, "Operating hours"
        )
        return self


class CreateBookingRequest(BaseModel):
    user_id: str
    room_id: str
    booking_date: str = Field(pattern=DATE_PATTERN)
    start_time: str
    end_time: str
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_times(cls, value: str) -> str:
        return normalize_time(value)

    @model_validator(mode="after")
    def _end_after_start(self) -> CreateBookingRequest:
        _check_end_after_start(self.start_time, self.end_time, "Booking")
        return self


class UpdateBookingRequest(BaseModel):
    """Partial update. Omitted fields keep their stored values."""

    room_id: str | None = None
    booking_date: str | None = Field(default=None, pattern=DATE_PATTERN)
    start_time: str | None = None
    end_time: str | None = None
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize(cls, value: str | None) -> str | None:
        return normalize_time(value) if value is not None else None

    def changes_slot(self) -> bool:
        return any(
            v is not None
            for v in (self.room_id, self.booking_date, self.start_time, self.end_time)
        )


class CancelBookingRequest(BaseModel):
    cancelled_by: str | None = None
    cancellation_reason: str | None = Field(default=None, max_length=500)


class AvailabilityCheckRequest(BaseModel):
    room_id: str
    booking_date: str = Field(pattern=DATE_PATTERN)
    start_time: str
    end_time: str
    exclude_booking_id: str | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_times(cls, value: str) -> str:
        return normalize_time(value)

    @model_validator(mode="after")
    def _end_after_start(self) -> AvailabilityCheckRequest:
        _check_end_after_start(self.start_time, self.end_time, "Booking")
        return self


class BookingFilters(BaseModel):
    room_id: str | None = None
    user_id: str | None = None
    status: BookingStatus | None = None
    start_date: str | None = Field(default=None, pattern=DATE_PATTERN)
    end_date: str | None = Field(default=None, pattern=DATE_PATTERN)

    def matches(self, booking: Booking) -> bool:
        if self.room_id is not None and booking.room_id != self.room_id:
            return False
        if self.user_id is not None and booking.user_id != self.user_id:
            return False
        if self.status is not None and booking.status != self.status:
            return False
        if self.start_date is not None and booking.booking_date < self.start_date:
            return False
        if self.end_date is not None and booking.booking_date > self.end_date:
            return False
        return True
