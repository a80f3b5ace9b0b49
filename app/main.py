"""FastAPI application: entry point for the room booking service."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.domain.bus import EventBus
from app.domain.errors import (
    BookingError,
    BookingNotFound,
    InvalidBookingTime,
    InvalidBookingTransition,
    InvalidTimeFormat,
    RoomInactive,
    RoomNotFound,
    SlotConflict,
    StoreUnavailable,
)
from app.domain.handlers import HandlerRegistry
from app.domain.models import (
    DATE_PATTERN,
    AvailabilityCheckRequest,
    Booking,
    BookingFilters,
    CancelBookingRequest,
    CreateBookingRequest,
    CreateRoomRequest,
    NotificationRecord,
    Room,
    RoomAvailability,
    UpdateBookingRequest,
)
from app.repos.memory import NotificationLogRepository, create_booking_store
from app.services.availability import get_room_availability
from app.services.bookings import BookingService
from app.services.notifications import LoggingDispatcher

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Room Booking Service")

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
store = create_booking_store(seed=settings.seed_rooms)
notification_log_repo = NotificationLogRepository()

handler_registry = HandlerRegistry(
    bus=event_bus,
    store=store,
    notification_log_repo=notification_log_repo,
    dispatcher=LoggingDispatcher(channel=settings.notification_channel),
    reminder_minutes=settings.reminder_minutes,
)
booking_service = BookingService(
    store=store,
    bus=event_bus,
    tz=settings.tzinfo,
    reminder_minutes=settings.reminder_minutes,
)


# ── Error mapping ─────────────────────────────────────────────────────

_STATUS_CODES: dict[type[BookingError], int] = {
    RoomNotFound: 404,
    BookingNotFound: 404,
    RoomInactive: 409,
    SlotConflict: 409,
    InvalidBookingTransition: 409,
    InvalidTimeFormat: 422,
    InvalidBookingTime: 422,
    StoreUnavailable: 503,
}


@app.exception_handler(BookingError)
def _booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    status_code = next(
        (code for kind, code in _STATUS_CODES.items() if isinstance(exc, kind)), 400
    )
    content: dict = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, SlotConflict):
        content["conflicting_booking_ids"] = exc.conflicting_booking_ids
    if isinstance(exc, StoreUnavailable):
        logger.error("Store unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=content)


# ── Routes: rooms ─────────────────────────────────────────────────────


@app.post("/rooms", response_model=Room, status_code=201)
def create_room(payload: CreateRoomRequest) -> Room:
    """Register a bookable room."""
    room = Room(**payload.model_dump())
    return store.add_room(room)


@app.get("/rooms", response_model=list[Room])
def list_rooms() -> list[Room]:
    return store.list_rooms()


@app.get("/rooms/{room_id}", response_model=Room)
def get_room(room_id: str) -> Room:
    room = store.get_room_by_id(room_id)
    if room is None:
        raise RoomNotFound(room_id)
    return room


@app.get("/rooms/{room_id}/availability", response_model=RoomAvailability)
def room_availability(
    room_id: str, booking_date: Annotated[str, Query(pattern=DATE_PATTERN)]
) -> RoomAvailability:
    """Return the day's slot grid. Advisory only; bookings re-check on submit."""
    return get_room_availability(store, room_id, booking_date)


# ── Routes: bookings ──────────────────────────────────────────────────


@app.post("/bookings/check-availability")
def check_availability(payload: AvailabilityCheckRequest) -> dict:
    available = booking_service.check_availability(
        payload.room_id,
        payload.booking_date,
        payload.start_time,
        payload.end_time,
        exclude_booking_id=payload.exclude_booking_id,
    )
    return {"available": available}


@app.post("/bookings", response_model=Booking, status_code=201)
def create_booking(payload: CreateBookingRequest) -> Booking:
    return booking_service.create_booking(payload)


@app.get("/bookings", response_model=list[Booking])
def list_bookings(filters: Annotated[BookingFilters, Query()]) -> list[Booking]:
    """Return bookings, newest date first, optionally filtered."""
    return booking_service.list_bookings(filters)


@app.get("/bookings/{booking_id}", response_model=Booking)
def get_booking(booking_id: str) -> Booking:
    return booking_service.get_booking(booking_id)


@app.patch("/bookings/{booking_id}", response_model=Booking)
def update_booking(booking_id: str, payload: UpdateBookingRequest) -> Booking:
    return booking_service.update_booking(booking_id, payload)


@app.post("/bookings/{booking_id}/cancel", response_model=Booking)
def cancel_booking(booking_id: str, payload: CancelBookingRequest | None = None) -> Booking:
    return booking_service.cancel_booking(booking_id, payload)


@app.delete("/bookings/{booking_id}", status_code=204)
def delete_booking(booking_id: str) -> None:
    booking_service.delete_booking(booking_id)


@app.get("/bookings/{booking_id}/notifications", response_model=list[NotificationRecord])
def booking_notifications(booking_id: str) -> list[NotificationRecord]:
    booking_service.get_booking(booking_id)
    return notification_log_repo.list_for_booking(booking_id)


# ── Maintenance ───────────────────────────────────────────────────────


@app.post("/tick")
def tick() -> dict:
    """Run the periodic sweeps: complete past bookings and send due reminders."""
    completed = booking_service.mark_past_bookings_as_completed()
    reminded = booking_service.send_due_reminders()
    return {"completed": completed, "reminders_sent": reminded}
