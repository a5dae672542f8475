from __future__ import annotations

from datetime import date
from uuid import UUID


class BookingError(Exception):
    """Base class for every failure the booking core reports to its callers."""

    default_message = "Booking operation failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(BookingError):
    default_message = "Booking details are invalid."


class SlotUnavailableError(BookingError):
    def __init__(self, event_date: date, slot: str) -> None:
        self.event_date = event_date
        self.slot = slot
        super().__init__(
            f"The selected slot ({slot}) on {event_date.isoformat()} "
            "is no longer available."
        )


class SlotConflictError(BookingError):
    def __init__(
        self, event_date: date, slot: str, conflicting_id: UUID | None = None
    ) -> None:
        self.event_date = event_date
        self.slot = slot
        self.conflicting_id = conflicting_id
        message = (
            f"The {slot} slot on {event_date.isoformat()} is already booked "
            "by another confirmed booking."
        )
        if conflicting_id is not None:
            message += f" Conflicting booking: {conflicting_id}."
        super().__init__(message)


class BookingNotFoundError(BookingError):
    def __init__(self, booking_id: UUID | str) -> None:
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} not found.")


class TransientStoreError(BookingError):
    """The store failed or timed out. Safe to retry status changes."""

    default_message = "The booking store is temporarily unavailable. Try again."


class ConcurrentUpdateError(TransientStoreError):
    """Another writer changed the booking between our read and our write."""

    def __init__(self, booking_id: UUID | str) -> None:
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} was modified concurrently.")
