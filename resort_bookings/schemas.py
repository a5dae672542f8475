from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from resort_bookings.models import (
    AuditAction,
    BookingStatus,
    EventSlot,
    SlotStatus,
)

MAX_GUESTS = 1000


class BookingDraft(BaseModel):
    """Public booking request, shape-validated before it reaches the engine."""

    name: str = Field(min_length=2, max_length=100)
    phone: str = Field(min_length=10, max_length=32, pattern=r"^\+?[0-9\s\-()]+$")
    event_date: date
    event_slot: EventSlot
    event_type: str = Field(min_length=3, max_length=100)
    guest_count: int = Field(ge=1, le=MAX_GUESTS)
    message: str | None = Field(default=None, max_length=1000)


class AdminBookingDraft(BookingDraft):
    status: BookingStatus = BookingStatus.PENDING

    @field_validator("status", mode="after")
    @classmethod
    def initial_status_allowed(cls, v: BookingStatus) -> BookingStatus:
        if v == BookingStatus.CANCELLED:
            raise ValueError("initial status must be 'pending' or 'confirmed'")
        return v


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    notes: str | None = Field(default=None, max_length=1000)


class BookingResponse(BaseModel):
    id: UUID
    name: str
    phone: str
    event_date: date
    event_slot: EventSlot
    event_type: str
    guest_count: int
    message: str | None
    status: BookingStatus
    created_at: datetime
    updated_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class AuditLogEntryResponse(BaseModel):
    timestamp: datetime
    actor_id: str
    action: AuditAction
    previous_status: BookingStatus | None
    new_status: BookingStatus | None
    notes: str | None
    details: dict[str, Any] | None

    model_config = ConfigDict(from_attributes=True)


class BookingDetail(BookingResponse):
    audit_log: list[AuditLogEntryResponse] = Field(default_factory=list)


class MutationResponse(BaseModel):
    """
    Result of a committed mutation. ``degraded`` is True when the change
    stands but the audit entry or the availability refresh did not go through.
    """

    booking: BookingResponse
    changed: bool = True
    previous_status: BookingStatus | None = None
    degraded: bool = False
    warnings: list[str] = Field(default_factory=list)


class DailyAvailabilityResponse(BaseModel):
    date: date
    morning: SlotStatus
    evening: SlotStatus


class HolidayCreate(BaseModel):
    name: str = Field(default="Holiday", min_length=2, max_length=100)


class HolidayResponse(BaseModel):
    id: str
    name: str
    date: date

    model_config = ConfigDict(from_attributes=True)


class BookingFilters(BaseModel):
    """Bind to a FastAPI route via Depends(BookingFilters)."""

    event_date: date | None = None
    status: BookingStatus | None = None

    # Pagination
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
