from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any
from uuid import UUID

from tortoise.exceptions import (
    DBConnectionError,
    OperationalError,
    TransactionManagementError,
)

from resort_bookings.datekeys import slot_key
from resort_bookings.exceptions import BookingNotFoundError, ConcurrentUpdateError
from resort_bookings.models import (
    AuditAction,
    Booking,
    BookingAuditLog,
    BookingStatus,
    EventSlot,
)
from resort_bookings.schemas import BookingDraft, BookingFilters

# Store failures worth retrying. IntegrityError subclasses OperationalError,
# so callers must handle it before catching these.
TRANSIENT_DB_ERRORS = (DBConnectionError, OperationalError, TransactionManagementError)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _confirmed_slot(
    status: BookingStatus, event_date: date, event_slot: EventSlot
) -> str | None:
    if status == BookingStatus.CONFIRMED:
        return slot_key(event_date, event_slot)
    return None


class BookingCRUD:
    """
    Durable booking records and their audit trail.

    Nothing here enforces availability rules; the transition engine wraps
    these primitives in its transactions and decides what may be written.
    """

    async def create(
        self,
        draft: BookingDraft,
        status: BookingStatus = BookingStatus.PENDING,
    ) -> Booking:
        return await Booking.create(
            name=draft.name,
            phone=draft.phone,
            event_date=draft.event_date,
            event_slot=draft.event_slot,
            event_type=draft.event_type,
            guest_count=draft.guest_count,
            message=draft.message,
            status=status,
            confirmed_slot=_confirmed_slot(status, draft.event_date, draft.event_slot),
        )

    async def get(self, booking_id: UUID, lock: bool = False) -> Booking | None:
        qs = Booking.filter(id=booking_id)
        if lock:
            qs = qs.select_for_update()
        return await qs.first()

    async def list_by_date(self, event_date: date) -> list[Booking]:
        return await Booking.filter(event_date=event_date).order_by("created_at")

    async def list_by_slot(self, event_date: date, slot: EventSlot) -> list[Booking]:
        return await Booking.filter(event_date=event_date, event_slot=slot)

    async def list_bookings(self, filters: BookingFilters) -> list[Booking]:
        """Newest first, optionally narrowed to one day and/or one status."""
        qs = Booking.all().order_by("-created_at")

        if filters.event_date is not None:
            qs = qs.filter(event_date=filters.event_date)
        if filters.status is not None:
            qs = qs.filter(status=filters.status)

        offset = (filters.page - 1) * filters.page_size
        return await qs.offset(offset).limit(filters.page_size)

    async def find_confirmed_booking(
        self,
        event_date: date,
        slot: EventSlot,
        exclude_id: UUID | None = None,
    ) -> UUID | None:
        """
        Id of a confirmed booking holding the slot, if any.
        Locks the matching rows when called inside a transaction.
        """
        qs = Booking.filter(
            event_date=event_date,
            event_slot=slot,
            status=BookingStatus.CONFIRMED,
        )
        if exclude_id is not None:
            qs = qs.exclude(id=exclude_id)
        competitor = await qs.select_for_update().first()
        return competitor.id if competitor else None

    async def update_status(
        self, booking: Booking, new_status: BookingStatus
    ) -> BookingStatus:
        """
        Compare-and-set the status of ``booking`` from the value it was read
        with. Returns the previous status.

        Raises ConcurrentUpdateError when another writer moved the status
        first, BookingNotFoundError when the row no longer exists.
        """
        previous = booking.status
        now = _utcnow()
        confirmed_slot = _confirmed_slot(
            new_status, booking.event_date, booking.event_slot
        )

        updated = await Booking.filter(id=booking.id, status=previous).update(
            status=new_status,
            confirmed_slot=confirmed_slot,
            updated_at=now,
        )
        if not updated:
            if not await Booking.filter(id=booking.id).exists():
                raise BookingNotFoundError(booking.id)
            raise ConcurrentUpdateError(booking.id)

        booking.status = new_status
        booking.confirmed_slot = confirmed_slot
        booking.updated_at = now
        return previous

    async def append_audit_entry(
        self,
        booking_id: UUID,
        actor_id: str,
        action: AuditAction,
        previous_status: BookingStatus | None = None,
        new_status: BookingStatus | None = None,
        notes: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> BookingAuditLog:
        return await BookingAuditLog.create(
            booking_id=booking_id,
            actor_id=actor_id,
            action=action,
            previous_status=previous_status,
            new_status=new_status,
            notes=notes,
            details=details,
        )

    async def list_audit_entries(self, booking_id: UUID) -> list[BookingAuditLog]:
        return await BookingAuditLog.filter(booking_id=booking_id).order_by(
            "timestamp", "id"
        )


booking_crud = BookingCRUD()
