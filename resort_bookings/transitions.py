"""
Booking transition engine.

Every booking mutation goes through here. The rule it protects: for any
(date, slot) at most one booking is ``confirmed``. The check for a competing
confirmed booking and the write that confirms run in one transaction, under
row locks, and the unique ``confirmed_slot`` column rejects whatever slips
past the check.

Audit entries and availability refreshes run after commit. Their failure is
reported on the outcome (``degraded``) and never undoes the committed change.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any
from uuid import UUID

from loguru import logger
from tortoise.exceptions import IntegrityError
from tortoise.transactions import in_transaction

from resort_bookings import settings
from resort_bookings.availability import AvailabilityProjector, availability_projector
from resort_bookings.crud import TRANSIENT_DB_ERRORS, BookingCRUD, booking_crud
from resort_bookings.exceptions import (
    BookingNotFoundError,
    ConcurrentUpdateError,
    SlotConflictError,
    SlotUnavailableError,
    TransientStoreError,
    ValidationError,
)
from resort_bookings.models import (
    AuditAction,
    Booking,
    BookingAuditLog,
    BookingStatus,
    SlotStatus,
)
from resort_bookings.schemas import (
    MAX_GUESTS,
    AdminBookingDraft,
    BookingDraft,
    BookingFilters,
)

PUBLIC_ACTOR = "public_user"
SYSTEM_ADMIN_ACTOR = "system_admin"

ADMIN_CREATION_NOTE = "Booking added manually via admin panel."


class StepStatus(StrEnum):
    OK = "ok"
    DEGRADED = "degraded"


@dataclass
class TransitionOutcome:
    """
    Two-phase result of a mutation: what was committed, then how the
    best-effort follow-ups (audit entry, availability refresh) went.
    """

    booking: Booking
    changed: bool = True
    previous_status: BookingStatus | None = None
    audit: StepStatus = StepStatus.OK
    projection: StepStatus = StepStatus.OK
    warnings: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return StepStatus.DEGRADED in (self.audit, self.projection)


def _check_draft(draft: BookingDraft) -> None:
    """Business bounds re-checked even though the transport validated shape."""
    if not 1 <= draft.guest_count <= MAX_GUESTS:
        raise ValidationError(
            f"Number of guests must be between 1 and {MAX_GUESTS}."
        )
    if not draft.name or not draft.name.strip():
        raise ValidationError("Contact name is required.")


class BookingEngine:
    def __init__(
        self,
        crud: BookingCRUD = booking_crud,
        projector: AvailabilityProjector = availability_projector,
        max_attempts: int = settings.STATUS_CHANGE_MAX_ATTEMPTS,
    ) -> None:
        self.crud = crud
        self.projector = projector
        self.max_attempts = max(1, max_attempts)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_public_booking(self, draft: BookingDraft) -> TransitionOutcome:
        """
        Store a visitor's request as ``pending``. Refused with
        SlotUnavailableError unless the slot currently reads ``available``.
        """
        _check_draft(draft)
        availability = await self.projector.get_availability(draft.event_date)
        if availability[draft.event_slot] != SlotStatus.AVAILABLE:
            raise SlotUnavailableError(draft.event_date, draft.event_slot)

        try:
            booking = await self.crud.create(draft, BookingStatus.PENDING)
        except TRANSIENT_DB_ERRORS as exc:
            logger.exception("Creating public booking failed")
            raise TransientStoreError() from exc

        logger.info(
            "Booking created: id={} date={} slot={}",
            booking.id,
            booking.event_date,
            booking.event_slot,
        )
        outcome = TransitionOutcome(booking=booking)
        await self._after_commit(
            outcome,
            actor_id=PUBLIC_ACTOR,
            action=AuditAction.BOOKING_CREATED,
            new_status=BookingStatus.PENDING,
            details={"name": draft.name, "phone": draft.phone},
        )
        return outcome

    async def create_admin_booking(
        self, draft: AdminBookingDraft, actor_id: str = SYSTEM_ADMIN_ACTOR
    ) -> TransitionOutcome:
        """
        Store a booking entered by an admin, ``pending`` or directly
        ``confirmed``. A confirmed booking is refused with SlotConflictError
        if another confirmed booking already holds the slot; it is never
        downgraded to pending behind the caller's back.
        """
        _check_draft(draft)
        status = draft.status
        if status not in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
            raise ValidationError("Initial status must be 'pending' or 'confirmed'.")

        try:
            async with in_transaction():
                if status == BookingStatus.CONFIRMED:
                    competitor = await self.crud.find_confirmed_booking(
                        draft.event_date, draft.event_slot
                    )
                    if competitor is not None:
                        raise SlotConflictError(
                            draft.event_date, draft.event_slot, competitor
                        )
                booking = await self.crud.create(draft, status)
        except IntegrityError as exc:
            raise SlotConflictError(draft.event_date, draft.event_slot) from exc
        except TRANSIENT_DB_ERRORS as exc:
            logger.exception("Creating admin booking failed")
            raise TransientStoreError() from exc

        logger.info(
            "Admin booking created: id={} date={} slot={} status={} by={}",
            booking.id,
            booking.event_date,
            booking.event_slot,
            status,
            actor_id,
        )
        outcome = TransitionOutcome(booking=booking)
        await self._after_commit(
            outcome,
            actor_id=actor_id,
            action=AuditAction.ADMIN_BOOKING_CREATED,
            new_status=status,
            notes=ADMIN_CREATION_NOTE,
            details={"name": draft.name},
        )
        return outcome

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    async def change_status(
        self,
        booking_id: UUID,
        new_status: BookingStatus,
        notes: str | None = None,
        actor_id: str = SYSTEM_ADMIN_ACTOR,
    ) -> TransitionOutcome:
        """
        Move a booking to ``new_status``. Any of pending/confirmed/cancelled
        may follow any other; asking for the current status is a no-op that
        writes nothing and records nothing.

        Transient store errors and lost compare-and-set races retry the whole
        attempt up to ``max_attempts`` times, then raise TransientStoreError.
        """
        try:
            new_status = BookingStatus(new_status)
        except ValueError:
            raise ValidationError(
                f"Unknown booking status {new_status!r}. "
                "Expected one of: pending, confirmed, cancelled."
            ) from None
        attempt = 0
        while True:
            attempt += 1
            try:
                booking, previous = await self._commit_status(booking_id, new_status)
                break
            except (ConcurrentUpdateError, *TRANSIENT_DB_ERRORS) as exc:
                if attempt >= self.max_attempts:
                    logger.warning(
                        "Status change gave up after {} attempts: id={} to={}",
                        attempt,
                        booking_id,
                        new_status,
                    )
                    if isinstance(exc, TransientStoreError):
                        raise
                    raise TransientStoreError() from exc
                logger.warning(
                    "Status change attempt {} failed, retrying: id={} error={!r}",
                    attempt,
                    booking_id,
                    exc,
                )

        if previous == new_status:
            logger.debug("Status unchanged: id={} status={}", booking_id, new_status)
            return TransitionOutcome(
                booking=booking, changed=False, previous_status=previous
            )

        logger.info(
            "Booking status changed: id={} {} -> {} by={}",
            booking_id,
            previous,
            new_status,
            actor_id,
        )
        outcome = TransitionOutcome(booking=booking, previous_status=previous)
        await self._after_commit(
            outcome,
            actor_id=actor_id,
            action=AuditAction.STATUS_CHANGED,
            previous_status=previous,
            new_status=new_status,
            notes=notes,
        )
        return outcome

    async def _commit_status(
        self, booking_id: UUID, new_status: BookingStatus
    ) -> tuple[Booking, BookingStatus]:
        """One atomic read-check-write attempt. Returns (booking, previous)."""
        async with in_transaction():
            booking = await self.crud.get(booking_id, lock=True)
            if booking is None:
                raise BookingNotFoundError(booking_id)

            previous = booking.status
            if previous == new_status:
                return booking, previous

            if new_status == BookingStatus.CONFIRMED:
                competitor = await self.crud.find_confirmed_booking(
                    booking.event_date, booking.event_slot, exclude_id=booking.id
                )
                if competitor is not None:
                    raise SlotConflictError(
                        booking.event_date, booking.event_slot, competitor
                    )

            try:
                await self.crud.update_status(booking, new_status)
            except IntegrityError as exc:
                # unique confirmed_slot caught a concurrent confirmation
                raise SlotConflictError(
                    booking.event_date, booking.event_slot
                ) from exc
            return booking, previous

    # ------------------------------------------------------------------
    # Post-commit steps
    # ------------------------------------------------------------------

    async def _after_commit(
        self,
        outcome: TransitionOutcome,
        *,
        actor_id: str,
        action: AuditAction,
        previous_status: BookingStatus | None = None,
        new_status: BookingStatus | None = None,
        notes: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        booking = outcome.booking
        try:
            await self.crud.append_audit_entry(
                booking.id,
                actor_id=actor_id,
                action=action,
                previous_status=previous_status,
                new_status=new_status,
                notes=notes,
                details=details,
            )
        except Exception:
            logger.opt(exception=True).warning(
                "Audit entry not recorded for booking {}", booking.id
            )
            outcome.audit = StepStatus.DEGRADED
            outcome.warnings.append(
                "The change was saved but not written to the audit log."
            )

        # Both slots of the day, including any left stale by a degraded refresh
        try:
            await self.projector.refresh(booking.event_date)
        except Exception:
            logger.opt(exception=True).warning(
                "Availability refresh failed: date={}", booking.event_date
            )
            outcome.projection = StepStatus.DEGRADED
            outcome.warnings.append(
                "The change was saved but the availability calendar may be stale."
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_booking(self, booking_id: UUID) -> Booking:
        booking = await self.crud.get(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking

    async def get_audit_log(self, booking_id: UUID) -> list[BookingAuditLog]:
        return await self.crud.list_audit_entries(booking_id)

    async def list_bookings(
        self,
        event_date: date | None = None,
        filters: BookingFilters | None = None,
    ) -> list[Booking]:
        if filters is None:
            filters = BookingFilters(event_date=event_date)
        elif event_date is not None:
            filters = filters.model_copy(update={"event_date": event_date})
        return await self.crud.list_bookings(filters)


booking_engine = BookingEngine()
