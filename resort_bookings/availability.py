"""
Availability projector.

Derives the per-day {morning, evening} slot status from bookings and
holidays and keeps it materialized in ``daily_availability`` (with a Redis
copy in front) so reads never rescan bookings. The snapshot is advisory:
confirmation decisions are taken against the bookings table only.
"""

from __future__ import annotations

from datetime import date

from loguru import logger
from tortoise.transactions import in_transaction

from resort_bookings.cache import (
    get_availability_cache,
    invalidate_availability_cache,
    set_availability_cache,
)
from resort_bookings.crud import TRANSIENT_DB_ERRORS, BookingCRUD, booking_crud
from resort_bookings.datekeys import is_past, parse_date_key, to_date_key
from resort_bookings.models import (
    Booking,
    BookingStatus,
    DailyAvailability,
    EventSlot,
    Holiday,
    SlotStatus,
)

ALL_SLOTS: tuple[EventSlot, ...] = (EventSlot.MORNING, EventSlot.EVENING)

FULLY_BOOKED = {slot: SlotStatus.BOOKED for slot in ALL_SLOTS}
FULLY_AVAILABLE = {slot: SlotStatus.AVAILABLE for slot in ALL_SLOTS}


def _coerce_slot_status(value: object) -> SlotStatus:
    """Stored values outside the enum (legacy or corrupt rows) read as available."""
    try:
        return SlotStatus(value)
    except ValueError:
        logger.warning("Unknown slot status {!r} in snapshot, using 'available'", value)
        return SlotStatus.AVAILABLE


def slot_status_for(bookings: list[Booking]) -> SlotStatus:
    """Confirmed beats pending beats nothing. Cancelled bookings never count."""
    statuses = {b.status for b in bookings}
    if BookingStatus.CONFIRMED in statuses:
        return SlotStatus.BOOKED
    if BookingStatus.PENDING in statuses:
        return SlotStatus.PENDING
    return SlotStatus.AVAILABLE


def _from_payload(payload: dict) -> dict[EventSlot, SlotStatus]:
    return {slot: _coerce_slot_status(payload.get(slot.value)) for slot in ALL_SLOTS}


class AvailabilityProjector:
    def __init__(self, crud: BookingCRUD = booking_crud) -> None:
        self.crud = crud

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def get_availability(
        self, value: date, today: date | None = None
    ) -> dict[EventSlot, SlotStatus]:
        """
        Current status of both slots for a day. Trusts the snapshot kept by
        the mutators; never recomputes. Past days always read fully booked.

        Read-only: a miss is answered from the database and not written back,
        so only committed mutations ever populate the cache.
        """
        if is_past(value, today):
            return dict(FULLY_BOOKED)

        key = to_date_key(value)
        cached = await get_availability_cache(key)
        if cached is not None:
            logger.debug("Cache hit for availability: date={}", key)
            return _from_payload(cached)

        logger.debug("Cache miss for availability: date={}", key)
        if await Holiday.filter(id=key).exists():
            return dict(FULLY_BOOKED)
        snapshot = await DailyAvailability.get_or_none(date_key=key)
        if snapshot is None:
            return dict(FULLY_AVAILABLE)
        return {
            slot: _coerce_slot_status(getattr(snapshot, slot.value)) for slot in ALL_SLOTS
        }

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def recompute(
        self,
        date_key: str,
        slot: EventSlot | None = None,
        today: date | None = None,
    ) -> dict[EventSlot, SlotStatus]:
        """
        Rebuild the stored snapshot for ``date_key`` and return the full
        {morning, evening} value. Only the requested slot is rewritten when
        ``slot`` is given; the other keeps its last-known value.

        Does not touch the cache, so it is safe to call inside a caller's
        transaction. Holds a lock on the snapshot row while it runs.
        """
        value = parse_date_key(date_key)
        snapshot = (
            await DailyAvailability.filter(date_key=date_key).select_for_update().first()
        )
        if snapshot is None:
            snapshot = DailyAvailability(
                date_key=date_key,
                morning=SlotStatus.AVAILABLE.value,
                evening=SlotStatus.AVAILABLE.value,
            )

        if is_past(value, today) or await Holiday.filter(id=date_key).exists():
            computed = dict(FULLY_BOOKED)
        else:
            slots = (slot,) if slot is not None else ALL_SLOTS
            computed = {
                s: slot_status_for(await self.crud.list_by_slot(value, s))
                for s in slots
            }

        for s, status in computed.items():
            setattr(snapshot, s.value, status.value)
        snapshot.version += 1
        await snapshot.save()

        return {s: _coerce_slot_status(getattr(snapshot, s.value)) for s in ALL_SLOTS}

    async def refresh(
        self,
        value: date,
        slot: EventSlot | None = None,
        today: date | None = None,
    ) -> dict[EventSlot, SlotStatus]:
        """Recompute one day (or one slot of it) and publish it to the cache."""
        key = to_date_key(value)
        async with in_transaction():
            availability = await self.recompute(key, slot, today)
        await self.publish(key)
        logger.debug(
            "Availability refreshed: date={} morning={} evening={}",
            key,
            availability[EventSlot.MORNING],
            availability[EventSlot.EVENING],
        )
        return availability

    async def publish(self, date_key: str) -> None:
        """
        Write the committed snapshot for ``date_key`` to the cache. Call only
        after the transaction that wrote it has committed. The row is re-read
        so the newest committed version is what gets published.
        """
        try:
            snapshot = await DailyAvailability.get_or_none(date_key=date_key)
        except TRANSIENT_DB_ERRORS:
            logger.opt(exception=True).warning(
                "Snapshot unreadable after commit, dropping cached copy: date={}",
                date_key,
            )
            await invalidate_availability_cache(date_key)
            return
        if snapshot is None:
            return
        payload = {slot.value: getattr(snapshot, slot.value) for slot in ALL_SLOTS}
        await set_availability_cache(date_key, payload, snapshot.version)


availability_projector = AvailabilityProjector()
