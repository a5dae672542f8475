"""Tests for the holiday registry against an in-memory database."""

from __future__ import annotations

import asyncio
from datetime import date
from unittest.mock import AsyncMock, patch

import pytest
from tortoise.exceptions import OperationalError

from resort_bookings.availability import availability_projector
from resort_bookings.crud import booking_crud
from resort_bookings.exceptions import SlotUnavailableError, TransientStoreError
from resort_bookings.holidays import HolidayRegistry, holiday_registry
from resort_bookings.models import (
    BookingStatus,
    DailyAvailability,
    EventSlot,
    Holiday,
    SlotStatus,
)
from resort_bookings.transitions import booking_engine

from .factories import CHRISTMAS, booking_draft

BOOKED = {EventSlot.MORNING: SlotStatus.BOOKED, EventSlot.EVENING: SlotStatus.BOOKED}
AVAILABLE = {
    EventSlot.MORNING: SlotStatus.AVAILABLE,
    EventSlot.EVENING: SlotStatus.AVAILABLE,
}


class TestMarkHoliday:
    async def test_creates_holiday_keyed_by_date(self, db):
        holiday = await holiday_registry.mark_holiday(CHRISTMAS, "Christmas Day")
        assert holiday.id == "2025-12-25"
        assert holiday.name == "Christmas Day"
        assert await holiday_registry.is_holiday("2025-12-25") is True

    async def test_default_name(self, db):
        holiday = await holiday_registry.mark_holiday(CHRISTMAS)
        assert holiday.name == "Holiday"

    async def test_remarking_replaces_name_without_duplicating(self, db):
        await holiday_registry.mark_holiday(CHRISTMAS, "Christmas")
        await holiday_registry.mark_holiday(CHRISTMAS, "Christmas Day")
        holidays = await holiday_registry.list_holidays()
        assert len(holidays) == 1
        assert holidays[0].name == "Christmas Day"

    async def test_forces_snapshot_to_booked(self, db):
        await holiday_registry.mark_holiday(CHRISTMAS, "Christmas")
        row = await DailyAvailability.get(date_key="2025-12-25")
        assert (row.morning, row.evening) == ("booked", "booked")
        assert await availability_projector.get_availability(CHRISTMAS) == BOOKED

    async def test_publishes_blocked_day_to_cache(self, db, no_redis):
        await holiday_registry.mark_holiday(CHRISTMAS, "Christmas")
        no_redis.set.assert_awaited_once_with(
            "2025-12-25", {"morning": "booked", "evening": "booked"}, 1
        )

    async def test_store_failure_leaves_nothing_behind(self, db):
        projector = AsyncMock()
        projector.recompute = AsyncMock(side_effect=OperationalError("disk I/O error"))
        registry = HolidayRegistry(projector=projector)

        with pytest.raises(TransientStoreError):
            await registry.mark_holiday(CHRISTMAS, "Christmas")

        assert await Holiday.filter(id="2025-12-25").exists() is False


class TestRemoveHoliday:
    async def test_removes_holiday(self, db):
        await holiday_registry.mark_holiday(CHRISTMAS, "Christmas")
        assert await holiday_registry.remove_holiday("2025-12-25") is True
        assert await holiday_registry.is_holiday("2025-12-25") is False

    async def test_missing_holiday_is_a_noop_success(self, db):
        assert await holiday_registry.remove_holiday("2025-12-26") is False

    async def test_availability_reverts_to_bookings(self, db):
        await holiday_registry.mark_holiday(CHRISTMAS, "Christmas")
        await booking_crud.create(
            booking_draft(event_date="2025-12-25", event_slot="evening"),
            BookingStatus.PENDING,
        )
        await availability_projector.refresh(CHRISTMAS, EventSlot.EVENING)
        assert await availability_projector.get_availability(CHRISTMAS) == BOOKED

        await holiday_registry.remove_holiday("2025-12-25")

        assert await availability_projector.get_availability(CHRISTMAS) == {
            EventSlot.MORNING: SlotStatus.AVAILABLE,
            EventSlot.EVENING: SlotStatus.PENDING,
        }

    async def test_publishes_reverted_day_to_cache(self, db, no_redis):
        await holiday_registry.mark_holiday(CHRISTMAS, "Christmas")
        await holiday_registry.remove_holiday("2025-12-25")
        no_redis.set.assert_awaited_with(
            "2025-12-25", {"morning": "available", "evening": "available"}, 2
        )


class TestListHolidays:
    async def test_sorted_by_date_ascending(self, db):
        await holiday_registry.mark_holiday(date(2025, 12, 31), "New Year's Eve")
        await holiday_registry.mark_holiday(CHRISTMAS, "Christmas")
        await holiday_registry.mark_holiday(date(2025, 7, 4), "Closed")

        names = [h.name for h in await holiday_registry.list_holidays()]
        assert names == ["Closed", "Christmas", "New Year's Eve"]

    async def test_empty(self, db):
        assert await holiday_registry.list_holidays() == []


class TestHolidayVisibility:
    async def test_read_in_flight_cannot_outlive_holiday(self, db, memory_cache):
        original = DailyAvailability.get_or_none
        read_done = asyncio.Event()
        release = asyncio.Event()
        calls = 0

        async def _stalled_read(*args, **kwargs):
            nonlocal calls
            calls += 1
            row = await original(*args, **kwargs)
            if calls == 1:
                read_done.set()
                await release.wait()
            return row

        with patch.object(DailyAvailability, "get_or_none", side_effect=_stalled_read):
            reader = asyncio.create_task(
                availability_projector.get_availability(CHRISTMAS)
            )
            await read_done.wait()
            await holiday_registry.mark_holiday(CHRISTMAS, "Christmas")
            release.set()
            # the reader answered from before the holiday committed
            assert await reader == AVAILABLE

        assert memory_cache["2025-12-25"] == {
            "morning": "booked",
            "evening": "booked",
            "version": 1,
        }
        assert await availability_projector.get_availability(CHRISTMAS) == BOOKED
        with pytest.raises(SlotUnavailableError):
            await booking_engine.create_public_booking(
                booking_draft(event_date="2025-12-25")
            )

    async def test_cached_day_flips_when_holiday_is_marked(self, db, memory_cache):
        await availability_projector.refresh(CHRISTMAS)
        assert await availability_projector.get_availability(CHRISTMAS) == AVAILABLE

        await holiday_registry.mark_holiday(CHRISTMAS, "Christmas")

        assert memory_cache["2025-12-25"]["version"] == 2
        assert await availability_projector.get_availability(CHRISTMAS) == BOOKED
