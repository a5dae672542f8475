from __future__ import annotations

from datetime import date

from loguru import logger
from tortoise.transactions import in_transaction

from resort_bookings.availability import AvailabilityProjector, availability_projector
from resort_bookings.crud import TRANSIENT_DB_ERRORS
from resort_bookings.datekeys import to_date_key
from resort_bookings.exceptions import TransientStoreError
from resort_bookings.models import Holiday

DEFAULT_HOLIDAY_NAME = "Holiday"


class HolidayRegistry:
    """
    Days blocked for events regardless of bookings.

    Marking or removing a holiday rewrites that day's availability snapshot
    in the same transaction, so a failure leaves neither change behind. The
    committed snapshot is then published to the cache.
    """

    def __init__(self, projector: AvailabilityProjector = availability_projector):
        self.projector = projector

    async def is_holiday(self, date_key: str) -> bool:
        return await Holiday.filter(id=date_key).exists()

    async def list_holidays(self) -> list[Holiday]:
        return await Holiday.all().order_by("date")

    async def mark_holiday(
        self, value: date, name: str = DEFAULT_HOLIDAY_NAME
    ) -> Holiday:
        """Upsert the holiday for ``value``; re-marking replaces the name."""
        key = to_date_key(value)
        try:
            async with in_transaction():
                holiday = await Holiday.filter(id=key).select_for_update().first()
                if holiday is None:
                    holiday = await Holiday.create(id=key, name=name, date=value)
                else:
                    holiday.name = name
                    holiday.date = value
                    await holiday.save(update_fields=["name", "date"])
                await self.projector.recompute(key)
        except TRANSIENT_DB_ERRORS as exc:
            logger.exception("Marking holiday failed: date={}", key)
            raise TransientStoreError() from exc

        await self.projector.publish(key)
        logger.info("Holiday marked: date={} name={!r}", key, name)
        return holiday

    async def remove_holiday(self, date_key: str) -> bool:
        """
        Delete the holiday at ``date_key`` and let the day fall back to
        booking-driven availability. Removing a missing holiday is a no-op.
        Returns True if a holiday was deleted.
        """
        try:
            async with in_transaction():
                deleted = await Holiday.filter(id=date_key).delete()
                await self.projector.recompute(date_key)
        except TRANSIENT_DB_ERRORS as exc:
            logger.exception("Removing holiday failed: date={}", date_key)
            raise TransientStoreError() from exc

        await self.projector.publish(date_key)
        if deleted:
            logger.info("Holiday removed: date={}", date_key)
        return bool(deleted)


holiday_registry = HolidayRegistry()
