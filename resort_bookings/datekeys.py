"""
Calendar-day identity for availability and holiday lookups.

A DateKey is the ``YYYY-MM-DD`` form of a calendar day. Datetimes are
truncated to their own wall-clock date; no timezone conversion happens
before truncation, so two values with the same local year/month/day always
share a key.
"""

from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from resort_bookings import settings
from resort_bookings.models import EventSlot


def to_date_key(value: date) -> str:
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def parse_date_key(key: str) -> date:
    return date.fromisoformat(key)


def slot_key(value: date, slot: EventSlot) -> str:
    """Identity of a (day, slot) pair, e.g. ``2025-06-01:morning``."""
    return f"{to_date_key(value)}:{EventSlot(slot).value}"


def today() -> date:
    """Current calendar day in the resort's timezone."""
    return datetime.now(ZoneInfo(settings.RESORT_TIMEZONE)).date()


def is_past(value: date, reference_today: date | None = None) -> bool:
    """
    True if ``value`` falls on a day strictly before ``reference_today``.
    The reference day itself is not past.
    """
    if isinstance(value, datetime):
        value = value.date()
    if reference_today is None:
        reference_today = today()
    return value < reference_today
