from enum import StrEnum

from tortoise import fields
from tortoise.models import Model


class BookingStatus(StrEnum):
    PENDING = "pending"  # request received, awaiting admin review
    CONFIRMED = "confirmed"  # admin accepted, holds the slot
    CANCELLED = "cancelled"  # refused or withdrawn; reversible


class EventSlot(StrEnum):
    MORNING = "morning"
    EVENING = "evening"


class SlotStatus(StrEnum):
    AVAILABLE = "available"
    PENDING = "pending"
    BOOKED = "booked"


class AuditAction(StrEnum):
    BOOKING_CREATED = "booking_created"
    ADMIN_BOOKING_CREATED = "admin_booking_created"
    STATUS_CHANGED = "status_changed"


class AbstractModel(Model):
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:  # type: ignore
        abstract = True


class Booking(AbstractModel):
    id = fields.UUIDField(primary_key=True)

    name = fields.CharField(max_length=100)
    phone = fields.CharField(max_length=32)

    event_date = fields.DateField(db_index=True)
    event_slot = fields.CharEnumField(EventSlot)
    event_type = fields.CharField(max_length=100)
    guest_count = fields.IntField()
    message = fields.TextField(null=True)

    status = fields.CharEnumField(BookingStatus, default=BookingStatus.PENDING)
    # "<date>:<slot>" while confirmed, NULL otherwise; unique => one confirmed per slot
    confirmed_slot = fields.CharField(max_length=24, null=True, unique=True)

    updated_at = fields.DatetimeField(null=True)

    audit_log: fields.ReverseRelation["BookingAuditLog"]

    class Meta:  # type: ignore
        table = "bookings"
        ordering = ["-created_at"]


class BookingAuditLog(Model):
    id = fields.IntField(primary_key=True)
    booking: fields.ForeignKeyRelation[Booking] = fields.ForeignKeyField(
        "models.Booking", related_name="audit_log", on_delete=fields.CASCADE
    )

    timestamp = fields.DatetimeField(auto_now_add=True)
    actor_id = fields.CharField(max_length=100)
    action = fields.CharEnumField(AuditAction)
    previous_status = fields.CharEnumField(BookingStatus, null=True)
    new_status = fields.CharEnumField(BookingStatus, null=True)
    notes = fields.TextField(null=True)
    details = fields.JSONField(null=True)

    class Meta:  # type: ignore
        table = "booking_audit_log"
        ordering = ["timestamp", "id"]


class Holiday(AbstractModel):
    id = fields.CharField(primary_key=True, max_length=10)  # DateKey
    name = fields.CharField(max_length=100)
    date = fields.DateField()

    class Meta:  # type: ignore
        table = "holidays"
        ordering = ["date"]


class DailyAvailability(Model):
    """Materialized per-day slot status. Advisory; rebuilt by the projector."""

    date_key = fields.CharField(primary_key=True, max_length=10)
    # Plain strings so an unexpected stored value can be read back as "available"
    morning = fields.CharField(max_length=16, default=SlotStatus.AVAILABLE.value)
    evening = fields.CharField(max_length=16, default=SlotStatus.AVAILABLE.value)
    # bumped on every recompute; orders cache publishes
    version = fields.IntField(default=0)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:  # type: ignore
        table = "daily_availability"
