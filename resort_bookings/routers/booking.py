from uuid import UUID

from fastapi import APIRouter, Depends, status

from resort_bookings.deps import (
    CurrentUser,
    can_manage_bookings,
    can_read_bookings,
    get_booking_engine,
)
from resort_bookings.exceptions import BookingError
from resort_bookings.routers.errors import to_http_exception
from resort_bookings.schemas import (
    AdminBookingDraft,
    AuditLogEntryResponse,
    BookingDetail,
    BookingDraft,
    BookingFilters,
    BookingResponse,
    BookingStatusUpdate,
    MutationResponse,
)
from resort_bookings.transitions import BookingEngine, TransitionOutcome

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _to_response(outcome: TransitionOutcome) -> MutationResponse:
    return MutationResponse(
        booking=BookingResponse.model_validate(outcome.booking, from_attributes=True),
        changed=outcome.changed,
        previous_status=outcome.previous_status,
        degraded=outcome.degraded,
        warnings=outcome.warnings,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingDraft,
    engine: BookingEngine = Depends(get_booking_engine),
) -> MutationResponse:
    """Public booking request. Always stored as pending."""
    try:
        outcome = await engine.create_public_booking(payload)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return _to_response(outcome)


@router.post(
    "/admin", response_model=MutationResponse, status_code=status.HTTP_201_CREATED
)
async def create_admin_booking(
    payload: AdminBookingDraft,
    current_user: CurrentUser = Depends(can_manage_bookings),
    engine: BookingEngine = Depends(get_booking_engine),
) -> MutationResponse:
    try:
        outcome = await engine.create_admin_booking(
            payload, actor_id=current_user.actor_id
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return _to_response(outcome)


@router.get("/", response_model=list[BookingResponse])
async def list_bookings(
    filters: BookingFilters = Depends(),
    _: CurrentUser = Depends(can_read_bookings),
    engine: BookingEngine = Depends(get_booking_engine),
) -> list[BookingResponse]:
    bookings = await engine.list_bookings(filters=filters)
    return [BookingResponse.model_validate(b, from_attributes=True) for b in bookings]


@router.get("/{booking_id}", response_model=BookingDetail)
async def get_booking(
    booking_id: UUID,
    _: CurrentUser = Depends(can_read_bookings),
    engine: BookingEngine = Depends(get_booking_engine),
) -> BookingDetail:
    try:
        booking = await engine.get_booking(booking_id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    entries = await engine.get_audit_log(booking_id)
    return BookingDetail(
        **BookingResponse.model_validate(booking, from_attributes=True).model_dump(),
        audit_log=[
            AuditLogEntryResponse.model_validate(e, from_attributes=True)
            for e in entries
        ],
    )


@router.patch("/{booking_id}/status", response_model=MutationResponse)
async def update_booking_status(
    booking_id: UUID,
    payload: BookingStatusUpdate,
    current_user: CurrentUser = Depends(can_manage_bookings),
    engine: BookingEngine = Depends(get_booking_engine),
) -> MutationResponse:
    """
    Move a booking between pending, confirmed and cancelled.
    Re-sending the current status succeeds with ``changed: false``.
    """
    try:
        outcome = await engine.change_status(
            booking_id,
            payload.status,
            notes=payload.notes,
            actor_id=current_user.actor_id,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return _to_response(outcome)
