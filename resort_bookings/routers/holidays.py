from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status

from resort_bookings.datekeys import is_past, to_date_key
from resort_bookings.deps import (
    CurrentUser,
    can_manage_holidays,
    get_holiday_registry,
)
from resort_bookings.exceptions import BookingError
from resort_bookings.holidays import HolidayRegistry
from resort_bookings.routers.errors import to_http_exception
from resort_bookings.schemas import HolidayCreate, HolidayResponse

router = APIRouter(prefix="/holidays", tags=["holidays"])


@router.get("/", response_model=list[HolidayResponse])
async def list_holidays(
    registry: HolidayRegistry = Depends(get_holiday_registry),
) -> list[HolidayResponse]:
    holidays = await registry.list_holidays()
    return [HolidayResponse.model_validate(h, from_attributes=True) for h in holidays]


@router.put("/{holiday_date}", response_model=HolidayResponse)
async def mark_holiday(
    holiday_date: date,
    payload: HolidayCreate,
    _: CurrentUser = Depends(can_manage_holidays),
    registry: HolidayRegistry = Depends(get_holiday_registry),
) -> HolidayResponse:
    """Block a day for events. Re-marking a day replaces its name."""
    if is_past(holiday_date):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Holiday date cannot be in the past.",
        )
    try:
        holiday = await registry.mark_holiday(holiday_date, payload.name)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return HolidayResponse.model_validate(holiday, from_attributes=True)


@router.delete("/{holiday_date}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_holiday(
    holiday_date: date,
    _: CurrentUser = Depends(can_manage_holidays),
    registry: HolidayRegistry = Depends(get_holiday_registry),
) -> None:
    """Idempotent: removing a day that is not a holiday still returns 204."""
    try:
        await registry.remove_holiday(to_date_key(holiday_date))
    except BookingError as exc:
        raise to_http_exception(exc) from exc
