from datetime import date

from fastapi import APIRouter, Depends

from resort_bookings.availability import AvailabilityProjector
from resort_bookings.deps import get_availability_projector
from resort_bookings.models import EventSlot
from resort_bookings.schemas import DailyAvailabilityResponse

router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("/{event_date}", response_model=DailyAvailabilityResponse)
async def get_availability(
    event_date: date,
    projector: AvailabilityProjector = Depends(get_availability_projector),
) -> DailyAvailabilityResponse:
    """
    Slot status for one day. Public: the response carries no booking or
    customer details.
    """
    availability = await projector.get_availability(event_date)
    return DailyAvailabilityResponse(
        date=event_date,
        morning=availability[EventSlot.MORNING],
        evening=availability[EventSlot.EVENING],
    )
