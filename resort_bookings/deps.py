from dataclasses import dataclass, field
from urllib.parse import unquote
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from resort_bookings.availability import AvailabilityProjector, availability_projector
from resort_bookings.holidays import HolidayRegistry, holiday_registry
from resort_bookings.scopes import BOOKING_SCOPE_DESCRIPTIONS, BookingScope
from resort_bookings.transitions import BookingEngine, booking_engine


@dataclass
class CurrentUser:
    id: UUID
    username: str
    scopes: list[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return BookingScope.ADMIN in self.scopes

    @property
    def actor_id(self) -> str:
        """Identity recorded in the booking audit trail."""
        return f"admin:{self.username}"


def get_current_user(
    x_user_id: str = Header(...),
    x_username: str = Header(...),
    x_user_scopes: str = Header(default=""),
) -> CurrentUser:
    """
    Reads the headers injected by the gateway after it authenticated the
    caller. We trust these headers; the service must only be reachable
    through the gateway.
    """
    try:
        user_id = UUID(x_user_id)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identity from gateway",
        ) from None

    scopes = x_user_scopes.split(" ") if x_user_scopes else []

    return CurrentUser(id=user_id, username=unquote(x_username), scopes=scopes)


def require_scopes(*required: str):
    """
    Factory that returns a dependency enforcing one or more scopes.
    ``admin:bookings`` satisfies any requirement.

    Usage:
        @router.get("/protected")
        async def route(user = Depends(require_scopes("bookings:read"))):
            ...
    """

    async def _dep(
        current_user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        if current_user.is_admin:
            return current_user
        missing = [s for s in required if s not in current_user.scopes]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=(
                    f"Missing required scopes: {', '.join(missing)} "
                    f"({'; '.join(BOOKING_SCOPE_DESCRIPTIONS.get(s, s) for s in missing)})"
                ),
            )
        return current_user

    return _dep


# ---------------------------------------------------------------------------
# Pre-built scope dependencies
# ---------------------------------------------------------------------------

can_read_bookings = require_scopes(BookingScope.READ)
can_manage_bookings = require_scopes(BookingScope.MANAGE)
can_manage_holidays = require_scopes(BookingScope.HOLIDAYS)


# ---------------------------------------------------------------------------
# Core services
# ---------------------------------------------------------------------------


def get_booking_engine() -> BookingEngine:
    return booking_engine


def get_availability_projector() -> AvailabilityProjector:
    return availability_projector


def get_holiday_registry() -> HolidayRegistry:
    return holiday_registry
