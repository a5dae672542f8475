from enum import StrEnum


class BookingScope(StrEnum):
    # Staff scopes
    READ = "bookings:read"  # list bookings and their audit trail
    MANAGE = "bookings:manage"  # add bookings manually, confirm / cancel / reopen
    HOLIDAYS = "holidays:manage"  # mark and remove holiday blackout days

    # Admin scope, grants everything above
    ADMIN = "admin:bookings"


BOOKING_SCOPE_DESCRIPTIONS: dict[str, str] = {
    BookingScope.READ: "View booking requests and their history.",
    BookingScope.MANAGE: "Add bookings manually and change booking status.",
    BookingScope.HOLIDAYS: "Mark or remove holiday blackout dates.",
    BookingScope.ADMIN: "Full administrative access to bookings and holidays.",
}
