from fastapi import HTTPException, status

from resort_bookings.exceptions import (
    BookingError,
    BookingNotFoundError,
    SlotConflictError,
    SlotUnavailableError,
    TransientStoreError,
    ValidationError,
)

# Most specific classes first; the first isinstance match wins
_STATUS_CODES: list[tuple[type[BookingError], int]] = [
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (SlotUnavailableError, status.HTTP_409_CONFLICT),
    (SlotConflictError, status.HTTP_409_CONFLICT),
    (BookingNotFoundError, status.HTTP_404_NOT_FOUND),
    (TransientStoreError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def to_http_exception(exc: BookingError) -> HTTPException:
    """Translate a core error into the HTTP response the caller should see."""
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=exc.message)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message
    )
