"""Domain errors raised by the booking lifecycle."""

from typing import Optional
from uuid import UUID


class BookingError(Exception):
    """Base class for booking lifecycle errors."""

    error_type = "booking_error"


class ValidationError(BookingError):
    """Raised when input is malformed."""

    error_type = "validation_error"


class InvalidReferenceError(BookingError):
    """Raised when a referenced service or principal is missing or inactive."""

    error_type = "invalid_reference"


class ForbiddenError(BookingError):
    """Raised when the authorization gate denies a request."""

    error_type = "forbidden"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class TerminalStateError(BookingError):
    """Raised when a transition is requested from a terminal status."""

    error_type = "terminal_state"


class ConflictError(BookingError):
    """Raised when another writer changed the booking since it was read."""

    error_type = "conflict"

    def __init__(self, booking_id: UUID):
        super().__init__(f"Booking {booking_id} was modified concurrently, re-read and retry")
        self.booking_id = booking_id


class NotFoundError(BookingError):
    """Raised when a booking does not exist."""

    error_type = "not_found"

    def __init__(self, booking_id: UUID):
        super().__init__(f"Booking not found: {booking_id}")
        self.booking_id = booking_id
