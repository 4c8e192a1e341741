"""
Domain exceptions for booking and appointment operations.
Raised in the services layer and turned into JSON responses in main.py.
"""


class BookingError(Exception):
    """Base exception for all booking errors."""
    code = "BOOKING_ERROR"
    status_code = 400

    def __init__(self, message: str = "", field: str = None):
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationError(BookingError):
    """Raised when a required selection or input field is missing or invalid.

    Handled locally: no data access call is made.
    """
    code = "VALIDATION_ERROR"
    status_code = 422


class FetchError(BookingError):
    """Raised when a read against the data store fails."""
    code = "FETCH_ERROR"
    status_code = 502


class MutationError(BookingError):
    """Raised when creating, cancelling or rescheduling an appointment fails."""
    code = "MUTATION_ERROR"
    status_code = 400


class ConflictError(MutationError):
    """Raised when a time slot is already taken."""
    code = "CONFLICT"
    status_code = 409


class NotFoundError(BookingError):
    """Raised when a requested record does not exist."""
    code = "NOT_FOUND"
    status_code = 404


class InvalidTransition(BookingError):
    """Raised when the booking wizard cannot move to the requested step."""
    code = "INVALID_TRANSITION"
    status_code = 409
