"""
Domain-specific exception hierarchy for the booking application.
"""


class BookingError(Exception):
    """Base class for all application-level errors."""


class InvalidEntityError(BookingError, ValueError):
    """Raised when an entity constructor rejects its input."""


class InvalidAppointmentError(InvalidEntityError):
    """Raised when an appointment violates its invariants."""


class InvalidSlotError(InvalidEntityError):
    """Raised when an availability slot violates its invariants."""


class InvalidServiceError(InvalidEntityError):
    """Raised when a service violates its invariants."""


class InvalidUserError(InvalidEntityError):
    """Raised when a user violates its invariants."""


class RepositoryError(BookingError):
    """Raised when the storage layer cannot be read or written."""


class NotFoundError(BookingError):
    """Raised when a referenced record does not exist."""


class SlotUnavailableError(BookingError):
    """
    Raised by the booking use case when a valid request cannot be honoured.

    ``reason`` is either ``"outside_availability"`` or ``"conflict"``.
    """

    OUTSIDE_AVAILABILITY = "outside_availability"
    CONFLICT = "conflict"

    def __init__(self, reason: str):
        super().__init__("slot unavailable")
        self.reason = reason


class SlotConflictError(BookingError):
    """Raised when a new availability slot overlaps an existing one."""


class DuplicateEmailError(BookingError):
    """Raised when a user is registered with an email already in use."""
