"""
Domain-specific exception hierarchy for the booking engine.
"""


class SlotbookError(Exception):
    """Base class for all application-level errors."""


class CalendarAPIError(SlotbookError):
    """Raised when calendar data cannot be fetched, parsed or written."""


class AuthenticationError(SlotbookError):
    """Raised when authentication or token handling fails."""


class ScheduleSourceError(SlotbookError):
    """Raised when the weekly schedule or exceptions cannot be loaded at all."""


class BookingNotFoundError(SlotbookError):
    """Raised when the calendar has no booking with the requested id."""

    def __init__(self, booking_id: str):
        super().__init__(f"Booking not found: {booking_id}")
        self.booking_id = booking_id


class ModificationNotAllowedError(SlotbookError):
    """Raised when a booking is too close to its start to be changed."""

    def __init__(self, booking_id: str, hours_remaining: float):
        super().__init__(
            f"Booking {booking_id} starts in {hours_remaining:.1f}h and can no longer be modified"
        )
        self.booking_id = booking_id
        self.hours_remaining = hours_remaining


class TimeConflictError(SlotbookError):
    """Raised when a requested time overlaps other bookings."""

    def __init__(self, message: str, conflicts=()):
        super().__init__(message)
        self.conflicts = tuple(conflicts)
