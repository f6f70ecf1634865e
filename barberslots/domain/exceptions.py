"""
Domain-specific exception hierarchy for the barbershop booking application.
"""


class BookingError(Exception):
    """Base class for all application-level errors."""


class ConfigurationError(BookingError, ValueError):
    """Raised when business hours or other configuration data is malformed."""


class InvalidInputError(BookingError, ValueError):
    """Raised when a caller passes an invalid date, duration or appointment."""


class NotFoundError(BookingError, LookupError):
    """Raised when a barber, service, appointment or discount code is unknown."""


class SlotUnavailableError(BookingError):
    """Raised when a requested start time is no longer bookable."""
