"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityEngine
from .exceptions import (
    BookingError,
    ConfigurationError,
    InvalidInputError,
    NotFoundError,
    SlotUnavailableError,
)
from .models import (
    Appointment,
    AppointmentStatus,
    Barber,
    BusinessHours,
    DayHours,
    DiscountCode,
    Service,
    TimeRange,
    TimeSlot,
)

__all__ = [
    "AvailabilityEngine",
    "Appointment",
    "AppointmentStatus",
    "Barber",
    "BookingError",
    "BusinessHours",
    "ConfigurationError",
    "DayHours",
    "DiscountCode",
    "InvalidInputError",
    "NotFoundError",
    "Service",
    "SlotUnavailableError",
    "TimeRange",
    "TimeSlot",
]
