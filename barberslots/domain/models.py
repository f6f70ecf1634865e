"""
Domain models for business hours, appointments and time slots.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import date, time
from enum import Enum
from typing import Dict, List, Mapping, Optional

from pendulum import DateTime

from .exceptions import ConfigurationError, InvalidInputError


WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> time:
    """Parse an ``HH:MM`` string into a time of day."""
    match = _HHMM_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ConfigurationError(f"Invalid time of day {value!r}, expected HH:MM")
    return time(hour=int(match.group(1)), minute=int(match.group(2)))


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """
        Check if this range overlaps with another.

        Ranges are half-open, so a range ending exactly when the other
        begins does not overlap it.
        """
        return self.start < other.end and other.start < self.end

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class DayHours:
    """
    Opening hours of a single weekday.

    Invariant: an open day opens before it closes. A closed day may carry
    any open/close pair, it is never consulted.
    """
    open: time
    close: time
    is_closed: bool = False

    def __post_init__(self):
        if not self.is_closed and self.open >= self.close:
            raise ConfigurationError(
                f"Opening time {self.open:%H:%M} must be before closing time {self.close:%H:%M}"
            )

    @classmethod
    def parse(cls, open: str, close: str, is_closed: bool = False) -> "DayHours":
        """Build day hours from ``HH:MM`` strings."""
        return cls(open=parse_hhmm(open), close=parse_hhmm(close), is_closed=is_closed)

    def format_display(self) -> str:
        if self.is_closed:
            return "closed"
        return f"{self.open:%H:%M} - {self.close:%H:%M}"


@dataclass(frozen=True)
class BusinessHours:
    """
    Weekly opening hours keyed by lowercase weekday name.
    """
    days: Mapping[str, DayHours]

    def __post_init__(self):
        normalized: Dict[str, DayHours] = {}
        for name, hours in self.days.items():
            key = name.lower()
            if key not in WEEKDAY_NAMES:
                raise ConfigurationError(f"Unknown weekday in business hours: {name!r}")
            normalized[key] = hours
        object.__setattr__(self, "days", normalized)

    def for_day(self, day: date) -> DayHours:
        """
        Return the hours for the weekday of ``day``.

        Raises:
            ConfigurationError: If that weekday is not configured
        """
        name = WEEKDAY_NAMES[day.weekday()]
        try:
            return self.days[name]
        except KeyError:
            raise ConfigurationError(f"No business hours configured for {name}") from None


class AppointmentStatus(str, Enum):
    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "No Show"

    @property
    def blocks_availability(self) -> bool:
        """Only scheduled appointments occupy the barber's chair."""
        return self is AppointmentStatus.SCHEDULED


@dataclass(frozen=True)
class Appointment:
    """
    A booked appointment.

    Only ``id``, ``barber_id``, the interval and ``status`` matter for
    availability; the rest is descriptive.
    """
    id: str
    barber_id: str
    start_time: DateTime
    end_time: DateTime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    client_name: str = ""
    client_email: str = ""
    client_phone: Optional[str] = None
    service_id: str = ""
    service_name: str = ""
    barber_name: str = ""
    price: float = 0.0
    notes: Optional[str] = None

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise InvalidInputError(
                f"Appointment {self.id} starts at {self.start_time} but ends at {self.end_time}"
            )

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start_time, end=self.end_time)

    def with_status(self, status: AppointmentStatus) -> "Appointment":
        return replace(self, status=status)


@dataclass(frozen=True)
class TimeSlot:
    """
    A bookable window for one barber, exactly one service long.
    """
    start_time: DateTime
    end_time: DateTime
    barber_id: str

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start_time, end=self.end_time)

    def duration_minutes(self) -> int:
        return self.time_range.duration_minutes()

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, DD.MM.YYYY | HH:MM - HH:MM (N min)
        """
        weekday = WEEKDAY_NAMES[self.start_time.weekday()].capitalize()
        date_str = self.start_time.format("DD.MM.YYYY")
        time_str = f"{self.start_time.format('HH:mm')} - {self.end_time.format('HH:mm')}"
        return f"{weekday}, {date_str} | {time_str} ({self.duration_minutes()} min)"


@dataclass(frozen=True)
class Service:
    id: str
    name: str
    duration_minutes: int
    price: float
    description: str = ""

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise InvalidInputError(f"Service {self.id} must have a positive duration")


@dataclass(frozen=True)
class Barber:
    id: str
    name: str
    email: str = ""
    specialties: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DiscountCode:
    """
    A percentage discount redeemable until its expiry date (inclusive).
    """
    id: str
    code: str
    discount_percentage: float
    expiry_date: date
    is_active: bool = True

    def __post_init__(self):
        if not 0 < self.discount_percentage <= 100:
            raise InvalidInputError(
                f"Discount percentage must be between 0 and 100, got {self.discount_percentage}"
            )

    def matches(self, code: str) -> bool:
        return self.code.lower() == code.strip().lower()

    def is_valid_on(self, day: date) -> bool:
        return self.is_active and day <= self.expiry_date

    def apply(self, price: float) -> float:
        """Return ``price`` reduced by the discount, rounded to cents."""
        return round(price * (100 - self.discount_percentage) / 100, 2)
