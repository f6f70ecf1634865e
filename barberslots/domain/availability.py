"""
Core business logic for calculating bookable time slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

import logging
from datetime import date, datetime
from typing import Iterable, List

import pendulum
from pendulum import DateTime

from .exceptions import InvalidInputError
from .models import Appointment, BusinessHours, TimeRange, TimeSlot

logger = logging.getLogger(__name__)

SLOT_STEP_MINUTES = 15


class AvailabilityEngine:
    """
    Calculates the open slots of one barber on one day.

    Algorithm:
    1. Look up the business hours of the day's weekday (closed -> no slots)
    2. Walk candidate starts on a fixed grid from opening until closing
    3. Drop candidates whose service would run past closing
    4. Drop candidates overlapping a scheduled appointment of the barber
    5. Return the survivors in ascending order

    Multi-day searches are left to the caller, which invokes
    ``compute_slots`` once per day.
    """

    def __init__(self, timezone: str = "Europe/Berlin", slot_step_minutes: int = SLOT_STEP_MINUTES):
        if slot_step_minutes <= 0:
            raise InvalidInputError("slot_step_minutes must be greater than zero")
        self.timezone = timezone
        self.slot_step_minutes = slot_step_minutes

    def compute_slots(
        self,
        date: date,
        barber_id: str,
        service_duration_minutes: int,
        business_hours: BusinessHours,
        existing_appointments: Iterable[Appointment],
    ) -> List[TimeSlot]:
        """
        Compute the bookable slots for a barber on a single day.

        Args:
            date: Calendar day to probe; any time-of-day is ignored
            barber_id: Barber whose appointments block slots
            service_duration_minutes: Length of the requested service
            business_hours: Weekly opening hours
            existing_appointments: Appointments of any barber on any day

        Returns:
            List of TimeSlot objects in ascending start order

        Raises:
            InvalidInputError: If the date or duration is invalid
            ConfigurationError: If the weekday has no business hours
        """
        self._validate_duration(service_duration_minutes)
        day = self.normalize_day(date)

        day_hours = business_hours.for_day(day)
        if day_hours.is_closed:
            logger.debug("Shop closed on %s, no slots", day.to_date_string())
            return []

        opening_time = day.set(hour=day_hours.open.hour, minute=day_hours.open.minute)
        closing_time = day.set(hour=day_hours.close.hour, minute=day_hours.close.minute)

        blocking = self._blocking_ranges(day, barber_id, existing_appointments)

        slots: List[TimeSlot] = []
        candidate_start = opening_time

        while candidate_start < closing_time:
            candidate_end = candidate_start.add(minutes=service_duration_minutes)
            current = candidate_start
            candidate_start = candidate_start.add(minutes=self.slot_step_minutes)

            if candidate_end > closing_time:
                continue

            candidate = TimeRange(start=current, end=candidate_end)
            if any(candidate.overlaps(busy) for busy in blocking):
                continue

            slots.append(TimeSlot(start_time=current, end_time=candidate_end, barber_id=barber_id))

        logger.debug(
            "Found %d slot(s) for barber %s on %s (%d min service)",
            len(slots),
            barber_id,
            day.to_date_string(),
            service_duration_minutes,
        )
        return slots

    def normalize_day(self, value: date) -> DateTime:
        """
        Return midnight of ``value``'s calendar day in the shop timezone.

        Aware datetimes are converted to the shop timezone first; naive ones
        are taken as shop-local.
        """
        if isinstance(value, datetime):
            instance = pendulum.instance(value, tz=self.timezone)
            return instance.in_timezone(self.timezone).start_of("day")
        if isinstance(value, date):
            return pendulum.datetime(value.year, value.month, value.day, tz=self.timezone)
        raise InvalidInputError(f"Expected a calendar date, got {value!r}")

    def _blocking_ranges(
        self,
        day: DateTime,
        barber_id: str,
        appointments: Iterable[Appointment],
    ) -> List[TimeRange]:
        """Scheduled appointments of ``barber_id`` starting on ``day``."""
        ranges: List[TimeRange] = []

        for appointment in appointments:
            if appointment.barber_id != barber_id:
                continue
            if not appointment.status.blocks_availability:
                continue
            start = self._to_local(appointment.start_time)
            if start.date() != day.date():
                continue
            ranges.append(TimeRange(start=start, end=self._to_local(appointment.end_time)))

        return ranges

    def _to_local(self, value: datetime) -> DateTime:
        """Shop-local view of a timestamp; naive values are taken as shop-local."""
        return pendulum.instance(value, tz=self.timezone).in_timezone(self.timezone)

    @staticmethod
    def _validate_duration(minutes: int) -> None:
        if isinstance(minutes, bool) or not isinstance(minutes, int):
            raise InvalidInputError(f"Service duration must be an integer, got {minutes!r}")
        if minutes <= 0:
            raise InvalidInputError(f"Service duration must be greater than zero, got {minutes}")
