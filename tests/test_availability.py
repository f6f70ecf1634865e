"""
Tests for the availability engine.
"""

from datetime import date, datetime

import pendulum
import pytest

from barberslots.domain.availability import AvailabilityEngine
from barberslots.domain.exceptions import ConfigurationError, InvalidInputError
from barberslots.domain.models import (
    Appointment,
    AppointmentStatus,
    BusinessHours,
    DayHours,
)

TZ = "Europe/Berlin"
MONDAY = pendulum.datetime(2024, 11, 25, tz=TZ)
SUNDAY = pendulum.datetime(2024, 11, 24, tz=TZ)


def _at(hhmm: str, day: str = "2024-11-25"):
    return pendulum.parse(f"{day} {hhmm}", tz=TZ)


def _week(**overrides) -> BusinessHours:
    days = {
        "monday": DayHours.parse("09:00", "17:00"),
        "tuesday": DayHours.parse("09:00", "17:00"),
        "wednesday": DayHours.parse("09:00", "17:00"),
        "thursday": DayHours.parse("09:00", "19:00"),
        "friday": DayHours.parse("09:00", "19:00"),
        "saturday": DayHours.parse("10:00", "16:00"),
        "sunday": DayHours.parse("09:00", "17:00", is_closed=True),
    }
    days.update(overrides)
    return BusinessHours(days=days)


def _appointment(start: str, end: str, barber_id: str = "b1", status=AppointmentStatus.SCHEDULED, day="2024-11-25"):
    return Appointment(
        id=f"{barber_id}-{start}",
        barber_id=barber_id,
        start_time=_at(start, day),
        end_time=_at(end, day),
        status=status,
    )


def _starts(slots):
    return [s.start_time.format("HH:mm") for s in slots]


class TestComputeSlots:
    """Tests for AvailabilityEngine.compute_slots."""

    def setup_method(self):
        self.engine = AvailabilityEngine(timezone=TZ)

    def test_full_day_grid_for_45_minute_service(self):
        """Slots start every 15 minutes until the last one that still ends by closing."""
        slots = self.engine.compute_slots(MONDAY, "b1", 45, _week(), [])

        starts = _starts(slots)
        assert starts[0] == "09:00"
        assert starts[1] == "09:15"
        assert starts[-1] == "16:15"
        assert "16:30" not in starts
        assert "16:45" not in starts
        assert len(slots) == 30

    def test_grid_is_independent_of_duration(self):
        """A 45-minute service may start on any quarter hour."""
        starts = _starts(self.engine.compute_slots(MONDAY, "b1", 45, _week(), []))

        assert {"09:00", "09:15", "09:30", "09:45"} <= set(starts)

    def test_conflicting_appointment_blocks_overlapping_candidates(self):
        """A 10:00-10:45 appointment blocks 09:45 but not the touching 09:30 and 10:45."""
        appointments = [_appointment("10:00", "10:45")]

        starts = _starts(self.engine.compute_slots(MONDAY, "b1", 30, _week(), appointments))

        assert "09:30" in starts
        assert "09:45" not in starts
        assert "10:00" not in starts
        assert "10:15" not in starts
        assert "10:30" not in starts
        assert "10:45" in starts

    @pytest.mark.parametrize(
        "status",
        [AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW],
    )
    def test_non_scheduled_appointments_do_not_block(self, status):
        """Only scheduled appointments occupy the barber."""
        appointments = [_appointment("10:00", "10:45", status=status)]

        starts = _starts(self.engine.compute_slots(MONDAY, "b1", 30, _week(), appointments))

        assert "10:00" in starts
        assert "09:45" in starts

    def test_other_barbers_appointments_do_not_block(self):
        """Appointments of a different barber leave the slot free."""
        appointments = [_appointment("10:00", "10:45", barber_id="b1")]

        starts = _starts(self.engine.compute_slots(MONDAY, "b2", 30, _week(), appointments))

        assert "10:00" in starts

    def test_appointments_on_other_days_do_not_block(self):
        appointments = [_appointment("10:00", "10:45", day="2024-11-26")]

        starts = _starts(self.engine.compute_slots(MONDAY, "b1", 30, _week(), appointments))

        assert "10:00" in starts

    def test_naive_appointment_times_are_shop_local(self):
        """Appointments stored without a timezone block the matching local times."""
        appointments = [
            Appointment(
                id="naive",
                barber_id="b1",
                start_time=datetime(2024, 11, 25, 10, 0),
                end_time=datetime(2024, 11, 25, 10, 45),
            )
        ]

        starts = _starts(self.engine.compute_slots(date(2024, 11, 25), "b1", 30, _week(), appointments))

        assert "09:30" in starts
        assert "09:45" not in starts
        assert "10:30" not in starts
        assert "10:45" in starts

    def test_closed_day_returns_nothing(self):
        """Closed days yield no slots even with appointments present."""
        appointments = [_appointment("10:00", "10:45", day="2024-11-24")]

        assert self.engine.compute_slots(SUNDAY, "b1", 30, _week(), appointments) == []

    def test_closed_day_with_inverted_hours_returns_nothing(self):
        hours = _week(monday=DayHours.parse("17:00", "09:00", is_closed=True))

        assert self.engine.compute_slots(MONDAY, "b1", 30, hours, []) == []

    def test_service_longer_than_opening_returns_nothing(self):
        hours = _week(monday=DayHours.parse("09:00", "10:00"))

        assert self.engine.compute_slots(MONDAY, "b1", 90, hours, []) == []

    def test_slots_have_exact_duration_and_stay_within_hours(self):
        appointments = [_appointment("11:00", "12:30"), _appointment("14:15", "14:45")]

        slots = self.engine.compute_slots(MONDAY, "b1", 60, _week(), appointments)

        assert slots
        for slot in slots:
            assert slot.duration_minutes() == 60
            assert slot.start_time >= _at("09:00")
            assert slot.end_time <= _at("17:00")
            assert slot.barber_id == "b1"
            for appointment in appointments:
                assert not slot.time_range.overlaps(appointment.time_range)

    def test_slots_are_ascending(self):
        slots = self.engine.compute_slots(MONDAY, "b1", 30, _week(), [_appointment("12:00", "13:00")])

        starts = [s.start_time for s in slots]
        assert starts == sorted(starts)

    def test_idempotent(self):
        """Identical inputs give identical outputs."""
        appointments = [_appointment("10:00", "10:45")]

        first = self.engine.compute_slots(MONDAY, "b1", 30, _week(), appointments)
        second = self.engine.compute_slots(MONDAY, "b1", 30, _week(), appointments)

        assert first == second

    def test_time_of_day_is_ignored(self):
        """A date with a time component is normalised to midnight."""
        at_noon = self.engine.compute_slots(_at("12:34"), "b1", 30, _week(), [])
        at_midnight = self.engine.compute_slots(MONDAY, "b1", 30, _week(), [])

        assert at_noon == at_midnight
        assert at_noon[0].start_time == _at("09:00")

    def test_accepts_plain_date_and_naive_datetime(self):
        from_date = self.engine.compute_slots(date(2024, 11, 25), "b1", 30, _week(), [])
        from_naive = self.engine.compute_slots(datetime(2024, 11, 25, 8, 0), "b1", 30, _week(), [])

        assert from_date == from_naive
        assert from_date[0].start_time == _at("09:00")

    def test_custom_opening_minutes(self):
        hours = _week(monday=DayHours.parse("09:30", "11:00"))

        starts = _starts(self.engine.compute_slots(MONDAY, "b1", 30, hours, []))

        assert starts == ["09:30", "09:45", "10:00", "10:15", "10:30"]


class TestComputeSlotsErrors:
    """Invalid input and configuration."""

    def setup_method(self):
        self.engine = AvailabilityEngine(timezone=TZ)

    @pytest.mark.parametrize("duration", [0, -15])
    def test_non_positive_duration_raises(self, duration):
        with pytest.raises(InvalidInputError):
            self.engine.compute_slots(MONDAY, "b1", duration, _week(), [])

    def test_non_integer_duration_raises(self):
        with pytest.raises(InvalidInputError):
            self.engine.compute_slots(MONDAY, "b1", True, _week(), [])

    def test_missing_date_raises(self):
        with pytest.raises(InvalidInputError):
            self.engine.compute_slots(None, "b1", 30, _week(), [])

    def test_invalid_date_type_raises(self):
        with pytest.raises(InvalidInputError):
            self.engine.compute_slots("2024-11-25", "b1", 30, _week(), [])

    def test_missing_weekday_raises_configuration_error(self):
        hours = BusinessHours(days={"tuesday": DayHours.parse("09:00", "17:00")})

        with pytest.raises(ConfigurationError, match="monday"):
            self.engine.compute_slots(MONDAY, "b1", 30, hours, [])

    def test_invalid_step_raises(self):
        with pytest.raises(InvalidInputError):
            AvailabilityEngine(slot_step_minutes=0)
