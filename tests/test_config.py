"""
Tests for configuration loading.
"""

from datetime import date, time

import pytest
from pydantic import ValidationError

from barberslots.config import AppConfig, DayHoursConfig

CONFIG_YAML = """
timezone: Europe/Berlin
booking_window_days: 3
appointments_file: appointments.json
business_hours:
  Monday: {open: "08:30", close: "18:00"}
  sunday: {open: "09:00", close: "17:00", is_closed: true}
barbers:
  - {id: b1, name: Carlos, email: carlos@example.com, specialties: [fades, beards]}
  - {id: b2, name: Mia}
services:
  - {id: s1, name: Classic Haircut, duration_minutes: 45, price: 30}
discount_codes:
  - {id: dc1, code: WELCOME10, discount_percentage: 10, expiry_date: 2025-12-31}
"""


class TestAppConfig:

    def test_defaults(self):
        config = AppConfig()

        hours = config.to_business_hours()
        assert hours.for_day(date(2024, 11, 28)).close == time(19, 0)  # Thursday
        assert hours.for_day(date(2024, 11, 24)).is_closed  # Sunday
        assert [s.duration_minutes for s in config.services] == [45, 30, 60, 90]
        assert config.slot_step_minutes == 15
        assert config.booking_window_days == 7

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG_YAML, encoding="utf-8")

        config = AppConfig.load_from_yaml(path)

        assert config.booking_window_days == 3
        assert config.appointments_file == tmp_path / "appointments.json"
        assert set(config.business_hours) == {"monday", "sunday"}
        assert config.to_business_hours().for_day(date(2024, 11, 25)).open == time(8, 30)
        assert config.find_barber("b1").specialties == ["fades", "beards"]
        assert config.to_discount_codes()[0].expiry_date == date(2025, 12, 31)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("barbers: [unclosed", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid YAML"):
            AppConfig.load_from_yaml(path)

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")

        with pytest.raises(ValueError, match="mapping"):
            AppConfig.load_from_yaml(path)

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")

        assert AppConfig.load_from_yaml(path).timezone == "Europe/Berlin"


class TestValidation:

    def test_malformed_time(self):
        with pytest.raises(ValidationError):
            DayHoursConfig(open="9am", close="17:00")

    def test_open_after_close(self):
        with pytest.raises(ValidationError, match="must be before closing"):
            AppConfig(business_hours={"monday": {"open": "18:00", "close": "09:00"}})

    def test_closed_day_may_have_inverted_hours(self):
        config = AppConfig(business_hours={"monday": {"open": "18:00", "close": "09:00", "is_closed": True}})

        assert config.to_business_hours().for_day(date(2024, 11, 25)).is_closed

    def test_unknown_weekday(self):
        with pytest.raises(ValidationError, match="Unknown weekday"):
            AppConfig(business_hours={"someday": {"open": "09:00", "close": "17:00"}})

    def test_duplicate_barbers(self):
        with pytest.raises(ValidationError, match="Duplicate barber name"):
            AppConfig(barbers=[{"id": "b1", "name": "Carlos"}, {"id": "b2", "name": "carlos"}])

    def test_duplicate_services(self):
        with pytest.raises(ValidationError, match="Duplicate service id"):
            AppConfig(services=[
                {"id": "s1", "name": "Cut", "duration_minutes": 30},
                {"id": "s1", "name": "Shave", "duration_minutes": 30},
            ])

    def test_non_positive_service_duration(self):
        with pytest.raises(ValidationError):
            AppConfig(services=[{"id": "s1", "name": "Cut", "duration_minutes": 0}])

    def test_non_positive_window(self):
        with pytest.raises(ValidationError):
            AppConfig(booking_window_days=0)

    def test_discount_percentage_range(self):
        with pytest.raises(ValidationError):
            AppConfig(discount_codes=[{"id": "d", "code": "X", "discount_percentage": 150, "expiry_date": "2030-01-01"}])


class TestResolution:

    def setup_method(self):
        self.config = AppConfig(barbers=[{"id": "b1", "name": "Carlos"}])

    def test_resolve_barber_by_id_or_name(self):
        assert self.config.resolve_barber("b1").name == "Carlos"
        assert self.config.resolve_barber("CARLOS").id == "b1"

    def test_resolve_unknown_barber(self):
        with pytest.raises(ValueError, match="Unknown barber"):
            self.config.resolve_barber("nobody")

    def test_resolve_service_by_id_or_name(self):
        assert self.config.resolve_service("s3").name == "Hot Towel Shave"
        assert self.config.resolve_service("beard trim & shape").id == "s2"

    def test_resolve_unknown_service(self):
        with pytest.raises(ValueError, match="Unknown service"):
            self.config.resolve_service("perm")

    def test_find_missing_returns_none(self):
        assert self.config.find_barber("b9") is None
        assert self.config.find_service("s9") is None
