"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import (
    WEEKDAY_NAMES,
    Barber,
    BusinessHours,
    DayHours,
    DiscountCode,
    Service,
    parse_hhmm,
)


class DayHoursConfig(BaseModel):
    """Opening hours of one weekday."""
    open: str = "09:00"
    close: str = "17:00"
    is_closed: bool = False

    @field_validator("open", "close")
    @classmethod
    def validate_time(cls, value: str) -> str:
        """Validate the HH:MM format."""
        parse_hhmm(value)
        return value

    def to_day_hours(self) -> DayHours:
        return DayHours.parse(open=self.open, close=self.close, is_closed=self.is_closed)


def _default_business_hours() -> Dict[str, DayHoursConfig]:
    return {
        "monday": DayHoursConfig(open="09:00", close="17:00"),
        "tuesday": DayHoursConfig(open="09:00", close="17:00"),
        "wednesday": DayHoursConfig(open="09:00", close="17:00"),
        "thursday": DayHoursConfig(open="09:00", close="19:00"),
        "friday": DayHoursConfig(open="09:00", close="19:00"),
        "saturday": DayHoursConfig(open="10:00", close="16:00"),
        "sunday": DayHoursConfig(open="09:00", close="17:00", is_closed=True),
    }


class ServiceConfig(BaseModel):
    """Bookable service."""
    id: str
    name: str
    duration_minutes: int
    price: float = 0.0
    description: str = ""

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure service duration is positive."""
        if value <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        return value

    def to_service(self) -> Service:
        return Service(
            id=self.id,
            name=self.name,
            duration_minutes=self.duration_minutes,
            price=self.price,
            description=self.description,
        )


def _default_services() -> List[ServiceConfig]:
    return [
        ServiceConfig(id="s1", name="Classic Haircut", duration_minutes=45, price=30,
                      description="Timeless cut and style."),
        ServiceConfig(id="s2", name="Beard Trim & Shape", duration_minutes=30, price=20,
                      description="Expert beard grooming."),
        ServiceConfig(id="s3", name="Hot Towel Shave", duration_minutes=60, price=45,
                      description="Luxurious traditional shave."),
        ServiceConfig(id="s4", name="Cut & Shave Combo", duration_minutes=90, price=65,
                      description="The full experience."),
    ]


class BarberConfig(BaseModel):
    """Barber configuration."""
    id: str
    name: str  # Used as alias
    email: str = ""
    specialties: List[str] = Field(default_factory=list)

    def to_barber(self) -> Barber:
        return Barber(id=self.id, name=self.name, email=self.email, specialties=list(self.specialties))


class DiscountCodeConfig(BaseModel):
    """Discount code configuration."""
    id: str
    code: str
    discount_percentage: float
    expiry_date: date
    is_active: bool = True

    @field_validator("discount_percentage")
    @classmethod
    def validate_percentage(cls, value: float) -> float:
        if not 0 < value <= 100:
            raise ValueError(f"discount_percentage must be between 0 and 100, got {value}")
        return value

    def to_discount_code(self) -> DiscountCode:
        return DiscountCode(
            id=self.id,
            code=self.code,
            discount_percentage=self.discount_percentage,
            expiry_date=self.expiry_date,
            is_active=self.is_active,
        )


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Berlin"
    slot_step_minutes: int = 15
    booking_window_days: int = 7
    appointments_file: Optional[Path] = None
    business_hours: Dict[str, DayHoursConfig] = Field(default_factory=_default_business_hours)
    barbers: List[BarberConfig] = Field(default_factory=list)
    services: List[ServiceConfig] = Field(default_factory=_default_services)
    discount_codes: List[DiscountCodeConfig] = Field(default_factory=list)

    @field_validator("slot_step_minutes", "booking_window_days")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value

    @field_validator("business_hours")
    @classmethod
    def validate_weekdays(cls, value: Dict[str, DayHoursConfig]) -> Dict[str, DayHoursConfig]:
        """Ensure keys are weekday names, normalised to lowercase."""
        normalized: Dict[str, DayHoursConfig] = {}
        for name, hours in value.items():
            key = name.lower()
            if key not in WEEKDAY_NAMES:
                raise ValueError(f"Unknown weekday in business_hours: {name}")
            normalized[key] = hours
        return normalized

    @field_validator("barbers")
    @classmethod
    def validate_barbers(cls, value: List[BarberConfig]) -> List[BarberConfig]:
        """Ensure barber ids and names are unique."""
        seen_ids: set[str] = set()
        seen_names: set[str] = set()
        for barber in value:
            name_key = barber.name.lower()
            if barber.id in seen_ids:
                raise ValueError(f"Duplicate barber id detected: {barber.id}")
            if name_key in seen_names:
                raise ValueError(f"Duplicate barber name detected: {barber.name}")
            seen_ids.add(barber.id)
            seen_names.add(name_key)
        return value

    @field_validator("services")
    @classmethod
    def validate_services(cls, value: List[ServiceConfig]) -> List[ServiceConfig]:
        seen: set[str] = set()
        for service in value:
            if service.id in seen:
                raise ValueError(f"Duplicate service id detected: {service.id}")
            seen.add(service.id)
        return value

    @model_validator(mode="after")
    def validate_opening_order(self) -> "AppConfig":
        """Ensure every open day opens before it closes."""
        self.to_business_hours()
        return self

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)
        if config.appointments_file is not None and not config.appointments_file.is_absolute():
            config.appointments_file = config_path.parent / config.appointments_file
        return config

    def to_business_hours(self) -> BusinessHours:
        return BusinessHours(
            days={name: hours.to_day_hours() for name, hours in self.business_hours.items()}
        )

    def to_discount_codes(self) -> List[DiscountCode]:
        return [code.to_discount_code() for code in self.discount_codes]

    def find_barber(self, barber_id: str) -> Barber | None:
        """Find a barber by id."""
        for barber in self.barbers:
            if barber.id == barber_id:
                return barber.to_barber()
        return None

    def find_service(self, service_id: str) -> Service | None:
        """Find a service by id."""
        for service in self.services:
            if service.id == service_id:
                return service.to_service()
        return None

    def resolve_barber(self, identifier: str) -> Barber:
        """
        Resolve a barber identifier (id or name) to a barber.

        Raises:
            ValueError: If identifier cannot be resolved
        """
        barber = self.find_barber(identifier)
        if barber:
            return barber

        for candidate in self.barbers:
            if candidate.name.lower() == identifier.lower():
                return candidate.to_barber()

        raise ValueError(
            f"Unknown barber identifier: '{identifier}'. "
            f"Use a configured barber id or name."
        )

    def resolve_service(self, identifier: str) -> Service:
        """
        Resolve a service identifier (id or name) to a service.

        Raises:
            ValueError: If identifier cannot be resolved
        """
        service = self.find_service(identifier)
        if service:
            return service

        for candidate in self.services:
            if candidate.name.lower() == identifier.lower():
                return candidate.to_service()

        raise ValueError(
            f"Unknown service identifier: '{identifier}'. "
            f"Use a configured service id or name."
        )


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of barberslots/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
