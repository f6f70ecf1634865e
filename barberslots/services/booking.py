"""
Application services for finding slots and booking appointments.

The service coordinates the appointment store and the configuration and
delegates the availability calculation to the domain-level
``AvailabilityEngine``. Booking re-runs that calculation under the store's
per-barber, per-day lock so two clients can never claim the same slot.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import List, Optional, Protocol

import pendulum

from ..config import AppConfig
from ..domain.availability import AvailabilityEngine
from ..domain.exceptions import (
    InvalidInputError,
    NotFoundError,
    SlotUnavailableError,
)
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    Barber,
    BusinessHours,
    DiscountCode,
    Service,
    TimeSlot,
)

logger = logging.getLogger(__name__)


class AppointmentStoreProtocol(Protocol):
    """Protocol describing the store behaviour needed by the service."""

    def list_appointments(
        self,
        barber_id: Optional[str] = None,
        client_email: Optional[str] = None,
    ) -> List[Appointment]:
        """Return appointments sorted by start time."""

    def get(self, appointment_id: str) -> Appointment:
        """Return one appointment or raise NotFoundError."""

    def add(self, appointment: Appointment) -> None:
        """Insert a new appointment."""

    def replace(self, appointment: Appointment) -> None:
        """Overwrite an existing appointment."""

    def lock(self, barber_id: str, day: date) -> AbstractContextManager[None]:
        """Serialize writes for one barber on one day."""


class BookingService:
    """
    Orchestrates availability queries, bookings and shop administration.
    """

    def __init__(
        self,
        config: AppConfig,
        store: AppointmentStoreProtocol,
        engine: Optional[AvailabilityEngine] = None,
    ) -> None:
        self._config = config
        self._store = store
        self._engine = engine or AvailabilityEngine(
            timezone=config.timezone,
            slot_step_minutes=config.slot_step_minutes,
        )
        self._business_hours = config.to_business_hours()
        self._discount_codes: List[DiscountCode] = config.to_discount_codes()

    @property
    def timezone(self) -> str:
        return self._config.timezone

    @property
    def business_hours(self) -> BusinessHours:
        return self._business_hours

    def update_business_hours(self, hours: BusinessHours) -> None:
        self._business_hours = hours
        logger.info("Business hours updated")

    def find_slots(
        self,
        *,
        barber_id: str,
        service_id: str,
        start_date: Optional[date] = None,
        days: Optional[int] = None,
    ) -> List[TimeSlot]:
        """
        Compute free slots over consecutive days, starting at ``start_date``.

        Defaults to today plus the configured booking window.
        """
        self._get_barber(barber_id)
        service = self._get_service(service_id)

        days = self._config.booking_window_days if days is None else days
        if days <= 0:
            raise InvalidInputError(f"days must be greater than zero, got {days}")

        first_day = self._engine.normalize_day(start_date or pendulum.now(self.timezone))
        appointments = self._store.list_appointments(barber_id=barber_id)

        slots: List[TimeSlot] = []
        for offset in range(days):
            slots.extend(
                self._engine.compute_slots(
                    first_day.add(days=offset),
                    barber_id,
                    service.duration_minutes,
                    self._business_hours,
                    appointments,
                )
            )
        return slots

    def book_appointment(
        self,
        *,
        barber_id: str,
        service_id: str,
        start_time: datetime,
        client_name: str,
        client_email: str,
        client_phone: Optional[str] = None,
        notes: Optional[str] = None,
        discount_code: Optional[str] = None,
    ) -> Appointment:
        """
        Book a service with a barber if the start time is still free.

        Raises:
            NotFoundError: If barber, service or discount code is unknown
            InvalidInputError: If the discount code is expired or inactive
            SlotUnavailableError: If the start is not a free slot
        """
        barber = self._get_barber(barber_id)
        service = self._get_service(service_id)

        start = pendulum.instance(start_time, tz=self.timezone).in_timezone(self.timezone)
        day = start.start_of("day")

        price = service.price
        if discount_code:
            price = self.resolve_discount(discount_code, on_day=day.date()).apply(price)

        with self._store.lock(barber_id, day):
            slots = self._engine.compute_slots(
                day,
                barber_id,
                service.duration_minutes,
                self._business_hours,
                self._store.list_appointments(barber_id=barber_id),
            )
            slot = next((s for s in slots if s.start_time == start), None)
            if slot is None:
                raise SlotUnavailableError(
                    f"{barber.name} is not available at {start.format('DD.MM.YYYY HH:mm')} "
                    f"for {service.name}"
                )

            appointment = Appointment(
                id=f"app-{uuid.uuid4().hex[:12]}",
                barber_id=barber.id,
                start_time=slot.start_time,
                end_time=slot.end_time,
                status=AppointmentStatus.SCHEDULED,
                client_name=client_name,
                client_email=client_email,
                client_phone=client_phone,
                service_id=service.id,
                service_name=service.name,
                barber_name=barber.name,
                price=price,
                notes=notes,
            )
            self._store.add(appointment)

        logger.info(
            "Booked %s with %s at %s (%s)",
            service.name,
            barber.name,
            start.to_datetime_string(),
            appointment.id,
        )
        return appointment

    def cancel_appointment(self, appointment_id: str) -> Appointment:
        return self._transition(appointment_id, AppointmentStatus.CANCELLED)

    def complete_appointment(self, appointment_id: str) -> Appointment:
        return self._transition(appointment_id, AppointmentStatus.COMPLETED)

    def mark_no_show(self, appointment_id: str) -> Appointment:
        return self._transition(appointment_id, AppointmentStatus.NO_SHOW)

    def barber_schedule(self, barber_id: str, day: Optional[date] = None) -> List[Appointment]:
        """Appointments of a barber, optionally limited to one day."""
        self._get_barber(barber_id)
        appointments = self._store.list_appointments(barber_id=barber_id)
        if day is None:
            return appointments

        target = self._engine.normalize_day(day).date()
        return [
            a for a in appointments
            if pendulum.instance(a.start_time, tz=self.timezone).in_timezone(self.timezone).date() == target
        ]

    def client_appointments(self, client_email: str) -> List[Appointment]:
        return self._store.list_appointments(client_email=client_email)

    def list_discount_codes(self) -> List[DiscountCode]:
        return list(self._discount_codes)

    def create_discount_code(
        self,
        *,
        code: str,
        discount_percentage: float,
        expiry_date: date,
    ) -> DiscountCode:
        """
        Create a discount code. Codes that already expired start inactive.
        """
        code = code.strip()
        if not code:
            raise InvalidInputError("Discount code must not be empty")
        if any(existing.matches(code) for existing in self._discount_codes):
            raise InvalidInputError(f"Discount code already exists: {code}")

        today = pendulum.now(self.timezone).date()
        discount = DiscountCode(
            id=f"dc-{uuid.uuid4().hex[:8]}",
            code=code,
            discount_percentage=discount_percentage,
            expiry_date=expiry_date,
            is_active=expiry_date >= today,
        )
        self._discount_codes.append(discount)
        logger.info("Created discount code %s (%s%%)", discount.code, discount.discount_percentage)
        return discount

    def delete_discount_code(self, code_id: str) -> None:
        for index, discount in enumerate(self._discount_codes):
            if discount.id == code_id:
                del self._discount_codes[index]
                logger.info("Deleted discount code %s", discount.code)
                return
        raise NotFoundError(f"Discount code not found: {code_id}")

    def resolve_discount(self, code: str, on_day: date) -> DiscountCode:
        """
        Find a discount code usable on ``on_day``.

        Raises:
            NotFoundError: If no such code exists
            InvalidInputError: If the code is inactive or expired on that day
        """
        for discount in self._discount_codes:
            if discount.matches(code):
                if not discount.is_valid_on(on_day):
                    raise InvalidInputError(f"Discount code {discount.code} is no longer valid")
                return discount
        raise NotFoundError(f"Discount code not found: {code}")

    def _transition(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        appointment = self._store.get(appointment_id)

        with self._store.lock(appointment.barber_id, self._engine.normalize_day(appointment.start_time)):
            current = self._store.get(appointment_id)
            if current.status is not AppointmentStatus.SCHEDULED:
                raise InvalidInputError(
                    f"Appointment {appointment_id} is {current.status.value}, "
                    f"only scheduled appointments can become {status.value}"
                )
            updated = current.with_status(status)
            self._store.replace(updated)

        logger.info("Appointment %s is now %s", appointment_id, status.value)
        return updated

    def _get_barber(self, barber_id: str) -> Barber:
        barber = self._config.find_barber(barber_id)
        if barber is None:
            raise NotFoundError(f"Barber not found: {barber_id}")
        return barber

    def _get_service(self, service_id: str) -> Service:
        service = self._config.find_service(service_id)
        if service is None:
            raise NotFoundError(f"Service not found: {service_id}")
        return service
