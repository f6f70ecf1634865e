"""
Adapters layer - Appointment persistence.
"""

from .appointment_store import AppointmentStore

__all__ = ["AppointmentStore"]
