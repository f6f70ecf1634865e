"""
Appointment persistence backed by memory and an optional JSON file.
"""

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pendulum
from filelock import FileLock

from ..domain.exceptions import ConfigurationError, NotFoundError
from ..domain.models import Appointment, AppointmentStatus

logger = logging.getLogger(__name__)


class AppointmentStore:
    """
    Holds appointments and hands out snapshots of them.

    Appointments are immutable, so the lists returned by the query methods
    can be modified freely without touching the store. Writers that must
    check availability before inserting do so inside ``lock()``.

    A file-backed store also takes an inter-process lock on ``<path>.lock``
    inside ``lock()``: it re-reads the file on entry and writes it back on
    successful exit, so several processes sharing one file see each other's
    bookings.
    """

    def __init__(
        self,
        appointments: Optional[List[Appointment]] = None,
        path: Optional[Path] = None,
        timezone: str = "Europe/Berlin",
        lock_timeout: float = 10.0,
    ):
        """
        Initialize the store.

        Args:
            appointments: Initial appointments
            path: JSON file used by ``save()`` and ``lock()``; None keeps data in memory only
            timezone: Timezone for timestamps stored without an offset
            lock_timeout: Seconds to wait for the file lock before raising ``filelock.Timeout``
        """
        self.path = path
        self.timezone = timezone
        self._appointments: Dict[str, Appointment] = {
            appointment.id: appointment for appointment in appointments or []
        }
        self._data_lock = threading.RLock()
        # (barber_id, day) -> [lock, number of threads using it]
        self._locks: Dict[Tuple[str, str], list] = {}
        self._locks_guard = threading.Lock()
        self._file_lock = (
            FileLock(str(path) + ".lock", timeout=lock_timeout, thread_local=True)
            if path is not None
            else None
        )

    @classmethod
    def load_from_json(cls, path: Path, timezone: str = "Europe/Berlin") -> "AppointmentStore":
        """
        Load appointments from a JSON file.

        A missing file yields an empty store bound to ``path``. Entries that
        cannot be parsed are skipped.

        Raises:
            ConfigurationError: If the file is not a JSON list
        """
        appointments = read_appointments(path, timezone)
        if appointments is None:
            logger.info("Appointment file %s not found, starting empty", path)
        return cls(appointments=appointments, path=path, timezone=timezone)

    def save(self) -> None:
        """Write all appointments back to the JSON file."""
        if self._file_lock is None:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._file_lock:
            self._write()

    def list_appointments(
        self,
        barber_id: Optional[str] = None,
        client_email: Optional[str] = None,
    ) -> List[Appointment]:
        """Return appointments sorted by start time, optionally filtered."""
        with self._data_lock:
            appointments = self._sorted()

        if barber_id is not None:
            appointments = [a for a in appointments if a.barber_id == barber_id]
        if client_email is not None:
            email = client_email.lower()
            appointments = [a for a in appointments if a.client_email.lower() == email]
        return appointments

    def get(self, appointment_id: str) -> Appointment:
        with self._data_lock:
            try:
                return self._appointments[appointment_id]
            except KeyError:
                raise NotFoundError(f"Appointment not found: {appointment_id}") from None

    def add(self, appointment: Appointment) -> None:
        with self._data_lock:
            if appointment.id in self._appointments:
                raise ValueError(f"Duplicate appointment id: {appointment.id}")
            self._appointments[appointment.id] = appointment

    def replace(self, appointment: Appointment) -> None:
        with self._data_lock:
            if appointment.id not in self._appointments:
                raise NotFoundError(f"Appointment not found: {appointment.id}")
            self._appointments[appointment.id] = appointment

    @contextmanager
    def lock(self, barber_id: str, day: date) -> Iterator[None]:
        """
        Serialize check-then-write sequences for one barber on one day.

        For a file-backed store the block runs against the current file
        contents, and its changes are written back only if it completes
        without raising.
        """
        key = (barber_id, day.isoformat()[:10])
        with self._locks_guard:
            entry = self._locks.setdefault(key, [threading.RLock(), 0])
            entry[1] += 1

        try:
            with entry[0]:
                with self._file_transaction():
                    yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    @contextmanager
    def _file_transaction(self) -> Iterator[None]:
        # Nested lock() calls in the same thread reuse the outer transaction
        if self._file_lock is None or self._file_lock.is_locked:
            yield
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._file_lock:
            self._reload()
            yield
            self._write()

    def _reload(self) -> None:
        appointments = read_appointments(self.path, self.timezone)
        if appointments is None:
            return
        with self._data_lock:
            self._appointments = {appointment.id: appointment for appointment in appointments}

    def _write(self) -> None:
        """Atomically replace the JSON file with the current appointments."""
        with self._data_lock:
            payload = [appointment_to_dict(a) for a in self._sorted()]

        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug("Saved %d appointment(s) to %s", len(payload), self.path)

    def _sorted(self) -> List[Appointment]:
        return sorted(self._appointments.values(), key=lambda a: a.start_time)


def read_appointments(path: Path, timezone: str) -> Optional[List[Appointment]]:
    """
    Parse an appointment file, or return None if it does not exist.

    Raises:
        ConfigurationError: If the file is not a JSON list
    """
    if not path.exists():
        return None

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from exc

    if not isinstance(raw, list):
        raise ConfigurationError(f"Appointment file {path} must contain a list")

    appointments: List[Appointment] = []
    for entry in raw:
        try:
            appointments.append(appointment_from_dict(entry, timezone))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping invalid appointment entry %r: %s", entry, exc)
    return appointments



def appointment_from_dict(data: Dict[str, Any], timezone: str) -> Appointment:
    """Build an appointment from its JSON representation."""
    return Appointment(
        id=str(data["id"]),
        barber_id=str(data["barber_id"]),
        start_time=pendulum.parse(data["start"], tz=timezone),
        end_time=pendulum.parse(data["end"], tz=timezone),
        status=AppointmentStatus(data.get("status", AppointmentStatus.SCHEDULED.value)),
        client_name=data.get("client_name", ""),
        client_email=data.get("client_email", ""),
        client_phone=data.get("client_phone"),
        service_id=data.get("service_id", ""),
        service_name=data.get("service_name", ""),
        barber_name=data.get("barber_name", ""),
        price=float(data.get("price", 0.0)),
        notes=data.get("notes"),
    )


def appointment_to_dict(appointment: Appointment) -> Dict[str, Any]:
    return {
        "id": appointment.id,
        "barber_id": appointment.barber_id,
        "start": appointment.start_time.isoformat(),
        "end": appointment.end_time.isoformat(),
        "status": appointment.status.value,
        "client_name": appointment.client_name,
        "client_email": appointment.client_email,
        "client_phone": appointment.client_phone,
        "service_id": appointment.service_id,
        "service_name": appointment.service_name,
        "barber_name": appointment.barber_name,
        "price": appointment.price,
        "notes": appointment.notes,
    }
