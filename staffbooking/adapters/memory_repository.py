"""
In-memory repositories for tests and local experiments.

Records are stored as copies so callers cannot change stored state
without going through ``save``/``update``, which mirrors how the SQL store
hands out freshly loaded objects.

Each store can be seeded with new entities (ids are assigned in order) or
with stored ones carrying an id, which keep it. ``load_seed`` builds all
four stores from a JSON document.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, replace
from datetime import date, time
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pendulum
from pendulum import DateTime

from ..domain import validator
from ..domain.entities import Appointment, AvailableSlot, Service, User
from ..domain.exceptions import NotFoundError
from ..domain.models import Weekday


class InMemoryAppointmentRepository:
    """Appointment store backed by a dict keyed by id."""

    def __init__(self, appointments: Iterable[Appointment] = ()):
        self._rows: Dict[int, Appointment] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        for appointment in appointments:
            if appointment.id is None:
                self.save(appointment)
            else:
                self._rows[appointment.id] = replace(appointment)
                self._next_id = max(self._next_id, appointment.id + 1)

    def find_by_id(self, appointment_id: int) -> Optional[Appointment]:
        with self._lock:
            row = self._rows.get(appointment_id)
        return replace(row) if row is not None else None

    def find_all_by_staff_id(self, staff_id: int) -> List[Appointment]:
        with self._lock:
            rows = [row for row in self._rows.values() if row.staff_id == staff_id]
        return [replace(row) for row in rows]

    def has_conflict(self, staff_id: int, start: DateTime, end: DateTime) -> bool:
        return validator.has_appointment_conflict(
            self.find_all_by_staff_id(staff_id), staff_id, start, end
        )

    def save(self, appointment: Appointment) -> Appointment:
        with self._lock:
            appointment.assign_id(self._next_id)
            self._next_id += 1
            self._rows[appointment.id] = replace(appointment)
        return appointment

    def update(self, appointment: Appointment) -> None:
        with self._lock:
            row = self._rows.get(appointment.id)
            if row is None:
                raise NotFoundError(f"appointment {appointment.id} not found")
            self._rows[appointment.id] = replace(row, status=appointment.status)

    def delete(self, appointment_id: int) -> None:
        with self._lock:
            self._rows.pop(appointment_id, None)


class InMemoryAvailableSlotRepository:
    """Slot store backed by a dict keyed by id."""

    def __init__(self, slots: Iterable[AvailableSlot] = ()):
        self._rows: Dict[int, AvailableSlot] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        for slot in slots:
            if slot.id is None:
                self.save(slot)
            else:
                self._rows[slot.id] = slot
                self._next_id = max(self._next_id, slot.id + 1)

    def find_by_id(self, slot_id: int) -> Optional[AvailableSlot]:
        with self._lock:
            return self._rows.get(slot_id)

    def find_all_by_staff_id(self, staff_id: int) -> List[AvailableSlot]:
        with self._lock:
            return [row for row in self._rows.values() if row.staff_id == staff_id]

    def find_by_staff_and_weekday(self, staff_id: int, weekday: Weekday) -> List[AvailableSlot]:
        weekday = Weekday.parse(weekday)
        return [row for row in self.find_all_by_staff_id(staff_id) if row.weekday == weekday]

    def find_by_staff_and_date(self, staff_id: int, day: date) -> List[AvailableSlot]:
        return self.find_by_staff_and_weekday(staff_id, Weekday.of(day))

    def is_within_available_slot(self, staff_id: int, start: DateTime, end: DateTime) -> bool:
        return validator.is_within_available_slot(
            self.find_by_staff_and_date(staff_id, start), staff_id, start, end
        )

    def has_conflict(
        self,
        staff_id: int,
        weekday: Weekday,
        start_time: time,
        end_time: time,
    ) -> bool:
        return validator.has_slot_conflict(
            self.find_by_staff_and_weekday(staff_id, weekday),
            staff_id,
            weekday,
            start_time,
            end_time,
        )

    def save(self, slot: AvailableSlot) -> AvailableSlot:
        with self._lock:
            saved = slot.with_id(self._next_id)
            self._next_id += 1
            self._rows[saved.id] = saved
        return saved

    def update(self, slot: AvailableSlot) -> None:
        with self._lock:
            row = self._rows.get(slot.id)
            if row is None:
                raise NotFoundError(f"slot {slot.id} not found")
            self._rows[slot.id] = replace(
                row, weekday=slot.weekday, start_time=slot.start_time, end_time=slot.end_time
            )

    def delete(self, slot_id: int) -> None:
        with self._lock:
            self._rows.pop(slot_id, None)


class InMemoryServiceRepository:
    """Service store backed by a dict keyed by id."""

    def __init__(self, services: Iterable[Service] = ()):
        self._rows: Dict[int, Service] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        for service in services:
            if service.id is None:
                self.save(service)
            else:
                self._rows[service.id] = replace(service)
                self._next_id = max(self._next_id, service.id + 1)

    def find_by_id(self, service_id: int) -> Optional[Service]:
        with self._lock:
            row = self._rows.get(service_id)
        return replace(row) if row is not None else None

    def find_all_by_staff_id(self, staff_id: int) -> List[Service]:
        with self._lock:
            rows = [row for row in self._rows.values() if row.staff_id == staff_id]
        return [replace(row) for row in rows]

    def exists(self, service_id: int) -> bool:
        with self._lock:
            return service_id in self._rows

    def save(self, service: Service) -> Service:
        with self._lock:
            service.assign_id(self._next_id)
            self._next_id += 1
            self._rows[service.id] = replace(service)
        return service


class InMemoryUserRepository:
    """User store backed by a dict keyed by id."""

    def __init__(self, users: Iterable[User] = ()):
        self._rows: Dict[int, User] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        for user in users:
            if user.id is None:
                self.save(user)
            else:
                self._rows[user.id] = replace(user)
                self._next_id = max(self._next_id, user.id + 1)

    def find_by_id(self, user_id: int) -> Optional[User]:
        with self._lock:
            row = self._rows.get(user_id)
        return replace(row) if row is not None else None

    def find_all(self) -> List[User]:
        with self._lock:
            rows = sorted(self._rows.values(), key=lambda u: u.id)
        return [replace(row) for row in rows]

    def exists(self, user_id: int) -> bool:
        with self._lock:
            return user_id in self._rows

    def email_exists(self, email: str) -> bool:
        with self._lock:
            return any(row.email.address == email for row in self._rows.values())

    def save(self, user: User) -> User:
        with self._lock:
            user.assign_id(self._next_id)
            self._next_id += 1
            self._rows[user.id] = replace(user)
        return user


@dataclass
class SeededStore:
    """The four in-memory stores built from one seed document."""
    appointments: InMemoryAppointmentRepository
    slots: InMemoryAvailableSlotRepository
    services: InMemoryServiceRepository
    users: InMemoryUserRepository


def load_seed(seed_path: Path) -> SeededStore:
    """
    Build in-memory stores from a JSON seed file.

    The document is an object with optional ``users``, ``services``,
    ``slots`` and ``appointments`` lists. Rows are loaded as stored records
    and keep their ids. Instants are ISO 8601 strings; slot times are
    ``HH:MM``.

    Example:
        {"slots": [{"id": 1, "staff_id": 7, "weekday": "monday",
                    "start_time": "09:00", "end_time": "12:00"}]}

    Raises:
        FileNotFoundError: If the seed file doesn't exist
        ValueError: If the document is not valid JSON or a row is malformed
    """
    if not seed_path.exists():
        raise FileNotFoundError(f"Seed file not found: {seed_path}")

    with open(seed_path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in {seed_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError("Seed file must contain an object at the root level.")

    try:
        return SeededStore(
            appointments=InMemoryAppointmentRepository(
                _appointment_from_seed(row) for row in data.get("appointments", [])
            ),
            slots=InMemoryAvailableSlotRepository(
                _slot_from_seed(row) for row in data.get("slots", [])
            ),
            services=InMemoryServiceRepository(
                _service_from_seed(row) for row in data.get("services", [])
            ),
            users=InMemoryUserRepository(
                _user_from_seed(row) for row in data.get("users", [])
            ),
        )
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Malformed row in {seed_path}: {exc!r}") from exc


def _instant(value: Optional[str]) -> Optional[DateTime]:
    return pendulum.parse(value) if value is not None else None


def _appointment_from_seed(row: dict) -> Appointment:
    return Appointment.rehydrate(
        id=row["id"],
        client_id=row["client_id"],
        staff_id=row["staff_id"],
        service_id=row["service_id"],
        scheduled_at=_instant(row["scheduled_at"]),
        status=row.get("status", "scheduled"),
        created_at=_instant(row.get("created_at")),
    )


def _slot_from_seed(row: dict) -> AvailableSlot:
    return AvailableSlot.rehydrate(
        id=row["id"],
        staff_id=row["staff_id"],
        weekday=row["weekday"],
        start_time=time.fromisoformat(row["start_time"]),
        end_time=time.fromisoformat(row["end_time"]),
    )


def _service_from_seed(row: dict) -> Service:
    return Service.rehydrate(
        id=row["id"],
        staff_id=row["staff_id"],
        name=row["name"],
        duration_minutes=row["duration_minutes"],
        price=row.get("price", "0"),
        created_at=_instant(row.get("created_at")),
    )


def _user_from_seed(row: dict) -> User:
    return User.rehydrate(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        role=row.get("role", "client"),
        created_at=_instant(row.get("created_at")),
    )
