"""
Storage contracts the booking service depends on.

Implementations live in ``staffbooking.adapters``: an in-memory store for
tests and a SQLAlchemy store. Failures to reach storage are reported as
``RepositoryError``; a missing record on lookup is ``None``, not an error.
"""

from __future__ import annotations

from datetime import date, time
from typing import List, Optional, Protocol

from pendulum import DateTime

from ..domain.entities import Appointment, AvailableSlot, Service, User
from ..domain.models import Weekday


class AppointmentRepository(Protocol):
    """Persistence of appointments."""

    def find_by_id(self, appointment_id: int) -> Optional[Appointment]:
        ...

    def find_all_by_staff_id(self, staff_id: int) -> List[Appointment]:
        ...

    def has_conflict(self, staff_id: int, start: DateTime, end: DateTime) -> bool:
        """Fixed 30-minute occupancy conflict check against scheduled rows."""

    def save(self, appointment: Appointment) -> Appointment:
        """Insert and assign the storage id."""

    def update(self, appointment: Appointment) -> None:
        """Persist the status of an existing appointment."""

    def delete(self, appointment_id: int) -> None:
        ...


class AvailableSlotRepository(Protocol):
    """Persistence of recurring availability slots."""

    def find_by_id(self, slot_id: int) -> Optional[AvailableSlot]:
        ...

    def find_all_by_staff_id(self, staff_id: int) -> List[AvailableSlot]:
        ...

    def find_by_staff_and_weekday(self, staff_id: int, weekday: Weekday) -> List[AvailableSlot]:
        ...

    def find_by_staff_and_date(self, staff_id: int, day: date) -> List[AvailableSlot]:
        ...

    def is_within_available_slot(self, staff_id: int, start: DateTime, end: DateTime) -> bool:
        ...

    def has_conflict(
        self,
        staff_id: int,
        weekday: Weekday,
        start_time: time,
        end_time: time,
    ) -> bool:
        ...

    def save(self, slot: AvailableSlot) -> AvailableSlot:
        """Insert and return the copy carrying its storage id."""

    def update(self, slot: AvailableSlot) -> None:
        """Overwrite weekday and times of the slot with ``slot.id``."""

    def delete(self, slot_id: int) -> None:
        ...


class ServiceRepository(Protocol):
    """Persistence of services."""

    def find_by_id(self, service_id: int) -> Optional[Service]:
        ...

    def find_all_by_staff_id(self, staff_id: int) -> List[Service]:
        ...

    def exists(self, service_id: int) -> bool:
        ...

    def save(self, service: Service) -> Service:
        ...


class UserRepository(Protocol):
    """Persistence of users."""

    def find_by_id(self, user_id: int) -> Optional[User]:
        ...

    def find_all(self) -> List[User]:
        ...

    def exists(self, user_id: int) -> bool:
        ...

    def email_exists(self, email: str) -> bool:
        ...

    def save(self, user: User) -> User:
        """Persist a new user and assign its id."""
        ...
