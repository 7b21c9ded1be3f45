"""
Application service for booking appointments against recurring availability.

The service coordinates the storage repositories and delegates every
scheduling decision to the pure checks in ``staffbooking.domain.validator``.
Check-then-insert runs under a per-staff lock so two callers sharing one
service instance cannot double-book the same staff member.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Dict, Iterator, List, Optional, Sequence

from pendulum import DateTime

from ..domain import validator
from ..domain.entities import Appointment, AvailableSlot, Service, User
from ..domain.exceptions import (
    DuplicateEmailError,
    NotFoundError,
    SlotConflictError,
    SlotUnavailableError,
)
from ..domain.models import Clock, Weekday, as_datetime, system_clock
from .repositories import (
    AppointmentRepository,
    AvailableSlotRepository,
    ServiceRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)

OCCUPANCY_FIXED = "fixed"
OCCUPANCY_SERVICE_DURATION = "service_duration"


@dataclass(frozen=True)
class AvailabilityDecision:
    """Outcome of both booking checks for one window."""
    within_slot: bool
    has_conflict: bool

    @property
    def accepted(self) -> bool:
        return self.within_slot and not self.has_conflict


class BookingService:
    """
    Orchestrates entity construction, the scheduling checks and persistence.

    Dependency inversion toward the repository protocols makes it easy to
    plug in the SQL store or the in-memory store in tests.
    """

    def __init__(
        self,
        appointment_repository: AppointmentRepository,
        slot_repository: AvailableSlotRepository,
        service_repository: ServiceRepository,
        user_repository: UserRepository,
        *,
        clock: Clock = system_clock,
        occupancy_policy: str = OCCUPANCY_FIXED,
        occupancy_minutes: int = validator.DEFAULT_OCCUPANCY_MINUTES,
        step_minutes: Optional[int] = None,
        timezone: str = "UTC",
    ) -> None:
        if occupancy_policy not in (OCCUPANCY_FIXED, OCCUPANCY_SERVICE_DURATION):
            raise ValueError(f"Unknown occupancy policy: {occupancy_policy}")

        self._appointments = appointment_repository
        self._slots = slot_repository
        self._services = service_repository
        self._users = user_repository
        self._clock = clock
        self._occupancy_policy = occupancy_policy
        self._occupancy_minutes = occupancy_minutes
        self._step_minutes = step_minutes
        self._timezone = timezone

        self._registry_lock = threading.Lock()
        self._staff_locks: Dict[int, threading.Lock] = {}

    # -------- appointments --------

    def book(
        self,
        *,
        client_id: int,
        staff_id: int,
        service_id: int,
        scheduled_at: datetime,
    ) -> Appointment:
        """
        Book an appointment lasting the service's duration.

        Raises:
            InvalidAppointmentError: If the request is malformed
            NotFoundError: If the client is unknown or the service is not offered
                by this staff member
            SlotUnavailableError: If the window is outside availability or taken
            RepositoryError: If storage fails
        """
        appointment = Appointment.create(
            client_id, staff_id, service_id, scheduled_at, clock=self._clock
        )
        if not self._users.exists(client_id):
            raise NotFoundError(f"client {client_id} not found")
        service = self._require_service(service_id, staff_id)

        # slot times are wall-clock times in the configured timezone
        start = appointment.scheduled_at.in_timezone(self._timezone)
        end = start.add(minutes=service.duration_minutes)

        with self._staff_lock(staff_id):
            if not self._slots.is_within_available_slot(staff_id, start, end):
                logger.info(
                    "Rejected booking for staff %s at %s: outside availability", staff_id, start
                )
                raise SlotUnavailableError(SlotUnavailableError.OUTSIDE_AVAILABILITY)

            if self._has_conflict(staff_id, start, end):
                logger.info("Rejected booking for staff %s at %s: conflict", staff_id, start)
                raise SlotUnavailableError(SlotUnavailableError.CONFLICT)

            saved = self._appointments.save(appointment)

        logger.info(
            "Booked appointment %s for staff %s at %s (service %s)",
            saved.id, staff_id, start, service_id,
        )
        return saved

    def check_availability(
        self,
        staff_id: int,
        start: datetime,
        end: datetime,
    ) -> AvailabilityDecision:
        """Run both checks for a window without booking it."""
        start = as_datetime(start).in_timezone(self._timezone)
        end = as_datetime(end).in_timezone(self._timezone)
        return AvailabilityDecision(
            within_slot=self._slots.is_within_available_slot(staff_id, start, end),
            has_conflict=self._has_conflict(staff_id, start, end),
        )

    def cancel(self, appointment_id: int) -> Appointment:
        appointment = self._require_appointment(appointment_id)
        appointment.cancel()
        self._appointments.update(appointment)
        logger.info("Cancelled appointment %s", appointment_id)
        return appointment

    def complete(self, appointment_id: int) -> Appointment:
        appointment = self._require_appointment(appointment_id)
        appointment.complete()
        self._appointments.update(appointment)
        logger.info("Completed appointment %s", appointment_id)
        return appointment

    def list_appointments(self, staff_id: int) -> List[Appointment]:
        appointments = self._appointments.find_all_by_staff_id(staff_id)
        return sorted(appointments, key=lambda a: (a.scheduled_at, a.id or 0))

    # -------- availability slots --------

    def register_slot(
        self,
        *,
        staff_id: int,
        weekday: "Weekday | str",
        start_time: time,
        end_time: time,
    ) -> AvailableSlot:
        """
        Declare a new recurring availability slot.

        Raises:
            InvalidSlotError: If the slot is malformed
            SlotConflictError: If it overlaps a slot already declared that weekday
        """
        slot = AvailableSlot.create(staff_id, weekday, start_time, end_time)

        with self._staff_lock(staff_id):
            if self._slots.has_conflict(staff_id, slot.weekday, slot.start_time, slot.end_time):
                logger.info("Rejected slot %s for staff %s: overlap", slot, staff_id)
                raise SlotConflictError(
                    f"slot {slot} overlaps an existing slot for staff {staff_id}"
                )
            saved = self._slots.save(slot)

        logger.info("Registered slot %s (%s) for staff %s", saved.id, saved, staff_id)
        return saved

    def remove_slot(self, slot_id: int) -> None:
        if self._slots.find_by_id(slot_id) is None:
            raise NotFoundError(f"slot {slot_id} not found")
        self._slots.delete(slot_id)
        logger.info("Removed slot %s", slot_id)

    def list_slots(self, staff_id: int, weekday: "Weekday | str | None" = None) -> List[AvailableSlot]:
        if weekday is None:
            slots = self._slots.find_all_by_staff_id(staff_id)
        else:
            slots = self._slots.find_by_staff_and_weekday(staff_id, Weekday.parse(weekday))
        return sorted(slots, key=lambda s: (s.weekday.calendar_index(), s.start_time))

    def free_start_times(self, *, staff_id: int, service_id: int, day: date) -> List[DateTime]:
        """Start times on ``day`` at which the service could still be booked."""
        service = self._require_service(service_id, staff_id)
        slots = self._slots.find_by_staff_and_date(staff_id, day)
        appointments = self._appointments.find_all_by_staff_id(staff_id)

        return validator.free_start_times(
            slots,
            appointments,
            staff_id,
            day,
            service.duration_minutes,
            occupancy=self._occupancy_for(appointments),
            step_minutes=self._step_minutes,
            timezone=self._timezone,
            not_before=self._clock(),
        )

    # -------- services --------

    def add_service(self, *, staff_id: int, name: str, duration_minutes: int, price) -> Service:
        service = Service.create(staff_id, name, duration_minutes, price, clock=self._clock)
        saved = self._services.save(service)
        logger.info("Added service %s (%s) for staff %s", saved.id, saved.name, staff_id)
        return saved

    def list_services(self, staff_id: int) -> List[Service]:
        return sorted(self._services.find_all_by_staff_id(staff_id), key=lambda s: s.id or 0)

    # -------- users --------

    def register_user(self, *, name: str, email: str, role: str = "client") -> User:
        """
        Create a user account.

        Raises:
            InvalidUserError: If name, email or role is invalid
            DuplicateEmailError: If another user already has this email
        """
        user = User.create(name, email, role, clock=self._clock)
        if self._users.email_exists(user.email.address):
            raise DuplicateEmailError(f"email already in use: {user.email}")
        saved = self._users.save(user)
        logger.info("Registered %s %s (%s)", saved.role.value, saved.id, saved.email)
        return saved

    def list_users(self) -> List[User]:
        return self._users.find_all()

    # -------- helpers --------

    def _has_conflict(self, staff_id: int, start: DateTime, end: DateTime) -> bool:
        if (
            self._occupancy_policy == OCCUPANCY_FIXED
            and self._occupancy_minutes == validator.DEFAULT_OCCUPANCY_MINUTES
        ):
            return self._appointments.has_conflict(staff_id, start, end)

        appointments = self._appointments.find_all_by_staff_id(staff_id)
        return validator.has_appointment_conflict(
            appointments, staff_id, start, end, self._occupancy_for(appointments)
        )

    def _occupancy_for(self, appointments: Sequence[Appointment]) -> validator.OccupancyPolicy:
        if self._occupancy_policy == OCCUPANCY_FIXED:
            return validator.FixedOccupancy(minutes=self._occupancy_minutes)

        durations: Dict[int, int] = {}
        for service_id in {a.service_id for a in appointments if a.is_scheduled()}:
            service = self._services.find_by_id(service_id)
            if service is not None:
                durations[service_id] = service.duration_minutes

        return validator.ServiceDurationOccupancy(
            durations=durations,
            fallback_minutes=self._occupancy_minutes,
        )

    def _require_service(self, service_id: int, staff_id: Optional[int] = None) -> Service:
        service = self._services.find_by_id(service_id)
        if service is None:
            raise NotFoundError(f"service {service_id} not found")
        if staff_id is not None and service.staff_id != staff_id:
            raise NotFoundError(f"service {service_id} not found for staff {staff_id}")
        return service

    def _require_appointment(self, appointment_id: int) -> Appointment:
        appointment = self._appointments.find_by_id(appointment_id)
        if appointment is None:
            raise NotFoundError(f"appointment {appointment_id} not found")
        return appointment

    @contextmanager
    def _staff_lock(self, staff_id: int) -> Iterator[None]:
        with self._registry_lock:
            lock = self._staff_locks.setdefault(staff_id, threading.Lock())
        with lock:
            yield
