"""
Booking entities: appointments, recurring availability slots, services and
the users who book them.

Each entity has two construction paths. ``create`` validates the
invariants and is used for new records. ``rehydrate`` trusts the values it
is given and is used by repositories when loading stored rows, which may
predate the current rules.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, time, tzinfo
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Union

import pendulum
from pendulum import DateTime
from pydantic import EmailStr, TypeAdapter, ValidationError

from .exceptions import (
    InvalidAppointmentError,
    InvalidServiceError,
    InvalidSlotError,
    InvalidUserError,
)
from .models import Clock, TimeRange, Weekday, as_datetime, format_time, system_clock

_EMAIL_ADDRESS = TypeAdapter(EmailStr)


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def from_storage(cls, value: str) -> "AppointmentStatus":
        """Unknown stored values fall back to scheduled."""
        try:
            return cls(value)
        except ValueError:
            return cls.SCHEDULED


@dataclass
class Appointment:
    """A single booked instance for a client with a staff member."""
    client_id: int
    staff_id: int
    service_id: int
    scheduled_at: DateTime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    created_at: Optional[DateTime] = None
    id: Optional[int] = None

    @classmethod
    def create(
        cls,
        client_id: int,
        staff_id: int,
        service_id: int,
        scheduled_at: datetime,
        *,
        clock: Clock = system_clock,
    ) -> "Appointment":
        """
        Build a new scheduled appointment.

        Raises:
            InvalidAppointmentError: If an id is missing or the time is in the past
        """
        if not all((client_id, staff_id, service_id)):
            raise InvalidAppointmentError("client, professional and service are required")

        now = clock()
        scheduled_at = as_datetime(scheduled_at)
        if scheduled_at < now:
            raise InvalidAppointmentError("cannot schedule in the past")

        return cls(
            client_id=client_id,
            staff_id=staff_id,
            service_id=service_id,
            scheduled_at=scheduled_at,
            status=AppointmentStatus.SCHEDULED,
            created_at=now,
        )

    @classmethod
    def rehydrate(
        cls,
        *,
        id: int,
        client_id: int,
        staff_id: int,
        service_id: int,
        scheduled_at: datetime,
        status: str,
        created_at: Optional[datetime],
    ) -> "Appointment":
        """Rebuild a stored appointment without re-running the invariants."""
        return cls(
            client_id=client_id,
            staff_id=staff_id,
            service_id=service_id,
            scheduled_at=as_datetime(scheduled_at),
            status=AppointmentStatus.from_storage(status),
            created_at=as_datetime(created_at) if created_at is not None else None,
            id=id,
        )

    def assign_id(self, appointment_id: int) -> None:
        if self.id is not None:
            raise InvalidAppointmentError(f"appointment already has id {self.id}")
        self.id = appointment_id

    def cancel(self) -> None:
        self.status = AppointmentStatus.CANCELLED

    # No guard: a cancelled appointment can still be completed.
    def complete(self) -> None:
        self.status = AppointmentStatus.COMPLETED

    def is_scheduled(self) -> bool:
        return self.status == AppointmentStatus.SCHEDULED

    def is_cancelled(self) -> bool:
        return self.status == AppointmentStatus.CANCELLED

    def is_completed(self) -> bool:
        return self.status == AppointmentStatus.COMPLETED

    def occupied_range(self, minutes: int) -> TimeRange:
        """The span this appointment is taken to occupy."""
        return TimeRange.starting_at(self.scheduled_at, minutes)


@dataclass(frozen=True)
class AvailableSlot:
    """
    Staff ``staff_id`` is bookable on ``weekday`` between ``start_time`` and
    ``end_time``, every week.
    """
    staff_id: int
    weekday: Weekday
    start_time: time
    end_time: time
    id: Optional[int] = None

    @classmethod
    def create(
        cls,
        staff_id: int,
        weekday: "Weekday | str",
        start_time: time,
        end_time: time,
    ) -> "AvailableSlot":
        """
        Build a new availability slot.

        Raises:
            InvalidSlotError: On a missing staff id, unknown weekday, timezone-aware
                times or an empty range
        """
        if not staff_id:
            raise InvalidSlotError("staff is required")
        weekday = Weekday.parse(weekday)
        if start_time.tzinfo is not None or end_time.tzinfo is not None:
            raise InvalidSlotError("slot times must not carry a timezone")
        if not start_time < end_time:
            raise InvalidSlotError("start time must be before end time")

        return cls(staff_id=staff_id, weekday=weekday, start_time=start_time, end_time=end_time)

    @classmethod
    def rehydrate(
        cls,
        *,
        id: int,
        staff_id: int,
        weekday: str,
        start_time: time,
        end_time: time,
    ) -> "AvailableSlot":
        return cls(
            staff_id=staff_id,
            weekday=Weekday.parse(weekday),
            start_time=start_time,
            end_time=end_time,
            id=id,
        )

    def with_id(self, slot_id: int) -> "AvailableSlot":
        """Return the persisted copy carrying its storage identity."""
        if self.id is not None:
            raise InvalidSlotError(f"slot already has id {self.id}")
        return replace(self, id=slot_id)

    def on(self, day: date, tz: Union[str, tzinfo] = "UTC") -> TimeRange:
        """This slot's occurrence on ``day``, read as wall-clock times in ``tz``."""
        return TimeRange(
            start=_wall_clock(day, self.start_time, tz),
            end=_wall_clock(day, self.end_time, tz),
        )

    def contains_window(self, start: DateTime, end: DateTime) -> bool:
        """
        Inclusive containment of an absolute window by this recurring slot.

        The slot is read in the window's own timezone. Windows ending on a
        later calendar date are never contained.
        """
        start = as_datetime(start)
        end = as_datetime(end)
        if not start < end or Weekday.of(start) != self.weekday:
            return False
        occurrence = self.on(start.date(), start.tzinfo)
        return occurrence.contains(TimeRange(start=start, end=end))

    def overlaps_window(self, start_time: time, end_time: time) -> bool:
        """Slot-to-slot overlap on the same weekday. Adjacent slots do not overlap."""
        if self.start_time < end_time and self.end_time > start_time:
            return True
        return self.start_time <= start_time < self.end_time

    def __str__(self) -> str:
        return f"{self.weekday.value} {format_time(self.start_time)}-{format_time(self.end_time)}"


@dataclass
class Service:
    """Something a staff member offers, with its duration and price."""
    staff_id: int
    name: str
    duration_minutes: int
    price: Decimal
    created_at: Optional[DateTime] = None
    id: Optional[int] = None

    @classmethod
    def create(
        cls,
        staff_id: int,
        name: str,
        duration_minutes: int,
        price,
        *,
        clock: Clock = system_clock,
    ) -> "Service":
        if not name or not name.strip():
            raise InvalidServiceError("service name is required")
        _check_duration(duration_minutes)
        return cls(
            staff_id=staff_id,
            name=name.strip(),
            duration_minutes=duration_minutes,
            price=_to_price(price),
            created_at=clock(),
        )

    @classmethod
    def rehydrate(
        cls,
        *,
        id: int,
        staff_id: int,
        name: str,
        duration_minutes: int,
        price,
        created_at: Optional[datetime],
    ) -> "Service":
        return cls(
            staff_id=staff_id,
            name=name,
            duration_minutes=duration_minutes,
            price=Decimal(str(price)),
            created_at=as_datetime(created_at) if created_at is not None else None,
            id=id,
        )

    def assign_id(self, service_id: int) -> None:
        if self.id is not None:
            raise InvalidServiceError(f"service already has id {self.id}")
        self.id = service_id

    def change_price(self, new_price) -> None:
        self.price = _to_price(new_price)

    def change_duration(self, new_duration: int) -> None:
        _check_duration(new_duration)
        self.duration_minutes = new_duration


@dataclass(frozen=True)
class Email:
    """A syntactically valid email address."""
    address: str

    @classmethod
    def parse(cls, value: str) -> "Email":
        try:
            address = _EMAIL_ADDRESS.validate_python(value)
        except ValidationError:
            raise InvalidUserError("invalid email format") from None
        return cls(address)

    def __str__(self) -> str:
        return self.address


class UserRole(str, Enum):
    CLIENT = "client"
    ADMIN = "admin"

    @classmethod
    def from_storage(cls, value: str) -> "UserRole":
        """Unknown stored values fall back to client."""
        try:
            return cls(value)
        except ValueError:
            return cls.CLIENT


@dataclass
class User:
    """Someone who books appointments (client) or manages the schedule (admin)."""
    name: str
    email: Email
    role: UserRole = UserRole.CLIENT
    created_at: Optional[DateTime] = None
    id: Optional[int] = None

    @classmethod
    def create(
        cls,
        name: str,
        email: str,
        role: "UserRole | str" = UserRole.CLIENT,
        *,
        clock: Clock = system_clock,
    ) -> "User":
        """
        Build a new user.

        Raises:
            InvalidUserError: On an empty name, an unknown role or a malformed email
        """
        if not name or not name.strip():
            raise InvalidUserError("name is required")
        try:
            role = UserRole(role)
        except ValueError:
            raise InvalidUserError(f"invalid role: {role}") from None

        return cls(
            name=name.strip(),
            email=Email.parse(email),
            role=role,
            created_at=clock(),
        )

    @classmethod
    def rehydrate(
        cls,
        *,
        id: int,
        name: str,
        email: str,
        role: str,
        created_at: Optional[datetime],
    ) -> "User":
        return cls(
            name=name,
            email=Email(email),
            role=UserRole.from_storage(role),
            created_at=as_datetime(created_at) if created_at is not None else None,
            id=id,
        )

    def assign_id(self, user_id: int) -> None:
        if self.id is not None:
            raise InvalidUserError(f"user already has id {self.id}")
        self.id = user_id

    def is_client(self) -> bool:
        return self.role == UserRole.CLIENT

    def can_access_admin_panel(self) -> bool:
        return self.role == UserRole.ADMIN


def _check_duration(minutes: int) -> None:
    if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
        raise InvalidServiceError("duration must be greater than zero")


def _to_price(value) -> Decimal:
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise InvalidServiceError(f"invalid price: {value}") from None
    if not price.is_finite():
        raise InvalidServiceError(f"price must be a finite amount: {value}")
    if price < 0:
        raise InvalidServiceError("price cannot be negative")
    return price


def _wall_clock(day: date, moment: time, tz: Union[str, tzinfo]) -> DateTime:
    return pendulum.datetime(
        day.year, day.month, day.day,
        moment.hour, moment.minute, moment.second, moment.microsecond,
        tz=tz,
    )
