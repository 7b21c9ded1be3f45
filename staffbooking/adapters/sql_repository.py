"""
SQLAlchemy implementations of the storage contracts.

Every public method runs in its own session. Driver and SQL failures are
translated into ``RepositoryError`` so callers see one error type for
"could not reach storage".
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, time
from typing import Iterator, List, Optional

from pendulum import DateTime
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..domain.entities import Appointment, AppointmentStatus, AvailableSlot, Service, User
from ..domain.exceptions import NotFoundError, RepositoryError
from ..domain.models import Weekday, as_datetime
from ..domain.validator import DEFAULT_OCCUPANCY_MINUTES
from .database import AppointmentRow, AvailableSlotRow, ServiceRow, UserRow, from_storage, to_storage

logger = logging.getLogger(__name__)


class _SqlRepository:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self, *, write: bool = False) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                if write:
                    with session.begin():
                        yield session
                else:
                    yield session
        except SQLAlchemyError as exc:
            logger.warning("Storage operation failed: %s", exc)
            raise RepositoryError(f"storage operation failed: {exc}") from exc


class SqlAppointmentRepository(_SqlRepository):
    """Appointments in the ``appointments`` table."""

    def find_by_id(self, appointment_id: int) -> Optional[Appointment]:
        with self._session() as session:
            row = session.get(AppointmentRow, appointment_id)
            return _appointment_from_row(row) if row is not None else None

    def find_all_by_staff_id(self, staff_id: int) -> List[Appointment]:
        stmt = (
            select(AppointmentRow)
            .where(AppointmentRow.staff_id == staff_id)
            .order_by(AppointmentRow.scheduled_at, AppointmentRow.id)
        )
        with self._session() as session:
            return [_appointment_from_row(row) for row in session.scalars(stmt)]

    def has_conflict(self, staff_id: int, start: DateTime, end: DateTime) -> bool:
        """
        Fixed-occupancy conflict check.

        ``end`` within ``[scheduled_at, scheduled_at + 30min]`` is the same as
        ``scheduled_at`` within ``[end - 30min, end]``, which keeps the query
        free of dialect-specific interval arithmetic.
        """
        end = as_datetime(end)
        window_start = end.subtract(minutes=DEFAULT_OCCUPANCY_MINUTES)

        stmt = (
            select(func.count())
            .select_from(AppointmentRow)
            .where(
                AppointmentRow.staff_id == staff_id,
                AppointmentRow.status == AppointmentStatus.SCHEDULED.value,
                or_(
                    AppointmentRow.scheduled_at.between(to_storage(start), to_storage(end)),
                    AppointmentRow.scheduled_at.between(to_storage(window_start), to_storage(end)),
                ),
            )
        )
        with self._session() as session:
            return session.scalar(stmt) > 0

    def save(self, appointment: Appointment) -> Appointment:
        row = AppointmentRow(
            client_id=appointment.client_id,
            staff_id=appointment.staff_id,
            service_id=appointment.service_id,
            scheduled_at=to_storage(appointment.scheduled_at),
            status=appointment.status.value,
            created_at=to_storage(appointment.created_at) if appointment.created_at else None,
        )
        with self._session(write=True) as session:
            session.add(row)
            session.flush()
            new_id = row.id

        appointment.assign_id(new_id)
        return appointment

    def update(self, appointment: Appointment) -> None:
        with self._session(write=True) as session:
            row = session.get(AppointmentRow, appointment.id)
            if row is None:
                raise NotFoundError(f"appointment {appointment.id} not found")
            row.status = appointment.status.value

    def delete(self, appointment_id: int) -> None:
        with self._session(write=True) as session:
            row = session.get(AppointmentRow, appointment_id)
            if row is not None:
                session.delete(row)


class SqlAvailableSlotRepository(_SqlRepository):
    """Recurring slots in the ``available_slots`` table."""

    def find_by_id(self, slot_id: int) -> Optional[AvailableSlot]:
        with self._session() as session:
            row = session.get(AvailableSlotRow, slot_id)
            return _slot_from_row(row) if row is not None else None

    def find_all_by_staff_id(self, staff_id: int) -> List[AvailableSlot]:
        stmt = (
            select(AvailableSlotRow)
            .where(AvailableSlotRow.staff_id == staff_id)
            .order_by(AvailableSlotRow.id)
        )
        with self._session() as session:
            return [_slot_from_row(row) for row in session.scalars(stmt)]

    def find_by_staff_and_weekday(self, staff_id: int, weekday: Weekday) -> List[AvailableSlot]:
        stmt = (
            select(AvailableSlotRow)
            .where(
                AvailableSlotRow.staff_id == staff_id,
                AvailableSlotRow.weekday == Weekday.parse(weekday).value,
            )
            .order_by(AvailableSlotRow.start_time, AvailableSlotRow.id)
        )
        with self._session() as session:
            return [_slot_from_row(row) for row in session.scalars(stmt)]

    def find_by_staff_and_date(self, staff_id: int, day: date) -> List[AvailableSlot]:
        return self.find_by_staff_and_weekday(staff_id, Weekday.of(day))

    def is_within_available_slot(self, staff_id: int, start: DateTime, end: DateTime) -> bool:
        start = as_datetime(start)
        end = as_datetime(end)
        if start.date() != end.date():
            return False

        stmt = (
            select(func.count())
            .select_from(AvailableSlotRow)
            .where(
                AvailableSlotRow.staff_id == staff_id,
                AvailableSlotRow.weekday == Weekday.of(start).value,
                AvailableSlotRow.start_time <= _plain_time(start.time()),
                AvailableSlotRow.end_time >= _plain_time(end.time()),
            )
        )
        with self._session() as session:
            return session.scalar(stmt) > 0

    def has_conflict(
        self,
        staff_id: int,
        weekday: Weekday,
        start_time: time,
        end_time: time,
    ) -> bool:
        start_time = _plain_time(start_time)
        end_time = _plain_time(end_time)
        stmt = (
            select(func.count())
            .select_from(AvailableSlotRow)
            .where(
                AvailableSlotRow.staff_id == staff_id,
                AvailableSlotRow.weekday == Weekday.parse(weekday).value,
                or_(
                    and_(AvailableSlotRow.start_time < end_time, AvailableSlotRow.end_time > start_time),
                    and_(AvailableSlotRow.start_time <= start_time, AvailableSlotRow.end_time > start_time),
                ),
            )
        )
        with self._session() as session:
            return session.scalar(stmt) > 0

    def save(self, slot: AvailableSlot) -> AvailableSlot:
        row = AvailableSlotRow(
            staff_id=slot.staff_id,
            weekday=slot.weekday.value,
            start_time=_plain_time(slot.start_time),
            end_time=_plain_time(slot.end_time),
        )
        with self._session(write=True) as session:
            session.add(row)
            session.flush()
            new_id = row.id

        return slot.with_id(new_id)

    def update(self, slot: AvailableSlot) -> None:
        with self._session(write=True) as session:
            row = session.get(AvailableSlotRow, slot.id)
            if row is None:
                raise NotFoundError(f"slot {slot.id} not found")
            row.weekday = slot.weekday.value
            row.start_time = _plain_time(slot.start_time)
            row.end_time = _plain_time(slot.end_time)

    def delete(self, slot_id: int) -> None:
        with self._session(write=True) as session:
            row = session.get(AvailableSlotRow, slot_id)
            if row is not None:
                session.delete(row)


class SqlServiceRepository(_SqlRepository):
    """Services in the ``services`` table."""

    def find_by_id(self, service_id: int) -> Optional[Service]:
        with self._session() as session:
            row = session.get(ServiceRow, service_id)
            return _service_from_row(row) if row is not None else None

    def find_all_by_staff_id(self, staff_id: int) -> List[Service]:
        stmt = select(ServiceRow).where(ServiceRow.staff_id == staff_id).order_by(ServiceRow.id)
        with self._session() as session:
            return [_service_from_row(row) for row in session.scalars(stmt)]

    def exists(self, service_id: int) -> bool:
        stmt = select(ServiceRow.id).where(ServiceRow.id == service_id)
        with self._session() as session:
            return session.scalar(stmt) is not None

    def save(self, service: Service) -> Service:
        row = ServiceRow(
            staff_id=service.staff_id,
            name=service.name,
            duration=service.duration_minutes,
            price=service.price,
            created_at=to_storage(service.created_at) if service.created_at else None,
        )
        with self._session(write=True) as session:
            session.add(row)
            session.flush()
            new_id = row.id

        service.assign_id(new_id)
        return service


class SqlUserRepository(_SqlRepository):
    """Users in the ``users`` table."""

    def find_by_id(self, user_id: int) -> Optional[User]:
        with self._session() as session:
            row = session.get(UserRow, user_id)
            return _user_from_row(row) if row is not None else None

    def find_all(self) -> List[User]:
        with self._session() as session:
            return [_user_from_row(row) for row in session.scalars(select(UserRow).order_by(UserRow.id))]

    def exists(self, user_id: int) -> bool:
        stmt = select(UserRow.id).where(UserRow.id == user_id)
        with self._session() as session:
            return session.scalar(stmt) is not None

    def email_exists(self, email: str) -> bool:
        stmt = select(UserRow.id).where(UserRow.email == email)
        with self._session() as session:
            return session.scalar(stmt) is not None

    def save(self, user: User) -> User:
        row = UserRow(
            name=user.name,
            email=user.email.address,
            role=user.role.value,
            created_at=to_storage(user.created_at) if user.created_at else None,
        )
        with self._session(write=True) as session:
            session.add(row)
            session.flush()
            new_id = row.id

        user.assign_id(new_id)
        return user


# -------- row mapping --------

def _appointment_from_row(row: AppointmentRow) -> Appointment:
    return Appointment.rehydrate(
        id=row.id,
        client_id=row.client_id,
        staff_id=row.staff_id,
        service_id=row.service_id,
        scheduled_at=from_storage(row.scheduled_at),
        status=row.status,
        created_at=from_storage(row.created_at),
    )


def _slot_from_row(row: AvailableSlotRow) -> AvailableSlot:
    return AvailableSlot.rehydrate(
        id=row.id,
        staff_id=row.staff_id,
        weekday=row.weekday,
        start_time=row.start_time,
        end_time=row.end_time,
    )


def _service_from_row(row: ServiceRow) -> Service:
    return Service.rehydrate(
        id=row.id,
        staff_id=row.staff_id,
        name=row.name,
        duration_minutes=row.duration,
        price=row.price,
        created_at=from_storage(row.created_at),
    )


def _user_from_row(row: UserRow) -> User:
    return User.rehydrate(
        id=row.id,
        name=row.name,
        email=row.email,
        role=row.role,
        created_at=from_storage(row.created_at),
    )


def _plain_time(value: time) -> time:
    """Strip subclasses and tzinfo so every driver binds the same value."""
    return time(value.hour, value.minute, value.second, value.microsecond)
