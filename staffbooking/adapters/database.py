"""
SQLAlchemy schema and engine helpers for the SQL store.

Instants are stored as naive UTC timestamps; slot times are stored as
wall-clock times of day.
"""

from __future__ import annotations

from datetime import datetime, time
from decimal import Decimal
from typing import Optional

import pendulum
from pendulum import DateTime
from sqlalchemy import DateTime as SADateTime
from sqlalchemy import Engine, Index, Integer, Numeric, String, Time, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from ..domain.models import as_datetime


class Base(DeclarativeBase):
    pass


class AppointmentRow(Base):
    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(primary_key=True)
    client_id: Mapped[int] = mapped_column(Integer, nullable=False)
    staff_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    service_id: Mapped[int] = mapped_column(Integer, nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(SADateTime(timezone=False), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="scheduled")
    created_at: Mapped[Optional[datetime]] = mapped_column(SADateTime(timezone=False), nullable=True)


class AvailableSlotRow(Base):
    __tablename__ = "available_slots"

    id: Mapped[int] = mapped_column(primary_key=True)
    staff_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    # sunday .. saturday
    weekday: Mapped[str] = mapped_column(String(20), nullable=False)
    start_time: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)
    end_time: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)


class ServiceRow(Base):
    __tablename__ = "services"

    id: Mapped[int] = mapped_column(primary_key=True)
    staff_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(SADateTime(timezone=False), nullable=True)


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    # client | admin
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="client")
    created_at: Mapped[Optional[datetime]] = mapped_column(SADateTime(timezone=False), nullable=True)


Index("ix_appointments_staff_scheduled", AppointmentRow.staff_id, AppointmentRow.scheduled_at)
Index("ix_available_slots_staff_weekday", AvailableSlotRow.staff_id, AvailableSlotRow.weekday)


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for the configured URL.

    In-memory SQLite databases share one connection so every session sees
    the same data.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, future=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in database_url or database_url.rstrip("/").endswith(":"):
        kwargs["poolclass"] = StaticPool
    return create_engine(database_url, future=True, **kwargs)


def create_schema(engine: Engine) -> None:
    Base.metadata.create_all(engine)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)


def to_storage(value: datetime) -> datetime:
    """Naive UTC representation written to the database."""
    return as_datetime(value).in_timezone("UTC").naive()


def from_storage(value: Optional[datetime]) -> Optional[DateTime]:
    """Read a stored naive UTC timestamp back as an aware pendulum DateTime."""
    if value is None:
        return None
    if value.tzinfo is not None:
        return pendulum.instance(value).in_timezone("UTC")
    return pendulum.instance(value, tz="UTC")
