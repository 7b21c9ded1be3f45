"""
Adapters layer - storage implementations of the repository contracts.
"""

from .database import build_engine, build_session_factory, create_schema
from .memory_repository import (
    InMemoryAppointmentRepository,
    InMemoryAvailableSlotRepository,
    InMemoryServiceRepository,
    InMemoryUserRepository,
    SeededStore,
    load_seed,
)
from .sql_repository import (
    SqlAppointmentRepository,
    SqlAvailableSlotRepository,
    SqlServiceRepository,
    SqlUserRepository,
)

__all__ = [
    "build_engine",
    "build_session_factory",
    "create_schema",
    "InMemoryAppointmentRepository",
    "InMemoryAvailableSlotRepository",
    "InMemoryServiceRepository",
    "InMemoryUserRepository",
    "SeededStore",
    "load_seed",
    "SqlAppointmentRepository",
    "SqlAvailableSlotRepository",
    "SqlServiceRepository",
    "SqlUserRepository",
]
