"""
Domain layer - Pure business logic without external dependencies.
"""

from .entities import (
    Appointment,
    AppointmentStatus,
    AvailableSlot,
    Email,
    Service,
    User,
    UserRole,
)
from .models import Clock, TimeRange, Weekday, system_clock
from .validator import (
    FixedOccupancy,
    ServiceDurationOccupancy,
    free_start_times,
    has_appointment_conflict,
    has_slot_conflict,
    is_within_available_slot,
)

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "AvailableSlot",
    "Service",
    "Email",
    "User",
    "UserRole",
    "Clock",
    "TimeRange",
    "Weekday",
    "system_clock",
    "FixedOccupancy",
    "ServiceDurationOccupancy",
    "free_start_times",
    "has_appointment_conflict",
    "has_slot_conflict",
    "is_within_available_slot",
]
