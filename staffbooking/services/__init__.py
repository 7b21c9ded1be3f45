"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking import AvailabilityDecision, BookingService
from .repositories import (
    AppointmentRepository,
    AvailableSlotRepository,
    ServiceRepository,
    UserRepository,
)

__all__ = [
    "AvailabilityDecision",
    "BookingService",
    "AppointmentRepository",
    "AvailableSlotRepository",
    "ServiceRepository",
    "UserRepository",
]
