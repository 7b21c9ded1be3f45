"""
Scheduling validity checks.

Pure domain logic without any external dependencies (no database, no I/O).
Every check returns a plain boolean; composing them into an accept/reject
decision is the booking service's job.

Three checks live here:

1. Appointment conflict - does an existing scheduled appointment of the
   staff member collide with a candidate window?
2. Slot containment - is the candidate window inside a recurring
   availability slot for the right weekday?
3. Slot-to-slot overlap - does a new availability slot overlap one the
   staff member already declared on that weekday?

Boundary rules differ per check and are deliberate: containment is
inclusive at both ends, slot-to-slot overlap treats touching slots as
adjacent rather than overlapping.
"""

from dataclasses import dataclass, field
from datetime import date, time
from typing import Iterable, List, Mapping, Optional, Protocol

from pendulum import DateTime

from .entities import Appointment, AvailableSlot
from .models import TimeRange, Weekday

DEFAULT_OCCUPANCY_MINUTES = 30


class OccupancyPolicy(Protocol):
    """Decides whether one existing appointment collides with a window."""

    def conflicts(self, appointment: Appointment, window: TimeRange) -> bool:
        ...


@dataclass(frozen=True)
class FixedOccupancy:
    """
    Every appointment is taken to occupy a fixed number of minutes.

    Conflict when the existing start lies in ``[start, end]`` or when the
    candidate end lies in ``[existing, existing + minutes]``, both closed.
    This is an approximation: a candidate that starts inside an existing
    appointment but ends after its fixed occupancy is not reported.
    """
    minutes: int = DEFAULT_OCCUPANCY_MINUTES

    def conflicts(self, appointment: Appointment, window: TimeRange) -> bool:
        if window.includes(appointment.scheduled_at):
            return True
        return appointment.occupied_range(self.minutes).includes(window.end)


@dataclass(frozen=True)
class ServiceDurationOccupancy:
    """
    Each appointment occupies its service's duration; half-open overlap.

    ``durations`` maps service id to minutes. Unknown services fall back to
    ``fallback_minutes``.
    """
    durations: Mapping[int, int] = field(default_factory=dict)
    fallback_minutes: int = DEFAULT_OCCUPANCY_MINUTES

    def conflicts(self, appointment: Appointment, window: TimeRange) -> bool:
        minutes = self.durations.get(appointment.service_id, self.fallback_minutes)
        return appointment.occupied_range(minutes).overlaps(window)


def has_appointment_conflict(
    appointments: Iterable[Appointment],
    staff_id: int,
    start: DateTime,
    end: DateTime,
    occupancy: Optional[OccupancyPolicy] = None,
) -> bool:
    """
    Check a candidate window against existing appointments.

    Only scheduled appointments of ``staff_id`` take part; completed and
    cancelled ones never conflict.

    Raises:
        ValueError: If ``start`` is not before ``end``
    """
    policy = occupancy or FixedOccupancy()
    window = TimeRange(start=start, end=end)

    for appointment in appointments:
        if appointment.staff_id != staff_id or not appointment.is_scheduled():
            continue
        if policy.conflicts(appointment, window):
            return True

    return False


def is_within_available_slot(
    slots: Iterable[AvailableSlot],
    staff_id: int,
    start: DateTime,
    end: DateTime,
) -> bool:
    """True if some slot of the staff member on start's weekday covers the window."""
    return any(
        slot.staff_id == staff_id and slot.contains_window(start, end)
        for slot in slots
    )


def has_slot_conflict(
    slots: Iterable[AvailableSlot],
    staff_id: int,
    weekday: Weekday,
    start_time: time,
    end_time: time,
) -> bool:
    """True if a new slot would overlap an existing one on the same weekday."""
    weekday = Weekday.parse(weekday)
    return any(
        slot.staff_id == staff_id
        and slot.weekday == weekday
        and slot.overlaps_window(start_time, end_time)
        for slot in slots
    )


def free_start_times(
    slots: Iterable[AvailableSlot],
    appointments: Iterable[Appointment],
    staff_id: int,
    day: date,
    duration_minutes: int,
    *,
    occupancy: Optional[OccupancyPolicy] = None,
    step_minutes: Optional[int] = None,
    timezone: str = "UTC",
    not_before: Optional[DateTime] = None,
) -> List[DateTime]:
    """
    List the start times on ``day`` that a booking of the given length could use.

    Candidates are generated from each matching slot's opening time in
    ``step_minutes`` increments (defaults to the duration). A candidate is
    kept when its window is contained in a slot and has no conflict.

    Example:
    Slot: monday 09:00 - 11:00, duration 30, existing at 09:30
    Result (fixed occupancy): [10:00, 10:30]
    """
    step = step_minutes or duration_minutes
    weekday = Weekday.of(day)
    appointments = list(appointments)
    day_slots = [
        slot for slot in slots
        if slot.staff_id == staff_id and slot.weekday == weekday
    ]

    found = set()
    for slot in sorted(day_slots, key=lambda s: s.start_time):
        occurrence = slot.on(day, timezone)
        candidate = TimeRange.starting_at(occurrence.start, duration_minutes)
        while occurrence.contains(candidate):
            if (not_before is None or candidate.start >= not_before) and not has_appointment_conflict(
                appointments, staff_id, candidate.start, candidate.end, occupancy
            ):
                found.add(candidate.start)
            candidate = TimeRange.starting_at(candidate.start.add(minutes=step), duration_minutes)

    return sorted(found)
