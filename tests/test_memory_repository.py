"""
Tests for the in-memory repositories and JSON seeding.
"""

import json
from datetime import date, time

import pendulum
import pytest

from staffbooking.adapters.memory_repository import (
    InMemoryAppointmentRepository,
    InMemoryAvailableSlotRepository,
    InMemoryServiceRepository,
    InMemoryUserRepository,
    load_seed,
)
from staffbooking.domain.entities import (
    Appointment,
    AppointmentStatus,
    AvailableSlot,
    Service,
    User,
    UserRole,
)
from staffbooking.domain.exceptions import SlotUnavailableError
from staffbooking.domain.models import Weekday
from staffbooking.services.booking import BookingService

NOW = pendulum.datetime(2026, 10, 1, 8, 0, tz="UTC")
STAFF = 7


def fixed_clock():
    return NOW


def monday(hour: int, minute: int = 0):
    return pendulum.datetime(2026, 10, 5, hour, minute, tz="UTC")


SEED = {
    "users": [
        {"id": 1, "name": "Ana", "email": "ana@salon.com"},
        {"id": 4, "name": "Bruno", "email": "bruno@salon.com", "role": "admin"},
    ],
    "services": [
        {"id": 2, "staff_id": STAFF, "name": "Haircut", "duration_minutes": 30, "price": "25.00"},
    ],
    "slots": [
        {"id": 3, "staff_id": STAFF, "weekday": "monday", "start_time": "09:00", "end_time": "12:00"},
    ],
    "appointments": [
        {
            "id": 5,
            "client_id": 1,
            "staff_id": STAFF,
            "service_id": 2,
            "scheduled_at": "2026-10-05T09:30:00+00:00",
            "status": "scheduled",
            "created_at": "2026-09-30T12:00:00+00:00",
        },
    ],
}


@pytest.fixture
def seed_file(tmp_path):
    path = tmp_path / "seed.json"
    path.write_text(json.dumps(SEED), encoding="utf-8")
    return path


class TestSeededRepositories:
    """Stored entities keep their ids; new ones continue after them."""

    def test_appointments_keep_their_ids(self):
        stored = Appointment.rehydrate(
            id=5,
            client_id=1,
            staff_id=STAFF,
            service_id=2,
            scheduled_at=monday(9, 30),
            status="scheduled",
            created_at=NOW,
        )
        repo = InMemoryAppointmentRepository([stored])

        added = repo.save(Appointment.create(1, STAFF, 2, monday(10), clock=fixed_clock))

        assert repo.find_by_id(5).scheduled_at == monday(9, 30)
        assert added.id == 6

    def test_slots_keep_their_ids(self):
        stored = AvailableSlot.rehydrate(
            id=3, staff_id=STAFF, weekday="monday", start_time=time(9), end_time=time(12)
        )
        repo = InMemoryAvailableSlotRepository([stored])

        added = repo.save(AvailableSlot.create(STAFF, "tuesday", time(9), time(12)))

        assert repo.find_by_id(3) == stored
        assert added.id == 4

    def test_new_entities_follow_the_highest_stored_id(self):
        repo = InMemoryServiceRepository([
            Service.rehydrate(
                id=5, staff_id=8, name="Colouring", duration_minutes=60, price="40", created_at=None
            ),
            Service.create(STAFF, "Haircut", 30, 20, clock=fixed_clock),
        ])

        added = repo.save(Service.create(STAFF, "Beard trim", 15, 10, clock=fixed_clock))

        assert repo.find_by_id(5).name == "Colouring"
        assert [s.id for s in repo.find_all_by_staff_id(STAFF)] == [6, 7]
        assert added.id == 7

    def test_users_keep_their_ids(self):
        stored = User.rehydrate(
            id=10, name="Ana", email="ana@salon.com", role="client", created_at=None
        )
        repo = InMemoryUserRepository([stored])

        added = repo.save(User.create("Bruno", "bruno@salon.com", clock=fixed_clock))

        assert repo.exists(10)
        assert repo.email_exists("ana@salon.com")
        assert added.id == 11
        assert [u.id for u in repo.find_all()] == [10, 11]

    def test_stored_copies_are_isolated(self):
        repo = InMemoryAppointmentRepository(
            [Appointment.create(1, STAFF, 2, monday(9), clock=fixed_clock)]
        )

        loaded = repo.find_by_id(1)
        loaded.cancel()

        assert repo.find_by_id(1).status == AppointmentStatus.SCHEDULED


class TestLoadSeed:
    """Tests for building the in-memory store from a JSON file."""

    def test_load_seed(self, seed_file):
        store = load_seed(seed_file)

        assert store.users.find_by_id(4).role == UserRole.ADMIN
        assert store.users.find_by_id(1).role == UserRole.CLIENT
        assert store.services.find_by_id(2).duration_minutes == 30
        assert store.slots.find_by_staff_and_weekday(STAFF, Weekday.MONDAY)[0].id == 3
        appointment = store.appointments.find_by_id(5)
        assert appointment.scheduled_at == monday(9, 30)
        assert appointment.created_at == pendulum.datetime(2026, 9, 30, 12, 0, tz="UTC")

    def test_booking_over_a_seeded_store(self, seed_file):
        store = load_seed(seed_file)
        booking = BookingService(
            store.appointments, store.slots, store.services, store.users, clock=fixed_clock
        )

        with pytest.raises(SlotUnavailableError) as exc_info:
            booking.book(client_id=4, staff_id=STAFF, service_id=2, scheduled_at=monday(9, 30))
        assert exc_info.value.reason == SlotUnavailableError.CONFLICT

        appointment = booking.book(client_id=4, staff_id=STAFF, service_id=2, scheduled_at=monday(10))
        assert appointment.id == 6

        starts = booking.free_start_times(staff_id=STAFF, service_id=2, day=date(2026, 10, 5))
        assert starts == [monday(10, 30), monday(11), monday(11, 30)]

    def test_missing_sections_give_empty_stores(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text("{}", encoding="utf-8")

        store = load_seed(path)

        assert store.users.find_all() == []
        assert store.services.find_all_by_staff_id(STAFF) == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Seed file not found"):
            load_seed(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid JSON"):
            load_seed(path)

    def test_root_must_be_an_object(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text("[]", encoding="utf-8")

        with pytest.raises(ValueError, match="object at the root level"):
            load_seed(path)

    def test_malformed_row(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text(json.dumps({"slots": [{"id": 1, "weekday": "monday"}]}), encoding="utf-8")

        with pytest.raises(ValueError, match="Malformed row"):
            load_seed(path)
