"""
Tests for the command line interface.
"""

import pytest
from typer.testing import CliRunner

from staffbooking import __version__
from staffbooking.cli.app import app

runner = CliRunner()

# 2030-01-07 is a Monday
MONDAY = "2030-01-07"


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        f"database_url: sqlite:///{tmp_path / 'booking.db'}\n"
        "timezone: UTC\n"
        "log_level: WARNING\n",
        encoding="utf-8",
    )
    return path


def invoke(config_file, *args):
    return runner.invoke(app, [*args, "--config", str(config_file)])


@pytest.fixture
def prepared(config_file):
    """Schema, clients 1 and 2, one 30-minute service and a Monday 09:00-12:00 slot for staff 7."""
    assert invoke(config_file, "init-db").exit_code == 0
    assert invoke(config_file, "add-user", "Ana", "ana@salon.com").exit_code == 0
    assert invoke(config_file, "add-user", "Bruno", "bruno@salon.com").exit_code == 0
    assert invoke(config_file, "add-service", "7", "Haircut", "-d", "30", "-p", "25").exit_code == 0
    assert invoke(config_file, "add-slot", "7", "monday", "09:00", "12:00").exit_code == 0
    return config_file


def book(config_file, at, client="1"):
    return invoke(config_file, "book", "--client", client, "--staff", "7", "--service", "1", "--at", at)


class TestBookCommand:
    """Tests for the book command."""

    def test_book_inside_slot(self, prepared):
        result = book(prepared, f"{MONDAY} 09:30")

        assert result.exit_code == 0
        assert "Appointment 1 booked" in result.output
        assert "2030-01-07 09:30" in result.output

    def test_book_past_slot_end(self, prepared):
        result = book(prepared, f"{MONDAY} 11:45")

        assert result.exit_code == 1
        assert "Slot unavailable" in result.output
        assert "outside availability" in result.output

    def test_double_booking_is_rejected(self, prepared):
        assert book(prepared, f"{MONDAY} 09:30").exit_code == 0

        result = book(prepared, f"{MONDAY} 09:30", client="2")

        assert result.exit_code == 1
        assert "Slot unavailable" in result.output
        assert "conflict" in result.output

    def test_invalid_client(self, prepared):
        result = book(prepared, f"{MONDAY} 09:30", client="0")

        assert result.exit_code == 1
        assert "Invalid request" in result.output
        assert "client, professional and service are required" in result.output

    def test_unparseable_time(self, prepared):
        result = book(prepared, "next monday")

        assert result.exit_code == 1
        assert "Could not parse" in result.output

    def test_cancel_frees_the_start(self, prepared):
        assert book(prepared, f"{MONDAY} 09:30").exit_code == 0

        assert invoke(prepared, "cancel", "1").exit_code == 0
        assert book(prepared, f"{MONDAY} 09:30", client="2").exit_code == 0

        listing = invoke(prepared, "list-appointments", "7")
        assert "cancelled" in listing.output
        assert "scheduled" in listing.output

    def test_cancel_unknown_appointment(self, prepared):
        result = invoke(prepared, "cancel", "42")

        assert result.exit_code == 1
        assert "appointment 42 not found" in result.output

    def test_unknown_client(self, prepared):
        result = book(prepared, f"{MONDAY} 09:30", client="9")

        assert result.exit_code == 1
        assert "client 9 not found" in result.output

    def test_service_of_another_staff_member(self, prepared):
        assert invoke(prepared, "add-service", "8", "Colouring", "-d", "60").exit_code == 0

        result = invoke(
            prepared, "book", "--client", "1", "--staff", "7", "--service", "2", "--at", f"{MONDAY} 09:30"
        )

        assert result.exit_code == 1
        assert "service 2 not found for staff 7" in result.output


class TestSlotCommands:
    """Tests for the availability commands."""

    def test_overlapping_slot_is_rejected(self, prepared):
        result = invoke(prepared, "add-slot", "7", "monday", "11:00", "13:00")

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_adjacent_slot_is_accepted(self, prepared):
        result = invoke(prepared, "add-slot", "7", "monday", "12:00", "13:00")

        assert result.exit_code == 0
        assert "Slot 2 created" in result.output

    def test_invalid_weekday(self, prepared):
        result = invoke(prepared, "add-slot", "7", "funday", "09:00", "10:00")

        assert result.exit_code == 1
        assert "invalid weekday" in result.output

    def test_list_and_remove(self, prepared):
        listing = invoke(prepared, "list-slots", "7")
        assert "monday" in listing.output
        assert "09:00" in listing.output

        assert invoke(prepared, "remove-slot", "1").exit_code == 0
        assert "No availability slots" in invoke(prepared, "list-slots", "7").output
        assert invoke(prepared, "remove-slot", "1").exit_code == 1

    def test_free_times(self, prepared):
        assert book(prepared, f"{MONDAY} 09:30").exit_code == 0

        result = invoke(prepared, "free-times", "7", "1", MONDAY)

        assert result.exit_code == 0
        assert "4 free start time(s)" in result.output
        assert "10:00" in result.output
        assert "11:30" in result.output


class TestUserCommands:
    """Tests for the user commands."""

    def test_add_and_list_users(self, prepared):
        result = invoke(prepared, "add-user", "Carla", "carla@salon.com", "--role", "admin")

        assert result.exit_code == 0
        assert "User 3 created" in result.output

        listing = invoke(prepared, "list-users")
        assert listing.exit_code == 0
        assert "bruno@salon.com" in listing.output
        assert "admin" in listing.output

    def test_duplicate_email(self, prepared):
        result = invoke(prepared, "add-user", "Ana Two", "ana@salon.com")

        assert result.exit_code == 1
        assert "email already in use" in result.output

    def test_invalid_email(self, prepared):
        result = invoke(prepared, "add-user", "Dora", "dora.salon.com")

        assert result.exit_code == 1
        assert "Invalid request" in result.output
        assert "invalid email format" in result.output


class TestMisc:
    """Tests for config handling and informational commands."""

    def test_list_services(self, prepared):
        result = invoke(prepared, "list-services", "7")

        assert result.exit_code == 0
        assert "Haircut" in result.output

    def test_missing_config(self, tmp_path):
        result = runner.invoke(app, ["init-db", "--config", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "Config file not found" in result.output

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("timezone: Mars/Olympus\n", encoding="utf-8")

        result = runner.invoke(app, ["init-db", "--config", str(path)])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output
