"""
Main CLI application using Typer.
"""

import logging
from contextlib import contextmanager
from datetime import time
from pathlib import Path
from typing import Annotated, Iterator, Optional

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from ..adapters.database import build_engine, build_session_factory, create_schema
from ..adapters.sql_repository import (
    SqlAppointmentRepository,
    SqlAvailableSlotRepository,
    SqlServiceRepository,
    SqlUserRepository,
)
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import (
    DuplicateEmailError,
    InvalidEntityError,
    NotFoundError,
    RepositoryError,
    SlotConflictError,
    SlotUnavailableError,
)
from ..domain.models import format_time
from ..services.booking import BookingService

app = typer.Typer(
    name="staffbooking",
    help="Book staff appointments against recurring weekly availability",
    add_completion=False,
)

console = Console()
error_console = Console(stderr=True)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config = AppConfig.load_from_yaml(config_file or get_default_config_path())
    logging.basicConfig(
        level=config.log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, show_path=False)],
    )
    return config


def _build_service(config: AppConfig) -> BookingService:
    session_factory = build_session_factory(build_engine(config.database_url))
    return BookingService(
        SqlAppointmentRepository(session_factory),
        SqlAvailableSlotRepository(session_factory),
        SqlServiceRepository(session_factory),
        SqlUserRepository(session_factory),
        occupancy_policy=config.booking.occupancy_policy,
        occupancy_minutes=config.booking.occupancy_minutes,
        step_minutes=config.booking.free_time_step_minutes,
        timezone=config.timezone,
    )


@contextmanager
def _reporting_errors() -> Iterator[None]:
    """Turn application errors into a message and exit code 1."""
    try:
        yield
    except SlotUnavailableError as e:
        console.print(f"[bold yellow]Slot unavailable[/bold yellow] ({e.reason.replace('_', ' ')})")
        raise typer.Exit(1)
    except InvalidEntityError as e:
        console.print(f"[bold red]Invalid request:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)
    except (NotFoundError, SlotConflictError, DuplicateEmailError) as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)
    except RepositoryError as e:
        console.print(f"[bold red]Storage error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)


def _parse_datetime(value: str, tz: str) -> DateTime:
    try:
        parsed = pendulum.parse(value, tz=tz)
    except Exception as e:
        raise ValueError(f"Could not parse date and time '{value}': {e}") from e
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Expected a date and time like 2030-01-07T09:30, got '{value}'")
    return parsed


def _parse_time(value: str) -> time:
    try:
        parsed = pendulum.from_format(value, "HH:mm")
    except Exception as e:
        raise ValueError(f"Could not parse time '{value}' (expected HH:MM): {e}") from e
    return time(parsed.hour, parsed.minute)


@app.command("init-db")
def init_db(config_file: ConfigOption = None):
    """
    Create the database tables.
    """
    with _reporting_errors():
        config = _load_config(config_file)
        create_schema(build_engine(config.database_url))
        console.print(f"[green]✓ Schema ready[/green] ({config.database_url})")


@app.command("add-user")
def add_user(
    name: Annotated[str, typer.Argument(help="Full name")],
    email: Annotated[str, typer.Argument(help="Email address")],
    role: Annotated[str, typer.Option("--role", "-r", help="client or admin")] = "client",
    config_file: ConfigOption = None,
):
    """
    Register a client or admin user.
    """
    with _reporting_errors():
        user = _build_service(_load_config(config_file)).register_user(
            name=name, email=email, role=role
        )
        console.print(f"[green]✓ User {user.id} created[/green]: {escape(user.name)} <{user.email}>")


@app.command("list-users")
def list_users(config_file: ConfigOption = None):
    """
    List all users.
    """
    with _reporting_errors():
        users = _build_service(_load_config(config_file)).list_users()

        if not users:
            console.print("[yellow]No users registered.[/yellow]")
            return

        table = Table(title="Users", header_style="bold cyan")
        table.add_column("ID", style="bold yellow")
        table.add_column("Name")
        table.add_column("Email")
        table.add_column("Role")
        for user in users:
            table.add_row(str(user.id), escape(user.name), str(user.email), user.role.value)
        console.print(table)


@app.command("add-service")
def add_service(
    staff_id: Annotated[int, typer.Argument(help="Staff member offering the service")],
    name: Annotated[str, typer.Argument(help="Service name")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="Duration in minutes")] = 30,
    price: Annotated[str, typer.Option("--price", "-p", help="Price, e.g. 25.00")] = "0",
    config_file: ConfigOption = None,
):
    """
    Register a service for a staff member.
    """
    with _reporting_errors():
        service = _build_service(_load_config(config_file)).add_service(
            staff_id=staff_id, name=name, duration_minutes=duration, price=price
        )
        console.print(f"[green]✓ Service {service.id} created[/green]: {service.name}")


@app.command("list-services")
def list_services(
    staff_id: Annotated[int, typer.Argument(help="Staff member")],
    config_file: ConfigOption = None,
):
    """
    List the services of a staff member.
    """
    with _reporting_errors():
        services = _build_service(_load_config(config_file)).list_services(staff_id)

        if not services:
            console.print("[yellow]No services registered.[/yellow]")
            return

        table = Table(title=f"Services of staff {staff_id}", header_style="bold cyan")
        table.add_column("ID", style="bold yellow")
        table.add_column("Name")
        table.add_column("Minutes", justify="right")
        table.add_column("Price", justify="right")
        for service in services:
            table.add_row(str(service.id), service.name, str(service.duration_minutes), str(service.price))
        console.print(table)


@app.command("add-slot")
def add_slot(
    staff_id: Annotated[int, typer.Argument(help="Staff member")],
    weekday: Annotated[str, typer.Argument(help="sunday .. saturday")],
    start: Annotated[str, typer.Argument(help="Opening time (HH:MM)")],
    end: Annotated[str, typer.Argument(help="Closing time (HH:MM)")],
    config_file: ConfigOption = None,
):
    """
    Declare a recurring weekly availability slot.
    """
    with _reporting_errors():
        slot = _build_service(_load_config(config_file)).register_slot(
            staff_id=staff_id,
            weekday=weekday,
            start_time=_parse_time(start),
            end_time=_parse_time(end),
        )
        console.print(f"[green]✓ Slot {slot.id} created[/green]: {slot}")


@app.command("list-slots")
def list_slots(
    staff_id: Annotated[int, typer.Argument(help="Staff member")],
    weekday: Annotated[Optional[str], typer.Option("--weekday", "-w", help="Only this weekday")] = None,
    config_file: ConfigOption = None,
):
    """
    List the availability slots of a staff member.
    """
    with _reporting_errors():
        slots = _build_service(_load_config(config_file)).list_slots(staff_id, weekday)

        if not slots:
            console.print("[yellow]No availability slots declared.[/yellow]")
            return

        table = Table(title=f"Availability of staff {staff_id}", header_style="bold cyan")
        table.add_column("ID", style="bold yellow")
        table.add_column("Weekday")
        table.add_column("From")
        table.add_column("To")
        for slot in slots:
            table.add_row(
                str(slot.id), slot.weekday.value, format_time(slot.start_time), format_time(slot.end_time)
            )
        console.print(table)


@app.command("remove-slot")
def remove_slot(
    slot_id: Annotated[int, typer.Argument(help="Slot id")],
    config_file: ConfigOption = None,
):
    """
    Delete an availability slot.
    """
    with _reporting_errors():
        _build_service(_load_config(config_file)).remove_slot(slot_id)
        console.print(f"[green]✓ Slot {slot_id} removed[/green]")


@app.command()
def book(
    client_id: Annotated[int, typer.Option("--client", help="Client id")],
    staff_id: Annotated[int, typer.Option("--staff", help="Staff id")],
    service_id: Annotated[int, typer.Option("--service", help="Service id")],
    at: Annotated[str, typer.Option("--at", help="Start, e.g. '2030-01-07 09:30'")],
    config_file: ConfigOption = None,
):
    """
    Book an appointment.

    Examples:

        staffbooking book --client 1 --staff 7 --service 2 --at "2030-01-07 09:30"
    """
    with _reporting_errors():
        config = _load_config(config_file)
        appointment = _build_service(config).book(
            client_id=client_id,
            staff_id=staff_id,
            service_id=service_id,
            scheduled_at=_parse_datetime(at, config.timezone),
        )
        console.print(
            f"[bold green]✓ Appointment {appointment.id} booked[/bold green] for "
            f"{appointment.scheduled_at.in_timezone(config.timezone).format('dddd, YYYY-MM-DD HH:mm')}"
        )


@app.command()
def cancel(
    appointment_id: Annotated[int, typer.Argument(help="Appointment id")],
    config_file: ConfigOption = None,
):
    """
    Cancel an appointment.
    """
    with _reporting_errors():
        _build_service(_load_config(config_file)).cancel(appointment_id)
        console.print(f"[green]✓ Appointment {appointment_id} cancelled[/green]")


@app.command()
def complete(
    appointment_id: Annotated[int, typer.Argument(help="Appointment id")],
    config_file: ConfigOption = None,
):
    """
    Mark an appointment as completed.
    """
    with _reporting_errors():
        _build_service(_load_config(config_file)).complete(appointment_id)
        console.print(f"[green]✓ Appointment {appointment_id} completed[/green]")


@app.command("list-appointments")
def list_appointments(
    staff_id: Annotated[int, typer.Argument(help="Staff member")],
    config_file: ConfigOption = None,
):
    """
    List all appointments of a staff member.
    """
    with _reporting_errors():
        config = _load_config(config_file)
        appointments = _build_service(config).list_appointments(staff_id)

        if not appointments:
            console.print("[yellow]No appointments.[/yellow]")
            return

        table = Table(title=f"Appointments of staff {staff_id}", header_style="bold cyan")
        table.add_column("ID", style="bold yellow")
        table.add_column("When")
        table.add_column("Client", justify="right")
        table.add_column("Service", justify="right")
        table.add_column("Status")
        for appointment in appointments:
            table.add_row(
                str(appointment.id),
                appointment.scheduled_at.in_timezone(config.timezone).format("YYYY-MM-DD HH:mm"),
                str(appointment.client_id),
                str(appointment.service_id),
                appointment.status.value,
            )
        console.print(table)


@app.command("free-times")
def free_times(
    staff_id: Annotated[int, typer.Argument(help="Staff member")],
    service_id: Annotated[int, typer.Argument(help="Service to fit")],
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
):
    """
    Show the start times still bookable for a service on a date.
    """
    with _reporting_errors():
        config = _load_config(config_file)
        try:
            parsed_day = pendulum.from_format(day, "YYYY-MM-DD", tz=config.timezone).date()
        except Exception as e:
            raise ValueError(f"Could not parse date '{day}': {e}") from e

        starts = _build_service(config).free_start_times(
            staff_id=staff_id, service_id=service_id, day=parsed_day
        )

        if not starts:
            console.print("[yellow]⚠ No free start times on that date.[/yellow]")
            return

        console.print(f"[bold green]✓ {len(starts)} free start time(s):[/bold green]")
        for start in starts:
            console.print(f"  {start.format('HH:mm')}")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]staffbooking[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
