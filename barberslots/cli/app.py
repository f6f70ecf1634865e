"""
Main CLI application using Typer.
"""

import logging
from dataclasses import dataclass
from itertools import groupby
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from ..adapters.appointment_store import AppointmentStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BookingError
from ..domain.models import WEEKDAY_NAMES
from ..services.booking import BookingService

app = typer.Typer(
    name="barberslots",
    help="Find free slots and book barbershop appointments",
    add_completion=False
)

console = Console()


@dataclass
class CliState:
    config_file: Optional[Path] = None
    appointments_file: Optional[Path] = None


state = CliState()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load() -> tuple[AppConfig, AppointmentStore, BookingService]:
    """Load configuration and appointments and wire the booking service."""
    config_path = state.config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)

    appointments_path = state.appointments_file or config.appointments_file
    if appointments_path is not None:
        store = AppointmentStore.load_from_json(appointments_path, timezone=config.timezone)
    else:
        store = AppointmentStore(timezone=config.timezone)

    return config, store, BookingService(config=config, store=store)


def _parse_day(value: str, tz: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).start_of("day")
    except ValueError as e:
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD") from e


def _fail(error: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    raise typer.Exit(1)


@app.callback()
def main(
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    appointments_file: Annotated[Optional[Path], typer.Option("--appointments", "-a", help="Path to the appointments JSON file")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
):
    """
    Barbershop availability and booking tool.
    """
    state.config_file = config_file
    state.appointments_file = appointments_file
    _configure_logging(verbose)


@app.command()
def slots(
    barber: Annotated[str, typer.Argument(help="Barber id or name")],
    service: Annotated[str, typer.Argument(help="Service id or name")],
    start: Annotated[Optional[str], typer.Option("--start", help="First day to search (YYYY-MM-DD)")] = None,
    days: Annotated[Optional[int], typer.Option("--days", "-d", help="Number of days to search")] = None,
):
    """
    List free slots for a barber and service.

    Examples:

        barberslots slots carlos "Classic Haircut"

        barberslots slots b1 s2 --start 2024-11-25 --days 3
    """
    try:
        config, _, booking = _load()
        barber_obj = config.resolve_barber(barber)
        service_obj = config.resolve_service(service)
        start_date = _parse_day(start, config.timezone) if start else None

        found = booking.find_slots(
            barber_id=barber_obj.id,
            service_id=service_obj.id,
            start_date=start_date,
            days=days,
        )
    except (BookingError, ValueError, OSError) as e:
        _fail(e)

    console.print(
        f"\n[bold cyan]{service_obj.name}[/bold cyan] with [bold]{barber_obj.name}[/bold] "
        f"({service_obj.duration_minutes} min)\n"
    )

    if not found:
        console.print("[yellow]No free slots found.[/yellow] Try a longer range or another barber.\n")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Day", style="bold yellow")
    table.add_column("Start times")

    for day, day_slots in groupby(found, key=lambda s: s.start_time.date()):
        weekday = WEEKDAY_NAMES[day.weekday()].capitalize()
        times = ", ".join(s.start_time.format("HH:mm") for s in day_slots)
        table.add_row(f"{weekday} {day.strftime('%d.%m.%Y')}", times)

    console.print(table)
    console.print(f"\n[bold green]✓ {len(found)} free slot(s)[/bold green]\n")


@app.command()
def book(
    barber: Annotated[str, typer.Argument(help="Barber id or name")],
    service: Annotated[str, typer.Argument(help="Service id or name")],
    start: Annotated[str, typer.Argument(help="Start time (YYYY-MM-DD HH:mm)")],
    name: Annotated[str, typer.Option("--name", help="Client name")],
    email: Annotated[str, typer.Option("--email", help="Client e-mail")],
    phone: Annotated[Optional[str], typer.Option("--phone", help="Client phone")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Notes for the barber")] = None,
    discount: Annotated[Optional[str], typer.Option("--discount", help="Discount code")] = None,
):
    """
    Book an appointment.
    """
    try:
        config, store, booking = _load()
        barber_obj = config.resolve_barber(barber)
        service_obj = config.resolve_service(service)
        try:
            start_time = pendulum.from_format(start, "YYYY-MM-DD HH:mm", tz=config.timezone)
        except ValueError as e:
            raise ValueError(f"Invalid start time '{start}', expected YYYY-MM-DD HH:mm") from e

        appointment = booking.book_appointment(
            barber_id=barber_obj.id,
            service_id=service_obj.id,
            start_time=start_time,
            client_name=name,
            client_email=email,
            client_phone=phone,
            notes=notes,
            discount_code=discount,
        )
    except (BookingError, ValueError, OSError) as e:
        _fail(e)

    if store.path is None:
        console.print("[yellow]⚠ No appointments file configured, booking was not saved.[/yellow]")

    console.print(
        f"[bold green]✓ Booked[/bold green] {appointment.service_name} with {appointment.barber_name} "
        f"on {appointment.start_time.format('DD.MM.YYYY HH:mm')} - {appointment.end_time.format('HH:mm')} "
        f"({appointment.price:.2f})"
    )
    console.print(f"  Appointment id: [bold]{appointment.id}[/bold]")


@app.command()
def cancel(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
):
    """
    Cancel a scheduled appointment.
    """
    try:
        _, store, booking = _load()
        appointment = booking.cancel_appointment(appointment_id)
    except (BookingError, ValueError, OSError) as e:
        _fail(e)

    console.print(f"[green]✓ Appointment {appointment.id} cancelled.[/green]")


@app.command()
def schedule(
    barber: Annotated[str, typer.Argument(help="Barber id or name")],
    date: Annotated[Optional[str], typer.Option("--date", help="Only show this day (YYYY-MM-DD)")] = None,
):
    """
    Show a barber's appointments.
    """
    try:
        config, _, booking = _load()
        barber_obj = config.resolve_barber(barber)
        day = _parse_day(date, config.timezone) if date else None
        appointments = booking.barber_schedule(barber_obj.id, day=day)
    except (BookingError, ValueError, OSError) as e:
        _fail(e)

    if not appointments:
        console.print(f"[yellow]No appointments for {barber_obj.name}.[/yellow]")
        return

    table = Table(
        title=f"Schedule of {barber_obj.name}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("When", style="bold yellow")
    table.add_column("Service")
    table.add_column("Client")
    table.add_column("Status")
    table.add_column("Id", style="dim")

    for appointment in appointments:
        table.add_row(
            f"{appointment.start_time.format('DD.MM.YYYY HH:mm')} - {appointment.end_time.format('HH:mm')}",
            appointment.service_name,
            appointment.client_name,
            appointment.status.value,
            appointment.id,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def hours():
    """
    Show the configured business hours.
    """
    try:
        config, _, _ = _load()
        business_hours = config.to_business_hours()
    except (BookingError, ValueError, OSError) as e:
        _fail(e)

    table = Table(title="Business hours", show_header=True, header_style="bold cyan")
    table.add_column("Day", style="bold yellow")
    table.add_column("Hours")

    for name in WEEKDAY_NAMES:
        day_hours = business_hours.days.get(name)
        table.add_row(name.capitalize(), day_hours.format_display() if day_hours else "[red]not configured[/red]")

    console.print()
    console.print(table)
    console.print()


@app.command()
def list_barbers():
    """
    List all configured barbers.
    """
    try:
        config, _, _ = _load()
    except (BookingError, ValueError, OSError) as e:
        _fail(e)

    if not config.barbers:
        console.print("[yellow]No barbers defined in the config file.[/yellow]")
        return

    table = Table(title="Barbers", show_header=True, header_style="bold cyan")
    table.add_column("Id", style="dim")
    table.add_column("Name", style="bold yellow")
    table.add_column("E-Mail", style="dim")
    table.add_column("Specialties")

    for barber in config.barbers:
        table.add_row(barber.id, barber.name, barber.email, ", ".join(barber.specialties))

    console.print()
    console.print(table)
    console.print()


@app.command()
def list_services():
    """
    List all bookable services.
    """
    try:
        config, _, _ = _load()
    except (BookingError, ValueError, OSError) as e:
        _fail(e)

    table = Table(title="Services", show_header=True, header_style="bold cyan")
    table.add_column("Id", style="dim")
    table.add_column("Name", style="bold yellow")
    table.add_column("Duration", justify="right")
    table.add_column("Price", justify="right")

    for service in config.services:
        table.add_row(service.id, service.name, f"{service.duration_minutes} min", f"{service.price:.2f}")

    console.print()
    console.print(table)
    console.print()


@app.command()
def list_discounts():
    """
    List all discount codes.
    """
    try:
        config, _, booking = _load()
    except (BookingError, ValueError, OSError) as e:
        _fail(e)

    codes = booking.list_discount_codes()
    if not codes:
        console.print("[yellow]No discount codes defined.[/yellow]")
        return

    today = pendulum.now(config.timezone).date()
    table = Table(title="Discount codes", show_header=True, header_style="bold cyan")
    table.add_column("Code", style="bold yellow")
    table.add_column("Discount", justify="right")
    table.add_column("Expires")
    table.add_column("Valid today")

    for code in codes:
        table.add_row(
            code.code,
            f"{code.discount_percentage:g}%",
            code.expiry_date.isoformat(),
            "yes" if code.is_valid_on(today) else "no",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]barberslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
