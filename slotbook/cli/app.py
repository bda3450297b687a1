"""
Main CLI application using Typer.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from pendulum import Date, DateTime
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.graph_authenticator import GraphAuthenticator
from ..adapters.graph_calendar import GraphCalendarClient
from ..adapters.mock_calendar import MockCalendarClient
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SlotbookError
from ..domain.models import CanExtend, CanShiftBack, NoAvailability, Slot
from ..services.factory import Services, create_services
from ..services.protocols import CalendarClient

app = typer.Typer(
    name="slotbook",
    help="Browse free booking slots and change existing bookings",
    add_completion=False,
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use the bundled mock calendar and skip authentication."),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
):
    """
    Slot booking engine for a single provider calendar.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _create_client(config: AppConfig, mock: bool) -> CalendarClient:
    if mock:
        console.print("[yellow]⚠  MOCK MODE: using test data[/yellow]\n")
        return MockCalendarClient(max_query_days=config.calendar.max_query_days)

    authenticator = GraphAuthenticator(
        client_id=config.calendar.client_id,
        tenant_id=config.calendar.tenant_id,
        authority_url=config.calendar.get_authority_url(),
    )
    access_token = authenticator.get_access_token(force_refresh=False)
    return GraphCalendarClient(
        access_token=access_token,
        calendar_id=config.calendar.calendar_id,
        max_query_days=config.calendar.max_query_days,
        timeout=config.calendar.request_timeout_seconds,
    )


def _build(config_file: Optional[Path], mock: bool) -> tuple[AppConfig, Services, CalendarClient]:
    config = _load_config(config_file)
    client = _create_client(config, mock)
    return config, create_services(config, client), client


def _parse_date(value: str, tz: str) -> Date:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        raise typer.BadParameter(f"Invalid date {value!r}, expected YYYY-MM-DD") from e


def _parse_local_datetime(value: str, tz: str) -> DateTime:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD HH:mm", tz=tz)
    except ValueError as e:
        raise typer.BadParameter(f"Invalid time {value!r}, expected 'YYYY-MM-DD HH:mm'") from e


def _format_slot(slot: Slot, tz: str) -> str:
    start = slot.start.in_timezone(tz)
    end = slot.end.in_timezone(tz)
    return f"{start.format('ddd DD.MM.YYYY')}  {start.format('HH:mm')} - {end.format('HH:mm')}"


def _fail(error: Exception) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {error}")
    return typer.Exit(1)


@app.command()
def days(
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--from", help="First date (YYYY-MM-DD), default today")] = None,
    end: Annotated[Optional[str], typer.Option("--to", help="Last date (YYYY-MM-DD), default two weeks on")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Booking duration in minutes")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print JSON instead of a table")] = False,
    debug: Annotated[bool, typer.Option("--debug", help="Include input counters")] = False,
    mock: MockOption = False,
):
    """
    Show which days still have room for a booking.

    Examples:

        slotbook days --mock --from 2026-11-23 --to 2026-11-29

        slotbook days --duration 60 --json
    """
    try:
        config, services, _ = _build(config_file, mock)
        tz = config.timezone
        today = pendulum.now(tz).date()
        from_date = _parse_date(start, tz) if start else today
        to_date = _parse_date(end, tz) if end else from_date.add(days=13)
        min_duration = config.effective_duration(duration)

        report = asyncio.run(
            services.availability.get_availability_report(from_date, to_date, min_duration)
        )

        if as_json:
            payload = {"days": [day.to_dict() for day in report.days]}
            if debug:
                payload["debug"] = report.debug_info()
            console.print_json(json.dumps(payload))
            return

        table = Table(
            title=f"Availability for {min_duration} min",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Date", style="bold")
        table.add_column("Weekday")
        table.add_column("Open")

        for day in report.days:
            table.add_row(
                day.date.to_date_string(),
                day.date.format("dddd"),
                "[green]yes[/green]" if day.has_open_window else "[dim]no[/dim]",
            )

        console.print()
        console.print(table)
        if debug:
            console.print(report.debug_info())
        console.print()

    except (SlotbookError, FileNotFoundError, ValueError) as e:
        raise _fail(e)


@app.command()
def slots(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Booking duration in minutes")] = None,
    step: Annotated[Optional[int], typer.Option("--step", help="Minutes between candidate starts")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print JSON instead of a list")] = False,
    mock: MockOption = False,
):
    """
    List bookable slots on one day.
    """
    try:
        config, services, _ = _build(config_file, mock)
        day = _parse_date(date, config.timezone)
        min_duration = config.effective_duration(duration)

        found = asyncio.run(services.availability.get_day_slots(day, min_duration, step))

        if as_json:
            console.print_json(json.dumps({"slots": [slot.to_dict() for slot in found]}))
            return

        console.print()
        if not found:
            console.print(
                "[yellow]⚠ No free slots found.[/yellow]\n"
                "Try another day or a shorter duration."
            )
        else:
            console.print(f"[bold green]✓ {len(found)} slot(s) of {min_duration} min:[/bold green]\n")
            for slot in found:
                console.print(f"  {_format_slot(slot, config.timezone)}")
        console.print()

    except (SlotbookError, FileNotFoundError, ValueError) as e:
        raise _fail(e)


@app.command()
def check_extension(
    booking_id: Annotated[str, typer.Argument(help="Calendar event id of the booking")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="New duration in minutes")],
    config_file: ConfigOption = None,
    apply: Annotated[bool, typer.Option("--apply", help="Carry out the change when possible")] = False,
    alternatives: Annotated[bool, typer.Option("--alternatives", help="Suggest other slots when blocked")] = False,
    mock: MockOption = False,
):
    """
    Check whether a booking can be made longer.
    """
    try:
        config, services, client = _build(config_file, mock)
        tz = config.timezone

        async def run():
            booking = await client.get_booking(booking_id)
            outcome = await services.modification.check_extension(
                booking.event_id, booking.start, booking.end, duration
            )

            if isinstance(outcome, CanExtend):
                console.print(f"[green]✓ {outcome.message}[/green]")
            elif isinstance(outcome, CanShiftBack):
                console.print(f"[yellow]↶ {outcome.message}[/yellow]")
            else:
                console.print(f"[red]✗ {outcome.message}[/red] ({outcome.reason.value})")

            if apply and not isinstance(outcome, NoAvailability):
                updated = await services.modification.apply_outcome(booking_id, outcome, duration)
                console.print(
                    f"[green]✓ Booking updated:[/green] "
                    f"{_format_slot(Slot(start=updated.start, end=updated.end), tz)}"
                )

            if alternatives and isinstance(outcome, NoAvailability):
                found = await services.modification.find_alternatives(
                    booking,
                    duration,
                    search_days=config.modification.rebooking_search_days,
                    max_slots=config.modification.max_rebooking_slots,
                )
                console.print(f"\n[bold]Other free times ({len(found)}):[/bold]")
                for slot in found:
                    console.print(f"  {_format_slot(slot, tz)}")

        console.print()
        asyncio.run(run())
        console.print()

    except (SlotbookError, FileNotFoundError, ValueError) as e:
        raise _fail(e)


@app.command()
def reschedule(
    booking_id: Annotated[str, typer.Argument(help="Calendar event id of the booking")],
    start: Annotated[str, typer.Argument(help="New local start, 'YYYY-MM-DD HH:mm'")],
    config_file: ConfigOption = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="New duration, default unchanged")] = None,
    mock: MockOption = False,
):
    """
    Move a booking to a new start time.
    """
    try:
        config, services, client = _build(config_file, mock)
        new_start = _parse_local_datetime(start, config.timezone)

        async def run():
            booking = await client.get_booking(booking_id)
            minutes = duration if duration is not None else booking.duration_minutes()
            return await services.modification.reschedule(
                booking_id, new_start, new_start.add(minutes=minutes)
            )

        updated = asyncio.run(run())
        console.print(
            f"\n[green]✓ Booking {booking_id} moved to[/green] "
            f"{_format_slot(Slot(start=updated.start, end=updated.end), config.timezone)}\n"
        )

    except (SlotbookError, FileNotFoundError, ValueError) as e:
        raise _fail(e)


@app.command()
def cancel(
    booking_id: Annotated[str, typer.Argument(help="Calendar event id of the booking")],
    config_file: ConfigOption = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
    mock: MockOption = False,
):
    """
    Cancel a booking.
    """
    if not yes:
        typer.confirm(f"Cancel booking {booking_id}?", abort=True)

    try:
        _, services, _ = _build(config_file, mock)
        asyncio.run(services.modification.cancel(booking_id))
        console.print(f"\n[green]✓ Booking {booking_id} cancelled.[/green]\n")

    except (SlotbookError, FileNotFoundError, ValueError) as e:
        raise _fail(e)


@app.command()
def test_auth(
    config_file: ConfigOption = None,
    force: Annotated[bool, typer.Option("--force", help="Force re-authentication")] = False,
):
    """
    Test Microsoft Graph authentication.
    """
    try:
        config = _load_config(config_file)

        console.print("\n[bold]Testing Microsoft Graph authentication...[/bold]\n")

        authenticator = GraphAuthenticator(
            client_id=config.calendar.client_id,
            tenant_id=config.calendar.tenant_id,
            authority_url=config.calendar.get_authority_url(),
        )
        access_token = authenticator.get_access_token(force_refresh=force)

        client = GraphCalendarClient(
            access_token=access_token,
            calendar_id=config.calendar.calendar_id,
            timeout=config.calendar.request_timeout_seconds,
        )
        user_info = client.test_connection()

        console.print(Panel.fit(
            f"[bold green]✓ Authentication successful![/bold green]\n\n"
            f"[bold]User:[/bold] {user_info.get('displayName', 'N/A')}\n"
            f"[bold]E-mail:[/bold] {user_info.get('mail') or user_info.get('userPrincipalName', 'N/A')}\n"
            f"[bold]Token cache:[/bold] {authenticator.cache_backend}",
            title="✓ Connection test",
        ))
        console.print()

    except (SlotbookError, FileNotFoundError, ValueError) as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)


@app.command()
def clear_cache(
    config_file: ConfigOption = None,
):
    """
    Clear the authentication token cache.
    """
    try:
        config = _load_config(config_file)

        authenticator = GraphAuthenticator(
            client_id=config.calendar.client_id,
            tenant_id=config.calendar.tenant_id,
        )
        authenticator.clear_cache()
        console.print("\n[green]✓ Token cache cleared.[/green]")
        console.print("You will have to sign in again on the next call.\n")

    except (SlotbookError, FileNotFoundError, ValueError) as e:
        raise _fail(e)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotbook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
