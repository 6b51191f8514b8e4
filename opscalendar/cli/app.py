"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, List, Optional

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.mock_operations_client import InMemoryOperationsClient
from ..adapters.notifications import ConsoleNotificationSink
from ..adapters.operations_client import OperationsApiClient, resolve_timezone
from ..adapters.token_store import TokenStore
from ..config import AppConfig, get_default_config_path
from ..domain.layout import CalendarLayoutEngine
from ..domain.models import Conflict
from ..domain.time_window import TimeWindowCalculator
from ..services.operations_page import CalendarView, OperationsPageController
from ..services.protocols import OperationsClientProtocol, StaticIdentity
from ..services.submitter import SubmitOutcome

app = typer.Typer(
    name="opscalendar",
    help="Assign drivers on the operations calendar and submit the weekly schedule",
    add_completion=False,
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use bundled sample data instead of the gateway."),
]
WeekOption = Annotated[
    Optional[str],
    typer.Option("--week", "-w", help="Any date (YYYY-MM-DD) inside the first visible week"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """Operations calendar: driver scheduling from the terminal."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


def _load_config(config_file: Optional[Path], mock: bool) -> AppConfig:
    config_path = config_file or get_default_config_path()
    try:
        if mock and config_file is None:
            return AppConfig.load_or_default(config_path)
        return AppConfig.load_from_yaml(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _build_client(config: AppConfig, mock: bool) -> OperationsClientProtocol:
    if mock:
        return InMemoryOperationsClient.from_json_file(
            timezone=config.timezone,
            operator_name=config.operator_name or "Mock Operator",
            range_weeks=config.calendar.weeks_visible,
        )

    token = config.api_token or TokenStore(config.api_base_url).load()
    if not token:
        console.print(
            "[bold red]Error:[/bold red] No API token configured. "
            "Run [bold]opscalendar login[/bold] or set api_token in the config file."
        )
        raise typer.Exit(1)

    return OperationsApiClient(
        base_url=config.api_base_url,
        access_token=token,
        timezone=config.timezone,
        timeout=config.request_timeout_seconds,
    )


def _resolve_week(
    week: Optional[str],
    config: AppConfig,
    client: OperationsClientProtocol,
) -> Optional[DateTime]:
    if week:
        try:
            return pendulum.from_format(week, "YYYY-MM-DD", tz=resolve_timezone(config.timezone))
        except ValueError as e:
            console.print(f"[red]Could not parse week date: {e}[/red]")
            raise typer.Exit(1)

    if isinstance(client, InMemoryOperationsClient):
        return client.earliest_week_start()

    return None


def build_controller(
    config: AppConfig,
    client: OperationsClientProtocol,
    week_start: Optional[DateTime] = None,
    notifier: Optional[ConsoleNotificationSink] = None,
) -> OperationsPageController:
    """Wire the page controller from configuration."""
    calculator = TimeWindowCalculator(
        default_length=config.defaults.appointment_length,
        default_transit=config.defaults.transit_time,
    )
    layout = CalendarLayoutEngine(
        calculator,
        start_hour=config.calendar.start_hour,
        end_hour=config.calendar.end_hour,
        hour_height=config.calendar.hour_height,
        max_columns=config.calendar.max_overlap_columns,
    )
    tz = resolve_timezone(config.timezone)

    return OperationsPageController(
        client=client,
        notifier=notifier or ConsoleNotificationSink(console),
        identity=StaticIdentity(config.operator_name),
        calculator=calculator,
        layout=layout,
        week_start=week_start,
        weeks_visible=config.calendar.weeks_visible,
        days_per_week=config.calendar.days_per_week,
        debounce_seconds=config.drafts.debounce_seconds,
        clock=lambda: pendulum.now(tz),
    )


def _render_calendar(controller: OperationsPageController, view: CalendarView) -> None:
    console.print(f"\n[bold cyan]🗓️  {view.range_label}[/bold cyan]")
    if view.last_edited:
        console.print(f"[dim]{view.last_edited}[/dim]")

    for week in view.weeks:
        table = Table(title=week.label, show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Day", style="bold")
        table.add_column("Time")
        table.add_column("Pickup - Return", style="dim")
        table.add_column("Client", style="bold yellow")
        table.add_column("Location")
        table.add_column("Driver")
        table.add_column("Lane", justify="center")
        table.add_column("ID", style="dim", justify="right")

        for day in week.days:
            if not day.blocks:
                table.add_row(day.header, "[dim]-[/dim]", "", "", "", "", "", "")
                continue
            for index, block in enumerate(day.blocks):
                appointment = controller.find_appointment(block.appointment_id)
                window = controller.calculator.window(appointment)
                if block.status_class == "status-cancelled":
                    driver = "[dim strike]cancelled[/dim strike]"
                elif block.driver_display:
                    driver = block.driver_display
                else:
                    driver = "[yellow]unassigned[/yellow]"
                if block.has_conflict:
                    driver = f"[bold red]⚠ {driver}[/bold red]"
                lane = (
                    f"{block.geometry.slot + 1}/{block.geometry.slot_count}"
                    if block.overlap.is_overlapping else ""
                )
                table.add_row(
                    day.header if index == 0 else "",
                    block.time_label,
                    f"{window.start.format('h:mm A')} - {window.end.format('h:mm A')}",
                    block.client_label,
                    block.location,
                    driver,
                    lane,
                    str(block.appointment_id),
                )

        console.print()
        console.print(table)

    stats = view.stats
    console.print(Panel.fit(
        f"[bold]Total:[/bold] {stats.total}   "
        f"[green]Assigned:[/green] {stats.assigned}   "
        f"[yellow]Pending:[/yellow] {stats.pending}   "
        f"[red]Conflicts:[/red] {stats.conflicts}",
        title="Schedule",
    ))

    if view.conflicts:
        _print_conflicts(controller, view.conflicts)


def _print_conflicts(controller: OperationsPageController, conflicts: List[Conflict]) -> None:
    drivers = controller.drivers_by_id
    table = Table(title="Driver conflicts", header_style="bold red")
    table.add_column("Driver", style="bold")
    table.add_column("Appointments")
    for conflict in conflicts:
        driver = drivers.get(conflict.driver_id)
        name = driver.name if driver else f"Driver #{conflict.driver_id}"
        first, second = conflict.appointment_ids
        table.add_row(name, f"{first} ↔ {second}")
    console.print(table)


def _parse_driver(value: Optional[str]) -> Optional[int]:
    if value is None or value.lower() in ("none", "-", ""):
        return None
    try:
        return int(value)
    except ValueError:
        console.print(f"[bold red]Error:[/bold red] Driver id must be a number or 'none', got {value!r}")
        raise typer.Exit(1)


@app.command()
def show(
    config_file: ConfigOption = None,
    mock: MockOption = False,
    week: WeekOption = None,
    clinic: Annotated[Optional[int], typer.Option("--clinic", help="Only show this clinic id")] = None,
):
    """
    Show the two-week calendar with overlaps, conflicts and statistics.

    Examples:

        opscalendar show --mock
        opscalendar show --week 2025-01-13 --clinic 2
    """
    config = _load_config(config_file, mock)
    client = _build_client(config, mock)
    controller = build_controller(config, client, _resolve_week(week, config, client))

    async def _run() -> bool:
        if not await controller.load():
            return False
        view = controller.set_clinic_filter(clinic) if clinic is not None else controller.render()
        _render_calendar(controller, view)
        return True

    if not asyncio.run(_run()):
        raise typer.Exit(1)


@app.command()
def assign(
    appointment_id: Annotated[int, typer.Argument(help="Appointment id")],
    driver_id: Annotated[Optional[str], typer.Argument(help="Driver id, or 'none' to unassign")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    week: WeekOption = None,
):
    """
    Save a draft driver assignment for one appointment.
    """
    config = _load_config(config_file, mock)
    client = _build_client(config, mock)
    controller = build_controller(config, client, _resolve_week(week, config, client))
    driver = _parse_driver(driver_id)

    async def _run() -> bool:
        if not await controller.load():
            return False
        try:
            controller.assign_driver(appointment_id, driver)
        except ValueError as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            return False

        if not await controller.gateway.flush_pending():
            console.print(f"[bold red]Error:[/bold red] Draft for appointment {appointment_id} was not saved")
            return False

        block = controller.blocks.get(appointment_id)
        label = block.driver_display if block and block.driver_display else "Unassigned"
        console.print(f"[green]✓ Draft saved:[/green] appointment {appointment_id} → {label}")
        stats = controller.current_stats
        console.print(
            f"   Assigned: {stats.assigned}  Pending: {stats.pending}  Conflicts: {stats.conflicts}"
        )
        if controller.last_edit:
            console.print(f"[dim]{controller.last_edit.format_display()}[/dim]")
        return True

    if not asyncio.run(_run()):
        raise typer.Exit(1)


@app.command()
def submit(
    config_file: ConfigOption = None,
    mock: MockOption = False,
    week: WeekOption = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Submit even if there are driver conflicts.")] = False,
):
    """
    Submit the weekly schedule, confirming first if drivers are double-booked.
    """
    config = _load_config(config_file, mock)
    client = _build_client(config, mock)
    controller = build_controller(config, client, _resolve_week(week, config, client))

    def _confirm(conflicts: List[Conflict]) -> bool:
        _print_conflicts(controller, conflicts)
        if yes:
            return True
        return typer.confirm(
            f"Warning: There are {len(conflicts)} driver conflict(s) "
            "(same driver assigned to overlapping appointments).\n"
            "Do you want to submit anyway?",
            default=False,
        )

    async def _run() -> bool:
        if not await controller.load():
            return False
        result = await controller.submit(_confirm)
        if result.outcome is SubmitOutcome.CANCELLED:
            console.print("[yellow]Submit cancelled. Drafts were kept.[/yellow]")
        return result.succeeded

    if not asyncio.run(_run()):
        raise typer.Exit(1)


@app.command()
def drivers(
    appointment: Annotated[Optional[int], typer.Option("--appointment", "-a", help="Group drivers for this appointment's clinic")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    week: WeekOption = None,
):
    """
    List drivers, optionally grouped for one appointment's clinic.
    """
    config = _load_config(config_file, mock)
    client = _build_client(config, mock)
    controller = build_controller(config, client, _resolve_week(week, config, client))

    if not asyncio.run(controller.load()):
        raise typer.Exit(1)

    clinics = {clinic.id: clinic.name for clinic in controller.clinics}

    if appointment is not None:
        if controller.select_appointment(appointment) is None:
            console.print(f"[bold red]Error:[/bold red] Unknown appointment id: {appointment}")
            raise typer.Exit(1)
        for group in controller.driver_options(appointment):
            console.print(f"\n[bold cyan]{group.label}[/bold cyan]")
            for driver in group.drivers:
                console.print(f"  {driver.id}  {driver.name}")
        console.print()
        controller.close_popover()
        return

    table = Table(title="Drivers", show_header=True, header_style="bold cyan")
    table.add_column("ID", justify="right")
    table.add_column("Name", style="bold yellow")
    table.add_column("Clinics", style="dim")
    for driver in controller.drivers:
        table.add_row(
            str(driver.id),
            driver.name,
            ", ".join(sorted(clinics.get(cid, f"Clinic #{cid}") for cid in driver.clinic_ids)),
        )
    console.print()
    console.print(table)
    console.print()


@app.command()
def login(
    config_file: ConfigOption = None,
    token: Annotated[str, typer.Option("--token", prompt=True, hide_input=True, help="Gateway access token")] = "",
):
    """
    Store the gateway access token in the system keyring.
    """
    config = _load_config(config_file, mock=False)
    store = TokenStore(config.api_base_url)
    store.save(token.strip())
    if store.insecure_storage_warning:
        console.print(f"[yellow]⚠ {store.insecure_storage_warning}[/yellow]")
    console.print(f"[green]✓ Token stored ({store.backend}).[/green]")


@app.command()
def logout(config_file: ConfigOption = None):
    """
    Remove the stored gateway access token.
    """
    config = _load_config(config_file, mock=False)
    TokenStore(config.api_base_url).clear()
    console.print("[green]✓ Token removed.[/green]")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]opscalendar[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
