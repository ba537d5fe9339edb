"""
DTH Release CLI

Command-line interface for operating the DTH vehicle release portal.
"""

import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..clock import format_display_time
from ..config import get_settings
from ..context import AppContext, build_context
from ..errors import ReleaseError
from ..log import configure_logging
from ..models import Load, LoadStatus

# Fix Windows console encoding
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding='utf-8', errors='replace')

app = typer.Typer(
    name="dth-release",
    help="DTH Logistics vehicle release portal",
    add_completion=False,
)
console = Console()

STATUS_STYLES = {
    LoadStatus.DRAFT: "yellow",
    LoadStatus.VALID: "green",
    LoadStatus.USED: "blue",
    LoadStatus.VOID: "red",
}


@contextmanager
def open_context() -> Iterator[AppContext]:
    """Build a context for one command; notifications run inline so they finish before exit."""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    ctx = build_context(settings, background=False)
    try:
        yield ctx
    except ReleaseError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)
    finally:
        ctx.close()


def _status(status: LoadStatus) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status.value}[/{style}]"


def _print_load(load: Load, timezone: str) -> None:
    table = Table(title=f"Load {load.load_id}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Internal ID", str(load.id))
    table.add_row("Status", _status(load.status))
    table.add_row("PIN", load.pin)
    table.add_row("Token", load.verification_token)
    table.add_row("Pickup Location", load.pickup_location or "-")
    table.add_row("Window Start", format_display_time(load.pickup_window_start, timezone))
    table.add_row("Window End", format_display_time(load.pickup_window_end, timezone))
    table.add_row("Vehicle", load.vehicle_info)
    table.add_row("Carrier", load.carrier_name or "-")
    table.add_row("Driver", load.driver_name or "-")
    if load.confirmation:
        table.add_row("Released By", load.confirmation.confirmed_by or "-")
        table.add_row("Released At", format_display_time(load.confirmation.timestamp, timezone))

    console.print(table)


# =============================================================================
# Setup Commands
# =============================================================================

@app.command()
def init_db():
    """
    Create the database tables.

    Safe to run repeatedly; existing tables are left alone.
    """
    with open_context() as ctx:
        console.print(f"[green]Database ready:[/green] {ctx.settings.DATABASE_URL}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload on code changes"),
):
    """
    Start the release API server.

    Swagger UI available at: http://localhost:8000/docs

    Examples:
        dth-release serve
        dth-release serve --port 3000
        dth-release serve --reload (for development)
    """
    import uvicorn

    console.print(Panel.fit(
        "[bold green]DTH Release API Server[/bold green]\n\n"
        f"Starting server on http://{host}:{port}\n\n"
        "[cyan]Endpoints:[/cyan]\n"
        "  • Swagger UI: /docs\n"
        "  • Loads: /api/loads\n"
        "  • Verification: /api/verify/{token}\n\n"
        "[dim]Press Ctrl+C to stop[/dim]",
        title="Server Mode",
    ))

    try:
        uvicorn.run(
            "dth_release.server:create_app",
            factory=True,
            host=host,
            port=port,
            reload=reload,
            log_level="info",
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped by user[/yellow]")


# =============================================================================
# Load Commands
# =============================================================================

@app.command()
def loads(
    status: Optional[LoadStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
):
    """List loads, newest first."""
    with open_context() as ctx:
        items = ctx.loads.list_loads(status=status)
        timezone = ctx.settings.DISPLAY_TIMEZONE

    if not items:
        console.print("[yellow]No loads found.[/yellow]")
        return

    table = Table(title=f"Loads ({len(items)})")
    table.add_column("ID", style="dim")
    table.add_column("Load ID", style="cyan")
    table.add_column("Status")
    table.add_column("Pickup")
    table.add_column("Vehicle")
    table.add_column("Window End")

    for load in items:
        table.add_row(
            str(load.id),
            load.load_id,
            _status(load.status),
            (load.pickup_location or "")[:30],
            load.vehicle_info[:30],
            format_display_time(load.pickup_window_end, timezone),
        )

    console.print(table)


@app.command()
def show(load_pk: int = typer.Argument(..., help="Internal load id")):
    """Show one load, including its PIN."""
    with open_context() as ctx:
        load = ctx.loads.get_load_by_id(load_pk)
        _print_load(load, ctx.settings.DISPLAY_TIMEZONE)


@app.command()
def validate(load_pk: int = typer.Argument(..., help="Internal load id")):
    """Validate a DRAFT load and notify dispatch."""
    with open_context() as ctx:
        load = ctx.loads.validate(load_pk)
    console.print(f"[green]Load {load.load_id} validated.[/green]")


@app.command()
def void(load_pk: int = typer.Argument(..., help="Internal load id")):
    """Void a load."""
    with open_context() as ctx:
        load = ctx.loads.void(load_pk)
    console.print(f"[red]Load {load.load_id} voided.[/red]")


@app.command()
def logs():
    """Show release confirmations, newest first."""
    with open_context() as ctx:
        entries = ctx.loads.get_release_logs()
        timezone = ctx.settings.DISPLAY_TIMEZONE

    if not entries:
        console.print("[yellow]No releases recorded yet.[/yellow]")
        return

    table = Table(title="Release Log")
    table.add_column("Load ID", style="cyan")
    table.add_column("Pickup")
    table.add_column("Confirmed By", style="green")
    table.add_column("Time")

    for entry in entries:
        table.add_row(
            entry.load_id,
            entry.pickup_location or "-",
            entry.confirmed_by or "-",
            format_display_time(entry.timestamp, timezone),
        )

    console.print(table)


@app.command()
def stats():
    """Show load counts per status."""
    with open_context() as ctx:
        db_stats = ctx.repository.get_stats()

    table = Table(title="Loads")
    table.add_column("Status", style="cyan")
    table.add_column("Count", style="green")

    table.add_row("Total", str(db_stats["total"]))
    for status in LoadStatus:
        table.add_row(_status(status), str(db_stats[status.value.lower()]))
    table.add_row("Releases", str(db_stats["releases"]))

    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================

def main():
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
