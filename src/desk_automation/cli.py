"""CLI entry points for desk-automation.

Commands:
    desk-automation run           Run the engine until interrupted
    desk-automation capabilities  List capabilities available on this system
    desk-automation rules         List stored automation rules
    desk-automation sun           Show today's sunrise and sunset
"""

import asyncio
import json
import logging
import signal
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from desk_automation.capabilities.registry import CapabilityRegistry
from desk_automation.core.errors import ConfigurationError
from desk_automation.core.orchestrator import AutomationOrchestrator
from desk_automation.logging_setup import configure_logging
from desk_automation.scheduling.solar import SolarTimeCalculator
from desk_automation.storage.backends import YamlFileBackend
from desk_automation.storage.store import ConfigurationStore

DEFAULT_CONFIG_PATH = Path("~/.config/desk-automation/config.yaml")
CONFIG_ENV_VAR = "DESK_AUTOMATION_CONFIG"

console = Console()
app = typer.Typer(
    name="desk-automation",
    help="Scheduled automations for desk hardware.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)


@app.callback()
def main(
    ctx: typer.Context,
    config: Path = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--config",
        "-c",
        envvar=CONFIG_ENV_VAR,
        help="Configuration file (YAML)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Scheduled automations for desk hardware."""
    configure_logging(verbose)
    ctx.obj = {"config": config.expanduser(), "verbose": verbose}


def _load_store(ctx: typer.Context) -> ConfigurationStore:
    store = ConfigurationStore(YamlFileBackend(ctx.obj["config"]))
    try:
        store.load()
    except ConfigurationError as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(1)
    return store


# ------------------------------------------------------------------
# desk-automation run
# ------------------------------------------------------------------


@app.command()
def run(ctx: typer.Context) -> None:
    """Run the automation engine until interrupted."""
    store = _load_store(ctx)
    if store.settings.verbose_logging and not ctx.obj["verbose"]:
        configure_logging(verbose=True)

    engine = AutomationOrchestrator(store)
    try:
        asyncio.run(_run_engine(engine))
    except ConfigurationError as e:
        console.print(f"[red]Failed to start:[/red] {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        pass


async def _run_engine(engine: AutomationOrchestrator) -> None:
    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except NotImplementedError:
            # Signal handlers are unavailable on this platform; Ctrl-C still
            # raises KeyboardInterrupt
            pass

    await engine.start()
    console.print(
        f"[green]Engine running[/green] with {len(engine.active_automations)} automations. "
        "Press Ctrl-C to stop."
    )
    try:
        await stop_requested.wait()
    finally:
        await engine.stop()
        console.print("[dim]Engine stopped[/dim]")


# ------------------------------------------------------------------
# desk-automation capabilities
# ------------------------------------------------------------------


@app.command()
def capabilities(
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """List capabilities available on this system."""
    registry = CapabilityRegistry()
    registry.discover()
    descriptors = registry.list_descriptors()

    if json_output:
        print(json.dumps([d.to_dict() for d in descriptors], indent=2))
        return

    if not descriptors:
        console.print("[yellow]No compatible capabilities found[/yellow]")
    else:
        table = Table(title="Capabilities")
        table.add_column("ID", style="cyan")
        table.add_column("Name")
        table.add_column("Version")
        table.add_column("Actions")
        for d in descriptors:
            table.add_row(d.id, d.display_name, d.version, ", ".join(a.id for a in d.actions))
        console.print(table)

    for capability_id, reason in sorted(registry.failures.items()):
        console.print(f"[dim]{capability_id} unavailable: {reason}[/dim]")


# ------------------------------------------------------------------
# desk-automation rules
# ------------------------------------------------------------------


@app.command()
def rules(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """List stored automation rules."""
    store = _load_store(ctx)
    stored = store.rules

    if json_output:
        print(json.dumps([r.to_dict() for r in stored], indent=2))
        return

    if not stored:
        console.print("[yellow]No automation rules[/yellow]")
        return

    table = Table(title="Automation Rules")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Trigger")
    table.add_column("Action")
    table.add_column("Status")

    for r in stored:
        status = "[green]enabled[/green]" if r.enabled else "[yellow]disabled[/yellow]"
        table.add_row(
            r.id[:12],
            r.name,
            r.trigger.display_name,
            f"{r.capability_id}.{r.action}",
            status,
        )

    console.print(table)


# ------------------------------------------------------------------
# desk-automation sun
# ------------------------------------------------------------------


@app.command()
def sun(
    ctx: typer.Context,
    latitude: Optional[float] = typer.Option(None, "--lat", help="Latitude (degrees north)"),
    longitude: Optional[float] = typer.Option(None, "--lon", help="Longitude (degrees east)"),
    day: Optional[datetime] = typer.Option(
        None, "--date", formats=["%Y-%m-%d"], help="Date (default: today)"
    ),
) -> None:
    """Show sunrise and sunset for the configured or given coordinates."""
    tz = None
    if latitude is None or longitude is None:
        settings = _load_store(ctx).settings
        if not settings.has_location:
            console.print("[red]No location configured;[/red] pass --lat and --lon")
            raise typer.Exit(1)
        latitude, longitude = settings.coordinates
        tz = settings.tzinfo()

    calculator = SolarTimeCalculator(latitude, longitude, tz)
    target: date = day.date() if day else date.today()

    sunrise = calculator.sunrise(target)
    sunset = calculator.sunset(target)

    console.print(f"[bold]{target.isoformat()}[/bold] at {latitude:.4f}, {longitude:.4f}")
    console.print(f"  Sunrise: {sunrise.strftime('%H:%M') if sunrise else 'none (polar day/night)'}")
    console.print(f"  Sunset:  {sunset.strftime('%H:%M') if sunset else 'none (polar day/night)'}")
