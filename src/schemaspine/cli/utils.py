"""
CLI utility helpers: host bootstrap and output formatting.
"""

from __future__ import annotations

import importlib
import json
from datetime import UTC, datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from schemaspine.core.enums import OutputMode
from schemaspine.core.errors import BootstrapError
from schemaspine.core.logging import configure_logging
from schemaspine.core.settings import SchemaSpineSettings, get_settings
from schemaspine.reconcile.store import ContentStore
from schemaspine.service import SchemaSpine, ServiceStatus
from schemaspine.watch.runner import RunReport

console = Console()
err_console = Console(stderr=True)


# ── Bootstrap ────────────────────────────────────────────────────────────


def load_settings(
    *,
    site_dir: Path | None = None,
    modules_dir: Path | None = None,
    state_file: Path | None = None,
    output_mode: OutputMode | None = None,
    store_factory: str | None = None,
) -> SchemaSpineSettings:
    """Cached settings with command-line overrides applied."""
    overrides = {
        "site_dir": site_dir,
        "modules_dir": modules_dir,
        "state_file": state_file,
        "output_mode": output_mode,
        "store_factory": store_factory,
    }
    return get_settings().model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )


def load_store(factory: str) -> ContentStore:
    """Build the content store from a ``module:callable`` reference."""
    module_name, sep, attr = factory.partition(":")
    if not sep or not module_name or not attr:
        raise BootstrapError(f"Store factory must look like 'module:callable', got {factory!r}")
    try:
        module = importlib.import_module(module_name)
        builder = getattr(module, attr)
        store = builder()
    except BootstrapError:
        raise
    except Exception as e:
        raise BootstrapError(f"Could not build store from {factory}: {e}", cause=e) from e
    if not isinstance(store, ContentStore):
        raise BootstrapError(f"{factory} did not return a content store")
    return store


def make_service(settings: SchemaSpineSettings) -> SchemaSpine:
    """Bootstrap the host: logging, store and an elevated, started service.

    Raises:
        BootstrapError: The store could not be constructed.
    """
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_format == "json",
    )
    store = load_store(settings.store_factory)
    service = SchemaSpine(store, settings)
    service.elevate()
    service.start()
    return service


def bootstrap_or_exit(settings: SchemaSpineSettings) -> SchemaSpine:
    try:
        return make_service(settings)
    except BootstrapError as e:
        err_console.print(f"[bold red]Bootstrap failed:[/bold red] {e.message}")
        raise typer.Exit(code=1) from e


# ── Output helpers ───────────────────────────────────────────────────────


def format_timestamp(value: int) -> str:
    if not value:
        return "never"
    stamp = datetime.fromtimestamp(value, tz=UTC).strftime("%Y-%m-%d %H:%M:%S")
    return f"{stamp} ({value})"


def output_report(report: RunReport, *, as_json: bool = False) -> None:
    if as_json:
        console.print_json(
            json.dumps(
                {
                    "due": report.due,
                    "executed": report.executed,
                    "skipped": report.skipped,
                    "failed": report.failed,
                }
            )
        )
        return
    if not report.due:
        console.print("[dim]Nothing to do.[/dim]")
        return
    console.print(
        f"[green]Executed {len(report.executed)}[/green], "
        f"skipped {len(report.skipped)}, "
        f"[red]failed {len(report.failed)}[/red]"
    )
    for key in report.failed:
        console.print(f"  [red]✗[/red] {key}")


def output_status(status: ServiceStatus, *, as_json: bool = False) -> None:
    if as_json:
        console.print_json(json.dumps(status.to_dict(), default=str))
        return

    console.print(f"Last run:      {format_timestamp(status.last_run)}")
    console.print(f"Latest change: {format_timestamp(status.latest_change)}")
    console.print(f"Due:           {'[yellow]yes[/yellow]' if status.due else 'no'}")

    if not status.entries:
        console.print("[dim]No watched files.[/dim]")
        return

    table = Table(title="Watchlist")
    table.add_column("Priority", justify="right")
    table.add_column("Kind")
    table.add_column("Migrate")
    table.add_column("Key")
    for entry in status.entries:
        table.add_row(
            f"{entry.priority:g}",
            entry.kind.value,
            "yes" if entry.should_reconcile else "watch",
            entry.key,
        )
    console.print(table)

