"""
Root Typer application for the schema-spine CLI.

``schemaspine run`` is what a deploy script calls: it bootstraps the host,
acts as the administrative user and runs every watched migration regardless
of modification times. It exits non-zero only when the bootstrap fails;
failing migrations are reported but do not fail the command.
"""

from __future__ import annotations

from pathlib import Path

import typer
from typer import Typer

from schemaspine.cli.utils import (
    bootstrap_or_exit,
    console,
    err_console,
    load_settings,
    output_report,
    output_status,
)
from schemaspine.core.enums import OutputMode, RecordFormat
from schemaspine.core.errors import SchemaSpineError

app = Typer(
    name="schemaspine",
    help="schema-spine: declarative schema migrations for content stores.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Shared options ───────────────────────────────────────────────────────

SiteDirOpt = typer.Option(None, "--site-dir", help="Directory holding migrate.[yaml|json|py].")
ModulesDirOpt = typer.Option(None, "--modules-dir", help="Directory of <name>/<name>.migrate.* files.")
StateFileOpt = typer.Option(None, "--state-file", help="File persisting the last-run timestamp.")
StoreOpt = typer.Option(None, "--store", help="Store factory as module:callable.")
OutputModeOpt = typer.Option(None, "--output-mode", "-m", help="quiet, verbose or debug.")
JsonOpt = typer.Option(False, "--json", help="Output as JSON.")


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("schema-spine")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"schema-spine {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """schema-spine CLI: run, inspect and record schema migrations."""


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("run")
def run_cmd(
    site_dir: Path | None = SiteDirOpt,
    modules_dir: Path | None = ModulesDirOpt,
    state_file: Path | None = StateFileOpt,
    store: str | None = StoreOpt,
    output_mode: OutputMode | None = OutputModeOpt,
    as_json: bool = JsonOpt,
) -> None:
    """Run all watched migrations now."""
    settings = load_settings(
        site_dir=site_dir,
        modules_dir=modules_dir,
        state_file=state_file,
        output_mode=output_mode,
        store_factory=store,
    )
    service = bootstrap_or_exit(settings)
    try:
        report = service.run(force=True)
    except SchemaSpineError as e:
        # debug mode aborts the run; only a failed bootstrap exits non-zero
        err_console.print(f"[bold red]Run aborted:[/bold red] {e.message}")
        return
    finally:
        service.finish_request()
    output_report(report, as_json=as_json)


@app.command("status")
def status_cmd(
    site_dir: Path | None = SiteDirOpt,
    modules_dir: Path | None = ModulesDirOpt,
    state_file: Path | None = StateFileOpt,
    store: str | None = StoreOpt,
    as_json: bool = JsonOpt,
) -> None:
    """Show last run, latest change and the watchlist."""
    settings = load_settings(
        site_dir=site_dir, modules_dir=modules_dir, state_file=state_file, store_factory=store
    )
    service = bootstrap_or_exit(settings)
    output_status(service.status(), as_json=as_json)


@app.command("reset")
def reset_cmd(
    state_file: Path | None = StateFileOpt,
    store: str | None = StoreOpt,
) -> None:
    """Zero the last-run timestamp so the next evaluation runs migrations."""
    settings = load_settings(state_file=state_file, store_factory=store)
    service = bootstrap_or_exit(settings)
    service.reset()
    console.print("[green]✓[/green] Last run reset")


@app.command("record")
def record_cmd(
    path: Path = typer.Argument(..., help="Output file."),
    fmt: RecordFormat = typer.Option(RecordFormat.YAML, "--format", "-f", help="yaml or json."),
    include_system: bool = typer.Option(False, "--include-system", help="Include system entities."),
    migrate: bool = typer.Option(False, "--migrate", help="Run migrations before recording."),
    site_dir: Path | None = SiteDirOpt,
    modules_dir: Path | None = ModulesDirOpt,
    state_file: Path | None = StateFileOpt,
    store: str | None = StoreOpt,
) -> None:
    """Write a snapshot of the store's fields and types to a file."""
    settings = load_settings(
        site_dir=site_dir, modules_dir=modules_dir, state_file=state_file, store_factory=store
    )
    service = bootstrap_or_exit(settings)
    if migrate:
        try:
            service.run(force=True)
        except SchemaSpineError as e:
            err_console.print(f"[bold red]Run aborted:[/bold red] {e.message}")
            return
    service.recorder.record(path, fmt, include_system)
    written = service.recorder.flush()
    for target in written:
        console.print(f"[green]✓[/green] Recorded {target}")
