"""Command-line interface for rekap."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .config import RekapConfig, load_config, save_config
from .models import Snapshot
from .paths import get_config_path

app = typer.Typer(help="Daily activity recap for macOS.")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Location of the YAML config file.",
    ),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    ctx.obj = load_config(config_path)
    ctx.meta["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        _emit(_collect(ctx.obj), as_json=False, quiet=False)


def _collect(config: RekapConfig) -> Snapshot:
    from .collector import SnapshotCollector

    return SnapshotCollector(config).collect()


def _emit(snapshot: Snapshot, *, as_json: bool, quiet: bool, title: Optional[str] = None) -> None:
    if as_json and quiet:
        typer.echo("--json and --quiet cannot be combined.", err=True)
        raise typer.Exit(code=2)
    if as_json:
        from .schemas import render_json

        typer.echo(render_json(snapshot))
        return
    if quiet:
        from .reporting import quiet_lines

        for line in quiet_lines(snapshot):
            typer.echo(line)
        return

    from .reporting import SummaryPrinter

    printer = SummaryPrinter(snapshot)
    if title:
        printer.print_daily_summary(title)
    else:
        printer.print_daily_summary()


@app.command()
def summary(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Print the JSON document."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Print key=value lines."),
) -> None:
    """Collect today's activity and print a summary (the default command)."""
    _emit(_collect(ctx.obj), as_json=as_json, quiet=quiet)


@app.command()
def demo(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Print the JSON document."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Print key=value lines."),
) -> None:
    """Render a fixed sample day without reading any local data."""
    from .demo import build_demo_snapshot

    _emit(
        build_demo_snapshot(ctx.obj),
        as_json=as_json,
        quiet=quiet,
        title="🎭 rekap demo mode",
    )


@app.command()
def doctor() -> None:
    """Show which data sources the current permissions allow."""
    from .permissions import check_capabilities, format_capabilities

    typer.echo("rekap capabilities:")
    typer.echo(format_capabilities(check_capabilities()))


@app.command()
def init() -> None:
    """Open System Settings where missing permissions can be granted."""
    from .permissions import (
        ACCESSIBILITY_PANE,
        FULL_DISK_ACCESS_PANE,
        check_capabilities,
        format_capabilities,
        open_settings_pane,
    )

    caps = check_capabilities()
    if not caps.full_disk_access:
        typer.echo("Full Disk Access enables app usage, screen time and focus streaks.")
        typer.echo("Enable it for your terminal app under Privacy & Security.")
        open_settings_pane(FULL_DISK_ACCESS_PANE)
    if not caps.accessibility:
        typer.echo("Accessibility enables frontmost-app detection.")
        open_settings_pane(ACCESSIBILITY_PANE)
    if caps.full_disk_access and caps.accessibility:
        typer.echo("All permissions already granted.")
    typer.echo()
    typer.echo(format_capabilities(caps))


@app.command("config")
def config_command(
    ctx: typer.Context,
    write: bool = typer.Option(
        False, "--write", help="Write the active settings to the config file."
    ),
) -> None:
    """Print the config file location, optionally writing current settings to it."""
    if write:
        path = save_config(ctx.obj, ctx.meta.get("config_path"))
        typer.echo(f"Wrote {path}")
    else:
        typer.echo(str(ctx.meta.get("config_path") or get_config_path()))


@app.command()
def web(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the dashboard."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the dashboard."
    ),
    open_browser: bool = typer.Option(
        True,
        "--open-browser/--no-open-browser",
        help="Automatically open the summary in your default browser.",
    ),
    demo: bool = typer.Option(
        False, "--demo", help="Open the sample day instead of live data."
    ),
) -> None:
    """Serve the summary, status and doctor endpoints locally."""
    from .server_runner import run_dashboard

    run_dashboard(
        host=host, port=port, config=ctx.obj, open_browser=open_browser, demo=demo
    )
