"""
plaidsync CLI — command-line interface.

Usage:
    plaidsync run --config config.yaml
    plaidsync accounts --config config.yaml --months 12 --stdout
    plaidsync render widgets rows.json
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from plaidsync import __version__

if TYPE_CHECKING:
    from plaidsync.sync import SyncResult

app = typer.Typer(
    name="plaidsync",
    help="Sync Plaid data into MySQL upsert files",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold]plaidsync[/bold] v{__version__}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """plaidsync — Plaid data as idempotent SQL."""


def _execute(
    config: str,
    output: str | None,
    months: int | None,
    stdout: bool,
    verbose: bool,
    *,
    categories: bool,
    accounts: bool,
) -> None:
    from plaidsync.exporters.writer import StreamTableWriter
    from plaidsync.sync import PlaidSync

    _setup_logging(verbose)

    if not Path(config).exists():
        console.print(f"[red]Error: config file not found: {config}[/red]")
        raise typer.Exit(1)

    try:
        sync = PlaidSync.from_config(config, output_dir=output, history_months=months)
    except (ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error: invalid configuration in {config}[/red]")
        console.print(str(e))
        raise typer.Exit(1) from e

    if stdout:
        sync.writer = StreamTableWriter(sys.stdout)

    if accounts and not sync.config.plaid.institution_tokens:
        console.print("[yellow]No institution tokens configured; account tables will be empty[/yellow]")

    result = sync.run_sync(categories=categories, accounts=accounts)
    _display_result(result, sync.config.output_dir if not stdout else None)

    if not result.ok:
        raise typer.Exit(1)


@app.command()
def run(
    config: str = typer.Option("config.yaml", "--config", "-c", help="Path to config file (YAML or JSON)"),
    output: str = typer.Option(None, "--output", "-o", help="Output directory for .sql files"),
    months: int = typer.Option(None, "--months", "-m", min=1, help="Transaction history window in months"),
    stdout: bool = typer.Option(False, "--stdout", help="Print SQL to stdout instead of writing files"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Sync categories and all configured institutions."""
    console.print(Panel.fit("[bold blue]plaidsync[/bold blue] — Full Sync", subtitle=f"v{__version__}"))
    _execute(config, output, months, stdout, verbose, categories=True, accounts=True)


@app.command()
def categories(
    config: str = typer.Option("config.yaml", "--config", "-c", help="Path to config file (YAML or JSON)"),
    output: str = typer.Option(None, "--output", "-o", help="Output directory for .sql files"),
    stdout: bool = typer.Option(False, "--stdout", help="Print SQL to stdout instead of writing files"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Sync the Plaid category taxonomy only."""
    _execute(config, output, None, stdout, verbose, categories=True, accounts=False)


@app.command()
def accounts(
    config: str = typer.Option("config.yaml", "--config", "-c", help="Path to config file (YAML or JSON)"),
    output: str = typer.Option(None, "--output", "-o", help="Output directory for .sql files"),
    months: int = typer.Option(None, "--months", "-m", min=1, help="Transaction history window in months"),
    stdout: bool = typer.Option(False, "--stdout", help="Print SQL to stdout instead of writing files"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Sync institutions, accounts and transactions only."""
    _execute(config, output, months, stdout, verbose, categories=False, accounts=True)


@app.command()
def render(
    table: str = typer.Argument(..., help="Target table name"),
    rows_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON array of row objects"),
) -> None:
    """Render a JSON array of rows as an upsert statement on stdout."""
    from plaidsync.exporters.sql import serialize

    rows = json.loads(rows_file.read_text(encoding="utf-8"))
    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        console.print("[red]Error: rows file must contain a JSON array of objects[/red]")
        raise typer.Exit(1)

    sql_text = serialize(table, rows)
    if sql_text:
        typer.echo(sql_text)


def _display_result(result: SyncResult, output_dir: str | None) -> None:
    """Display sync outcome in the terminal."""
    table = Table(title="Sync Summary", show_lines=True)
    table.add_column("Sync", style="bold")
    table.add_column("Status")

    for name in result.tables:
        target = f"{output_dir}/{name}.sql" if output_dir else "stdout"
        table.add_row(name, f"[green]✓[/green] {target}")
    for name, error in result.errors.items():
        table.add_row(name, f"[red]✗ {error}[/red]")

    console.print(table)


if __name__ == "__main__":
    app()
