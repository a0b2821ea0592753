"""CLI commands for admin: init, dashboard."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from lexiboard.core import (
    DB_FILENAME,
    DEFAULT_COLUMNS,
    LEXIBOARD_DIR_NAME,
    BoardDB,
    read_config,
    write_config,
)
from lexiboard.types.core import ProjectConfig
from lexiboard.validation import normalize_columns


@click.command()
@click.option("--prefix", default=None, help="ID prefix for issues (default: directory name)")
@click.option(
    "--column",
    "columns",
    multiple=True,
    help=f"Board column, in order (repeatable; default: {', '.join(DEFAULT_COLUMNS)})",
)
@click.option(
    "--rebalance-threshold",
    default=None,
    type=click.IntRange(min=1),
    help="Rank length that triggers a rebalance (default 8)",
)
def init(prefix: str | None, columns: tuple[str, ...], rebalance_threshold: int | None) -> None:
    """Initialize .lexiboard/ in the current directory."""
    cwd = Path.cwd()
    lexiboard_dir = cwd / LEXIBOARD_DIR_NAME

    if lexiboard_dir.exists():
        click.echo(f"{LEXIBOARD_DIR_NAME}/ already exists in {cwd}")
        # Still ensure DB is initialized
        BoardDB.from_config(lexiboard_dir).close()
        return

    try:
        column_list = normalize_columns(list(columns)) if columns else list(DEFAULT_COLUMNS)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    prefix = prefix or cwd.name
    lexiboard_dir.mkdir()

    config = ProjectConfig(prefix=prefix, version=1, columns=column_list)
    if rebalance_threshold is not None:
        config["rebalance_threshold"] = rebalance_threshold
    write_config(lexiboard_dir, config)

    with BoardDB.from_config(lexiboard_dir):
        pass

    click.echo(f"Initialized {LEXIBOARD_DIR_NAME}/ in {cwd}")
    click.echo(f"  Prefix: {prefix}")
    click.echo(f"  Columns: {', '.join(read_config(lexiboard_dir).get('columns', column_list))}")
    click.echo(f"  Database: {lexiboard_dir / DB_FILENAME}")


@click.command()
@click.option("--port", default=8377, type=int, help="Server port (default 8377)")
@click.option("--no-browser", is_flag=True, help="Don't auto-open browser")
def dashboard(port: int, no_browser: bool) -> None:
    """Launch the web dashboard and JSON API."""
    from lexiboard.dashboard import main as dashboard_main

    dashboard_main(port=port, no_browser=no_browser)


def register(cli: click.Group) -> None:
    """Register admin commands with the CLI group."""
    cli.add_command(init)
    cli.add_command(dashboard)
