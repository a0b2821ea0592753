"""Shared CLI helpers.

Provides ``get_db()`` and ``fail()`` so that both the main ``cli.py`` and
the ``cli_commands/*.py`` modules can access them without circular imports.
"""

from __future__ import annotations

import json as json_mod
import sys
from typing import NoReturn

import click

from lexiboard.core import LEXIBOARD_DIR_NAME, BoardDB, find_lexiboard_root
from lexiboard.logging import setup_logging


def get_db() -> BoardDB:
    """Discover .lexiboard/ and return an initialized BoardDB."""
    try:
        lexiboard_dir = find_lexiboard_root()
    except FileNotFoundError:
        click.echo(f"No {LEXIBOARD_DIR_NAME}/ found. Run 'lexiboard init' first.", err=True)
        sys.exit(1)
    setup_logging(lexiboard_dir)
    try:
        return BoardDB.from_config(lexiboard_dir)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def fail(message: str, *, as_json: bool = False, **details: object) -> NoReturn:
    """Report an error the way every command does and exit 1."""
    if as_json:
        click.echo(json_mod.dumps({"error": message, **details}))
    else:
        click.echo(f"Error: {message}", err=True)
    sys.exit(1)
