"""CLI for the lexiboard kanban board.

Convention-based: discovers .lexiboard/ by walking up from cwd.

Usage:
    lexiboard init                                   # Initialize .lexiboard/ in cwd
    lexiboard create "Fix the bug" --status=todo     # Create issue at the end of a column
    lexiboard show <id>                              # Show issue details
    lexiboard list --status=todo                     # List issues in board order
    lexiboard update <id> --priority=high            # Update issue fields
    lexiboard delete <id>                            # Delete issue
    lexiboard board                                  # Print the board
    lexiboard move <id> done --after-id=<other>      # Move issue between/within columns
    lexiboard rebalance todo                         # Respace ranks in one column
    lexiboard rebalance --pending                    # Drain the rebalance queue
    lexiboard rank between 1 3                       # Rank-key calculator
    lexiboard dashboard                              # Web dashboard + JSON API
"""

from __future__ import annotations

import click

from lexiboard import __version__
from lexiboard.cli_commands import admin, board, issues


@click.group()
@click.version_option(version=__version__, prog_name="lexiboard")
@click.option("--actor", default="cli", help="Actor identity for audit trail (default: cli)")
@click.pass_context
def cli(ctx: click.Context, actor: str) -> None:
    """Lexiboard: kanban board with lexicographic ranks."""
    from lexiboard.validation import sanitize_actor

    cleaned, err = sanitize_actor(actor)
    if err:
        raise click.BadParameter(err, param_hint="--actor")
    ctx.ensure_object(dict)
    ctx.obj["actor"] = cleaned


admin.register(cli)
issues.register(cli)
board.register(cli)


def main() -> None:
    """Entry point for the lexiboard CLI."""
    cli()


if __name__ == "__main__":
    main()
