"""CLI commands for board ordering: board, move, rebalance, rank."""

from __future__ import annotations

import json as json_mod
from typing import Any

import click

from lexiboard.cli_common import fail, get_db
from lexiboard.numeric_ranking import NumericRank
from lexiboard.ordering import RebalanceConflictError
from lexiboard.ranking import LexoRank, OrderingError, RankEngine


@click.command()
@click.option("--project", default=None, help="Project key (default: config prefix)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def board(project: str | None, as_json: bool) -> None:
    """Show the board, column by column in rank order."""
    with get_db() as db:
        result = db.get_board(project)
        if as_json:
            click.echo(json_mod.dumps(result, indent=2, default=str))
            return
        for column in result["columns"]:
            click.echo(f"== {column['status']} ({len(column['issues'])}) ==")
            for issue in column["issues"]:
                click.echo(f"  {issue['rank']:<10} {issue['id']:<24} {issue['title']}")


@click.command()
@click.argument("issue_id")
@click.argument("status")
@click.option("--before-id", default=None, help="Issue that should sit directly above the moved one")
@click.option("--after-id", default=None, help="Issue that should sit directly below the moved one")
@click.option("--project", default=None, help="Target project (default: the issue's own)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def move(
    ctx: click.Context,
    issue_id: str,
    status: str,
    before_id: str | None,
    after_id: str | None,
    project: str | None,
    as_json: bool,
) -> None:
    """Move ISSUE_ID into column STATUS (end of column without neighbours)."""
    with get_db() as db:
        try:
            result = db.move_issue(
                issue_id,
                status,
                before_id=before_id,
                after_id=after_id,
                project=project,
                actor=ctx.obj["actor"],
            )
        except KeyError:
            fail(f"Not found: {issue_id}", as_json=as_json)
        except ValueError as e:
            fail(str(e), as_json=as_json)
        if as_json:
            click.echo(json_mod.dumps(result.to_dict(), indent=2, default=str))
            return
        click.echo(f"Moved {issue_id}: {result.previous_collection.status} -> {status} @ {result.key}")
        if result.rebalance_suggested:
            click.echo(f"Column {status} is queued for rebalancing (run: lexiboard rebalance --pending)")


@click.command()
@click.argument("status", required=False)
@click.option("--pending", is_flag=True, help="Rebalance every queued column")
@click.option("--project", default=None, help="Project key (default: config prefix)")
@click.option("--attempts", default=3, type=click.IntRange(min=1), help="Tries on concurrent changes (default 3)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def rebalance(status: str | None, pending: bool, project: str | None, attempts: int, as_json: bool) -> None:
    """Respace ranks in column STATUS, or in every queued column with --pending."""
    if pending and status is not None:
        fail("Give either STATUS or --pending, not both", as_json=as_json)
    with get_db() as db:
        if pending:
            outcomes = db.run_pending_rebalances(attempts=attempts)
            if as_json:
                click.echo(json_mod.dumps(outcomes, indent=2))
                return
            if not outcomes:
                click.echo("No columns queued for rebalancing.")
            for outcome in outcomes:
                label = f"{outcome['project']}/{outcome['status']}"
                if outcome["rebalanced"] is None:
                    click.echo(f"  {label}: skipped ({outcome['error']})", err=True)
                else:
                    click.echo(f"  {label}: {outcome['rebalanced']} issue(s) rebalanced")
            return

        if status is None:
            fail("Give a column STATUS or --pending", as_json=as_json)
        try:
            ranks = db.rebalance_column(status, project=project, attempts=attempts)
        except RebalanceConflictError as e:
            fail(str(e), as_json=as_json, code="REBALANCE_CONFLICT")
        except ValueError as e:
            fail(str(e), as_json=as_json)
        if as_json:
            click.echo(json_mod.dumps({"status": status, "rebalanced": len(ranks), "ranks": ranks}, indent=2))
        else:
            click.echo(f"Rebalanced {len(ranks)} issue(s) in {status}")


# ---------------------------------------------------------------------------
# Rank-key calculator
# ---------------------------------------------------------------------------


@click.group()
@click.option("--numeric", is_flag=True, help="Use integer keys instead of strings")
@click.option("--alphabet", default=None, help="Custom code-point-sorted alphabet for string keys")
@click.pass_context
def rank(ctx: click.Context, numeric: bool, alphabet: str | None) -> None:
    """Compute rank keys without touching the board."""
    ctx.ensure_object(dict)
    engine: RankEngine[Any]
    if numeric:
        if alphabet is not None:
            raise click.UsageError("--alphabet only applies to string keys")
        engine = NumericRank()
    else:
        try:
            engine = LexoRank(alphabet) if alphabet is not None else LexoRank()
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--alphabet") from e
    ctx.obj["engine"] = engine
    ctx.obj["numeric"] = numeric


def _key(ctx: click.Context, raw: str) -> Any:
    if not ctx.obj["numeric"]:
        return raw
    try:
        return int(raw)
    except ValueError:
        raise click.BadParameter(f"{raw!r} is not an integer key") from None


def _emit(ctx: click.Context, compute: Any) -> None:
    engine: RankEngine[Any] = ctx.obj["engine"]
    try:
        key = compute(engine)
    except OrderingError as e:
        fail(str(e))
    click.echo(str(key))
    if engine.needs_rebalance(key):
        click.echo(f"note: key depth {engine.depth(key)} exceeds the rebalance threshold", err=True)


@rank.command("initial")
@click.pass_context
def rank_initial(ctx: click.Context) -> None:
    """Key for the first item of an empty column."""
    _emit(ctx, lambda engine: engine.initial())


@rank.command("before")
@click.argument("key")
@click.pass_context
def rank_before(ctx: click.Context, key: str) -> None:
    """Key that sorts before KEY."""
    _emit(ctx, lambda engine: engine.before(_key(ctx, key)))


@rank.command("after")
@click.argument("key")
@click.pass_context
def rank_after(ctx: click.Context, key: str) -> None:
    """Key that sorts after KEY."""
    _emit(ctx, lambda engine: engine.after(_key(ctx, key)))


@rank.command("between")
@click.argument("lower")
@click.argument("upper")
@click.pass_context
def rank_between(ctx: click.Context, lower: str, upper: str) -> None:
    """Key that sorts strictly between LOWER and UPPER."""
    _emit(ctx, lambda engine: engine.between(_key(ctx, lower), _key(ctx, upper)))


@rank.command("spaced")
@click.argument("count", type=click.IntRange(min=1))
@click.pass_context
def rank_spaced(ctx: click.Context, count: int) -> None:
    """COUNT evenly spaced keys, as a rebalance would assign them."""
    engine: RankEngine[Any] = ctx.obj["engine"]
    try:
        keys = engine.spaced_keys(count)
    except ValueError as e:
        fail(str(e))
    for key in keys:
        click.echo(str(key))


def register(cli: click.Group) -> None:
    """Register board and rank commands with the CLI group."""
    cli.add_command(board)
    cli.add_command(move)
    cli.add_command(rebalance)
    cli.add_command(rank)

