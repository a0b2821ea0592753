"""CLI commands for issue CRUD: create, show, list, update, delete."""

from __future__ import annotations

import json as json_mod

import click

from lexiboard.cli_common import fail, get_db
from lexiboard.core import ISSUE_PRIORITIES, ISSUE_TYPES


@click.command()
@click.argument("title")
@click.option("--status", "-s", default=None, help="Column to create the issue in (default: first column)")
@click.option("--type", "issue_type", default="task", type=click.Choice(sorted(ISSUE_TYPES)), help="Issue type")
@click.option("--priority", "-p", default="medium", type=click.Choice(sorted(ISSUE_PRIORITIES)), help="Priority")
@click.option("--assignee", default="", help="Assignee")
@click.option("--description", "-d", default="", help="Description")
@click.option("--project", default=None, help="Project key (default: config prefix)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def create(
    ctx: click.Context,
    title: str,
    status: str | None,
    issue_type: str,
    priority: str,
    assignee: str,
    description: str,
    project: str | None,
    as_json: bool,
) -> None:
    """Create a new issue at the end of its column."""
    with get_db() as db:
        try:
            issue = db.create_issue(
                title,
                status=status,
                type=issue_type,
                priority=priority,
                assignee=assignee,
                description=description,
                project=project,
                actor=ctx.obj["actor"],
            )
        except ValueError as e:
            fail(str(e), as_json=as_json)
        if as_json:
            click.echo(json_mod.dumps(issue.to_dict(), indent=2, default=str))
        else:
            click.echo(f"Created {issue.id}: {issue.title} [{issue.status} @ {issue.rank}]")


@click.command()
@click.argument("issue_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show(issue_id: str, as_json: bool) -> None:
    """Show issue details."""
    with get_db() as db:
        try:
            issue = db.get_issue(issue_id)
        except KeyError:
            fail(f"Not found: {issue_id}", as_json=as_json)

        if as_json:
            data = {**issue.to_dict(), "events": db.get_issue_events(issue_id)}
            click.echo(json_mod.dumps(data, indent=2, default=str))
            return

        click.echo(f"ID:         {issue.id}")
        click.echo(f"Title:      {issue.title}")
        click.echo(f"Project:    {issue.project}")
        click.echo(f"Status:     {issue.status}")
        click.echo(f"Rank:       {issue.rank}")
        click.echo(f"Type:       {issue.type}")
        click.echo(f"Priority:   {issue.priority}")
        click.echo(f"Resolution: {issue.resolution}")
        if issue.assignee:
            click.echo(f"Assignee:   {issue.assignee}")
        click.echo(f"Created:    {issue.created_at}")
        if issue.resolved_at:
            click.echo(f"Resolved:   {issue.resolved_at}")
        if issue.description:
            click.echo(f"\n--- Description ---\n{issue.description}")


@click.command("list")
@click.option("--status", default=None, help="Filter by column")
@click.option("--project", default=None, help="Filter by project")
@click.option("--assignee", default=None, help="Filter by assignee")
@click.option("--limit", default=100, type=click.IntRange(min=1), help="Max results (default 100)")
@click.option("--offset", default=0, type=click.IntRange(min=0), help="Skip first N results")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def list_issues(
    status: str | None,
    project: str | None,
    assignee: str | None,
    limit: int,
    offset: int,
    as_json: bool,
) -> None:
    """List issues in board order."""
    with get_db() as db:
        issues = db.list_issues(status=status, project=project, assignee=assignee, limit=limit, offset=offset)
        if as_json:
            click.echo(json_mod.dumps([i.to_dict() for i in issues], indent=2, default=str))
            return
        if not issues:
            click.echo("No issues found.")
            return
        for issue in issues:
            click.echo(f"{issue.id:<24} {issue.status:<14} {issue.rank:<10} {issue.title}")


@click.command()
@click.argument("issue_id")
@click.option("--title", default=None, help="New title")
@click.option("--priority", "-p", default=None, type=click.Choice(sorted(ISSUE_PRIORITIES)), help="New priority")
@click.option("--assignee", default=None, help="New assignee")
@click.option("--description", "-d", default=None, help="New description")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def update(
    ctx: click.Context,
    issue_id: str,
    title: str | None,
    priority: str | None,
    assignee: str | None,
    description: str | None,
    as_json: bool,
) -> None:
    """Update issue fields. Use 'move' to change column or position."""
    with get_db() as db:
        try:
            issue = db.update_issue(
                issue_id,
                title=title,
                priority=priority,
                assignee=assignee,
                description=description,
                actor=ctx.obj["actor"],
            )
        except KeyError:
            fail(f"Not found: {issue_id}", as_json=as_json)
        except ValueError as e:
            fail(str(e), as_json=as_json)
        if as_json:
            click.echo(json_mod.dumps(issue.to_dict(), indent=2, default=str))
        else:
            click.echo(f"Updated {issue.id}: {issue.title}")


@click.command()
@click.argument("issue_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def delete(issue_id: str, as_json: bool) -> None:
    """Delete an issue and its history."""
    with get_db() as db:
        try:
            issue = db.delete_issue(issue_id)
        except KeyError:
            fail(f"Not found: {issue_id}", as_json=as_json)
        if as_json:
            click.echo(json_mod.dumps({"deleted": issue.id}))
        else:
            click.echo(f"Deleted {issue.id}: {issue.title}")


def register(cli: click.Group) -> None:
    """Register issue CRUD commands with the CLI group."""
    cli.add_command(create)
    cli.add_command(show)
    cli.add_command(list_issues)
    cli.add_command(update)
    cli.add_command(delete)
