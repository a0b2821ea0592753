"""CLI tests for init and issue CRUD commands."""

from __future__ import annotations

import json
import os
from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from lexiboard.cli import cli
from lexiboard.core import LEXIBOARD_DIR_NAME, read_config
from tests.cli.conftest import _extract_id


@pytest.fixture
def in_tmp(tmp_path: Path) -> Generator[Path, None, None]:
    original = os.getcwd()
    os.chdir(str(tmp_path))
    yield tmp_path
    os.chdir(original)


class TestInit:
    def test_init_defaults(self, in_tmp: Path, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["init"])
        assert result.exit_code == 0
        assert f"Initialized {LEXIBOARD_DIR_NAME}/" in result.output
        assert "Columns: backlog, todo, in-progress, done" in result.output
        config = read_config(in_tmp / LEXIBOARD_DIR_NAME)
        assert config["prefix"] == in_tmp.name

    def test_init_custom_board(self, in_tmp: Path, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(
            cli,
            ["init", "--prefix", "kb", "--column", "open", "--column", "closed", "--rebalance-threshold", "4"],
        )
        assert result.exit_code == 0
        config = read_config(in_tmp / LEXIBOARD_DIR_NAME)
        assert config["prefix"] == "kb"
        assert config["columns"] == ["open", "closed"]
        assert config["rebalance_threshold"] == 4

    def test_init_twice(self, in_tmp: Path, cli_runner: CliRunner) -> None:
        cli_runner.invoke(cli, ["init"])
        result = cli_runner.invoke(cli, ["init"])
        assert result.exit_code == 0
        assert "already exists" in result.output

    def test_init_rejects_duplicate_columns(self, in_tmp: Path, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["init", "--column", "todo", "--column", "todo"])
        assert result.exit_code == 1
        assert "duplicate column" in result.output
        assert not (in_tmp / LEXIBOARD_DIR_NAME).exists()

    def test_init_rejects_zero_threshold(self, in_tmp: Path, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["init", "--rebalance-threshold", "0"])
        assert result.exit_code == 2

    def test_commands_need_a_project(self, in_tmp: Path, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["list"])
        assert result.exit_code == 1
        assert "lexiboard init" in result.output


class TestCreate:
    def test_create(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["create", "First", "--status", "todo"])
        assert result.exit_code == 0
        assert result.output.startswith("Created test-")
        assert "[todo @ I]" in result.output

    def test_create_json(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["create", "Bug", "--type", "bug", "-p", "high", "--assignee", "bob", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["type"] == "bug"
        assert data["priority"] == "high"
        assert data["assignee"] == "bob"
        assert data["status"] == "backlog"

    def test_create_unknown_column(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["create", "Lost", "--status", "archived"])
        assert result.exit_code == 1
        assert "Unknown column" in result.output

    def test_create_unknown_column_json(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["create", "Lost", "--status", "archived", "--json"])
        assert result.exit_code == 1
        assert "Unknown column" in json.loads(result.output)["error"]

    def test_create_bad_priority(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["create", "Bad", "-p", "urgent"])
        assert result.exit_code == 2


class TestShowAndList:
    def test_show(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        issue_id = _extract_id(runner.invoke(cli, ["create", "Visible", "-d", "Some detail"]).output)
        result = runner.invoke(cli, ["show", issue_id])
        assert result.exit_code == 0
        assert f"ID:         {issue_id}" in result.output
        assert "Rank:       I" in result.output
        assert "Some detail" in result.output

    def test_show_json_includes_events(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        issue_id = _extract_id(runner.invoke(cli, ["--actor", "agent-7", "create", "Evented"]).output)
        data = json.loads(runner.invoke(cli, ["show", issue_id, "--json"]).output)
        assert data["id"] == issue_id
        assert data["events"][0]["event_type"] == "created"
        assert data["events"][0]["actor"] == "agent-7"

    def test_show_missing(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["show", "test-nope"])
        assert result.exit_code == 1
        assert "Not found" in result.output

    def test_list_in_board_order(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        ids = [_extract_id(runner.invoke(cli, ["create", f"T{n}", "-s", "todo"]).output) for n in range(3)]
        data = json.loads(runner.invoke(cli, ["list", "--status", "todo", "--json"]).output)
        assert [d["id"] for d in data] == ids

    def test_list_pagination(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        for n in range(3):
            runner.invoke(cli, ["create", f"T{n}"])
        data = json.loads(runner.invoke(cli, ["list", "--limit", "2", "--offset", "2", "--json"]).output)
        assert len(data) == 1

    def test_list_empty(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["list"])
        assert result.exit_code == 0
        assert "No issues found." in result.output


class TestUpdateAndDelete:
    def test_update(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        issue_id = _extract_id(runner.invoke(cli, ["create", "Before"]).output)
        result = runner.invoke(cli, ["update", issue_id, "--title", "After", "-p", "low"])
        assert result.exit_code == 0
        assert f"Updated {issue_id}: After" in result.output
        data = json.loads(runner.invoke(cli, ["show", issue_id, "--json"]).output)
        assert data["priority"] == "low"

    def test_update_blank_title(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        issue_id = _extract_id(runner.invoke(cli, ["create", "Before"]).output)
        result = runner.invoke(cli, ["update", issue_id, "--title", "  ", "--json"])
        assert result.exit_code == 1
        assert json.loads(result.output)["error"] == "Title cannot be empty"

    def test_update_missing(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["update", "test-nope", "--title", "x"])
        assert result.exit_code == 1

    def test_delete(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        issue_id = _extract_id(runner.invoke(cli, ["create", "Doomed"]).output)
        result = runner.invoke(cli, ["delete", issue_id, "--json"])
        assert result.exit_code == 0
        assert json.loads(result.output) == {"deleted": issue_id}
        assert runner.invoke(cli, ["show", issue_id]).exit_code == 1

    def test_delete_missing(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["delete", "test-nope", "--json"])
        assert result.exit_code == 1
        assert "Not found" in json.loads(result.output)["error"]


class TestActorFlag:
    def test_rejects_control_characters(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["--actor", "bad\x07actor", "list"])
        assert result.exit_code == 2
        assert "control characters" in result.output

    def test_default_actor_is_cli(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        issue_id = _extract_id(runner.invoke(cli, ["create", "Default actor"]).output)
        data = json.loads(runner.invoke(cli, ["show", issue_id, "--json"]).output)
        assert data["events"][0]["actor"] == "cli"

    def test_version(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "lexiboard" in result.output
