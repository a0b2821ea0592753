"""Shared pytest fixtures for lexiboard tests."""

from __future__ import annotations

from collections.abc import Generator
from dataclasses import dataclass
from pathlib import Path

import pytest
from click.testing import CliRunner

from lexiboard.core import DB_FILENAME, LEXIBOARD_DIR_NAME, BoardDB, write_config
from tests._db_factory import make_db


@pytest.fixture
def db(tmp_path: Path) -> Generator[BoardDB, None, None]:
    """Fresh BoardDB for each test (default columns, prefix "test")."""
    d = make_db(tmp_path)
    yield d
    d.close()


@dataclass
class PopulatedDB:
    """A BoardDB plus the ids of the issues it was seeded with."""

    db: BoardDB
    ids: dict[str, str]


@pytest.fixture
def populated_db(db: BoardDB) -> PopulatedDB:
    """BoardDB pre-populated with a small board.

    Creates:
    - todo: A, B, C (in that order)
    - in-progress: D
    - done: E
    """
    a = db.create_issue("Issue A", status="todo", priority="high")
    b = db.create_issue("Issue B", status="todo")
    c = db.create_issue("Issue C", status="todo", assignee="alice")
    d = db.create_issue("Issue D", status="in-progress")
    e = db.create_issue("Issue E", status="done")
    return PopulatedDB(db=db, ids={"a": a.id, "b": b.id, "c": c.id, "d": d.id, "e": e.id})


@pytest.fixture
def lexiboard_project(tmp_path: Path) -> Path:
    """A tmp directory set up as a lexiboard project (.lexiboard/ with config + db).

    Returns the project root (parent of .lexiboard/).
    """
    lexiboard_dir = tmp_path / LEXIBOARD_DIR_NAME
    lexiboard_dir.mkdir()
    write_config(lexiboard_dir, {"prefix": "proj", "version": 1})

    d = BoardDB(lexiboard_dir / DB_FILENAME, prefix="proj")
    d.initialize()
    d.close()
    return tmp_path


@pytest.fixture
def cli_runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()
