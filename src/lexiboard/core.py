"""Core database operations for the board.

Single source of truth for all SQLite operations. Both the CLI and the
dashboard API import from this module. No daemon, just direct SQLite with
WAL mode.

Covers issue CRUD, the per-issue audit trail (``db_events.py``), and board
ordering: rank keys, moves, and rebalancing (``db_board.py``).

Convention-based discovery: each project has a `.lexiboard/` directory
containing `lexiboard.db` (SQLite) and `config.json` (prefix, columns).
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from lexiboard.db_base import _now_iso
from lexiboard.db_board import BoardMixin
from lexiboard.db_events import EventsMixin
from lexiboard.ordering import Collection
from lexiboard.types.core import ISOTimestamp, IssueDict, ProjectConfig
from lexiboard.validation import normalize_columns

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Convention-based discovery
# ---------------------------------------------------------------------------

LEXIBOARD_DIR_NAME = ".lexiboard"
DB_FILENAME = "lexiboard.db"
CONFIG_FILENAME = "config.json"

DEFAULT_COLUMNS = ["backlog", "todo", "in-progress", "done"]
ISSUE_TYPES = frozenset({"task", "bug", "story", "epic", "subtask"})
ISSUE_PRIORITIES = frozenset({"low", "medium", "high", "critical"})


def find_lexiboard_root(start: Path | None = None) -> Path:
    """Walk up from start (default cwd) looking for .lexiboard/ directory.

    Returns the .lexiboard/ directory path (not the project root).
    """
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        candidate = parent / LEXIBOARD_DIR_NAME
        if candidate.is_dir():
            return candidate
    msg = f"No {LEXIBOARD_DIR_NAME}/ directory found in {current} or any parent"
    raise FileNotFoundError(msg)


def read_config(lexiboard_dir: Path) -> ProjectConfig:
    """Read .lexiboard/config.json. Returns defaults if missing or corrupt."""
    defaults = ProjectConfig(prefix="lexiboard", version=1, columns=list(DEFAULT_COLUMNS))
    config_path = lexiboard_dir / CONFIG_FILENAME
    if not config_path.exists():
        return defaults
    try:
        result: ProjectConfig = json.loads(config_path.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s, using defaults: %s", config_path, exc)
        return defaults
    if not isinstance(result, dict):
        logger.warning("Ignoring %s: expected a JSON object", config_path)
        return defaults
    return result


def write_config(lexiboard_dir: Path, config: dict[str, Any] | ProjectConfig) -> None:
    """Write .lexiboard/config.json."""
    config_path = lexiboard_dir / CONFIG_FILENAME
    config_path.write_text(json.dumps(config, indent=2) + "\n")


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS issues (
    id          TEXT PRIMARY KEY,
    project     TEXT NOT NULL,
    title       TEXT NOT NULL,
    status      TEXT NOT NULL,
    type        TEXT NOT NULL DEFAULT 'task',
    priority    TEXT NOT NULL DEFAULT 'medium',
    rank        TEXT NOT NULL,
    assignee    TEXT DEFAULT '',
    description TEXT DEFAULT '',
    resolution  TEXT NOT NULL DEFAULT 'unresolved',
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,
    resolved_at TEXT,

    CHECK (priority IN ('low', 'medium', 'high', 'critical'))
);

CREATE INDEX IF NOT EXISTS idx_issues_column_rank ON issues(project, status, rank);

CREATE TABLE IF NOT EXISTS events (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    issue_id   TEXT NOT NULL REFERENCES issues(id) ON DELETE CASCADE,
    event_type TEXT NOT NULL,
    actor      TEXT DEFAULT '',
    old_value  TEXT,
    new_value  TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_issue_time ON events(issue_id, created_at DESC);

CREATE TABLE IF NOT EXISTS pending_rebalances (
    project      TEXT NOT NULL,
    status       TEXT NOT NULL,
    reason       TEXT DEFAULT '',
    requested_at TEXT NOT NULL,
    PRIMARY KEY (project, status)
);
"""

CURRENT_SCHEMA_VERSION = 1


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class Issue:
    id: str
    project: str
    title: str
    status: str
    rank: str
    type: str = "task"
    priority: str = "medium"
    assignee: str = ""
    description: str = ""
    resolution: str = "unresolved"
    created_at: str = ""
    updated_at: str = ""
    resolved_at: str | None = None

    @property
    def collection(self) -> Collection:
        return Collection(self.project, self.status)

    def to_dict(self) -> IssueDict:
        return IssueDict(
            id=self.id,
            project=self.project,
            title=self.title,
            status=self.status,
            type=self.type,
            priority=self.priority,
            rank=self.rank,
            assignee=self.assignee,
            description=self.description,
            resolution=self.resolution,
            created_at=ISOTimestamp(self.created_at),
            updated_at=ISOTimestamp(self.updated_at),
            resolved_at=ISOTimestamp(self.resolved_at) if self.resolved_at else None,
        )


def _issue_from_row(row: sqlite3.Row) -> Issue:
    return Issue(
        id=row["id"],
        project=row["project"],
        title=row["title"],
        status=row["status"],
        rank=row["rank"],
        type=row["type"],
        priority=row["priority"],
        assignee=row["assignee"] or "",
        description=row["description"] or "",
        resolution=row["resolution"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        resolved_at=row["resolved_at"],
    )


# ---------------------------------------------------------------------------
# BoardDB
# ---------------------------------------------------------------------------


class BoardDB(EventsMixin, BoardMixin):
    """Direct SQLite operations. No daemon, no sync. Importable by CLI and API."""

    def __init__(
        self,
        db_path: str | Path,
        *,
        prefix: str = "lexiboard",
        columns: list[str] | None = None,
        rebalance_threshold: int | None = None,
        check_same_thread: bool = True,
    ) -> None:
        self.db_path = Path(db_path)
        self.prefix = prefix
        self.columns = normalize_columns(columns) if columns is not None else list(DEFAULT_COLUMNS)
        if rebalance_threshold is not None and rebalance_threshold < 1:
            msg = f"rebalance_threshold must be >= 1, got {rebalance_threshold}"
            raise ValueError(msg)
        self.rebalance_threshold = rebalance_threshold
        self._conn: sqlite3.Connection | None = None
        self._check_same_thread = check_same_thread

    @classmethod
    def from_project(cls, project_path: Path | None = None, *, check_same_thread: bool = True) -> BoardDB:
        """Create a BoardDB by discovering .lexiboard/ from project_path (or cwd)."""
        lexiboard_dir = find_lexiboard_root(project_path)
        return cls.from_config(lexiboard_dir, check_same_thread=check_same_thread)

    @classmethod
    def from_config(cls, lexiboard_dir: Path, *, check_same_thread: bool = True) -> BoardDB:
        """Open the database in *lexiboard_dir* using its config.json."""
        config = read_config(lexiboard_dir)
        db = cls(
            lexiboard_dir / DB_FILENAME,
            prefix=config.get("prefix", "lexiboard"),
            columns=config.get("columns"),
            rebalance_threshold=config.get("rebalance_threshold"),
            check_same_thread=check_same_thread,
        )
        db.initialize()
        return db

    def __enter__(self) -> BoardDB:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                isolation_level="DEFERRED",
                check_same_thread=self._check_same_thread,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.execute("PRAGMA busy_timeout=5000")
        return self._conn

    def reconnect(self, *, check_same_thread: bool) -> None:
        """Close and reopen the connection with a different thread policy."""
        self.close()
        self._check_same_thread = check_same_thread

    def initialize(self) -> None:
        """Create tables for a fresh database (user_version == 0)."""
        current_version = self.get_schema_version()
        if current_version == 0:
            self.conn.executescript(SCHEMA_SQL)
            self.conn.execute(f"PRAGMA user_version = {CURRENT_SCHEMA_VERSION}")
        elif current_version > CURRENT_SCHEMA_VERSION:
            msg = f"Database schema v{current_version} is newer than this lexiboard (v{CURRENT_SCHEMA_VERSION})"
            raise ValueError(msg)
        self.conn.commit()

    def get_schema_version(self) -> int:
        """Return the current schema version from PRAGMA user_version."""
        result: int = self.conn.execute("PRAGMA user_version").fetchone()[0]
        return result

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _generate_unique_id(self) -> str:
        """Generate a unique issue ID using O(1) EXISTS checks against the PK index."""
        for _ in range(10):
            candidate = f"{self.prefix}-{uuid.uuid4().hex[:10]}"
            if self.conn.execute("SELECT 1 FROM issues WHERE id = ?", (candidate,)).fetchone() is None:
                return candidate
        return f"{self.prefix}-{uuid.uuid4().hex[:16]}"

    # -- Columns -------------------------------------------------------------

    @property
    def done_column(self) -> str:
        """The last configured column counts as resolved."""
        return self.columns[-1]

    def _validate_column(self, status: str) -> str:
        if status not in self.columns:
            msg = f"Unknown column '{status}'. Valid columns: {', '.join(self.columns)}"
            raise ValueError(msg)
        return status

    # -- Issue CRUD ----------------------------------------------------------

    def create_issue(
        self,
        title: str,
        *,
        status: str | None = None,
        type: str = "task",
        priority: str = "medium",
        assignee: str = "",
        description: str = "",
        project: str | None = None,
        actor: str = "",
    ) -> Issue:
        """Create an issue at the bottom of its column (default: first column)."""
        if not title or not title.strip():
            msg = "Title cannot be empty"
            raise ValueError(msg)
        if type not in ISSUE_TYPES:
            msg = f"Unknown type '{type}'. Valid types: {', '.join(sorted(ISSUE_TYPES))}"
            raise ValueError(msg)
        if priority not in ISSUE_PRIORITIES:
            msg = f"Unknown priority '{priority}'. Valid priorities: {', '.join(sorted(ISSUE_PRIORITIES))}"
            raise ValueError(msg)
        status = self._validate_column(status if status is not None else self.columns[0])
        project = project or self.prefix

        issue_id = self._generate_unique_id()
        now = _now_iso()
        done = status == self.done_column

        try:
            # Hold the write lock from reading the last rank until the INSERT.
            if not self.conn.in_transaction:
                self.conn.execute("BEGIN IMMEDIATE")
            rank = self.coordinator.append_key(Collection(project, status))
            self.conn.execute(
                "INSERT INTO issues (id, project, title, status, type, priority, rank, assignee, "
                "description, resolution, created_at, updated_at, resolved_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    issue_id,
                    project,
                    title.strip(),
                    status,
                    type,
                    priority,
                    rank,
                    assignee,
                    description,
                    "done" if done else "unresolved",
                    now,
                    now,
                    now if done else None,
                ),
            )
            self._record_event(issue_id, "created", actor=actor, new_value=title.strip())
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

        logger.debug("Created %s in %s/%s at %r", issue_id, project, status, rank)
        return self.get_issue(issue_id)

    def get_issue(self, issue_id: str) -> Issue:
        row = self.conn.execute("SELECT * FROM issues WHERE id = ?", (issue_id,)).fetchone()
        if row is None:
            msg = f"Issue not found: {issue_id}"
            raise KeyError(msg)
        return _issue_from_row(row)

    def list_issues(
        self,
        *,
        status: str | None = None,
        project: str | None = None,
        assignee: str | None = None,
        limit: int | None = 100,
        offset: int = 0,
    ) -> list[Issue]:
        """Issues in board order: by column, then rank (ties by age, then id)."""
        clauses: list[str] = []
        params: list[Any] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        if project is not None:
            clauses.append("project = ?")
            params.append(project)
        if assignee is not None:
            clauses.append("assignee = ?")
            params.append(assignee)
        where = f"WHERE {' AND '.join(clauses)} " if clauses else ""
        rows = self.conn.execute(
            f"SELECT * FROM issues {where}ORDER BY project, status, rank, created_at, id LIMIT ? OFFSET ?",
            [*params, -1 if limit is None else limit, offset],
        ).fetchall()
        return [_issue_from_row(r) for r in rows]

    def update_issue(
        self,
        issue_id: str,
        *,
        title: str | None = None,
        priority: str | None = None,
        assignee: str | None = None,
        description: str | None = None,
        actor: str = "",
    ) -> Issue:
        """Update descriptive fields. Column and rank change only through moves."""
        current = self.get_issue(issue_id)
        changes: dict[str, str] = {}
        if title is not None:
            if not title.strip():
                msg = "Title cannot be empty"
                raise ValueError(msg)
            changes["title"] = title.strip()
        if priority is not None:
            if priority not in ISSUE_PRIORITIES:
                msg = f"Unknown priority '{priority}'. Valid priorities: {', '.join(sorted(ISSUE_PRIORITIES))}"
                raise ValueError(msg)
            changes["priority"] = priority
        if assignee is not None:
            changes["assignee"] = assignee
        if description is not None:
            changes["description"] = description

        changed = {k: v for k, v in changes.items() if getattr(current, k) != v}
        if not changed:
            return current

        now = _now_iso()
        assignments = ", ".join(f"{column} = ?" for column in changed)
        try:
            self.conn.execute(
                f"UPDATE issues SET {assignments}, updated_at = ? WHERE id = ?",
                [*changed.values(), now, issue_id],
            )
            for column, value in changed.items():
                self._record_event(
                    issue_id,
                    f"{column}_changed",
                    actor=actor,
                    old_value=str(getattr(current, column)),
                    new_value=value,
                )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        return self.get_issue(issue_id)

    def delete_issue(self, issue_id: str) -> Issue:
        """Remove an issue (and its events) from the board. Returns the deleted issue."""
        issue = self.get_issue(issue_id)
        try:
            self.conn.execute("DELETE FROM issues WHERE id = ?", (issue_id,))
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        logger.info("Deleted %s from %s", issue_id, issue.collection, extra={"item": issue_id})
        return issue
