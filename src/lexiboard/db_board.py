"""BoardMixin: board ordering backed by the issues table.

Implements the ``OrderingStore`` protocol on top of SQLite so a
``ReorderCoordinator`` can drive it, plus the board-level operations built
on that: moves, board views, and the rebalance queue.

Collections are ``(project, status)`` pairs; an issue's rank is only
meaningful relative to the other issues in its column.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, cast

from lexiboard.db_base import DBMixinProtocol, _now_iso
from lexiboard.ordering import (
    Collection,
    MoveResult,
    RankedItem,
    RebalanceConflictError,
    ReorderCoordinator,
    rebalance_with_retry,
)
from lexiboard.ranking import InvalidOrderingError
from lexiboard.types.board import Board, BoardColumn, PendingRebalance, RebalanceOutcome

if TYPE_CHECKING:
    from lexiboard.core import Issue

logger = logging.getLogger(__name__)

# SQLite evaluates every SET expression against the old row, so the CASE
# branches can compare the previous status while status itself is replaced.
_WRITE_KEY_SQL = """\
UPDATE issues SET
    resolution = CASE
        WHEN :to_done AND status != :done THEN 'done'
        WHEN NOT :to_done AND status = :done THEN 'unresolved'
        ELSE resolution END,
    resolved_at = CASE
        WHEN :to_done AND status != :done THEN :now
        WHEN NOT :to_done AND status = :done THEN NULL
        ELSE resolved_at END,
    status = :status,
    rank = :rank,
    updated_at = :now
WHERE id = :id AND project = :project
"""


class BoardMixin(DBMixinProtocol):
    """Ordering store, moves, board view, and rebalancing.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``BoardDB`` at composition time.
    """

    if TYPE_CHECKING:

        @property
        def done_column(self) -> str: ...

        def _record_event(
            self,
            issue_id: str,
            event_type: str,
            *,
            actor: str = "",
            old_value: str | None = None,
            new_value: str | None = None,
        ) -> None: ...

        def list_issues(
            self,
            *,
            status: str | None = None,
            project: str | None = None,
            assignee: str | None = None,
            limit: int | None = 100,
            offset: int = 0,
        ) -> list[Issue]: ...

    @property
    def coordinator(self) -> ReorderCoordinator:
        return ReorderCoordinator(self, rebalance_threshold=self.rebalance_threshold)

    # -- OrderingStore -------------------------------------------------------

    def fetch_ordered(self, collection: Collection) -> list[RankedItem]:
        rows = self.conn.execute(
            "SELECT id, rank FROM issues WHERE project = ? AND status = ? ORDER BY rank, created_at, id",
            (collection.project, collection.status),
        ).fetchall()
        return [RankedItem(r["id"], collection, r["rank"]) for r in rows]

    def resolve_item(self, item_id: str) -> RankedItem | None:
        row = self.conn.execute("SELECT project, status, rank FROM issues WHERE id = ?", (item_id,)).fetchone()
        if row is None:
            return None
        return RankedItem(item_id, Collection(row["project"], row["status"]), row["rank"])

    def write_key(self, item_id: str, collection: Collection, key: Any) -> bool:
        """Set status and rank in one row update. Does not commit."""
        status = self._validate_column(collection.status)
        cursor = self.conn.execute(
            _WRITE_KEY_SQL,
            {
                "to_done": status == self.done_column,
                "done": self.done_column,
                "now": _now_iso(),
                "status": status,
                "rank": key,
                "id": item_id,
                "project": collection.project,
            },
        )
        return cursor.rowcount == 1

    def write_keys_bulk(
        self,
        collection: Collection,
        mapping: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> bool:
        """Apply a full-column rank mapping atomically.

        Takes the write lock before checking membership, so nothing can slip
        in between the check and the update. Commits when it opened the
        transaction itself.
        """
        own_txn = not self.conn.in_transaction
        try:
            if own_txn:
                self.conn.execute("BEGIN IMMEDIATE")
            rows = self.conn.execute(
                "SELECT id, rank FROM issues WHERE project = ? AND status = ?",
                (collection.project, collection.status),
            ).fetchall()
            current = {r["id"]: r["rank"] for r in rows}
            stale = set(current) != set(mapping) or (
                expected is not None and any(expected.get(item_id) != rank for item_id, rank in current.items())
            )
            if stale:
                if own_txn:
                    self.conn.rollback()
                logger.warning(
                    "Column %s changed since the rebalance was planned",
                    collection,
                    extra={"collection": str(collection)},
                )
                return False
            now = _now_iso()
            self.conn.executemany(
                "UPDATE issues SET rank = ?, updated_at = ? WHERE id = ?",
                [(key, now, item_id) for item_id, key in mapping.items()],
            )
            if own_txn:
                self.conn.commit()
        except Exception:
            if self.conn.in_transaction:
                self.conn.rollback()
            raise
        return True

    # -- Moves ---------------------------------------------------------------

    def move_issue(
        self,
        issue_id: str,
        status: str,
        *,
        before_id: str | None = None,
        after_id: str | None = None,
        project: str | None = None,
        actor: str = "",
    ) -> MoveResult:
        """Move an issue into *status*, after *before_id* and/or before *after_id*.

        Without neighbours the issue goes to the end of the column. Neighbour
        ids that are no longer in the column are ignored. When the new rank
        is deep enough to need a rebalance, the column is queued and
        ``rebalance_suggested`` is set on the result. When no key fits the
        slot at all (legacy ``"0"`` at the top, ``"1"``/``"10"`` neighbours),
        the move is rolled back, the column is queued, and
        ``InvalidOrderingError`` propagates.
        """
        status = self._validate_column(status)
        current = self.get_issue(issue_id)
        collection = Collection(project or current.project, status)
        try:
            if not self.conn.in_transaction:
                self.conn.execute("BEGIN IMMEDIATE")
            result = self.coordinator.move(issue_id, collection, before_id, after_id)
            if result.previous_collection.status != status:
                self._record_event(
                    issue_id,
                    "moved",
                    actor=actor,
                    old_value=f"{result.previous_collection.status}:{result.previous_key}",
                    new_value=f"{status}:{result.key}",
                )
            elif result.previous_key != result.key:
                self._record_event(
                    issue_id,
                    "reordered",
                    actor=actor,
                    old_value=str(result.previous_key),
                    new_value=str(result.key),
                )
            if result.rebalance_suggested:
                self._queue_rebalance(collection, reason=f"rank {result.key!r} assigned to {issue_id}")
            self.conn.commit()
        except InvalidOrderingError:
            # No key fits the slot: undo the move, then flag the column.
            if self.conn.in_transaction:
                self.conn.rollback()
            try:
                self._queue_rebalance(collection, reason=f"no room to place {issue_id}")
                self.conn.commit()
            except Exception:
                self.conn.rollback()
                raise
            raise
        except Exception:
            if self.conn.in_transaction:
                self.conn.rollback()
            raise
        return result

    # -- Board view ----------------------------------------------------------

    def get_board(self, project: str | None = None) -> Board:
        """Every configured column in order, each sorted by rank."""
        project = project or self.prefix
        columns = [
            BoardColumn(
                status=status,
                issues=[i.to_dict() for i in self.list_issues(project=project, status=status, limit=None)],
            )
            for status in self.columns
        ]
        return Board(project=project, columns=columns)

    # -- Rebalancing ---------------------------------------------------------

    def rebalance_column(self, status: str, *, project: str | None = None, attempts: int = 3) -> dict[str, Any]:
        """Respace every rank in one column and clear its queue entry.

        Returns ``{issue_id: new_rank}``. ``RebalanceConflictError`` propagates
        once *attempts* are used up; the queue entry is kept in that case.
        """
        collection = Collection(project or self.prefix, self._validate_column(status))
        start = time.monotonic()
        mapping = rebalance_with_retry(self.coordinator, collection, attempts=attempts)
        try:
            self.conn.execute(
                "DELETE FROM pending_rebalances WHERE project = ? AND status = ?",
                (collection.project, collection.status),
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        logger.debug(
            "Rebalance of %s finished",
            collection,
            extra={"collection": str(collection), "duration_ms": round((time.monotonic() - start) * 1000, 2)},
        )
        return mapping

    def _queue_rebalance(self, collection: Collection, *, reason: str = "") -> None:
        """Record that a column needs respacing. Does not commit."""
        self.conn.execute(
            "INSERT INTO pending_rebalances (project, status, reason, requested_at) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(project, status) DO NOTHING",
            (collection.project, collection.status, reason, _now_iso()),
        )

    def list_pending_rebalances(self) -> list[PendingRebalance]:
        rows = self.conn.execute(
            "SELECT project, status, reason, requested_at FROM pending_rebalances ORDER BY requested_at, project, status"
        ).fetchall()
        return cast(list[PendingRebalance], [dict(r) for r in rows])

    def run_pending_rebalances(self, *, attempts: int = 3) -> list[RebalanceOutcome]:
        """Drain the rebalance queue.

        Columns that keep conflicting stay queued for the next run. Entries
        for columns no longer in the config are dropped.
        """
        outcomes: list[RebalanceOutcome] = []
        for entry in self.list_pending_rebalances():
            project, status = entry["project"], entry["status"]
            if status not in self.columns:
                try:
                    self.conn.execute(
                        "DELETE FROM pending_rebalances WHERE project = ? AND status = ?",
                        (project, status),
                    )
                    self.conn.commit()
                except Exception:
                    self.conn.rollback()
                    raise
                logger.warning("Dropped queued rebalance for unknown column %s/%s", project, status)
                outcomes.append(
                    RebalanceOutcome(project=project, status=status, rebalanced=None, error="column not configured")
                )
                continue
            try:
                mapping = self.rebalance_column(status, project=project, attempts=attempts)
            except RebalanceConflictError as exc:
                outcomes.append(RebalanceOutcome(project=project, status=status, rebalanced=None, error=str(exc)))
                continue
            outcomes.append(RebalanceOutcome(project=project, status=status, rebalanced=len(mapping), error=""))
        return outcomes
