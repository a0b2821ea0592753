"""TypedDicts for db_board.py return types."""

from __future__ import annotations

from typing import TypedDict

from lexiboard.types.core import ISOTimestamp, IssueDict


class BoardColumn(TypedDict):
    status: str
    issues: list[IssueDict]


class Board(TypedDict):
    """Whole board returned by ``get_board()``: columns in configured order."""

    project: str
    columns: list[BoardColumn]


class PendingRebalance(TypedDict):
    """Row from the pending_rebalances queue."""

    project: str
    status: str
    reason: str
    requested_at: ISOTimestamp


class RebalanceOutcome(TypedDict):
    """Per-column result of ``run_pending_rebalances()``.

    ``rebalanced`` is the number of issues that received a new rank, or
    ``None`` when the column kept conflicting and stays queued.
    """

    project: str
    status: str
    rebalanced: int | None
    error: str
