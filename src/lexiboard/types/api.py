"""TypedDicts for dashboard route API responses."""

from __future__ import annotations

from typing import Any, TypedDict

from lexiboard.types.core import IssueDict
from lexiboard.types.events import EventRecord


class ErrorBody(TypedDict):
    message: str
    code: str
    details: dict[str, Any]


class ErrorResponse(TypedDict):
    """Standard error envelope returned by dashboard error paths."""

    error: ErrorBody


class IssueDetail(IssueDict):
    """IssueDict plus its recent audit trail."""

    events: list[EventRecord]


class MoveResponse(TypedDict):
    issue: IssueDict
    rank: str
    previous_status: str
    previous_rank: str
    rebalance_suggested: bool
    rebalance_scheduled: bool


class RebalanceResponse(TypedDict):
    project: str
    status: str
    rebalanced: int
    ranks: dict[str, str]
