"""Foundational TypedDicts for dataclass to_dict() returns."""

from __future__ import annotations

from typing import NewType, TypedDict

ISOTimestamp = NewType("ISOTimestamp", str)


class ProjectConfig(TypedDict, total=False):
    """Shape of .lexiboard/config.json."""

    prefix: str
    version: int
    columns: list[str]
    rebalance_threshold: int


class IssueDict(TypedDict):
    id: str
    project: str
    title: str
    status: str
    type: str
    priority: str
    rank: str
    assignee: str
    description: str
    resolution: str
    created_at: ISOTimestamp
    updated_at: ISOTimestamp
    resolved_at: ISOTimestamp | None
