"""TypedDicts for db_events.py return types."""

from __future__ import annotations

from typing import TypedDict

from lexiboard.types.core import ISOTimestamp


class EventRecord(TypedDict):
    """Row from the events table returned by ``get_issue_events()``."""

    id: int
    issue_id: str
    event_type: str
    actor: str
    old_value: str | None
    new_value: str | None
    created_at: ISOTimestamp
