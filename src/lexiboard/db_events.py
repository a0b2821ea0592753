"""EventsMixin: the per-issue audit trail.

All methods access ``self.conn`` via Python's MRO when composed into
``BoardDB``. Writers never commit; the calling operation owns the
transaction so an event lands together with the change it records.
"""

from __future__ import annotations

from typing import cast

from lexiboard.db_base import DBMixinProtocol, _now_iso
from lexiboard.types.events import EventRecord


class EventsMixin(DBMixinProtocol):
    """Event recording and retrieval."""

    def _record_event(
        self,
        issue_id: str,
        event_type: str,
        *,
        actor: str = "",
        old_value: str | None = None,
        new_value: str | None = None,
    ) -> None:
        self.conn.execute(
            "INSERT INTO events (issue_id, event_type, actor, old_value, new_value, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (issue_id, event_type, actor, old_value, new_value, _now_iso()),
        )

    def get_issue_events(self, issue_id: str, *, limit: int = 50) -> list[EventRecord]:
        """Events for one issue, newest first."""
        self.get_issue(issue_id)
        rows = self.conn.execute(
            "SELECT * FROM events WHERE issue_id = ? ORDER BY created_at DESC, id DESC LIMIT ?",
            (issue_id, limit),
        ).fetchall()
        return cast(list[EventRecord], [dict(r) for r in rows])
