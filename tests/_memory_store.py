"""In-memory ``OrderingStore`` used to test the coordinator without SQLite."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from lexiboard.ordering import Collection, RankedItem


class MemoryStore:
    """Items keyed by id; each remembers its collection and key."""

    def __init__(self) -> None:
        self.items: dict[str, tuple[Collection, Any]] = {}
        self.bulk_writes = 0

    def add(self, item_id: str, collection: Collection, key: Any) -> None:
        self.items[item_id] = (collection, key)

    def keys(self, collection: Collection) -> list[Any]:
        return [item.key for item in self.fetch_ordered(collection)]

    def ids(self, collection: Collection) -> list[str]:
        return [item.item_id for item in self.fetch_ordered(collection)]

    def fetch_ordered(self, collection: Collection) -> list[RankedItem]:
        members = [RankedItem(i, c, k) for i, (c, k) in self.items.items() if c == collection]
        return sorted(members, key=lambda it: it.key)

    def write_key(self, item_id: str, collection: Collection, key: Any) -> bool:
        if item_id not in self.items:
            return False
        self.items[item_id] = (collection, key)
        return True

    def write_keys_bulk(
        self,
        collection: Collection,
        mapping: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> bool:
        current = {it.item_id: it.key for it in self.fetch_ordered(collection)}
        if set(current) != set(mapping):
            return False
        if expected is not None and any(expected.get(i) != k for i, k in current.items()):
            return False
        for item_id, key in mapping.items():
            self.items[item_id] = (collection, key)
        self.bulk_writes += 1
        return True

    def resolve_item(self, item_id: str) -> RankedItem | None:
        if item_id not in self.items:
            return None
        collection, key = self.items[item_id]
        return RankedItem(item_id, collection, key)


class ConflictingStore(MemoryStore):
    """Reports a concurrent change for the first *conflicts* bulk writes."""

    def __init__(self, conflicts: int) -> None:
        super().__init__()
        self.conflicts = conflicts

    def write_keys_bulk(
        self,
        collection: Collection,
        mapping: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> bool:
        if self.conflicts > 0:
            self.conflicts -= 1
            return False
        return super().write_keys_bulk(collection, mapping, expected)
