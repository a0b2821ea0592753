"""ReorderCoordinator: turns board moves into rank-key writes.

The coordinator owns the rule for assigning and rebalancing keys. Storage
(``OrderingStore``) only fetches and persists; it never computes a key. The
same coordinator drives the SQLite board in ``db_board.py`` and any other
store that implements the four protocol methods.

Moves never rebalance inline. When a freshly computed key is deep enough that
the collection is running out of room, the move still succeeds and its
``MoveResult.rebalance_suggested`` is set; the caller decides when to run
:meth:`ReorderCoordinator.rebalance` (queued job, background task, next
request).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from lexiboard.ranking import LexoRank, OrderingError, RankEngine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Collection:
    """One ordered list: every issue in a project's status column."""

    project: str
    status: str

    def __str__(self) -> str:
        return f"{self.project}/{self.status}"


@dataclass(frozen=True)
class RankedItem:
    item_id: str
    collection: Collection
    key: Any


@dataclass(frozen=True)
class MoveResult:
    item_id: str
    collection: Collection
    key: Any
    previous_collection: Collection
    previous_key: Any
    rebalance_suggested: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "project": self.collection.project,
            "status": self.collection.status,
            "rank": self.key,
            "previous_status": self.previous_collection.status,
            "previous_rank": self.previous_key,
            "rebalance_suggested": self.rebalance_suggested,
        }


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ItemNotInCollectionError(OrderingError):
    """The item being moved cannot be placed in the target collection.

    A caller bug (wrong id, wrong project), not a stale read. Stale
    *neighbour* ids are ignored instead.
    """

    def __init__(self, item_id: str, collection: Collection, reason: str) -> None:
        self.item_id = item_id
        self.collection = collection
        self.reason = reason
        super().__init__(f"Cannot place {item_id} in {collection}: {reason}")


class RebalanceConflictError(OrderingError):
    """The collection changed between planning a rebalance and writing it."""

    def __init__(self, collection: Collection, planned: int) -> None:
        self.collection = collection
        self.planned = planned
        super().__init__(f"Collection {collection} changed while rebalancing {planned} item(s); retry the rebalance")


# ---------------------------------------------------------------------------
# Storage boundary
# ---------------------------------------------------------------------------


class OrderingStore(Protocol):
    """What the coordinator needs from persistence."""

    def fetch_ordered(self, collection: Collection) -> list[RankedItem]:
        """Every item in *collection*, ascending by key."""
        ...

    def write_key(self, item_id: str, collection: Collection, key: Any) -> bool:
        """Place one item in *collection* at *key*. False if the item is gone."""
        ...

    def write_keys_bulk(
        self,
        collection: Collection,
        mapping: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> bool:
        """Atomically apply *mapping*.

        Must write nothing and return False unless the collection's current
        members are exactly ``mapping``'s keys and, when *expected* is given,
        every member still has its expected key.
        """
        ...

    def resolve_item(self, item_id: str) -> RankedItem | None: ...


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------


class ReorderCoordinator:
    def __init__(
        self,
        store: OrderingStore,
        engine: RankEngine[Any] | None = None,
        *,
        rebalance_threshold: int | None = None,
    ) -> None:
        self.store = store
        self.engine: RankEngine[Any] = engine if engine is not None else LexoRank()
        self.rebalance_threshold = rebalance_threshold

    # -- snapshots -----------------------------------------------------------

    def _snapshot(self, collection: Collection, *, exclude: str | None = None) -> list[RankedItem]:
        # Stable sort: keeps the store's tie order for duplicate legacy keys.
        items = sorted(self.store.fetch_ordered(collection), key=lambda it: it.key)
        if exclude is not None:
            items = [it for it in items if it.item_id != exclude]
        return items

    def _resolve_moving(self, item_id: str, collection: Collection) -> RankedItem:
        item = self.store.resolve_item(item_id)
        if item is None:
            raise ItemNotInCollectionError(item_id, collection, "item not found")
        if item.collection.project != collection.project:
            raise ItemNotInCollectionError(
                item_id,
                collection,
                f"item belongs to project {item.collection.project!r}",
            )
        return item

    def _gap(
        self,
        items: Sequence[RankedItem],
        before_id: str | None,
        after_id: str | None,
    ) -> tuple[Any, Any, bool]:
        """Resolve neighbour ids to ``(lower_key, upper_key, ties_skipped)``.

        Bounds always come from the snapshot: with a lower neighbour, the
        upper bound is its immediate successor; with only an upper neighbour,
        the lower bound is its immediate predecessor. Unknown ids are ignored.
        No neighbours means the end of the collection.
        """
        index = {item.item_id: pos for pos, item in enumerate(items)}
        low = index.get(before_id) if before_id is not None else None
        high = index.get(after_id) if after_id is not None else None
        if before_id is not None and low is None:
            logger.debug("Ignoring stale before-neighbour %s", before_id)
        if after_id is not None and high is None:
            logger.debug("Ignoring stale after-neighbour %s", after_id)

        if low is not None and high is not None and not items[low].key < items[high].key:
            logger.debug("Neighbours %s/%s are out of order; using %s only", before_id, after_id, before_id)
            high = None

        if low is not None:
            lower = items[low].key
            ties = False
            for item in items[low + 1 :]:
                if lower < item.key:
                    return lower, item.key, ties
                ties = True
            return lower, None, ties

        if high is not None:
            upper = items[high].key
            ties = False
            for item in reversed(items[:high]):
                if item.key < upper:
                    return item.key, upper, ties
                ties = True
            return None, upper, ties

        if items:
            return items[-1].key, None, False
        return None, None, False

    def _compute(
        self,
        collection: Collection,
        before_id: str | None,
        after_id: str | None,
        item_id: str | None,
    ) -> tuple[Any, bool]:
        items = self._snapshot(collection, exclude=item_id)
        lower, upper, ties = self._gap(items, before_id, after_id)
        key = self.engine.rank_between(lower, upper)
        suggested = ties or self.engine.needs_rebalance(key, self.rebalance_threshold)
        return key, suggested

    # -- public API ----------------------------------------------------------

    def compute_move_key(
        self,
        collection: Collection,
        before_id: str | None = None,
        after_id: str | None = None,
        *,
        item_id: str | None = None,
    ) -> Any:
        """Key for a slot after *before_id* and/or before *after_id*.

        When *item_id* names the item being moved, it must resolve to the
        collection's project (``ItemNotInCollectionError`` otherwise) and is
        left out of the neighbour lookup.
        """
        if item_id is not None:
            self._resolve_moving(item_id, collection)
        key, _ = self._compute(collection, before_id, after_id, item_id)
        return key

    def append_key(self, collection: Collection) -> Any:
        items = self._snapshot(collection)
        return self.engine.after(items[-1].key) if items else self.engine.initial()

    def prepend_key(self, collection: Collection) -> Any:
        items = self._snapshot(collection)
        return self.engine.before(items[0].key) if items else self.engine.initial()

    def move(
        self,
        item_id: str,
        collection: Collection,
        before_id: str | None = None,
        after_id: str | None = None,
    ) -> MoveResult:
        """Compute and persist a new key for *item_id* in *collection*."""
        current = self._resolve_moving(item_id, collection)
        key, suggested = self._compute(collection, before_id, after_id, item_id)
        if not self.store.write_key(item_id, collection, key):
            raise ItemNotInCollectionError(item_id, collection, "item disappeared before its key was written")
        if suggested:
            logger.info(
                "Collection %s should be rebalanced (key %r for %s)",
                collection,
                key,
                item_id,
                extra={"collection": str(collection), "item": item_id, "rank": key},
            )
        else:
            logger.debug("Moved %s to %s at %r", item_id, collection, key)
        return MoveResult(
            item_id=item_id,
            collection=collection,
            key=key,
            previous_collection=current.collection,
            previous_key=current.key,
            rebalance_suggested=suggested,
        )

    def plan_rebalance(self, items: Sequence[RankedItem]) -> dict[str, Any]:
        """Evenly spaced keys for *items*, preserving their order exactly."""
        keys = self.engine.spaced_keys(len(items))
        return {item.item_id: key for item, key in zip(items, keys, strict=True)}

    def rebalance(self, collection: Collection) -> dict[str, Any]:
        """Reassign every key in *collection*; returns ``{item_id: new_key}``.

        The complete mapping is built before anything is written, then handed
        to the store in one atomic call.
        """
        items = self._snapshot(collection)
        mapping = self.plan_rebalance(items)
        expected = {item.item_id: item.key for item in items}
        if not self.store.write_keys_bulk(collection, mapping, expected):
            raise RebalanceConflictError(collection, len(mapping))
        logger.info(
            "Rebalanced %d item(s) in %s",
            len(mapping),
            collection,
            extra={"collection": str(collection)},
        )
        return mapping


def rebalance_with_retry(
    coordinator: ReorderCoordinator,
    collection: Collection,
    *,
    attempts: int = 3,
    base_delay: float = 0.05,
    max_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """Run :meth:`ReorderCoordinator.rebalance`, retrying conflicts.

    Backs off exponentially between attempts; the last
    ``RebalanceConflictError`` propagates.
    """
    if attempts < 1:
        msg = f"attempts must be >= 1, got {attempts}"
        raise ValueError(msg)
    attempt = 1
    while True:
        try:
            return coordinator.rebalance(collection)
        except RebalanceConflictError:
            if attempt >= attempts:
                logger.warning("Giving up on rebalancing %s after %d attempt(s)", collection, attempts)
                raise
            delay = min(base_delay * 2 ** (attempt - 1), max_delay)
            logger.warning(
                "Rebalance conflict in %s (attempt %d/%d), retrying in %.2fs",
                collection,
                attempt,
                attempts,
                delay,
            )
            sleep(delay)
            attempt += 1
