"""Integer rank keys, the numeric alternative to :mod:`lexiboard.ranking`.

For stores that can only sort on numbers. Keys are integers in
``[MIN_RANK, MAX_RANK]`` (the 53-bit safe-integer range, so they survive a
round trip through JSON numbers). Density is finite: two adjacent integers
have nothing between them and :meth:`NumericRank.between` raises
``KeySpaceExhaustedError`` rather than inventing a fractional key. Collections
ranked this way need rebalancing far more often than string-ranked ones.

``depth()`` is ``53 - trailing_zero_bits(key)``. Rebalanced keys are multiples
of a power of two and each bisection costs one trailing zero, so depth plays
the role string length plays for :class:`~lexiboard.ranking.LexoRank`.
"""

from __future__ import annotations

from lexiboard.ranking import InvalidOrderingError, InvalidRankKeyError, KeySpaceExhaustedError

KEY_BITS = 53
MIN_RANK = 1
MAX_RANK = 2**KEY_BITS - 1
# Rebalance once fewer than 3 trailing zero bits remain (neighbour gap < 8).
DEFAULT_NUMERIC_THRESHOLD = KEY_BITS - 3


class NumericRank:
    """Integer implementation of the rank engine interface."""

    def __init__(self, *, rebalance_threshold: int = DEFAULT_NUMERIC_THRESHOLD) -> None:
        if not (1 <= rebalance_threshold <= KEY_BITS):
            msg = f"rebalance_threshold must be between 1 and {KEY_BITS}, got {rebalance_threshold}"
            raise ValueError(msg)
        self.default_threshold = rebalance_threshold

    def __repr__(self) -> str:
        return "NumericRank()"

    def is_valid(self, key: object) -> bool:
        return isinstance(key, int) and not isinstance(key, bool) and MIN_RANK <= key <= MAX_RANK

    def validate(self, key: object) -> int:
        if not isinstance(key, int) or isinstance(key, bool):
            raise InvalidRankKeyError(key, f"expected int, got {type(key).__name__}")
        if not (MIN_RANK <= key <= MAX_RANK):
            raise InvalidRankKeyError(key, f"must be between {MIN_RANK} and {MAX_RANK}")
        return key

    def _midpoint(self, low: int, high: int) -> int:
        """Midpoint of the open interval (low, high); bounds may be sentinels."""
        mid = (low + high) // 2
        if mid <= low:
            lower = None if low < MIN_RANK else low
            upper = None if high > MAX_RANK else high
            raise KeySpaceExhaustedError(lower, upper)
        return mid

    def initial(self) -> int:
        return self._midpoint(MIN_RANK - 1, MAX_RANK + 1)

    def before(self, key: int) -> int:
        return self._midpoint(MIN_RANK - 1, self.validate(key))

    def after(self, key: int) -> int:
        return self._midpoint(self.validate(key), MAX_RANK + 1)

    def between(self, before: int, after: int) -> int:
        self.validate(before)
        self.validate(after)
        if before >= after:
            raise InvalidOrderingError(before, after, "before must sort strictly before after")
        return self._midpoint(before, after)

    def rank_between(self, before: int | None, after: int | None) -> int:
        if before is None:
            return self.initial() if after is None else self.before(after)
        if after is None:
            return self.after(before)
        return self.between(before, after)

    def depth(self, key: int) -> int:
        key = self.validate(key)
        trailing_zeros = (key & -key).bit_length() - 1
        return KEY_BITS - trailing_zeros

    def needs_rebalance(self, key: int, threshold: int | None = None) -> bool:
        limit = self.default_threshold if threshold is None else threshold
        return self.depth(key) > limit

    def spaced_keys(self, count: int) -> list[int]:
        """*count* ascending keys spaced by the largest power of two that fits."""
        if count < 0:
            msg = f"count must be >= 0, got {count}"
            raise ValueError(msg)
        if count == 0:
            return []
        if count > MAX_RANK // 2:
            msg = f"Cannot spread {count} items over a {KEY_BITS}-bit key space"
            raise ValueError(msg)
        step_bits = KEY_BITS - count.bit_length()
        step = 1 << step_bits
        return [i * step for i in range(1, count + 1)]
