"""Rank keys for manually ordered items (LexoRank-style string keys).

A rank key is a non-empty string over an ordered alphabet. Keys sort by plain
string comparison, so SQLite ``ORDER BY rank`` and Python ``sorted()`` agree.

Keys produced here are *canonical*: they never end in the alphabet's minimum
character. ``"5"`` and ``"50"`` have nothing between them, so the engine never
hands out a key whose only room is behind a trailing minimum. Keys read back
from storage may be non-canonical (legacy data); they are accepted and
normalised internally by dropping trailing minimum characters, which does not
change how they compare against canonical keys.

Pure functions: no database, FastAPI, or Click dependencies.
"""

from __future__ import annotations

from typing import Protocol, TypeVar

DEFAULT_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
DEFAULT_REBALANCE_THRESHOLD = 8
DEFAULT_REBALANCE_MIN_LENGTH = 2
DEFAULT_REBALANCE_HEADROOM = 4

K = TypeVar("K")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class OrderingError(ValueError):
    """Base class for rank-key and reorder failures."""


class InvalidRankKeyError(OrderingError):
    """Raised when a key is empty or uses characters outside the alphabet."""

    def __init__(self, key: object, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid rank key {key!r}: {reason}")


class InvalidOrderingError(OrderingError):
    """Raised when no key can sort strictly between the given bounds.

    ``lower`` is ``None`` when the request was for a key before ``upper``.
    """

    def __init__(self, lower: object, upper: object, reason: str) -> None:
        self.lower = lower
        self.upper = upper
        self.reason = reason
        super().__init__(f"Cannot rank between {lower!r} and {upper!r}: {reason}")


class KeySpaceExhaustedError(OrderingError):
    """Raised by bounded (numeric) engines when two keys are adjacent."""

    def __init__(self, lower: object, upper: object) -> None:
        self.lower = lower
        self.upper = upper
        super().__init__(f"No key left between {lower!r} and {upper!r}; the collection must be rebalanced")


# ---------------------------------------------------------------------------
# Engine protocol
# ---------------------------------------------------------------------------


class RankEngine(Protocol[K]):
    """Interface shared by the string and numeric engines.

    ``ReorderCoordinator`` only talks to this surface, so either engine can
    back a collection.
    """

    default_threshold: int

    def initial(self) -> K: ...

    def before(self, key: K) -> K: ...

    def after(self, key: K) -> K: ...

    def between(self, before: K, after: K) -> K: ...

    def rank_between(self, before: K | None, after: K | None) -> K: ...

    def depth(self, key: K) -> int: ...

    def needs_rebalance(self, key: K, threshold: int | None = None) -> bool: ...

    def spaced_keys(self, count: int) -> list[K]: ...

    def is_valid(self, key: object) -> bool: ...


# ---------------------------------------------------------------------------
# String engine
# ---------------------------------------------------------------------------


class LexoRank:
    """String rank keys over a fixed, code-point-sorted alphabet.

    Treat a key ``d1 d2 ... dn`` as the base-``radix`` fraction
    ``0.d1d2...dn``. Canonical keys (no trailing minimum digit) compare as
    strings exactly as their fractions compare as numbers, which is what makes
    every operation below a small piece of digit arithmetic.
    """

    def __init__(
        self,
        alphabet: str = DEFAULT_ALPHABET,
        *,
        rebalance_threshold: int = DEFAULT_REBALANCE_THRESHOLD,
        rebalance_min_length: int = DEFAULT_REBALANCE_MIN_LENGTH,
        rebalance_headroom: int = DEFAULT_REBALANCE_HEADROOM,
    ) -> None:
        if len(alphabet) < 3:
            msg = f"Alphabet needs at least 3 characters, got {len(alphabet)}"
            raise ValueError(msg)
        if len(set(alphabet)) != len(alphabet):
            msg = "Alphabet characters must be distinct"
            raise ValueError(msg)
        if list(alphabet) != sorted(alphabet):
            msg = "Alphabet must be sorted by code point so keys sort as plain strings"
            raise ValueError(msg)
        if rebalance_threshold < 1:
            msg = f"rebalance_threshold must be >= 1, got {rebalance_threshold}"
            raise ValueError(msg)
        if rebalance_min_length < 1:
            msg = f"rebalance_min_length must be >= 1, got {rebalance_min_length}"
            raise ValueError(msg)
        if rebalance_headroom < 2:
            msg = f"rebalance_headroom must be >= 2, got {rebalance_headroom}"
            raise ValueError(msg)
        self.alphabet = alphabet
        self.radix = len(alphabet)
        self.min_char = alphabet[0]
        self.max_char = alphabet[-1]
        self.default_threshold = rebalance_threshold
        self.rebalance_min_length = rebalance_min_length
        self.rebalance_headroom = rebalance_headroom
        self._index = {ch: i for i, ch in enumerate(alphabet)}

    def __repr__(self) -> str:
        return f"LexoRank(alphabet={self.alphabet!r})"

    # -- validation ----------------------------------------------------------

    def is_valid(self, key: object) -> bool:
        """True if *key* is a non-empty string drawn from the alphabet."""
        return isinstance(key, str) and bool(key) and all(ch in self._index for ch in key)

    def is_canonical(self, key: str) -> bool:
        """True if *key* is valid and does not end in the minimum character."""
        return self.is_valid(key) and key[-1] != self.min_char

    def validate(self, key: object) -> str:
        """Return *key* unchanged, or raise ``InvalidRankKeyError``."""
        if not isinstance(key, str):
            raise InvalidRankKeyError(key, f"expected str, got {type(key).__name__}")
        if not key:
            raise InvalidRankKeyError(key, "key must not be empty")
        for ch in key:
            if ch not in self._index:
                raise InvalidRankKeyError(key, f"character {ch!r} is not in the alphabet")
        return key

    # -- digit helpers -------------------------------------------------------

    def _digits(self, key: object) -> list[int]:
        """Digits of *key* with trailing minimum digits removed."""
        digits = [self._index[ch] for ch in self.validate(key)]
        while digits and digits[-1] == 0:
            digits.pop()
        return digits

    def _encode(self, digits: list[int]) -> str:
        end = len(digits)
        while end and digits[end - 1] == 0:
            end -= 1
        return "".join(self.alphabet[d] for d in digits[:end])

    # -- key generation ------------------------------------------------------

    def initial(self) -> str:
        """Key for the first item of an empty collection (middle of the alphabet)."""
        return self.alphabet[self.radix // 2]

    def after(self, key: str) -> str:
        """Return a canonical key strictly greater than *key*.

        With ``m`` leading maximum characters, the key is cut to ``2m + 1``
        positions and bumped by one unit in the last of them. Room above a key
        shrinks as its leading run of maxima grows, so the step shrinks with
        it; k consecutive appends need O(log k) characters.
        """
        digits = self._digits(key)
        top = self.radix - 1
        m = 0
        while m < len(digits) and digits[m] == top:
            m += 1
        width = 2 * m + 1
        head = digits[:width] + [0] * (width - len(digits))
        i = width - 1
        while head[i] == top:
            head[i] = 0
            i -= 1
        head[i] += 1
        return self._encode(head)

    def before(self, key: str) -> str:
        """Return a canonical key strictly less than *key*.

        Mirror image of :meth:`after` over leading minimum characters. A key
        made only of minimum characters (``"0"``, ``"00"``) has no canonical
        predecessor and raises ``InvalidOrderingError``.
        """
        digits = self._digits(key)
        if not digits:
            raise InvalidOrderingError(None, key, "key consists only of the minimum character")
        m = 0
        while digits[m] == 0:
            m += 1
        width = 2 * m + 1
        if len(digits) > width:
            # Dropping a non-zero tail already lands strictly below.
            return self._encode(digits[:width])
        if width == 1 and digits == [1]:
            # One step down from the smallest single digit is zero; go one deeper.
            width = 2
        head = digits + [0] * (width - len(digits))
        i = width - 1
        while head[i] == 0:
            head[i] = self.radix - 1
            i -= 1
        head[i] -= 1
        return self._encode(head)

    def between(self, before: str, after: str) -> str:
        """Return a canonical key strictly between *before* and *after*.

        Walks both keys once: shared digits are copied, the first gap wider
        than one digit takes its midpoint, and adjacent digits descend one
        position (after that the upper bound no longer constrains).
        """
        self.validate(before)
        self.validate(after)
        if before >= after:
            raise InvalidOrderingError(before, after, "before must sort strictly before after")
        low = self._digits(before)
        high = self._digits(after)
        if low >= high:
            raise InvalidOrderingError(before, after, "keys are adjacent (only minimum characters separate them)")

        result: list[int] = []
        bounded = True
        i = 0
        while True:
            lo = low[i] if i < len(low) else 0
            hi = (high[i] if i < len(high) else 0) if bounded else self.radix
            if bounded and lo == hi:
                result.append(lo)
                i += 1
                continue
            if hi - lo > 1:
                result.append((lo + hi) // 2)
                return self._encode(result)
            if bounded and i + 1 < len(high):
                # The upper key's prefix up to here already fits.
                result.append(hi)
                return self._encode(result)
            result.append(lo)
            bounded = False
            i += 1

    def rank_between(self, before: str | None, after: str | None) -> str:
        """Key for a slot with optional neighbours.

        ``(None, None)`` gives :meth:`initial`, one missing side falls back to
        :meth:`before` or :meth:`after` of the other.
        """
        if before is None:
            return self.initial() if after is None else self.before(after)
        if after is None:
            return self.after(before)
        return self.between(before, after)

    # -- rebalancing ---------------------------------------------------------

    def depth(self, key: str) -> int:
        return len(self.validate(key))

    def needs_rebalance(self, key: str, threshold: int | None = None) -> bool:
        """True once *key* is longer than *threshold* characters."""
        limit = self.default_threshold if threshold is None else threshold
        if limit < 1:
            msg = f"threshold must be >= 1, got {limit}"
            raise ValueError(msg)
        return self.depth(key) > limit

    def key_length_for(self, count: int) -> int:
        """Fixed key length used when spreading *count* items evenly."""
        length = self.rebalance_min_length
        while self.radix**length < self.rebalance_headroom * (count + 1):
            length += 1
        return length

    def spaced_keys(self, count: int) -> list[str]:
        """Return *count* ascending, evenly spaced keys of one fixed length.

        The length is chosen so the key space holds at least
        ``rebalance_headroom`` times the slots needed. A value whose last digit
        would be the minimum is nudged up by one unit; spacing is at least two
        units, so order and fixed length are preserved.
        """
        if count < 0:
            msg = f"count must be >= 0, got {count}"
            raise ValueError(msg)
        if count == 0:
            return []
        length = self.key_length_for(count)
        step = self.radix**length // (count + 1)
        keys: list[str] = []
        for i in range(1, count + 1):
            value = i * step
            if value % self.radix == 0:
                value += 1
            digits = [0] * length
            for pos in range(length - 1, -1, -1):
                value, digits[pos] = divmod(value, self.radix)
            keys.append("".join(self.alphabet[d] for d in digits))
        return keys


# ---------------------------------------------------------------------------
# Module-level default engine
# ---------------------------------------------------------------------------

_default_engine = LexoRank()


def default_engine() -> LexoRank:
    return _default_engine


def initial() -> str:
    return _default_engine.initial()


def before(key: str) -> str:
    return _default_engine.before(key)


def after(key: str) -> str:
    return _default_engine.after(key)


def between(lower: str, upper: str) -> str:
    return _default_engine.between(lower, upper)


def rank_between(lower: str | None, upper: str | None) -> str:
    return _default_engine.rank_between(lower, upper)


def needs_rebalance(key: str, threshold: int = DEFAULT_REBALANCE_THRESHOLD) -> bool:
    return _default_engine.needs_rebalance(key, threshold)


def is_valid(key: object) -> bool:
    return _default_engine.is_valid(key)
