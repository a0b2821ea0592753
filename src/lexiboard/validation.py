"""Shared validation functions for all entry points.

Pure functions: no FastAPI or Click dependencies.
"""

from __future__ import annotations

import unicodedata
from typing import Any

_MAX_ACTOR_LENGTH = 128
_MAX_COLUMN_LENGTH = 64


def _first_control_char(value: str) -> str | None:
    for ch in value:
        if unicodedata.category(ch).startswith("C"):  # Cc (control) and Cf (format)
            return ch
    return None


def sanitize_actor(value: Any) -> tuple[str, str | None]:
    """Validate and clean an actor name.

    Returns (cleaned_actor, None) on success or ("", error_message) on failure.
    """
    if not isinstance(value, str):
        return ("", "actor must be a string")
    # Reject "\nbad" rather than silently absorbing the newline via strip().
    bad = _first_control_char(value)
    if bad is not None:
        return ("", f"actor must not contain control characters (found U+{ord(bad):04X})")
    cleaned = value.strip()
    if not cleaned:
        return ("", "actor must not be empty")
    if len(cleaned) > _MAX_ACTOR_LENGTH:
        return ("", f"actor must be at most {_MAX_ACTOR_LENGTH} characters")
    return (cleaned, None)


def normalize_columns(value: Any) -> list[str]:
    """Validate a board column list from config or the CLI.

    Columns must be a non-empty list of distinct, non-blank strings without
    control characters. Raises ``ValueError`` describing the first problem.
    """
    if not isinstance(value, list) or not value:
        msg = "columns must be a non-empty list of strings"
        raise ValueError(msg)
    seen: set[str] = set()
    result: list[str] = []
    for raw in value:
        if not isinstance(raw, str):
            msg = f"column names must be strings, got {type(raw).__name__}"
            raise ValueError(msg)
        name = raw.strip()
        if not name:
            msg = "column names must not be blank"
            raise ValueError(msg)
        if _first_control_char(name) is not None:
            msg = f"column name {name!r} contains control characters"
            raise ValueError(msg)
        if len(name) > _MAX_COLUMN_LENGTH:
            msg = f"column name {name!r} is longer than {_MAX_COLUMN_LENGTH} characters"
            raise ValueError(msg)
        if name in seen:
            msg = f"duplicate column {name!r}"
            raise ValueError(msg)
        seen.add(name)
        result.append(name)
    return result
