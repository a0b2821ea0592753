# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.
# Must not import from core.py, db_base.py, or any mixin (circular imports).
"""Typed return-value contracts for lexiboard core and API layers."""

from __future__ import annotations

from lexiboard.types.core import (
    ISOTimestamp,
    IssueDict,
    ProjectConfig,
)

__all__ = [
    "ISOTimestamp",
    "IssueDict",
    "ProjectConfig",
]
