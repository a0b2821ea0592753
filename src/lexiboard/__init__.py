"""Lexiboard: kanban board with lexicographic rank keys and convention-based project discovery."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("lexiboard")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from lexiboard.core import BoardDB, Issue
from lexiboard.ordering import Collection, MoveResult, ReorderCoordinator
from lexiboard.ranking import LexoRank

__all__ = ["BoardDB", "Collection", "Issue", "LexoRank", "MoveResult", "ReorderCoordinator", "__version__"]
