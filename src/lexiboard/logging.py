"""JSONL logging for the ``lexiboard`` logger tree.

One rotating file per project, ``.lexiboard/lexiboard.log``. Module loggers
(``lexiboard.ordering``, ``lexiboard.db_board``) propagate into it, and the
board-specific ``extra=`` keys below become top-level JSON fields.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

LOGGER_NAME = "lexiboard"
LOG_FILENAME = "lexiboard.log"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 3

EXTRA_FIELDS = ("collection", "item", "rank", "duration_ms", "error")

_lock = threading.Lock()


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update({name: getattr(record, name) for name in EXTRA_FIELDS if hasattr(record, name)})
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = str(record.exc_info[1])
        return json.dumps(entry, default=str)


def _file_handlers(logger: logging.Logger) -> list[RotatingFileHandler]:
    return [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]


def setup_logging(
    lexiboard_dir: Path,
    *,
    level: int = logging.INFO,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> logging.Logger:
    """Point the ``lexiboard`` logger at ``<lexiboard_dir>/lexiboard.log``.

    Safe to call repeatedly and from several threads: a handler already
    writing to the same file (compared by absolute path) is kept,
    one writing elsewhere is closed and replaced.
    """
    logger = logging.getLogger(LOGGER_NAME)
    log_path = lexiboard_dir / LOG_FILENAME
    wanted = os.path.abspath(str(log_path))

    with _lock:
        logger.setLevel(level)
        keep = None
        for handler in _file_handlers(logger):
            if keep is None and handler.baseFilename == wanted:
                keep = handler
                continue
            logger.removeHandler(handler)
            handler.close()
        if keep is None:
            handler = RotatingFileHandler(str(log_path), maxBytes=max_bytes, backupCount=backup_count)
            handler.setFormatter(_JsonFormatter())
            logger.addHandler(handler)
    return logger
