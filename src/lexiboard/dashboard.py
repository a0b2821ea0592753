"""Web dashboard for lexiboard: JSON API over the board.

Local web server exposing issue CRUD, the board view, moves, and
rebalancing. A module-level ``_db`` is set at startup and injected via
``Depends(_get_db)``.

Usage:
    lexiboard dashboard                    # Opens browser at localhost:8377
    lexiboard dashboard --port 9000        # Custom port
    lexiboard dashboard --no-browser       # Skip auto-open
"""

from __future__ import annotations

import logging
import webbrowser
from typing import Any

from fastapi.responses import JSONResponse

from lexiboard import __version__
from lexiboard.core import BoardDB, find_lexiboard_root
from lexiboard.logging import setup_logging

DEFAULT_PORT = 8377

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level state, set by main() or test fixtures
# ---------------------------------------------------------------------------

_db: BoardDB | None = None


def _get_db() -> BoardDB:
    """Return the active database connection."""
    from fastapi import HTTPException

    if _db is None:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return _db


def create_app() -> Any:
    """Create the FastAPI application with all dashboard endpoints."""
    from fastapi import FastAPI

    from lexiboard.dashboard_routes import board, issues

    app = FastAPI(title="Lexiboard", version=__version__, docs_url=None, redoc_url=None)
    app.include_router(issues.create_router(), prefix="/api")
    app.include_router(board.create_router(), prefix="/api")

    @app.get("/api/health")
    async def api_health() -> JSONResponse:
        return JSONResponse({"status": "ok", "version": __version__})

    return app


def main(port: int = DEFAULT_PORT, *, no_browser: bool = False) -> None:
    """Start the dashboard server for the project discovered from cwd."""
    import threading

    import uvicorn

    global _db

    lexiboard_dir = find_lexiboard_root()
    setup_logging(lexiboard_dir)
    _db = BoardDB.from_config(lexiboard_dir, check_same_thread=False)

    app = create_app()

    if not no_browser:
        threading.Timer(0.5, lambda: webbrowser.open(f"http://localhost:{port}/api/board")).start()

    logger.info("Dashboard starting on port %d", port)
    print(f"Lexiboard Dashboard: http://localhost:{port}/api/board")
    uvicorn.run(app, host="127.0.0.1", port=port, log_level="warning")
