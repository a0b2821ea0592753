"""Board, move, and rebalance route handlers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import BackgroundTasks
from fastapi.responses import JSONResponse
from starlette.requests import Request

if TYPE_CHECKING:
    from fastapi import APIRouter

from lexiboard.core import BoardDB
from lexiboard.dashboard_routes.common import (
    _error_response,
    _optional_str,
    _ordering_error_response,
    _parse_json_body,
    _validate_actor,
)
from lexiboard.ordering import ItemNotInCollectionError, RebalanceConflictError
from lexiboard.types.api import MoveResponse, RebalanceResponse

logger = logging.getLogger(__name__)


async def _rebalance_in_background(db: BoardDB, project: str, status: str) -> None:
    """Background task queued by a move whose rank ran deep.

    Runs on the event loop, so it makes a single attempt and never backs
    off; a conflict leaves the column in the pending queue for the next run.
    """
    try:
        db.rebalance_column(status, project=project, attempts=1)
    except RebalanceConflictError as exc:
        logger.warning("Background rebalance of %s/%s deferred: %s", project, status, exc)


# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------


def create_router() -> APIRouter:
    """Build the APIRouter for board ordering endpoints.

    Handlers are async so that synchronous SQLite calls all run on the
    event loop thread, which owns the shared connection.
    """
    from fastapi import APIRouter, Depends

    from lexiboard.dashboard import _get_db

    router = APIRouter()

    @router.get("/board")
    async def api_board(request: Request, db: BoardDB = Depends(_get_db)) -> JSONResponse:
        """Every configured column, each in rank order."""
        return JSONResponse(db.get_board(request.query_params.get("project")))

    @router.post("/issue/{issue_id}/move")
    async def api_move_issue(
        issue_id: str,
        request: Request,
        background_tasks: BackgroundTasks,
        db: BoardDB = Depends(_get_db),
    ) -> JSONResponse:
        """Move an issue to a column, between two neighbours.

        Body: ``{"status", "before_id"?, "after_id"?, "project"?, "actor"?}``.
        ``before_id`` sits directly above the slot, ``after_id`` directly
        below it; neighbours that have since left the column are ignored.
        A slot with no room between its neighbours answers 409
        ``INVALID_ORDERING`` and queues the column for rebalancing, after
        which the same move succeeds.
        """
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        status = body.get("status")
        if not isinstance(status, str) or not status:
            return _error_response("status is required", "VALIDATION_ERROR", 400, {"field": "status"})
        neighbours: dict[str, str | None] = {}
        for name in ("before_id", "after_id", "project"):
            value = _optional_str(body, name)
            if isinstance(value, JSONResponse):
                return value
            neighbours[name] = value
        actor, err = _validate_actor(body.get("actor", "dashboard"))
        if err:
            return err

        attempts = 2
        for attempt in range(1, attempts + 1):
            try:
                result = db.move_issue(
                    issue_id,
                    status,
                    before_id=neighbours["before_id"],
                    after_id=neighbours["after_id"],
                    project=neighbours["project"],
                    actor=actor,
                )
                break
            except KeyError:
                return _error_response(f"Issue not found: {issue_id}", "ISSUE_NOT_FOUND", 404)
            except ItemNotInCollectionError as e:
                if attempt == attempts:
                    return _ordering_error_response(e)
                logger.debug("Retrying move of %s after: %s", issue_id, e)
            except ValueError as e:
                return _ordering_error_response(e)

        if result.rebalance_suggested:
            background_tasks.add_task(
                _rebalance_in_background,
                db,
                result.collection.project,
                result.collection.status,
            )
        response = MoveResponse(
            issue=db.get_issue(issue_id).to_dict(),
            rank=result.key,
            previous_status=result.previous_collection.status,
            previous_rank=result.previous_key,
            rebalance_suggested=result.rebalance_suggested,
            rebalance_scheduled=result.rebalance_suggested,
        )
        return JSONResponse(response)

    @router.post("/columns/{status}/rebalance")
    async def api_rebalance_column(status: str, request: Request, db: BoardDB = Depends(_get_db)) -> JSONResponse:
        """Respace every rank in one column now."""
        project = request.query_params.get("project") or db.prefix
        try:
            ranks = db.rebalance_column(status, project=project)
        except ValueError as e:
            return _ordering_error_response(e)
        return JSONResponse(RebalanceResponse(project=project, status=status, rebalanced=len(ranks), ranks=ranks))

    @router.get("/rebalances")
    async def api_pending_rebalances(db: BoardDB = Depends(_get_db)) -> JSONResponse:
        """Columns queued for rebalancing."""
        return JSONResponse(db.list_pending_rebalances())

    return router
