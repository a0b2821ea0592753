"""Issue CRUD route handlers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.responses import JSONResponse
from starlette.requests import Request

if TYPE_CHECKING:
    from fastapi import APIRouter

from lexiboard.core import BoardDB
from lexiboard.dashboard_routes.common import (
    _error_response,
    _optional_str,
    _parse_json_body,
    _parse_pagination,
    _validate_actor,
)
from lexiboard.types.api import IssueDetail

_UPDATABLE_FIELDS = ("title", "priority", "assignee", "description")

# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------


def create_router() -> APIRouter:
    """Build the APIRouter for issue endpoints.

    Handlers are async so that synchronous SQLite calls all run on the
    event loop thread, which owns the shared connection.
    """
    from fastapi import APIRouter, Depends

    from lexiboard.dashboard import _get_db

    router = APIRouter()

    @router.get("/issues")
    async def api_issues(request: Request, db: BoardDB = Depends(_get_db)) -> JSONResponse:
        """Issues in board order, filterable by status, project, and assignee."""
        params = request.query_params
        page = _parse_pagination(params)
        if isinstance(page, JSONResponse):
            return page
        limit, offset = page
        issues = db.list_issues(
            status=params.get("status"),
            project=params.get("project"),
            assignee=params.get("assignee"),
            limit=limit,
            offset=offset,
        )
        return JSONResponse([i.to_dict() for i in issues])

    @router.post("/issues")
    async def api_create_issue(request: Request, db: BoardDB = Depends(_get_db)) -> JSONResponse:
        """Create an issue at the end of its column."""
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        title = body.get("title")
        if not isinstance(title, str):
            return _error_response("title is required", "VALIDATION_ERROR", 400, {"field": "title"})
        fields: dict[str, str | None] = {}
        for name in ("status", "type", "priority", "assignee", "description", "project"):
            value = _optional_str(body, name)
            if isinstance(value, JSONResponse):
                return value
            fields[name] = value
        actor, err = _validate_actor(body.get("actor", "dashboard"))
        if err:
            return err
        try:
            issue = db.create_issue(
                title,
                status=fields["status"],
                type=fields["type"] or "task",
                priority=fields["priority"] or "medium",
                assignee=fields["assignee"] or "",
                description=fields["description"] or "",
                project=fields["project"],
                actor=actor,
            )
        except ValueError as e:
            return _error_response(str(e), "VALIDATION_ERROR", 400)
        return JSONResponse(issue.to_dict(), status_code=201)

    @router.get("/issue/{issue_id}")
    async def api_issue_detail(issue_id: str, db: BoardDB = Depends(_get_db)) -> JSONResponse:
        """Issue detail with its recent events."""
        try:
            issue = db.get_issue(issue_id)
        except KeyError:
            return _error_response(f"Issue not found: {issue_id}", "ISSUE_NOT_FOUND", 404)
        result = IssueDetail(**issue.to_dict(), events=db.get_issue_events(issue_id, limit=20))
        return JSONResponse(result)

    @router.patch("/issue/{issue_id}")
    async def api_update_issue(issue_id: str, request: Request, db: BoardDB = Depends(_get_db)) -> JSONResponse:
        """Update descriptive fields. Column and rank change through /move."""
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        unknown = sorted(set(body) - {*_UPDATABLE_FIELDS, "actor"})
        if unknown:
            return _error_response(
                f"Cannot update: {', '.join(unknown)}",
                "VALIDATION_ERROR",
                400,
                {"fields": unknown},
            )
        changes: dict[str, str | None] = {}
        for name in _UPDATABLE_FIELDS:
            value = _optional_str(body, name)
            if isinstance(value, JSONResponse):
                return value
            changes[name] = value
        actor, err = _validate_actor(body.get("actor", "dashboard"))
        if err:
            return err
        try:
            issue = db.update_issue(
                issue_id,
                title=changes["title"],
                priority=changes["priority"],
                assignee=changes["assignee"],
                description=changes["description"],
                actor=actor,
            )
        except KeyError:
            return _error_response(f"Issue not found: {issue_id}", "ISSUE_NOT_FOUND", 404)
        except ValueError as e:
            return _error_response(str(e), "VALIDATION_ERROR", 400)
        return JSONResponse(issue.to_dict())

    @router.delete("/issue/{issue_id}")
    async def api_delete_issue(issue_id: str, db: BoardDB = Depends(_get_db)) -> JSONResponse:
        try:
            issue = db.delete_issue(issue_id)
        except KeyError:
            return _error_response(f"Issue not found: {issue_id}", "ISSUE_NOT_FOUND", 404)
        return JSONResponse({"deleted": issue.id, "status": issue.status})

    return router
