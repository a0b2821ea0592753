"""Shared helpers and constants for dashboard route modules."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi.responses import JSONResponse
from starlette.requests import Request

if TYPE_CHECKING:
    from collections.abc import Mapping

from lexiboard.ordering import ItemNotInCollectionError, RebalanceConflictError
from lexiboard.ranking import InvalidOrderingError, KeySpaceExhaustedError
from lexiboard.validation import sanitize_actor as _sanitize_actor

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _error_response(
    message: str,
    code: str,
    status_code: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Return a structured error response and log the error."""
    logger.warning("API error [%s] %s: %s", status_code, code, message)
    return JSONResponse(
        {"error": {"message": message, "code": code, "details": details or {}}},
        status_code=status_code,
    )


def _ordering_error_response(exc: ValueError) -> JSONResponse:
    """Map a board/ordering failure to its error envelope."""
    if isinstance(exc, ItemNotInCollectionError):
        return _error_response(
            str(exc),
            "NOT_IN_COLLECTION",
            404,
            {"issue_id": exc.item_id, "project": exc.collection.project, "status": exc.collection.status},
        )
    if isinstance(exc, RebalanceConflictError):
        return _error_response(
            str(exc),
            "REBALANCE_CONFLICT",
            409,
            {"project": exc.collection.project, "status": exc.collection.status},
        )
    if isinstance(exc, (InvalidOrderingError, KeySpaceExhaustedError)):
        return _error_response(
            str(exc),
            "INVALID_ORDERING",
            409,
            {"lower": exc.lower, "upper": exc.upper},
        )
    return _error_response(str(exc), "VALIDATION_ERROR", 400)


async def _parse_json_body(request: Request) -> dict[str, Any] | JSONResponse:
    """Parse and validate a JSON object body, returning 400 on failure."""
    import json

    try:
        body = await request.json()
    except (json.JSONDecodeError, ValueError, UnicodeDecodeError):
        return _error_response("Invalid JSON body", "VALIDATION_ERROR", 400)
    if not isinstance(body, dict):
        return _error_response("Request body must be a JSON object", "VALIDATION_ERROR", 400)
    return body


def _parse_pagination(
    params: Mapping[str, str],
    default_limit: int = 100,
) -> tuple[int, int] | JSONResponse:
    """Extract ``limit`` and ``offset`` from query params with validation.

    Returns ``(limit, offset)`` on success or a 400 ``JSONResponse`` on error.
    """
    limit = _safe_int(params.get("limit", str(default_limit)), "limit", min_value=1)
    if not isinstance(limit, int):
        return limit
    offset = _safe_int(params.get("offset", "0"), "offset", min_value=0)
    if not isinstance(offset, int):
        return offset
    return limit, offset


def _safe_int(value: str, name: str, *, min_value: int | None = None) -> int | JSONResponse:
    """Parse a query-param string to int, returning a 400 error response on failure."""
    try:
        result = int(value)
    except (ValueError, TypeError):
        return _error_response(
            f'Invalid value for {name}: "{value}". Must be an integer.',
            "VALIDATION_ERROR",
            400,
        )
    if min_value is not None and result < min_value:
        return _error_response(
            f"Invalid value for {name}: {result}. Must be >= {min_value}.",
            "VALIDATION_ERROR",
            400,
        )
    return result


def _optional_str(body: Mapping[str, Any], name: str) -> str | None | JSONResponse:
    """Read an optional string field from a JSON body (absent or null -> None)."""
    value = body.get(name)
    if value is None or isinstance(value, str):
        return value
    return _error_response(f"{name} must be a string", "VALIDATION_ERROR", 400, {"field": name})


def _validate_actor(value: Any) -> tuple[str, JSONResponse | None]:
    """Validate an actor name from JSON body.

    Returns (cleaned_actor, None) on success or ("", JSONResponse) on error.
    """
    cleaned, err = _sanitize_actor(value)
    if err:
        return ("", _error_response(err, "VALIDATION_ERROR", 400))
    return (cleaned, None)
