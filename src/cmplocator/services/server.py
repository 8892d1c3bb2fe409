"""HTTP resolution service consumed by the in-browser locator.

Three GET endpoints: the current component map, open-at-position, and
open-by-search (clues ranked against the target file).
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from starlette.applications import Starlette
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from cmplocator.infrastructure.editor import OpenRequest
from cmplocator.resolve.clues import ElementSnapshot, build_search_clues
from cmplocator.resolve.search import DEFAULT_SEARCH, SearchWeights, find_best_line

if TYPE_CHECKING:
    from starlette.requests import Request

    from cmplocator.index.source_index import IndexHandle
    from cmplocator.infrastructure.editor import EditorDispatcher

logger = logging.getLogger(__name__)

MAP_ENDPOINT = "/__cmp-map"
OPEN_ENDPOINT = "/__open-in-editor"
SEARCH_ENDPOINT = "/__open-in-editor-search"

_NO_CACHE = {"Cache-Control": "no-cache, no-store, must-revalidate"}


class BadRequest(Exception):
    """Malformed or incomplete request parameters."""


def _bad_request(message: str) -> PlainTextResponse:
    return PlainTextResponse(message, status_code=400)


def _position(raw: str | None, name: str) -> int:
    if raw is None or raw == "":
        return 1
    try:
        value = int(raw)
    except ValueError as exc:
        msg = f"{name} must be an integer"
        raise BadRequest(msg) from exc
    if value < 1:
        msg = f"{name} must be >= 1"
        raise BadRequest(msg)
    return value


def _parse_clues(request: Request) -> list[str]:
    """Clues from ``search`` (JSON list) or ``element`` (JSON snapshot)."""
    search = request.query_params.get("search")
    element = request.query_params.get("element")
    if search:
        try:
            clues: Any = json.loads(search)
        except ValueError as exc:
            msg = "search must be a JSON list of strings"
            raise BadRequest(msg) from exc
        if not isinstance(clues, list) or not all(isinstance(c, str) for c in clues):
            msg = "search must be a JSON list of strings"
            raise BadRequest(msg)
        return clues
    if element:
        try:
            data = json.loads(element)
            if not isinstance(data, dict):
                msg = "element must be a JSON object"
                raise BadRequest(msg)
            return build_search_clues(ElementSnapshot.from_dict(data))
        except (TypeError, ValueError) as exc:
            raise BadRequest(str(exc)) from exc
    msg = "search terms required"
    raise BadRequest(msg)


def create_routes(
    handle: IndexHandle,
    dispatcher: EditorDispatcher,
    *,
    search_weights: SearchWeights = DEFAULT_SEARCH,
) -> list[Route]:
    """Create HTTP routes bound to the index handle and editor dispatcher."""

    async def component_map(request: Request) -> Response:
        _ = request  # unused
        index = handle.current()
        if index is None:
            return PlainTextResponse(f"{handle.path.name} not found", status_code=404)
        return JSONResponse(index.to_dict(), headers=_NO_CACHE)

    async def open_in_editor(request: Request) -> Response:
        file = request.query_params.get("file")
        if not file:
            return _bad_request("file is required")
        try:
            open_request = OpenRequest(
                file_path=file,
                line=_position(request.query_params.get("line"), "line"),
                column=_position(request.query_params.get("col"), "col"),
            )
        except BadRequest as exc:
            return _bad_request(str(exc))

        logger.info("Opening file: %s", open_request.target)
        if not dispatcher.open(open_request):
            return PlainTextResponse(
                "Failed to launch editor. Check PATH or set EDITOR_CMD.", status_code=500
            )
        return PlainTextResponse("ok")

    async def open_with_search(request: Request) -> Response:
        file = request.query_params.get("file")
        if not file:
            return _bad_request("file is required")
        try:
            clues = _parse_clues(request)
        except BadRequest as exc:
            return _bad_request(str(exc))

        line = find_best_line(file, clues, search_weights)
        open_request = OpenRequest(file_path=file, line=line, search_clues=tuple(clues))
        logger.info("Search picked %s", open_request.target)
        if not dispatcher.open(open_request):
            return PlainTextResponse("Failed to launch editor", status_code=500)
        return PlainTextResponse(f"Opened at line {line}")

    return [
        Route(MAP_ENDPOINT, component_map, methods=["GET"]),
        Route(OPEN_ENDPOINT, open_in_editor, methods=["GET"]),
        Route(SEARCH_ENDPOINT, open_with_search, methods=["GET"]),
    ]


def create_app(
    handle: IndexHandle,
    dispatcher: EditorDispatcher,
    *,
    search_weights: SearchWeights = DEFAULT_SEARCH,
) -> Starlette:
    """Create the Starlette application."""
    return Starlette(routes=create_routes(handle, dispatcher, search_weights=search_weights))
