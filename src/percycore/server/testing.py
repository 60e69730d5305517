"""Testing-mode routes for scripting failure scenarios.

Only registered when the agent runs in testing mode. SDK test suites
use them to make specific control API endpoints fail, change the
reported core version, inspect logs, and get a page to snapshot:

    *    /test/api/reset       -> clears testing state and the log buffer
    *    /test/api/version     <- version string, or false to drop the header
    *    /test/api/error       <- request path that should answer with a 500
    *    /test/api/disconnect  <- request path whose connection should be dropped
    GET  /test/logs            -> {"logs": [...]} every buffered log record
    *    /test/snapshot        -> a minimal HTML page
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import ValidationError

from percycore.errors import PercyError
from percycore.server.routing import ALL_METHODS, RouteSpec, get_body, get_state
from percycore.server.state import ServerState

logger = logging.getLogger(__name__)

TEST_SNAPSHOT_HTML = "<p>Snapshot Me!</p>"


async def testing_command(
    cmd: str,
    body: Any = Depends(get_body),
    state: ServerState = Depends(get_state),
) -> Response:
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")

    try:
        if cmd == "reset":
            state.reset_testing()
        elif cmd == "version":
            state.testing.version = body
        elif cmd in ("error", "disconnect"):
            if not isinstance(body, str):
                raise PercyError(f"Invalid {cmd} command: expected a request path", status=400)
            state.testing.api = {**state.testing.api, body: cmd}
        else:
            return Response(status_code=404)
    except ValidationError as e:
        raise PercyError(f"Invalid {cmd} command: {e.errors()[0]['msg']}", status=400) from e

    logger.debug("Testing command %s applied: %s", cmd, state.testing.to_json())
    return JSONResponse({"testing": state.testing.to_json(), "success": True})


async def testing_logs(state: ServerState = Depends(get_state)) -> dict[str, Any]:
    return {"logs": list(state.logger.messages), "success": True}


async def testing_snapshot_page() -> Response:
    return HTMLResponse(TEST_SNAPSHOT_HTML)


def testing_routes() -> list[RouteSpec]:
    return [
        RouteSpec("/test/api/{cmd}", testing_command, ALL_METHODS),
        RouteSpec("/test/logs", testing_logs),
        RouteSpec("/test/snapshot", testing_snapshot_page, ALL_METHODS),
    ]
