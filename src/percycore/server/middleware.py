"""Request middleware shared by the percycore servers.

The control API wraps every route in :class:`PercyMiddleware`, which in
order: parses the request body as JSON when it can, resolves the core
version header, applies any testing-mode fault for the request path,
runs the route, turns any error it raises into a JSON failure
response, and schedules work the route left in
``request.state.after_response`` to run once that response is sent.
The static server only needs the error translation, provided by
:class:`JSONErrorMiddleware`.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.background import BackgroundTask
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from percycore.server.protocol import abort_connection
from percycore.server.state import ServerState

logger = logging.getLogger(__name__)

VERSION_HEADER = "X-Percy-Core-Version"
EXPOSE_HEADERS = f"*, {VERSION_HEADER}"


def parse_body(raw: bytes) -> Any:
    """Decode a request body as JSON, falling back to text (or raw bytes).

    Returns None for an empty body. Never raises; routes decide what to
    do with bodies that are not JSON.
    """
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        pass
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw


def error_status(error: BaseException) -> int:
    status = getattr(error, "status", None)
    if isinstance(status, int) and 400 <= status <= 599:
        return status
    return 500


class JSONErrorMiddleware(BaseHTTPMiddleware):
    """Translate errors raised by routes into JSON failure responses."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.debug("%s %s failed: %s", request.method, request.url.path, e, exc_info=True)
            return JSONResponse(self.error_payload(e), status_code=error_status(e))

    def error_payload(self, error: Exception) -> dict[str, Any]:
        return {"error": str(error), "success": False}


class PercyMiddleware(JSONErrorMiddleware):
    """Body parsing, version reporting, fault injection and error translation."""

    def __init__(self, app: ASGIApp, state: ServerState) -> None:
        super().__init__(app)
        self.state = state

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.body = parse_body(await request.body())
        # Resolved up front so a route that changes it does not affect its own response
        version = self.state.version_header()

        fault = self.state.fault_for(request.url.path)
        if fault == "error":
            response: Response = JSONResponse(
                {"success": False, "error": "Error: testing"}, status_code=500
            )
        elif fault == "disconnect":
            await abort_connection(request.scope)
            # The connection is gone; this response is never written
            response = Response(status_code=500)
        else:
            response = await super().dispatch(request, call_next)

        response.headers["Access-Control-Expose-Headers"] = EXPOSE_HEADERS
        if version is not None:
            response.headers[VERSION_HEADER] = version

        after_response = getattr(request.state, "after_response", None)
        if after_response is not None:
            response.background = BackgroundTask(after_response)
        return response

    def error_payload(self, error: Exception) -> dict[str, Any]:
        return {"build": self.state.agent.build, "error": str(error), "success": False}


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (unknown route, wrong method) as JSON."""
    return JSONResponse(
        {"success": False, "error": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )
