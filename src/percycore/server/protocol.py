"""uvicorn integration for the percycore servers.

ASGI has no way for an application to drop a connection without
answering it, which testing mode needs to simulate client-visible
connection failures. The h11 protocol below hands every HTTP request an
abort hook through the scope's ``extensions``; :func:`abort_connection`
uses it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import uvicorn
from uvicorn.protocols.http.h11_impl import H11Protocol

from percycore.errors import RequestAborted

logger = logging.getLogger(__name__)

ABORT_EXTENSION = "percy.connection.abort"

UVICORN_LOG_LEVELS = {
    "debug": "debug",
    "info": "info",
    "warn": "warning",
    "error": "error",
    "silent": "critical",
}


class AbortableH11Protocol(H11Protocol):
    """h11 protocol that lets the application close the socket mid-request."""

    def connection_made(self, transport: asyncio.Transport) -> None:  # type: ignore[override]
        super().connection_made(transport)
        self.app = _with_abort_hook(self.app, transport)


def _with_abort_hook(app: Any, transport: asyncio.Transport) -> Any:
    async def app_with_abort_hook(scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] == "http":
            scope.setdefault("extensions", {})[ABORT_EXTENSION] = {"abort": transport.abort}
        await app(scope, receive, send)

    return app_with_abort_hook


async def abort_connection(scope: dict) -> None:
    """Close the request's connection without sending a response.

    Raises:
        RequestAborted: If the server gave no abort hook for this request.
    """
    hook = scope.get("extensions", {}).get(ABORT_EXTENSION)
    if hook is None:
        raise RequestAborted(scope.get("path", ""))
    logger.debug("Aborting connection for %s", scope.get("path"))
    hook["abort"]()
    # Let the server process the lost connection before the app returns,
    # so it neither writes a response nor reports a missing one.
    await asyncio.sleep(0)


def create_uvicorn_server(app: Any, host: str, port: int, loglevel: str = "info") -> uvicorn.Server:
    """Build a uvicorn server for ``app`` using the abortable protocol."""
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        http=AbortableH11Protocol,
        log_level=UVICORN_LOG_LEVELS.get(loglevel, "info"),
    )
    return uvicorn.Server(config)
