"""FastAPI application for the Percy control API.

SDKs talk to this server while an agent is running:

    GET      /percy/healthcheck  -> {"loglevel", "config", "build", "success"}
    GET/POST /percy/config       <- new config (POST) -> {"config", "success"}
    GET      /percy/idle         -> {"success"} once the agent has no pending work
    GET      /percy/dom.js       -> DOM serialization script
    GET      /percy-agent.js     -> DOM script wrapped for the legacy agent API
    POST     /percy/snapshot     <- one or more snapshot descriptors (?async to not wait)
    *        /percy/stop         -> {"success"}, stops the agent after responding
    WS       / and /logger       <- {"log", "messages"} frames relayed into the logger

In testing mode, the routes from :mod:`percycore.server.testing` are
registered as well.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from percycore import __version__
from percycore.agent.base import Agent
from percycore.domain.models import TestingState
from percycore.logger import PercyLogger
from percycore.server.middleware import PercyMiddleware, http_error_handler
from percycore.server.routing import ALL_METHODS, RouteSpec, get_body, get_state
from percycore.server.state import ServerState
from percycore.server.testing import testing_routes

logger = logging.getLogger(__name__)

PERCY_DOM = Path(__file__).resolve().parent.parent / "assets" / "percy-dom.js"

LEGACY_AGENT_WARNING = " ".join([
    "It looks like you’re using @percy/cli with an older SDK.",
    "Please upgrade to the latest version to fix this warning.",
    "See these docs for more info: https://docs.percy.io/docs/migrating-to-percy-cli",
])
LEGACY_AGENT_WRAPPER = (
    "(window.PercyAgent = class { snapshot(n, o) { return PercyDOM.serialize(o); } });"
)
# Older SDKs were served this exact content type; kept as-is for them
LEGACY_AGENT_MIME = "applicaton/javascript"


# ---------------------------------------------------------------------------
# Control API routes
# ---------------------------------------------------------------------------

async def healthcheck(state: ServerState = Depends(get_state)) -> dict[str, Any]:
    return {
        "loglevel": state.agent.loglevel(),
        "config": state.agent.config,
        "build": state.agent.build,
        "success": True,
    }


async def config(
    body: Any = Depends(get_body),
    state: ServerState = Depends(get_state),
) -> dict[str, Any]:
    current = await state.agent.set_config(body) if body else state.agent.config
    return {"config": current, "success": True}


async def idle(state: ServerState = Depends(get_state)) -> dict[str, Any]:
    await state.agent.idle()
    return {"success": True}


async def dom_js(state: ServerState = Depends(get_state)) -> Response:
    return FileResponse(state.dom_path, media_type="application/javascript")


async def legacy_agent_js(state: ServerState = Depends(get_state)) -> Response:
    state.logger.deprecated("core:server", LEGACY_AGENT_WARNING)
    content = await asyncio.to_thread(state.dom_path.read_text, encoding="utf-8")
    return Response(content + LEGACY_AGENT_WRAPPER, media_type=LEGACY_AGENT_MIME)


async def snapshot(
    request: Request,
    body: Any = Depends(get_body),
    state: ServerState = Depends(get_state),
) -> dict[str, Any]:
    capture = state.agent.snapshot(body)
    if "async" in request.query_params:
        state.run_in_background(capture, "Snapshot")
    else:
        await capture
    return {"success": True}


async def stop(request: Request, state: ServerState = Depends(get_state)) -> dict[str, Any]:
    if state.claim_stop():
        # Run by PercyMiddleware once the outermost response has been sent
        request.state.after_response = state.stop_agent
    return {"success": True}


def api_routes() -> list[RouteSpec]:
    return [
        RouteSpec("/percy/healthcheck", healthcheck),
        RouteSpec("/percy/config", config, ("GET", "POST")),
        RouteSpec("/percy/idle", idle),
        RouteSpec("/percy/dom.js", dom_js),
        RouteSpec("/percy-agent.js", legacy_agent_js),
        RouteSpec("/percy/snapshot", snapshot, ("POST",)),
        RouteSpec("/percy/stop", stop, ALL_METHODS),
    ]


# ---------------------------------------------------------------------------
# Logger WebSocket
# ---------------------------------------------------------------------------

def relay_log_frame(log: PercyLogger, frame: str) -> None:
    """Apply one ``{"log": [...], "messages": [...]}`` frame sent by an SDK."""
    try:
        data = json.loads(frame)
    except ValueError:
        logger.debug("Ignoring malformed logger frame: %.100s", frame)
        return
    if not isinstance(data, dict):
        return

    for message in data.get("messages") or []:
        log.messages.add(message)

    if data.get("log"):
        try:
            log.log(*data["log"])
        except TypeError as e:
            logger.debug("Ignoring malformed log call %r: %s", data["log"], e)


async def logger_socket(websocket: WebSocket, state: ServerState = Depends(get_state)) -> None:
    await websocket.accept()
    await websocket.send_json({"loglevel": state.logger.loglevel()})
    try:
        while True:
            relay_log_frame(state.logger, await websocket.receive_text())
    except WebSocketDisconnect:
        logger.debug("Logger socket disconnected")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_percy_server(
    agent: Agent,
    log: PercyLogger | None = None,
    dom_path: Path | str | None = None,
) -> FastAPI:
    """Create the control API application for ``agent``.

    Args:
        agent: The agent the API drives. Testing mode is enabled when
               ``agent.testing`` is not None.
        log: Logger facility whose buffer the API relays into and
             exposes. A fresh one is created if omitted.
        dom_path: Override for the bundled DOM serialization script.
    """
    state = ServerState(
        agent=agent,
        logger=log or PercyLogger(),
        version=__version__,
        dom_path=Path(dom_path) if dom_path else PERCY_DOM,
        testing=TestingState.model_validate(agent.testing) if agent.testing is not None else None,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        pending = list(state.background)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    app = FastAPI(
        title="Percy Core API",
        description="Local control API for the Percy visual-testing agent",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.percy = state

    routes = api_routes()
    if state.is_testing:
        routes += testing_routes()
    for route in routes:
        app.add_api_route(route.path, route.endpoint, methods=list(route.methods))

    for path in ("/", "/logger"):
        app.add_api_websocket_route(path, logger_socket)

    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Added last so it is outermost and also wraps CORS preflight responses
    app.add_middleware(PercyMiddleware, state=state)

    logger.debug("Created control API (testing mode: %s)", state.is_testing)
    return app
