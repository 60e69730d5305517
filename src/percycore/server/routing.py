"""Route descriptors and request dependencies shared by the API modules."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, NamedTuple

from fastapi import Request
from starlette.requests import HTTPConnection

from percycore.server.state import ServerState

ALL_METHODS = ("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")


class RouteSpec(NamedTuple):
    """One route to register: path, endpoint and accepted methods."""

    path: str
    endpoint: Callable[..., Any]
    methods: tuple[str, ...] = ("GET",)


def get_state(connection: HTTPConnection) -> ServerState:
    return connection.app.state.percy


def get_body(request: Request) -> Any:
    """The request body as parsed by PercyMiddleware."""
    return getattr(request.state, "body", None)
