"""Shared test fixtures for the percycore test suite.

Provides a scriptable agent double, logger fixtures and ready-made
test clients for the control API in normal and testing mode.
"""

from __future__ import annotations

import asyncio
import socket
import time
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from percycore.agent.base import Agent
from percycore.logger import PercyLogger
from percycore.server import create_percy_server, create_uvicorn_server

DOM_SCRIPT = "window.PercyDOM = { serialize: function() {} };"


class FakeAgent(Agent):
    """Agent double that records calls and can be told to fail or block.

    ``errors`` maps a method name ('set_config', 'snapshot', 'idle',
    'stop') to the exception that method should raise. Setting
    ``hold_snapshots`` makes snapshot() wait until it is cancelled, and
    ``idle_gate`` and ``stop_gate`` make idle() and stop() wait until the
    event is set. ``events`` records when stop() starts and finishes.
    """

    def __init__(
        self,
        testing: dict[str, Any] | None = None,
        build: dict[str, Any] | None = None,
        config: dict[str, Any] | None = None,
        loglevel: str = "info",
    ) -> None:
        self._testing = testing
        self._build = build
        self._config = dict(config or {"snapshot": {"widths": [1280]}})
        self._loglevel = loglevel
        self.errors: dict[str, Exception] = {}
        self.snapshots: list[Any] = []
        self.config_updates: list[Any] = []
        self.idle_calls = 0
        self.stop_calls = 0
        self.hold_snapshots = False
        self.idle_gate: asyncio.Event | None = None
        self.stop_gate: asyncio.Event | None = None
        self.events: list[str] = []

    @property
    def testing(self) -> dict[str, Any] | None:
        return self._testing

    @property
    def build(self) -> dict[str, Any] | None:
        return self._build

    @property
    def config(self) -> dict[str, Any]:
        return self._config

    def loglevel(self) -> str:
        return self._loglevel

    async def set_config(self, config: Any) -> dict[str, Any]:
        self._raise_if_failing("set_config")
        self.config_updates.append(config)
        self._config = {**self._config, **config}
        return self._config

    async def idle(self) -> None:
        if self.idle_gate is not None:
            await self.idle_gate.wait()
        self._raise_if_failing("idle")
        self.idle_calls += 1

    async def snapshot(self, options: Any) -> None:
        if self.hold_snapshots:
            await asyncio.Event().wait()
        self._raise_if_failing("snapshot")
        self.snapshots.append(options)

    async def stop(self) -> None:
        self.events.append("stop started")
        if self.stop_gate is not None:
            await self.stop_gate.wait()
        self._raise_if_failing("stop")
        self.stop_calls += 1
        self.events.append("stop finished")

    def _raise_if_failing(self, method: str) -> None:
        if method in self.errors:
            raise self.errors[method]


# ---------------------------------------------------------------------------
# Agent / Logger Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def percy_logger() -> PercyLogger:
    """A fresh logger facility at the default level."""
    return PercyLogger()


@pytest.fixture
def dom_script(tmp_path: Path) -> Path:
    """A stand-in DOM serialization script on disk."""
    path = tmp_path / "percy-dom.js"
    path.write_text(DOM_SCRIPT, encoding="utf-8")
    return path


@pytest.fixture
def agent() -> FakeAgent:
    """A FakeAgent with testing mode off and a build in progress."""
    return FakeAgent(build={"id": "123", "number": 1, "url": "https://percy.io/test/123"})


@pytest.fixture
def testing_agent() -> FakeAgent:
    """A FakeAgent with testing mode on and no build."""
    return FakeAgent(testing={})


# ---------------------------------------------------------------------------
# Client Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def client(agent: FakeAgent, percy_logger: PercyLogger, dom_script: Path) -> Iterator[TestClient]:
    """A test client for the control API with testing mode off."""
    app = create_percy_server(agent, log=percy_logger, dom_path=dom_script)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def testing_client(testing_agent: FakeAgent, percy_logger: PercyLogger, dom_script: Path) -> Iterator[TestClient]:
    """A test client for the control API in testing mode."""
    app = create_percy_server(testing_agent, log=percy_logger, dom_path=dom_script)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def wait_until() -> Callable[[Callable[[], bool]], None]:
    """Poll a condition that is satisfied by work running on the server's loop."""

    def _wait(condition: Callable[[], bool], timeout: float = 2.0) -> None:
        deadline = time.monotonic() + timeout
        while not condition():
            if time.monotonic() > deadline:
                raise AssertionError("Condition not met before timeout")
            time.sleep(0.01)

    return _wait


@asynccontextmanager
async def running_server(app: Any) -> AsyncIterator[int]:
    """Serve ``app`` with uvicorn on a free local port, yielding the port."""
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    server = create_uvicorn_server(app, "127.0.0.1", port, loglevel="error")
    task = asyncio.create_task(server.serve())
    try:
        while not server.started:
            if task.done():
                task.result()
                raise RuntimeError("uvicorn exited during startup")
            await asyncio.sleep(0.01)
        yield port
    finally:
        server.should_exit = True
        await task
