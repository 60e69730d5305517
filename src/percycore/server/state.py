"""Per-instance state shared by the control API's middleware and routes.

Each server built by :func:`~percycore.server.api.create_percy_server`
owns exactly one ServerState, so several servers in one process (as in
the test suite) never see each other's testing state or logs.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from percycore.agent.base import Agent
from percycore.domain.models import FaultMode, TestingState
from percycore.logger import PercyLogger

logger = logging.getLogger(__name__)


@dataclass
class ServerState:
    """Mutable state owned by one control API instance.

    All mutation happens on the event loop thread, one step at a time,
    so no locking is needed.
    """

    agent: Agent
    logger: PercyLogger
    version: str
    dom_path: Path
    testing: TestingState | None = None
    stopping: bool = False
    background: set[asyncio.Task[Any]] = field(default_factory=set)

    @property
    def is_testing(self) -> bool:
        return self.testing is not None

    def version_header(self) -> str | None:
        """Value of the core version header, or None to omit it."""
        if self.testing is None or self.testing.version is None:
            return self.version
        if self.testing.version is False:
            return None
        return self.testing.version

    def fault_for(self, path: str) -> FaultMode | None:
        if self.testing is None:
            return None
        return self.testing.fault_for(path)

    def reset_testing(self) -> None:
        self.testing = TestingState()
        self.logger.messages.clear()

    def run_in_background(self, coro: Any, description: str) -> asyncio.Task[Any]:
        """Run ``coro`` without waiting for it, logging any failure."""
        task = asyncio.ensure_future(coro)
        self.background.add(task)

        def _done(t: asyncio.Task[Any]) -> None:
            self.background.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                self.logger.log("core:server", "error", f"{description} failed: {exc}")

        task.add_done_callback(_done)
        return task

    def claim_stop(self) -> bool:
        """Mark the server as stopping. Returns False if it already was."""
        if self.stopping:
            return False
        self.stopping = True
        return True

    async def stop_agent(self) -> None:
        """Stop the agent after the stop request has been answered."""
        logger.info("Stopping agent")
        try:
            await self.agent.stop()
        except Exception as e:
            # The response has already been sent
            self.logger.log("core:server", "error", f"Stop failed: {e}")
