"""Abstract base class for the agent behind the control API.

The agent owns build and configuration state, captures snapshots and
drains its own work queue. The control API only ever talks to this
interface, so the capture engine can be swapped (a real browser-backed
engine, the in-memory :class:`~percycore.agent.local.LocalAgent`, or a
test double) without changing any route.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from percycore.errors import PercyError


class Agent(ABC):
    """Abstract interface for the visual-testing agent.

    Example usage::

        agent = LocalAgent(testing=True)
        await agent.set_config({"snapshot": {"widths": [1280]}})
        await agent.snapshot({"url": "http://localhost:8000/", "name": "Home"})
        await agent.idle()
        await agent.stop()
    """

    @property
    @abstractmethod
    def testing(self) -> dict[str, Any] | None:
        """Initial testing-mode state, or None when testing mode is off."""
        ...

    @property
    @abstractmethod
    def build(self) -> dict[str, Any] | None:
        """Descriptor of the current build, or None before one exists."""
        ...

    @property
    @abstractmethod
    def config(self) -> dict[str, Any]:
        """The effective configuration as a JSON-ready mapping."""
        ...

    @abstractmethod
    def loglevel(self) -> str:
        ...

    @abstractmethod
    async def set_config(self, config: Any) -> dict[str, Any]:
        """Apply new configuration and return the resulting effective config.

        Raises:
            AgentError: If the configuration is invalid.
        """
        ...

    @abstractmethod
    async def idle(self) -> None:
        """Wait until the agent has no pending work."""
        ...

    @abstractmethod
    async def snapshot(self, options: Any) -> None:
        """Capture one snapshot descriptor or a list of them.

        Completes once every capture has finished.

        Raises:
            AgentError: If a descriptor is invalid or a capture fails.
        """
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the agent. Safe to call multiple times."""
        ...


class AgentError(PercyError):
    """Raised when the agent rejects a request or fails to fulfil it."""

    def __init__(self, message: str, status: int = 400) -> None:
        super().__init__(message, status=status)
