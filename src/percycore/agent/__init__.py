"""Agent module for percycore.

Defines the interface the control API drives (configuration, snapshot
capture, idle waiting, shutdown) and an in-memory implementation used
to run the API stand-alone.

Public API:
    Agent -- Abstract base class
    AgentError -- Error raised for rejected or failed agent requests
    LocalAgent -- In-memory agent that records snapshots
"""

from percycore.agent.base import Agent, AgentError
from percycore.agent.local import LocalAgent

__all__ = ["Agent", "AgentError", "LocalAgent"]
