"""Log records and the ordered buffer that holds them."""

from __future__ import annotations

import time
from collections.abc import Iterator, Mapping
from typing import Any

from pydantic import BaseModel, Field


def _now_ms() -> int:
    return int(time.time() * 1000)


class LogMessage(BaseModel):
    """A log record produced by this process."""

    debug: str = Field(description="Namespace of the emitting component, e.g. 'core:server'")
    level: str
    message: str
    meta: dict[str, Any] = Field(default_factory=dict)
    timestamp: int = Field(default_factory=_now_ms, description="Milliseconds since the epoch")
    error: bool = False


class MessageBuffer:
    """Insertion-ordered buffer of log records.

    Records are opaque mappings: local records are dumped from
    :class:`LogMessage`, records relayed from SDKs are kept verbatim.
    """

    def __init__(self) -> None:
        self._messages: list[Mapping[str, Any]] = []

    def add(self, message: Mapping[str, Any]) -> None:
        self._messages.append(message)

    def clear(self) -> None:
        self._messages.clear()

    def __iter__(self) -> Iterator[Mapping[str, Any]]:
        return iter(list(self._messages))

    def __len__(self) -> int:
        return len(self._messages)
