"""Level-filtered logger that records every call in a message buffer.

Messages are always buffered, whatever the current level, so that
testing-mode clients can inspect the full log. Only messages that pass
the current level are forwarded to stdlib logging.
"""

from __future__ import annotations

import logging
from typing import Any

from percycore.logger.messages import LogMessage, MessageBuffer
from percycore.utils.logging import LEVELS, to_stdlib_level


class PercyLogger:
    """Logger facility consumed by the control API.

    Example usage::

        log = PercyLogger(level="debug")
        log.log("core:server", "info", "Server started")
        log.child("core:server").deprecated("Use /percy/dom.js instead")
        assert len(log.messages) == 2
    """

    def __init__(self, level: str = "info") -> None:
        self.messages = MessageBuffer()
        self._level = "info"
        self._deprecations: set[str] = set()
        self.set_loglevel(level)

    def loglevel(self) -> str:
        return self._level

    def set_loglevel(self, level: str) -> None:
        to_stdlib_level(level)
        self._level = level.lower()

    def should_log(self, level: str) -> bool:
        return LEVELS.get(level, logging.INFO) >= LEVELS[self._level]

    def log(
        self,
        debug: str,
        level: str,
        message: Any,
        meta: dict[str, Any] | None = None,
    ) -> None:
        """Record a message and forward it to stdlib logging if its level passes.

        Args:
            debug: Namespace of the emitting component (e.g. 'core:server').
            level: One of 'debug', 'info', 'warn' or 'error'.
            message: The message text. Exceptions are logged by their string form.
            meta: Optional structured data attached to the record.
        """
        if isinstance(message, BaseException):
            message = f"{type(message).__name__}: {message}"

        record = LogMessage(
            debug=debug,
            level=level,
            message=str(message),
            meta=meta or {},
            error=level == "error",
        )
        self.messages.add(record.model_dump())

        if self.should_log(level):
            logging.getLogger(f"percycore.{debug}").log(
                LEVELS.get(level, logging.INFO), record.message
            )

    def deprecated(self, debug: str, message: str, meta: dict[str, Any] | None = None) -> None:
        """Log a deprecation warning, once per distinct message."""
        if message in self._deprecations:
            return
        self._deprecations.add(message)
        self.log(debug, "warn", f"Warning: {message}", meta)

    def child(self, debug: str) -> ScopedLogger:
        return ScopedLogger(self, debug)


class ScopedLogger:
    """A PercyLogger bound to a single namespace."""

    def __init__(self, parent: PercyLogger, debug: str) -> None:
        self.parent = parent
        self.namespace = debug

    def debug(self, message: Any, meta: dict[str, Any] | None = None) -> None:
        self.parent.log(self.namespace, "debug", message, meta)

    def info(self, message: Any, meta: dict[str, Any] | None = None) -> None:
        self.parent.log(self.namespace, "info", message, meta)

    def warn(self, message: Any, meta: dict[str, Any] | None = None) -> None:
        self.parent.log(self.namespace, "warn", message, meta)

    def error(self, message: Any, meta: dict[str, Any] | None = None) -> None:
        self.parent.log(self.namespace, "error", message, meta)

    def deprecated(self, message: str, meta: dict[str, Any] | None = None) -> None:
        self.parent.deprecated(self.namespace, message, meta)
