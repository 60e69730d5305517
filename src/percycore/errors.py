"""Exceptions shared across percycore."""

from __future__ import annotations


class PercyError(Exception):
    """Base error carrying the HTTP status it should be reported with."""

    def __init__(self, message: str, status: int = 500) -> None:
        super().__init__(message)
        self.status = status


class RequestAborted(Exception):
    """Raised when a request must be dropped but the connection cannot be aborted.

    The in-process test client has no socket to close, so a simulated
    disconnect surfaces as this exception instead of a response.
    """

    def __init__(self, path: str) -> None:
        super().__init__(f"Connection aborted: {path}")
        self.path = path
