"""HTTP client for the Percy control API.

What an SDK uses to talk to a running agent: check that it is up,
read or update its configuration, post snapshots, wait for it to go
idle, stop it, and drive testing mode.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from percycore.server.middleware import VERSION_HEADER

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5338"


class PercyClientError(Exception):
    """Raised when a control API request fails."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class PercyClient:
    """Async client for the control API.

    Example usage::

        async with PercyClient() as percy:
            await percy.snapshot({"url": "http://localhost:8000", "name": "Home"})
            await percy.idle()
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float | None = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.core_version: str | None = None

    async def connect(self) -> dict[str, Any]:
        """Create the HTTP client and verify the API is reachable."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        try:
            return await self.healthcheck()
        except PercyClientError:
            await self.disconnect()
            raise

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def healthcheck(self) -> dict[str, Any]:
        data = await self._request("GET", "/percy/healthcheck")
        logger.info("Connected to Percy %s at %s", self.core_version or "(unknown)", self._base_url)
        return data

    async def get_config(self) -> dict[str, Any]:
        return (await self._request("GET", "/percy/config"))["config"]

    async def set_config(self, config: dict[str, Any]) -> dict[str, Any]:
        return (await self._request("POST", "/percy/config", json=config))["config"]

    async def snapshot(self, options: dict[str, Any] | list[dict[str, Any]], wait: bool = True) -> None:
        """Post one or more snapshots; with ``wait=False`` do not wait for capture."""
        path = "/percy/snapshot" if wait else "/percy/snapshot?async"
        await self._request("POST", path, json=options)

    async def idle(self) -> None:
        await self._request("GET", "/percy/idle", timeout=None)

    async def stop(self) -> None:
        await self._request("POST", "/percy/stop")

    async def testing_command(self, cmd: str, body: Any = None) -> dict[str, Any]:
        """Send a testing-mode command (reset, version, error, disconnect)."""
        return (await self._request("POST", f"/test/api/{cmd}", json=body))["testing"]

    async def logs(self) -> list[dict[str, Any]]:
        return (await self._request("GET", "/test/logs"))["logs"]

    async def __aenter__(self) -> PercyClient:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.disconnect()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        if self._client is None:
            raise PercyClientError("Not connected to the Percy API")
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise PercyClientError(f"Request to {path} failed: {e}") from e

        self.core_version = resp.headers.get(VERSION_HEADER, self.core_version)
        try:
            data = resp.json()
        except ValueError:
            data = {}

        if resp.is_error or not data.get("success", False):
            message = data.get("error") or f"{resp.status_code} {resp.reason_phrase}"
            raise PercyClientError(f"Request to {path} failed: {message}", status=resp.status_code)
        return data
