"""In-process agent that validates and records snapshots.

LocalAgent does not render anything. It keeps configuration and the
submitted snapshot descriptors in memory, which is all the control API
needs when running in testing mode for SDK integration tests or during
local SDK development.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from pydantic import ValidationError

from percycore.agent.base import Agent, AgentError
from percycore.domain.models import PercyConfig, SnapshotOptions
from percycore.logger import PercyLogger


class LocalAgent(Agent):
    """Agent that records snapshot descriptors instead of capturing them."""

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        testing: bool = False,
        logger: PercyLogger | None = None,
        build: dict[str, Any] | None = None,
    ) -> None:
        self._config = PercyConfig.model_validate(config or {})
        self._testing: dict[str, Any] | None = {} if testing else None
        self._logger = logger or PercyLogger()
        self._log = self._logger.child("core")
        self._build = build
        self._snapshots: dict[str, SnapshotOptions] = {}
        self._pending: set[asyncio.Task[None]] = set()
        self._stopping = False
        self._stopped = asyncio.Event()

    @property
    def testing(self) -> dict[str, Any] | None:
        return self._testing

    @property
    def build(self) -> dict[str, Any] | None:
        return self._build

    @property
    def config(self) -> dict[str, Any]:
        return self._config.to_json()

    @property
    def snapshots(self) -> list[SnapshotOptions]:
        return list(self._snapshots.values())

    @property
    def is_stopped(self) -> bool:
        return self._stopped.is_set()

    def loglevel(self) -> str:
        return self._logger.loglevel()

    async def set_config(self, config: Any) -> dict[str, Any]:
        """Deep-merge ``config`` into the current configuration."""
        if not isinstance(config, dict):
            raise AgentError("Invalid config: expected an object")
        merged = _deep_merge(self._config.to_json(), config)
        try:
            self._config = PercyConfig.model_validate(merged)
        except ValidationError as e:
            raise AgentError(f"Invalid config: {_describe(e)}") from e
        self._log.debug("Configuration updated")
        return self.config

    async def snapshot(self, options: Any) -> None:
        if self._stopping:
            raise AgentError("Percy is not running", status=503)

        items = options if isinstance(options, list) else [options]
        try:
            parsed = [SnapshotOptions.model_validate(item) for item in items]
        except ValidationError as e:
            raise AgentError(f"Invalid snapshot options: {_describe(e)}") from e

        await asyncio.gather(*(self._track(self._capture(s)) for s in parsed))

    async def idle(self) -> None:
        while self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def stop(self) -> None:
        if self._stopping:
            await self._stopped.wait()
            return
        self._stopping = True
        await self.idle()
        self._stopped.set()
        self._log.info("Stopped")

    async def wait_stopped(self) -> None:
        await self._stopped.wait()

    def _track(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _capture(self, snapshot: SnapshotOptions) -> None:
        name = snapshot.name or snapshot.url
        if name in self._snapshots:
            self._log.warn(f"Ignored duplicate snapshot: {name}")
            return
        # Reserve the name before yielding so concurrent duplicates are caught
        self._snapshots[name] = snapshot
        await asyncio.sleep(0)
        self._log.info(f"Snapshot taken: {name}")


def _deep_merge(base: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _describe(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'value'}: {err['msg']}"
        for err in error.errors()
    )
