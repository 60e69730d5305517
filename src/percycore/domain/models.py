"""Core domain models for the percycore system.

These models represent the data flowing through the control API: the
agent configuration SDKs read and update, the snapshot descriptors they
submit, and the fault-injection state scripted in testing mode.

JSON payloads use camelCase keys, matching what Percy SDKs send.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

PositiveInt = Annotated[int, Field(gt=0)]


# ---------------------------------------------------------------------------
# Agent Configuration Models
# ---------------------------------------------------------------------------


class SnapshotConfig(BaseModel):
    """Defaults applied to every snapshot unless overridden per snapshot."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    widths: list[PositiveInt] = Field(default_factory=lambda: [375, 1280])
    min_height: int = Field(default=1024, ge=10, le=2000)
    percy_css: str = Field(default="", alias="percyCSS")
    enable_javascript: bool = Field(default=False, alias="enableJavaScript")


class DiscoveryConfig(BaseModel):
    """Asset discovery options."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    allowed_hostnames: list[str] = Field(default_factory=list)
    network_idle_timeout: int = Field(default=100, ge=1, le=750)
    disable_cache: bool = Field(default=False)
    concurrency: PositiveInt | None = Field(default=None)


class PercyConfig(BaseModel):
    """Root agent configuration, as exposed by ``/percy/config``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    version: Literal[2] = 2
    snapshot: SnapshotConfig = Field(default_factory=SnapshotConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Snapshot Models
# ---------------------------------------------------------------------------


class SnapshotOptions(BaseModel):
    """A single snapshot descriptor submitted to ``/percy/snapshot``.

    Unknown keys are kept; SDKs attach client-specific options the
    agent passes through untouched.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    url: str = Field(description="Address of the page the snapshot was taken of")
    name: str | None = Field(default=None, description="Snapshot name, unique per build")
    widths: list[PositiveInt] | None = Field(default=None)
    min_height: int | None = Field(default=None, ge=10, le=2000)
    percy_css: str | None = Field(default=None, alias="percyCSS")
    enable_javascript: bool | None = Field(default=None, alias="enableJavaScript")
    dom_snapshot: Any = Field(default=None)
    client_info: str | None = Field(default=None)
    environment_info: str | list[str] | None = Field(default=None)

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if urlsplit(value).scheme not in ("http", "https"):
            raise ValueError(f"Invalid snapshot URL: {value}")
        return value

    @model_validator(mode="after")
    def _default_name(self) -> SnapshotOptions:
        if not self.name:
            self.name = urlsplit(self.url).path or "/"
        return self


# ---------------------------------------------------------------------------
# Testing Mode Models
# ---------------------------------------------------------------------------

FaultMode = Literal["error", "disconnect"]


class TestingState(BaseModel):
    """Fault-injection state scripted through the ``/test/api`` commands.

    ``version`` overrides the reported core version when it is a string
    (numbers and ``true`` are stored as their JSON text) and suppresses
    the version header entirely when it is ``False``.
    ``api`` maps request paths to the fault they should simulate.
    """

    __test__ = False

    model_config = ConfigDict(validate_assignment=True)

    version: str | Literal[False] | None = None
    api: dict[str, FaultMode] = Field(default_factory=dict)

    @field_validator("version", mode="before")
    @classmethod
    def _stringify_scalar(cls, value: Any) -> Any:
        if value is True:
            return "true"
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return json.dumps(value)
        return value

    def fault_for(self, path: str) -> FaultMode | None:
        return self.api.get(path)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(exclude_defaults=True)
