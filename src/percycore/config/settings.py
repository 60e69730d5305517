"""Configuration management for percycore.

Loads settings from a YAML configuration file with environment variable
overrides. Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(".percy.yml")

LogLevelName = Literal["debug", "info", "warn", "error", "silent"]


class ServerConfig(BaseModel):
    host: str = Field(default="localhost")
    port: int = Field(default=5338, ge=1, le=65535)


class StaticConfig(BaseModel):
    serve: Path | None = Field(default=None, description="Directory of files to serve")
    base_url: str = Field(default="/")
    rewrites: dict[str, str] = Field(default_factory=dict)
    clean_urls: bool = Field(default=False)
    host: str = Field(default="localhost")
    port: int = Field(default=8000, ge=1, le=65535)


class LoggingConfig(BaseModel):
    level: LogLevelName = Field(default="info")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for percycore.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "PERCY_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    testing: bool = Field(default=False)
    dom_path: Path | None = Field(default=None)

    # Configuration sections
    server: ServerConfig = Field(default_factory=ServerConfig)
    static: StaticConfig = Field(default_factory=StaticConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: PERCY_LOGLEVEL > YAML file > prefixed env vars > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.debug("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed-style vars."""
    loglevel = os.environ.get("PERCY_LOGLEVEL", "")
    if loglevel:
        yaml_data.setdefault("logging", {})
        yaml_data["logging"]["level"] = loglevel.lower()
