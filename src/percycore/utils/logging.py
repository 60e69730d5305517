"""Logging setup utilities for percycore.

Configures the stdlib logging tree for the entire application based on
the logging configuration settings.
"""

from __future__ import annotations

import logging
import sys

from percycore.config.settings import LoggingConfig

# Percy level names mapped onto stdlib logging levels
LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "silent": logging.CRITICAL + 10,
}


def to_stdlib_level(level: str) -> int:
    """Translate a percy level name into a stdlib logging level."""
    try:
        return LEVELS[level.lower()]
    except KeyError:
        raise ValueError(f"Unknown log level: {level}") from None


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure logging for the percycore application.

    Sets up the root 'percycore' logger with the specified level, format,
    and optional file handler.

    Args:
        config: Logging configuration. If None, uses defaults
                (info level, stderr output).
    """
    if config is None:
        config = LoggingConfig()

    root_logger = logging.getLogger("percycore")
    root_logger.setLevel(to_stdlib_level(config.level))

    formatter = logging.Formatter(config.format)

    # Console handler
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler (optional)
    if config.file:
        file_handler = logging.FileHandler(config.file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.debug("Logging initialized at %s level", config.level)
