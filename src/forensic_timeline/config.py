"""
Centralized configuration for forensic-timeline.

Settings can be overridden via environment variables with the FORENSIC_
prefix.

Environment Variables:
    FORENSIC_CASES_DIR: Directory holding one sub-directory per case (default: cases)
    FORENSIC_EVENTS_FILE: JSONL or JSON event file served by the store (default: events.jsonl)
    FORENSIC_LOG_LEVEL: Logging level (default: INFO)
    FORENSIC_MAX_QUERY_LENGTH: Longest accepted free-text query (default: 2000)

Usage:
    from forensic_timeline.config import get_config
    config = get_config()
    print(config.events_file)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """Runtime settings, validated at creation time."""

    cases_dir: Path = Path("cases")
    events_file: Path = Path("events.jsonl")
    log_level: str = "INFO"
    max_query_length: int = 2000

    def __post_init__(self):
        self.cases_dir = Path(self.cases_dir)
        self.events_file = Path(self.events_file)
        self.log_level = str(self.log_level).upper()
        self._validate()

    def _validate(self):
        if self.log_level not in _VALID_LOG_LEVELS:
            raise ConfigurationError(
                f"Invalid log_level: {self.log_level}. "
                f"Must be one of: {', '.join(_VALID_LOG_LEVELS)}"
            )
        if self.max_query_length < 1:
            raise ConfigurationError(
                f"max_query_length must be positive, got {self.max_query_length}"
            )

    @classmethod
    def from_env(cls) -> "Config":
        """Build a Config from FORENSIC_* environment variables."""
        kwargs: dict = {}
        if os.environ.get("FORENSIC_CASES_DIR"):
            kwargs["cases_dir"] = os.environ["FORENSIC_CASES_DIR"]
        if os.environ.get("FORENSIC_EVENTS_FILE"):
            kwargs["events_file"] = os.environ["FORENSIC_EVENTS_FILE"]
        if os.environ.get("FORENSIC_LOG_LEVEL"):
            kwargs["log_level"] = os.environ["FORENSIC_LOG_LEVEL"]
        raw_length = os.environ.get("FORENSIC_MAX_QUERY_LENGTH")
        if raw_length:
            try:
                kwargs["max_query_length"] = int(raw_length)
            except ValueError:
                raise ConfigurationError(
                    f"FORENSIC_MAX_QUERY_LENGTH must be an integer, got {raw_length!r}"
                ) from None
        return cls(**kwargs)


_config: Config | None = None


def get_config() -> Config:
    """Return the process-wide config, loading it from the environment once."""
    global _config
    if _config is None:
        _config = Config.from_env()
        logger.debug("Loaded configuration: %s", _config)
    return _config


def reset_config() -> None:
    """Forget the cached config. For testing only."""
    global _config
    _config = None
