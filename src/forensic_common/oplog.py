"""Operational logging for forensic-timeline services.

Structured JSON logging to stderr and optionally to the state directory
(``~/.forensic-timeline/logs/``).
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from forensic_common import state_dir

_TRUE_VALUES = ("true", "1", "yes")


class _StructuredFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def __init__(self, service_name: str = "forensic-timeline") -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }
        if record.levelno >= logging.WARNING:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }
        if record.exc_info and record.exc_info[0]:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
            }
        return json.dumps(log_data, default=str)


def setup_logging(
    service_name: str = "forensic-timeline",
    *,
    level: int | str = logging.INFO,
    json_format: bool | None = None,
    log_to_file: bool | None = None,
) -> logging.Logger:
    """Configure operational logging for a service.

    Args:
        service_name: Service name for log entries. Hyphens are mapped to
            underscores to find the package logger.
        level: Logging level, numeric or a level name such as "DEBUG".
        json_format: Use JSON formatting. If None, checks FORENSIC_LOG_FORMAT
            (default: "json"). Set to "text" for plain text.
        log_to_file: Write to <state dir>/logs/{service_name}.jsonl. If None,
            checks FORENSIC_LOG_FILE (default: "false").

    Returns:
        The configured package logger.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    if json_format is None:
        json_format = os.environ.get("FORENSIC_LOG_FORMAT", "json").lower() != "text"
    if log_to_file is None:
        log_to_file = (
            os.environ.get("FORENSIC_LOG_FILE", "false").lower() in _TRUE_VALUES
        )

    pkg_logger = logging.getLogger(service_name.replace("-", "_"))
    pkg_logger.setLevel(level)
    pkg_logger.handlers.clear()

    formatter: logging.Formatter
    if json_format:
        formatter = _StructuredFormatter(service_name)
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    # stderr only: stdout carries the MCP stdio protocol
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(formatter)
    pkg_logger.addHandler(stderr_handler)

    if log_to_file:
        log_dir = state_dir() / "logs"
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(
                log_dir / f"{service_name}.jsonl",
                encoding="utf-8",
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(_StructuredFormatter(service_name))
            pkg_logger.addHandler(file_handler)
        except OSError as exc:
            pkg_logger.warning(
                "Failed to set up file logging to %s: %s: %s",
                log_dir,
                type(exc).__name__,
                exc,
            )

    pkg_logger.propagate = False
    return pkg_logger
