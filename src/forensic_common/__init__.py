"""Shared utilities for forensic-timeline services."""

from __future__ import annotations

import os
from pathlib import Path

STATE_DIR_NAME = ".forensic-timeline"


def state_dir() -> Path:
    """Return the per-user state directory (logs, active case pointer).

    FORENSIC_STATE_DIR overrides the default of ~/.forensic-timeline.
    """
    override = os.environ.get("FORENSIC_STATE_DIR", "")
    if override:
        return Path(override)
    return Path.home() / STATE_DIR_NAME
