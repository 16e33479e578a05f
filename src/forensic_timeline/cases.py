"""Read-only case store.

A case lives in ``<cases_dir>/<case_id>/`` with its metadata in ``CASE.yaml``
and, optionally, findings in ``findings.json``. Case creation and lifecycle
belong to whatever manages that directory; this module only reads.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import yaml

from forensic_common import state_dir

from .exceptions import CaseNotFoundError, ValidationError
from .models import Case

logger = logging.getLogger(__name__)

CASE_FILE = "CASE.yaml"
FINDINGS_FILE = "findings.json"


def _validate_case_id(case_id: str) -> None:
    """Reject empty ids and path traversal characters."""
    if not case_id:
        raise ValidationError("Case ID cannot be empty")
    if ".." in case_id or "/" in case_id or "\\" in case_id:
        raise ValidationError(f"Invalid case ID (path traversal characters): {case_id}")


def load_case(case_dir: Path) -> Case:
    """Load a Case from a case directory.

    Raises:
        CaseNotFoundError: CASE.yaml is missing.
        ValidationError: CASE.yaml is not a YAML mapping.
    """
    case_dir = Path(case_dir)
    meta_file = case_dir / CASE_FILE
    if not meta_file.is_file():
        raise CaseNotFoundError(f"No {CASE_FILE} in {case_dir}")
    try:
        with open(meta_file, encoding="utf-8") as f:
            meta = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid YAML in {meta_file}: {e}") from e
    if not isinstance(meta, dict):
        raise ValidationError(f"{meta_file} must contain a YAML mapping")

    meta.setdefault("case_id", case_dir.name)
    if "findings" not in meta:
        findings_file = case_dir / FINDINGS_FILE
        if findings_file.is_file():
            try:
                meta["findings"] = json.loads(findings_file.read_text(encoding="utf-8"))
            except json.JSONDecodeError:
                logger.warning("Ignoring corrupt %s", findings_file)
    return Case.from_dict(meta)


class CaseStore:
    """Looks cases up by id under a cases directory."""

    def __init__(self, cases_dir: Path | str) -> None:
        self.cases_dir = Path(cases_dir)

    def case_dir(self, case_id: str) -> Path:
        _validate_case_id(case_id)
        path = self.cases_dir / case_id
        if not path.is_dir():
            raise CaseNotFoundError(f"Case not found: {case_id}")
        return path

    def get(self, case_id: str) -> Case:
        return load_case(self.case_dir(case_id))

    def resolve(self, case_id: str = "") -> Path:
        """Resolve a case directory.

        Priority: explicit case_id > FORENSIC_CASE_DIR > active case pointer
        file in the state directory.
        """
        if case_id:
            return self.case_dir(case_id)

        env_dir = os.environ.get("FORENSIC_CASE_DIR")
        if env_dir:
            path = Path(env_dir)
            if not path.is_dir():
                raise CaseNotFoundError(f"FORENSIC_CASE_DIR does not exist: {env_dir}")
            return path

        active_file = state_dir() / "active_case"
        if active_file.is_file():
            content = active_file.read_text(encoding="utf-8").strip()
            if content:
                return self.case_dir(content)

        raise CaseNotFoundError("No case specified and no active case set.")
