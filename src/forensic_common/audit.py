"""Audit trail writer for forensic-timeline services.

Every query, timeline and report produced for an investigator is recorded
as one JSONL line in the case audit directory. The analytical core never
writes here; the surrounding service does.
"""

from __future__ import annotations

import getpass
import json
import logging
import os
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_MAX_SLUG = 40
_MAX_SUMMARY_VALUE = 500


def _sanitize_slug(raw: str) -> str:
    """Lowercase, replace invalid characters with hyphens, cap at 40 chars."""
    slug = re.sub(r"[^a-z0-9-]", "-", raw.lower()).strip("-")
    if len(slug) > _MAX_SLUG:
        logger.warning(
            "Examiner slug truncated from %d to %d chars", len(slug), _MAX_SLUG
        )
        slug = slug[:_MAX_SLUG].rstrip("-")
    return slug or "unknown"


def resolve_examiner() -> str:
    """Resolve examiner identity: FORENSIC_EXAMINER > OS username."""
    examiner = os.environ.get("FORENSIC_EXAMINER")
    if not examiner:
        try:
            examiner = getpass.getuser()
        except (KeyError, OSError):
            examiner = "unknown"
    return _sanitize_slug(examiner)


class AuditWriter:
    """Appends audit entries to a per-service JSONL file.

    The sequence counters are guarded by a lock so concurrent tool calls
    never hand out the same audit id.
    """

    def __init__(self, service: str, audit_dir: str | None = None) -> None:
        self.service = service
        self._explicit_audit_dir = audit_dir
        self._sequences: dict[tuple[str, str], int] = {}
        self._lock = threading.Lock()

    @property
    def examiner(self) -> str:
        return resolve_examiner()

    @property
    def _prefix(self) -> str:
        return self.service.replace("-", "")[:12]

    def _get_audit_dir(self, case_dir: Path | str | None = None) -> Path | None:
        """Get the audit directory.

        Priority: explicit audit_dir > FORENSIC_AUDIT_DIR > case_dir/audit
        (the case the tool call resolved) > FORENSIC_CASE_DIR/audit.
        """
        if self._explicit_audit_dir:
            audit_dir = Path(self._explicit_audit_dir)
        elif os.environ.get("FORENSIC_AUDIT_DIR"):
            audit_dir = Path(os.environ["FORENSIC_AUDIT_DIR"])
        else:
            case_dir = case_dir or os.environ.get("FORENSIC_CASE_DIR")
            if not case_dir:
                return None
            path = Path(case_dir)
            if not path.is_dir():
                logger.warning(
                    "Case directory %s is not a directory, skipping audit", case_dir
                )
                return None
            audit_dir = path / "audit"
        try:
            audit_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Cannot create audit directory %s: %s", audit_dir, e)
            return None
        return audit_dir

    def _log_file(self, case_dir: Path | str | None = None) -> Path | None:
        audit_dir = self._get_audit_dir(case_dir)
        if audit_dir is None:
            return None
        return audit_dir / f"{self.service}.jsonl"

    def _next_audit_id(self, log_file: Path | None) -> str:
        """Generate the next audit id: {prefix}-{examiner}-{date}-{seq}.

        Sequences are kept per log file and day, resumed from the file the
        first time it is written to that day.
        """
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        key = (today, str(log_file))
        with self._lock:
            if key not in self._sequences:
                self._sequences[key] = self._resume_sequence(today, log_file)
            self._sequences[key] += 1
            seq = self._sequences[key]
        return f"{self._prefix}-{self.examiner}-{today}-{seq:03d}"

    def _resume_sequence(self, date_str: str, log_file: Path | None) -> int:
        """Highest sequence already written today. Caller holds the lock."""
        pattern = f"{self._prefix}-{self.examiner}-{date_str}-"
        max_seq = 0
        for entry in _read_jsonl(log_file):
            audit_id = entry.get("audit_id", "")
            if not audit_id.startswith(pattern):
                continue
            try:
                max_seq = max(max_seq, int(audit_id[len(pattern):]))
            except ValueError:
                continue
        return max_seq

    def log(
        self,
        tool: str,
        params: dict[str, Any],
        result_summary: Any,
        case_id: str | None = None,
        elapsed_ms: float | None = None,
        case_dir: Path | str | None = None,
    ) -> str:
        """Write an audit entry. Returns the audit id.

        case_dir is the directory of the case the call worked on; its
        audit/ sub-directory receives the entry unless FORENSIC_AUDIT_DIR
        or an explicit audit_dir overrides it.
        """
        log_file = self._log_file(case_dir)
        audit_id = self._next_audit_id(log_file)
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "service": self.service,
            "tool": tool,
            "audit_id": audit_id,
            "examiner": self.examiner,
            "case_id": case_id or "",
            "params": params,
            "result_summary": _summarize(result_summary),
        }
        if elapsed_ms is not None:
            entry["elapsed_ms"] = round(elapsed_ms, 1)
        self._write_entry(entry, log_file)
        return audit_id

    def _write_entry(self, entry: dict, log_file: Path | None) -> bool:
        if log_file is None:
            logger.debug(
                "No audit directory configured, entry not written: %s/%s",
                self.service,
                entry.get("tool"),
            )
            return False
        try:
            with open(log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, default=str) + "\n")
                f.flush()
                os.fsync(f.fileno())
            return True
        except OSError as e:
            logger.warning(
                "Failed to write audit entry %s for tool=%s: %s",
                entry.get("audit_id"),
                entry.get("tool"),
                e,
            )
            return False

    def get_entries(
        self,
        since: str | None = None,
        tool: str | None = None,
        case_dir: Path | str | None = None,
    ) -> list[dict]:
        """Read back audit entries, optionally filtered by time and tool."""
        entries = _read_jsonl(self._log_file(case_dir))
        if since:
            entries = [e for e in entries if e.get("ts", "") >= since]
        if tool:
            entries = [e for e in entries if e.get("tool") == tool]
        return entries

    def reset_counter(self) -> None:
        """Reset the audit id counters. For testing only."""
        with self._lock:
            self._sequences.clear()


def _read_jsonl(log_file: Path | None) -> list[dict]:
    if log_file is None or not log_file.exists():
        return []
    entries = []
    try:
        with open(log_file, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning("Corrupt JSONL line in %s", log_file)
    except OSError as e:
        logger.warning("Failed to read audit entries from %s: %s", log_file, e)
    return entries


def _summarize(result: Any) -> Any:
    """Truncate large results for the audit log."""
    if isinstance(result, dict):
        return result
    if isinstance(result, list):
        return {"count": len(result), "type": "list"}
    return {"value": str(result)[:_MAX_SUMMARY_VALUE]}
