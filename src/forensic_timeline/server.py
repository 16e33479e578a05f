"""forensic-timeline MCP server.

Exposes 6 tools: translate a question, search events, build a correlated
timeline, generate a case report, and save/list rendered reports. The tools
are thin wrappers around the query, correlation and report modules; this
module owns the audit trail and the report files on disk.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from forensic_common.audit import AuditWriter
from forensic_common.instructions import FORENSIC_TIMELINE as _INSTRUCTIONS

from .cases import CaseStore, load_case
from .config import Config, get_config
from .correlation import correlate
from .exceptions import ForensicTimelineError
from .gateway import EventGateway, JsonlEventStore, run_query
from .query import translate
from .report import synthesize

logger = logging.getLogger(__name__)

SERVICE_NAME = "forensic-timeline"

_MAX_FILENAME = 200
_MAX_REPORT_BYTES = 10 * 1024 * 1024  # 10 MB


def _validate_str_length(value: str | None, field: str, max_len: int) -> None:
    """Reject strings exceeding max_len or containing null bytes."""
    if value is not None and isinstance(value, str):
        if len(value) > max_len:
            raise ValueError(f"{field} exceeds maximum length of {max_len} characters")
        if "\x00" in value:
            raise ValueError(f"{field} contains invalid null byte")


def _atomic_write(path: Path, content: str) -> None:
    """Write file atomically via temp file + rename."""
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, str(path))
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000


def create_server(
    config: Config | None = None,
    gateway: EventGateway | None = None,
    case_store: CaseStore | None = None,
) -> FastMCP:
    """Create and configure the forensic-timeline MCP server."""
    config = config or get_config()
    gateway = gateway or JsonlEventStore(config.events_file)
    case_store = case_store or CaseStore(config.cases_dir)

    server = FastMCP(SERVICE_NAME, instructions=_INSTRUCTIONS)
    audit = AuditWriter(SERVICE_NAME)
    server._audit = audit

    def check_query(query: str) -> None:
        _validate_str_length(query, "query", config.max_query_length)

    # ------------------------------------------------------------------
    # Tool 1: translate_query
    # ------------------------------------------------------------------
    @server.tool()
    def translate_query(query: str) -> str:
        """Show how a plain English question translates into a filter.

        Returns the structured filter (conditions, hour range, ordering,
        limit) and the equivalent SQL-style query string. Nothing is
        searched.
        """
        try:
            check_query(query)
            structured, sql = translate(query)
            return json.dumps({"filter": structured.to_dict(), "sql_query": sql})
        except (ForensicTimelineError, ValueError) as e:
            return json.dumps({"error": str(e)})

    # ------------------------------------------------------------------
    # Tool 2: search_events
    # ------------------------------------------------------------------
    @server.tool()
    def search_events(query: str) -> str:
        """Search security events with a plain English question.

        Example: "failed login attempts from Russia between 2 AM and 4 PM".
        At most 100 events are returned, newest first. If the event store
        fails, an empty list is returned with an "error" field.
        """
        try:
            check_query(query)
            started = time.monotonic()
            result = run_query(query, gateway)
            audit.log(
                tool="search_events",
                params={"natural_language": query},
                result_summary={
                    "sql_query": result.sql_query,
                    "results_count": result.results_count,
                    "error": result.error,
                },
                elapsed_ms=_elapsed_ms(started),
            )
            return json.dumps(result.to_dict(), default=str)
        except (ForensicTimelineError, ValueError) as e:
            return json.dumps({"error": str(e)})

    # ------------------------------------------------------------------
    # Tool 3: build_timeline
    # ------------------------------------------------------------------
    @server.tool()
    def build_timeline(query: str) -> str:
        """Search events and correlate them into a chronological timeline.

        Returns per-event narratives, related event ids (same user or IP
        within 30 minutes), detected suspicious patterns, and a Markdown
        narrative.
        """
        try:
            check_query(query)
            started = time.monotonic()
            result = run_query(query, gateway)
            timeline = correlate(result.events)
            audit.log(
                tool="build_timeline",
                params={"natural_language": query},
                result_summary={
                    "title": timeline.title,
                    "event_ids": timeline.event_ids,
                    "patterns": len(timeline.patterns),
                },
                elapsed_ms=_elapsed_ms(started),
            )
            data = timeline.to_dict()
            data["sql_query"] = result.sql_query
            if result.error:
                data["error"] = result.error
            return json.dumps(data, default=str)
        except (ForensicTimelineError, ValueError) as e:
            return json.dumps({"error": str(e)})

    # ------------------------------------------------------------------
    # Tool 4: generate_report
    # ------------------------------------------------------------------
    @server.tool()
    def generate_report(query: str, case_id: str = "") -> str:
        """Generate the legal-format forensic report for a case.

        Runs the query, correlates the matching events and renders the
        report using the case metadata (title, status, investigator,
        findings). Uses the active case when case_id is empty. Call
        save_report to persist the returned content.
        """
        try:
            check_query(query)
            _validate_str_length(case_id, "case_id", _MAX_FILENAME)
            started = time.monotonic()
            case_dir = case_store.resolve(case_id)
            case = load_case(case_dir)
            result = run_query(query, gateway)
            timeline = correlate(result.events)
            report = synthesize(case, timeline, result.events)
            audit.log(
                tool="generate_report",
                params={"natural_language": query, "case_id": case.id},
                result_summary={
                    "format": report.format.value,
                    "events": len(result.events),
                    "patterns": len(timeline.patterns),
                },
                case_id=case.id,
                elapsed_ms=_elapsed_ms(started),
                case_dir=case_dir,
            )
            data = report.to_dict()
            data["case_id"] = case.id
            data["timeline_title"] = timeline.title
            data["sql_query"] = result.sql_query
            if result.error:
                data["error"] = result.error
            return json.dumps(data, default=str)
        except (ForensicTimelineError, ValueError, OSError) as e:
            return json.dumps({"error": str(e)})

    # ------------------------------------------------------------------
    # Tool 5: save_report
    # ------------------------------------------------------------------
    @server.tool()
    def save_report(filename: str, content: str, case_id: str = "") -> str:
        """Persist a rendered report to the case reports/ directory.

        Filename is sanitized: only alphanumeric characters, hyphens,
        underscores, and dots are allowed. Path traversal is blocked.
        """
        try:
            _validate_str_length(filename, "filename", _MAX_FILENAME)
            if len(content.encode("utf-8", errors="replace")) > _MAX_REPORT_BYTES:
                return json.dumps({"error": "Report content exceeds maximum size of 10 MB."})
            if ".." in filename or "/" in filename or "\\" in filename:
                return json.dumps({"error": "Invalid filename: path traversal not allowed."})
            sanitized = re.sub(r"[^a-zA-Z0-9._-]", "_", filename)
            if not sanitized:
                return json.dumps({"error": "Filename is empty after sanitization."})

            case_dir = case_store.resolve(case_id)
            reports_dir = case_dir / "reports"
            reports_dir.mkdir(exist_ok=True)
            report_path = reports_dir / sanitized
            _atomic_write(report_path, content)

            audit.log(
                tool="save_report",
                params={"filename": sanitized, "characters": len(content)},
                result_summary={"status": "saved", "filename": sanitized},
                case_id=case_dir.name,
                case_dir=case_dir,
            )
            return json.dumps({
                "status": "saved",
                "path": str(report_path),
                "filename": sanitized,
                "characters": len(content),
            })
        except (ForensicTimelineError, ValueError, OSError) as e:
            return json.dumps({"error": str(e)})

    # ------------------------------------------------------------------
    # Tool 6: list_reports
    # ------------------------------------------------------------------
    @server.tool()
    def list_reports(case_id: str = "") -> str:
        """List saved reports in the case reports/ directory."""
        try:
            reports_dir = case_store.resolve(case_id) / "reports"
            if not reports_dir.exists():
                return json.dumps({"reports": []})
            reports = []
            for p in sorted(reports_dir.iterdir()):
                if p.is_file():
                    stat = p.stat()
                    reports.append({
                        "filename": p.name,
                        "size_bytes": stat.st_size,
                        "modified_at": datetime.fromtimestamp(
                            stat.st_mtime, tz=timezone.utc
                        ).isoformat(),
                    })
            return json.dumps({"reports": reports})
        except (ForensicTimelineError, ValueError, OSError) as e:
            return json.dumps({"error": str(e)})

    return server
