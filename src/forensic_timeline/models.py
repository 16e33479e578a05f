"""Data model shared by the translator, correlation engine and report synthesizer.

Events arrive from the event store as plain mappings and are converted once,
at the boundary, into frozen ``Event`` values. Everything downstream builds
new values instead of mutating inputs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from .exceptions import ValidationError


class EventType(str, Enum):
    LOGIN = "login"
    FILE_ACCESS = "file_access"
    NETWORK = "network"
    OTHER = "other"


class ReportFormat(str, Enum):
    LEGAL = "legal"
    TECHNICAL = "technical"
    EXECUTIVE = "executive"


OPERATORS = ("=", "!=", ">", "<")

_FRACTION_RE = re.compile(r"(?<=:\d{2})\.(\d+)")
_OFFSET_RE = re.compile(r"(\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?)([+-]\d{2}):?(\d{2})?$")


def _normalize_iso(text: str) -> str:
    """Rewrite fractions to six digits and offsets to +HH:MM for fromisoformat."""
    text = _FRACTION_RE.sub(lambda m: "." + (m.group(1) + "000000")[:6], text)
    return _OFFSET_RE.sub(
        lambda m: f"{m.group(1)}{m.group(2)}:{m.group(3) or '00'}", text
    )


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO 8601 instant into a timezone-aware datetime.

    Naive values are taken as UTC. Offsets may be "Z", hour-only or
    colonless, and fractions may have any number of digits.
    """
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(_normalize_iso(text))
        except ValueError:
            raise ValidationError(f"Invalid event timestamp: {value!r}") from None
    else:
        raise ValidationError(f"Invalid event timestamp: {value!r}")
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


@dataclass(frozen=True)
class Event:
    """A single recorded security-relevant occurrence."""

    id: str
    event_type: str
    timestamp: datetime
    action: str = ""
    status: str = ""
    user_id: str | None = None
    ip_address: str | None = None
    country: str | None = None
    resource: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    created_at: str | None = None

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "Event":
        """Build an Event from an event store record.

        Raises:
            ValidationError: id or event_type missing, or timestamp invalid.
        """
        if not record.get("id"):
            raise ValidationError("Event record has no id")
        if not record.get("event_type"):
            raise ValidationError(f"Event {record['id']} has no event_type")
        metadata = record.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise ValidationError(f"Event {record['id']} metadata must be a mapping")
        return cls(
            id=str(record["id"]),
            event_type=str(record["event_type"]),
            timestamp=parse_timestamp(record.get("timestamp")),
            action=str(record.get("action") or ""),
            status=str(record.get("status") or ""),
            user_id=_optional_str(record.get("user_id")),
            ip_address=_optional_str(record.get("ip_address")),
            country=_optional_str(record.get("country")),
            resource=_optional_str(record.get("resource")),
            metadata=dict(metadata),
            created_at=_optional_str(record.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "timestamp": self.timestamp.isoformat(),
            "user_id": self.user_id,
            "ip_address": self.ip_address,
            "country": self.country,
            "action": self.action,
            "resource": self.resource,
            "status": self.status,
            "metadata": dict(self.metadata),
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class Condition:
    """One field/operator/value test against stored events."""

    field: str
    operator: str
    value: str | int | float | bool

    def __post_init__(self):
        if self.operator not in OPERATORS:
            raise ValidationError(
                f"Unsupported operator {self.operator!r}; expected one of {', '.join(OPERATORS)}"
            )

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "operator": self.operator, "value": self.value}


@dataclass(frozen=True)
class TimeRange:
    """Inclusive hour-of-day range, bounds formatted HH:00:00."""

    start: str
    end: str

    @property
    def start_hour(self) -> int:
        return int(self.start.split(":", 1)[0])

    @property
    def end_hour(self) -> int:
        return int(self.end.split(":", 1)[0])

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class StructuredFilter:
    """Conditions plus ordering and limit used to retrieve events.

    Results are always ordered by ``order_by`` descending.
    """

    conditions: tuple[Condition, ...] = ()
    time_range: TimeRange | None = None
    order_by: str = "timestamp"
    limit: int = 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "conditions": [c.to_dict() for c in self.conditions],
            "time_range": self.time_range.to_dict() if self.time_range else None,
            "order_by": self.order_by,
            "descending": True,
            "limit": self.limit,
        }


@dataclass(frozen=True)
class TimelineEvent:
    """An event annotated with its narrative line and related event ids."""

    event: Event
    narrative: str
    related_events: tuple[str, ...] = ()

    @property
    def id(self) -> str:
        return self.event.id

    @property
    def timestamp(self) -> datetime:
        return self.event.timestamp

    def to_dict(self) -> dict[str, Any]:
        data = self.event.to_dict()
        data["narrative"] = self.narrative
        data["related_events"] = list(self.related_events)
        return data


@dataclass(frozen=True)
class CorrelatedTimeline:
    title: str
    events: tuple[TimelineEvent, ...]
    patterns: tuple[str, ...]
    narrative: str

    @property
    def event_ids(self) -> list[str]:
        return [te.id for te in self.events]

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "event_ids": self.event_ids,
            "events": [te.to_dict() for te in self.events],
            "patterns": list(self.patterns),
            "narrative": self.narrative,
        }


@dataclass(frozen=True)
class Case:
    """Investigator-owned case record, read-only to the core."""

    id: str
    title: str
    description: str = ""
    status: str = "open"
    investigator: str = ""
    created_at: str = ""
    updated_at: str = ""
    findings: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Case":
        """Build a Case from a CASE.yaml mapping.

        Accepts both the case-file keys (case_id, name, examiner, created,
        updated) and the record keys (id, title, investigator, created_at,
        updated_at).
        """

        def pick(*keys: str) -> str:
            for key in keys:
                value = data.get(key)
                if value is not None and value != "":
                    return str(value)
            return ""

        findings = data.get("findings") or {}
        if not isinstance(findings, Mapping):
            findings = {"items": findings}
        return cls(
            id=pick("id", "case_id"),
            title=pick("title", "name"),
            description=pick("description"),
            status=pick("status") or "open",
            investigator=pick("investigator", "examiner", "lead_examiner"),
            created_at=pick("created_at", "created"),
            updated_at=pick("updated_at", "updated", "closed", "created_at", "created"),
            findings=dict(findings),
        )


@dataclass(frozen=True)
class ForensicReport:
    format: ReportFormat
    content: str
    methodology: str
    evidence_integrity: str
    generated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format.value,
            "content": self.content,
            "methodology": self.methodology,
            "evidence_integrity": self.evidence_integrity,
            "generated_at": self.generated_at.isoformat(),
        }
