"""Event store gateway: the boundary between the core and stored events.

The core only needs ``fetch(filter) -> events``. ``InMemoryEventStore`` and
``JsonlEventStore`` are the stores shipped here; anything else (a database,
a SIEM API) plugs in by implementing ``EventGateway``. ``run_query`` is the
single place a gateway failure is caught: it logs the error and returns an
empty result so correlation and reporting still run.
"""

from __future__ import annotations

import json
import logging
import operator
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

from .exceptions import GatewayError, ValidationError
from .models import Condition, Event, StructuredFilter
from .query import translate

logger = logging.getLogger(__name__)

_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "=": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    "<": operator.lt,
}

_EVENT_FIELDS = {f.name for f in fields(Event)} - {"metadata"}


class EventGateway(Protocol):
    def fetch(self, structured: StructuredFilter) -> list[Event]:
        """Return events matching the filter, or raise GatewayError."""
        ...


def _field_value(event: Event, name: str) -> Any:
    if name == "timestamp":
        return event.timestamp.isoformat()
    if name in _EVENT_FIELDS:
        return getattr(event, name)
    return event.metadata.get(name)


def matches_condition(event: Event, condition: Condition) -> bool:
    """Evaluate one condition with SQL null semantics.

    A missing field never matches, not even under "!=". Values of different
    types are compared as strings.
    """
    actual = _field_value(event, condition.field)
    if actual is None:
        return False
    expected = condition.value
    if type(actual) is not type(expected):
        actual, expected = str(actual), str(expected)
    return _COMPARATORS[condition.operator](actual, expected)


def matches_filter(event: Event, structured: StructuredFilter) -> bool:
    if not all(matches_condition(event, c) for c in structured.conditions):
        return False
    if structured.time_range is not None:
        hour = event.timestamp.hour
        tr = structured.time_range
        if not tr.start_hour <= hour <= tr.end_hour:
            return False
    return True


class InMemoryEventStore:
    """Event store over a list of events held in memory."""

    def __init__(self, events: Iterable[Event] = ()) -> None:
        self._events = list(events)

    def _load(self) -> list[Event]:
        return self._events

    def fetch(self, structured: StructuredFilter) -> list[Event]:
        matched = [e for e in self._load() if matches_filter(e, structured)]
        if structured.order_by:
            matched.sort(
                key=lambda e: _sort_key(e, structured.order_by), reverse=True
            )
        if structured.limit:
            matched = matched[: structured.limit]
        logger.debug(
            "Filter with %d condition(s) matched %d event(s)",
            len(structured.conditions),
            len(matched),
        )
        return matched


def _sort_key(event: Event, order_by: str) -> Any:
    if order_by == "timestamp":
        return event.timestamp
    value = _field_value(event, order_by)
    return "" if value is None else str(value)


def load_events(path: Path) -> list[Event]:
    """Load events from a JSONL file or a JSON array file.

    Records that are not valid UTF-8 JSON or fail validation are logged and
    skipped.

    Raises:
        GatewayError: The file cannot be read or is a malformed JSON array.
    """
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise GatewayError(f"Cannot read event file {path}: {e}") from e

    records: list[Any]
    if data.lstrip().startswith(b"["):
        try:
            records = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise GatewayError(f"Invalid JSON in event file {path}: {e}") from e
    else:
        records = []
        for lineno, raw in enumerate(data.splitlines(), start=1):
            if not raw.strip():
                continue
            try:
                records.append(json.loads(raw.decode("utf-8")))
            except (UnicodeDecodeError, json.JSONDecodeError):
                logger.warning("Corrupt JSONL line %d in %s", lineno, path)

    events = []
    for record in records:
        if not isinstance(record, dict):
            logger.warning("Skipping non-object event record in %s", path)
            continue
        try:
            events.append(Event.from_dict(record))
        except ValidationError as e:
            logger.warning("Skipping invalid event record in %s: %s", path, e)
    return events


class JsonlEventStore(InMemoryEventStore):
    """Event store backed by a JSONL (or JSON array) file, read on every fetch."""

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self.path = Path(path)

    def _load(self) -> list[Event]:
        return load_events(self.path)


@dataclass
class QueryResult:
    """Outcome of a natural-language query against a gateway."""

    natural_language: str
    filter: StructuredFilter
    sql_query: str
    events: list[Event] = field(default_factory=list)
    error: str | None = None

    @property
    def results_count(self) -> int:
        return len(self.events)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "natural_language": self.natural_language,
            "sql_query": self.sql_query,
            "filter": self.filter.to_dict(),
            "results_count": self.results_count,
            "events": [e.to_dict() for e in self.events],
        }
        if self.error:
            data["error"] = self.error
        return data


def run_query(text: str, gateway: EventGateway) -> QueryResult:
    """Translate text, fetch matching events, and degrade to empty on failure."""
    structured, sql = translate(text)
    result = QueryResult(natural_language=text, filter=structured, sql_query=sql)
    try:
        result.events = list(gateway.fetch(structured))
    except GatewayError as e:
        logger.warning("Event query failed, returning no events: %s", e)
        result.error = str(e)
    return result
