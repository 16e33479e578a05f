"""Natural-language event search, timeline correlation and forensic reporting."""

from __future__ import annotations

from .correlation import correlate
from .gateway import InMemoryEventStore, JsonlEventStore, run_query
from .models import (
    Case,
    Condition,
    CorrelatedTimeline,
    Event,
    EventType,
    ForensicReport,
    ReportFormat,
    StructuredFilter,
    TimelineEvent,
    TimeRange,
)
from .query import translate
from .report import synthesize

__version__ = "0.1.0"

__all__ = [
    "Case",
    "Condition",
    "CorrelatedTimeline",
    "Event",
    "EventType",
    "ForensicReport",
    "InMemoryEventStore",
    "JsonlEventStore",
    "ReportFormat",
    "StructuredFilter",
    "TimeRange",
    "TimelineEvent",
    "correlate",
    "run_query",
    "synthesize",
    "translate",
]
