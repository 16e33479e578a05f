"""Event correlation and pattern detection.

``correlate`` turns an unordered set of events into a ``CorrelatedTimeline``:

1. stable sort by timestamp ascending
2. one narrative line per event, dispatched on event type
3. related events: any *other* event (by id) sharing a non-empty user_id or
   ip_address with a timestamp strictly less than 30 minutes away
4. pattern sentences from ``PATTERN_RULES``, evaluated in list order
5. a Markdown narrative built from 2-4

The related-event definition is the all-pairs scan above. It is evaluated
through per-user and per-ip indexes of sorted positions, bisected on the
time window, which gives the same ids in the same (chronological) order in
O(n log n + related pairs) instead of O(n^2).
"""

from __future__ import annotations

import logging
from bisect import bisect_left, bisect_right
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, Sequence

from .models import CorrelatedTimeline, Event, EventType, TimelineEvent

logger = logging.getLogger(__name__)

CORRELATION_WINDOW = timedelta(minutes=30)
FAILED_LOGIN_THRESHOLD = 3
OFF_HOURS = range(0, 6)
HOME_COUNTRY = "US"

PLACEHOLDER = "N/A"


def format_timestamp(ts: datetime | None) -> str:
    if ts is None:
        return PLACEHOLDER
    return ts.strftime("%Y-%m-%d %H:%M:%S")


def describe_event(event: Event) -> str:
    """One-line narrative for a single event."""
    time = format_timestamp(event.timestamp)
    user = event.user_id or "Unknown user"
    location = f"from {event.country}" if event.country else "from unknown location"
    ip = f" ({event.ip_address})" if event.ip_address else ""

    if event.event_type == EventType.LOGIN:
        return f"{time}: {user} attempted login {location}{ip} - {event.status}"
    if event.event_type == EventType.FILE_ACCESS:
        resource = event.resource or "unknown file"
        return f"{time}: {user} {event.action} on {resource} {location}{ip} - {event.status}"
    if event.event_type == EventType.NETWORK:
        return f"{time}: Network activity by {user} - {event.action} {location}{ip}"
    return f"{time}: {event.event_type} event by {user} {location}{ip}"


def find_related(events: Sequence[Event]) -> list[tuple[str, ...]]:
    """Related event ids for each event of a chronologically sorted sequence."""
    times = [e.timestamp for e in events]
    by_user: dict[str, list[int]] = defaultdict(list)
    by_ip: dict[str, list[int]] = defaultdict(list)
    for pos, event in enumerate(events):
        if event.user_id:
            by_user[event.user_id].append(pos)
        if event.ip_address:
            by_ip[event.ip_address].append(pos)

    def at(pos: int) -> datetime:
        return times[pos]

    related = []
    for event in events:
        found: set[int] = set()
        for index, key in ((by_user, event.user_id), (by_ip, event.ip_address)):
            if not key:
                continue
            positions = index[key]
            lo = bisect_right(positions, event.timestamp - CORRELATION_WINDOW, key=at)
            hi = bisect_left(positions, event.timestamp + CORRELATION_WINDOW, key=at)
            found.update(positions[lo:hi])
        related.append(
            tuple(events[p].id for p in sorted(found) if events[p].id != event.id)
        )
    return related


# -- Pattern rules: each takes the sorted events and returns sentences --


def _foreign_logins(events: Sequence[Event]) -> list[str]:
    count = sum(
        1
        for e in events
        if e.event_type == EventType.LOGIN and e.country and e.country != HOME_COUNTRY
    )
    if count:
        return [f"{count} login attempt(s) from foreign IP addresses detected"]
    return []


def _failed_logins(events: Sequence[Event]) -> list[str]:
    count = sum(
        1 for e in events if e.event_type == EventType.LOGIN and e.status == "failed"
    )
    if count >= FAILED_LOGIN_THRESHOLD:
        return [f"Multiple failed login attempts detected ({count} attempts)"]
    return []


def _off_hours(events: Sequence[Event]) -> list[str]:
    count = sum(1 for e in events if e.timestamp.hour in OFF_HOURS)
    if count:
        return [f"{count} event(s) occurred during off-hours (12 AM - 5 AM)"]
    return []


def _downloads(events: Sequence[Event]) -> list[str]:
    count = sum(1 for e in events if e.action == "file_download")
    if count:
        return [f"{count} file download(s) detected"]
    return []


def _login_then_download(events: Sequence[Event]) -> list[str]:
    # Only a successful login is checked, whatever its country.
    by_user: dict[str, list[Event]] = {}
    for e in events:
        if e.user_id:
            by_user.setdefault(e.user_id, []).append(e)

    found = []
    for user_id, user_events in by_user.items():
        logged_in = any(
            e.event_type == EventType.LOGIN and e.status == "success"
            for e in user_events
        )
        downloaded = any(e.action == "file_download" for e in user_events)
        if logged_in and downloaded:
            found.append(
                f"Suspicious pattern: User {user_id} logged in from foreign "
                f"location and downloaded files"
            )
    return found


PatternRule = Callable[[Sequence[Event]], list[str]]

PATTERN_RULES: list[PatternRule] = [
    _foreign_logins,
    _failed_logins,
    _off_hours,
    _downloads,
    _login_then_download,
]


def detect_patterns(events: Sequence[Event]) -> list[str]:
    patterns: list[str] = []
    for rule in PATTERN_RULES:
        patterns.extend(rule(events))
    return patterns


def build_narrative(events: Sequence[TimelineEvent], patterns: Sequence[str]) -> str:
    first = events[0].timestamp if events else None
    last = events[-1].timestamp if events else None
    lines = [
        "# Forensic Timeline Analysis",
        "",
        f"**Total Events**: {len(events)}",
        f"**Time Range**: {format_timestamp(first)} to {format_timestamp(last)}",
        "",
    ]
    if patterns:
        lines += ["## Detected Patterns", ""]
        lines += [f"{i}. {p}" for i, p in enumerate(patterns, start=1)]
        lines.append("")

    lines += ["## Event Sequence", ""]
    for i, te in enumerate(events, start=1):
        lines.append(f"**Event {i}**: {te.narrative}")
        if te.related_events:
            lines.append(f"   *Related to {len(te.related_events)} other event(s)*")
        lines.append("")
    return "\n".join(lines) + "\n"


def correlate(events: Sequence[Event]) -> CorrelatedTimeline:
    """Order, annotate and pattern-check a set of events."""
    ordered = sorted(events, key=lambda e: e.timestamp)
    related = find_related(ordered)
    timeline_events = tuple(
        TimelineEvent(event=e, narrative=describe_event(e), related_events=r)
        for e, r in zip(ordered, related)
    )
    patterns = tuple(detect_patterns(ordered))
    logger.debug(
        "Correlated %d event(s), %d pattern(s)", len(timeline_events), len(patterns)
    )
    return CorrelatedTimeline(
        title=f"Forensic Timeline - {len(ordered)} Events",
        events=timeline_events,
        patterns=patterns,
        narrative=build_narrative(timeline_events, patterns),
    )
