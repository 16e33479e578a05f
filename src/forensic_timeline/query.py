"""Free-text question to structured filter translation.

Translation is a flat, ordered table of keyword and regex detectors. Each
detector that fires contributes exactly one condition, in table order, so
the order of conditions in the output is the order of ``CONDITION_RULES``.
Nothing here can fail: text that no detector recognises produces a filter
with no conditions, which matches every event.
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from .models import Condition, StructuredFilter, TimeRange

logger = logging.getLogger(__name__)

EVENTS_TABLE = "forensic_events"
DEFAULT_ORDER_BY = "timestamp"
DEFAULT_LIMIT = 100

_COUNTRY_RE = re.compile(
    r"from\s+(outside\s+)?(the\s+)?([a-z\s]+?)(?:\s+between|\s+that|\s+in|\s+with|$)"
)
_HOURS_RE = re.compile(
    r"between\s+(\d+)\s*(am|pm)?\s*and\s+(\d+)\s*(am|pm)?"
)
_IP_RE = re.compile(r"ip\s+(?:address\s+)?(?:is\s+)?([0-9.]+)")
_USER_RE = re.compile(r"user\s+(?:id\s+)?(?:is\s+)?['\"]?([a-z0-9_]+)['\"]?")

_OUTSIDE_US = ("outside the us", "outside us")

Rule = Callable[[str], "Condition | None"]


def _keyword_rule(phrases: tuple[str, ...], field: str, value: str) -> Rule:
    def rule(text: str) -> Condition | None:
        if any(phrase in text for phrase in phrases):
            return Condition(field, "=", value)
        return None

    return rule


def _country_rule(text: str) -> Condition | None:
    match = _COUNTRY_RE.search(text)
    if not match:
        return None
    outside, the, place = match.groups()
    place = place.strip()
    phrase = f"{'outside ' if outside else ''}{'the ' if the else ''}{place}"
    if phrase in _OUTSIDE_US:
        return Condition("country", "!=", "US")
    # Country code is the first two letters of the place name.
    return Condition("country", "=", place.upper()[:2])


def _ip_rule(text: str) -> Condition | None:
    match = _IP_RE.search(text)
    if not match:
        return None
    return Condition("ip_address", "=", match.group(1))


def _user_rule(text: str) -> Condition | None:
    match = _USER_RE.search(text)
    if not match:
        return None
    return Condition("user_id", "=", match.group(1))


CONDITION_RULES: list[tuple[str, Rule]] = [
    ("login", _keyword_rule(("login", "login attempt"), "event_type", "login")),
    ("download", _keyword_rule(("file download", "download"), "action", "file_download")),
    ("file_access", _keyword_rule(("file access", "file read"), "event_type", "file_access")),
    ("success", _keyword_rule(("successful", "succeeded"), "status", "success")),
    ("failure", _keyword_rule(("failed", "failure"), "status", "failed")),
    ("country", _country_rule),
    ("ip_address", _ip_rule),
    ("user_id", _user_rule),
]


def parse_hour_range(text: str) -> TimeRange | None:
    """Extract an hour-of-day range from "between N[am|pm] and M[am|pm]".

    A suffix written on only one bound applies to both. The pm shift of the
    start bound only happens while it is still below the (shifted) end.
    """
    match = _HOURS_RE.search(text)
    if not match:
        return None
    start, start_suffix, end, end_suffix = match.groups()
    start = int(start)
    end = int(end)
    start_period = start_suffix or end_suffix
    end_period = end_suffix or start_suffix

    if end_period == "pm" and end < 12:
        end += 12
    if start_period == "am" and start == 12:
        start = 0
    if start_period == "pm" and start < 12 and start < end:
        start += 12

    return TimeRange(start=f"{start:02d}:00:00", end=f"{end:02d}:00:00")


def parse_query(text: str) -> StructuredFilter:
    """Translate free text into a StructuredFilter."""
    lowered = (text or "").lower()
    conditions = []
    for name, rule in CONDITION_RULES:
        condition = rule(lowered)
        if condition is not None:
            logger.debug("Detector %s matched: %s", name, condition)
            conditions.append(condition)
    return StructuredFilter(
        conditions=tuple(conditions),
        time_range=parse_hour_range(lowered),
        order_by=DEFAULT_ORDER_BY,
        limit=DEFAULT_LIMIT,
    )


def _render_value(value) -> str:
    if isinstance(value, str):
        return f"'{value}'"
    return str(value)


def render_query(structured: StructuredFilter) -> str:
    """Render a filter as a SQL-style string for audit display.

    The string is never executed or parsed back.
    """
    sql = f"SELECT * FROM {EVENTS_TABLE} WHERE true"
    for condition in structured.conditions:
        sql += f" AND {condition.field} {condition.operator} {_render_value(condition.value)}"
    if structured.time_range:
        sql += f" AND EXTRACT(HOUR FROM timestamp) >= {structured.time_range.start_hour}"
        sql += f" AND EXTRACT(HOUR FROM timestamp) <= {structured.time_range.end_hour}"
    if structured.order_by:
        sql += f" ORDER BY {structured.order_by} DESC"
    if structured.limit:
        sql += f" LIMIT {structured.limit}"
    return sql


def translate(text: str) -> tuple[StructuredFilter, str]:
    """Translate free text into a filter and its rendered query string."""
    structured = parse_query(text)
    return structured, render_query(structured)
