"""
Exception hierarchy for forensic-timeline.

Exception Types:
    - ForensicTimelineError: Base exception for all forensic-timeline errors
    - ValidationError: A record or argument failed validation
    - GatewayError: The event store could not answer a filter
    - CaseNotFoundError: No case exists for the requested identifier
    - ConfigurationError: Configuration problem, typically fatal at startup

The query translator, correlation engine and report synthesizer never raise
for well-formed input. GatewayError is the only failure expected during a
normal query; run_query() turns it into an empty result set.
"""

from __future__ import annotations


class ForensicTimelineError(Exception):
    """Base exception for forensic-timeline."""


class ValidationError(ForensicTimelineError):
    """Input validation failed.

    The message is safe to return to the caller.

    Examples:
        - Event timestamp is missing or not an ISO 8601 instant
        - Condition operator outside {=, !=, >, <}
        - Query text exceeds the configured length
    """


class GatewayError(ForensicTimelineError):
    """The event store failed to execute a filter.

    May carry internal details (file paths, parse positions); log it and
    return an empty result to the investigator.
    """


class CaseNotFoundError(ForensicTimelineError):
    """The requested case does not exist in the case store."""


class ConfigurationError(ForensicTimelineError):
    """Invalid configuration value, usually detected at startup."""
