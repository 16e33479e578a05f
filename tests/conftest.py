"""Shared test fixtures for forensic-timeline."""

import pytest

from forensic_timeline.config import reset_config
from forensic_timeline.models import Case, Event, parse_timestamp

_ENV_VARS = (
    "FORENSIC_CASES_DIR",
    "FORENSIC_CASE_DIR",
    "FORENSIC_EVENTS_FILE",
    "FORENSIC_LOG_LEVEL",
    "FORENSIC_LOG_FORMAT",
    "FORENSIC_LOG_FILE",
    "FORENSIC_MAX_QUERY_LENGTH",
    "FORENSIC_EXAMINER",
    "FORENSIC_AUDIT_DIR",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    """Ensure no env leakage between tests and keep state out of $HOME."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("FORENSIC_STATE_DIR", str(tmp_path / "state"))
    reset_config()
    yield
    reset_config()


def _event(event_id, timestamp="2026-03-01T10:00:00+00:00", **fields):
    defaults = {
        "event_type": "login",
        "action": "login",
        "status": "success",
    }
    defaults.update(fields)
    return Event(
        id=event_id,
        event_type=defaults.pop("event_type"),
        timestamp=parse_timestamp(timestamp),
        **defaults,
    )


@pytest.fixture
def make_event():
    """Factory for Event values with daytime UTC defaults."""
    return _event


@pytest.fixture
def sample_events():
    """A small intrusion: foreign failures, a success, then a download."""
    return [
        _event("evt-5", "2026-03-01T02:20:00Z", event_type="file_access",
               action="file_download", resource="payroll.xlsx", user_id="alice",
               ip_address="9.9.9.9", country="RU", status="success"),
        _event("evt-1", "2026-03-01T02:10:00Z", user_id="alice",
               ip_address="9.9.9.9", country="RU", status="failed"),
        _event("evt-2", "2026-03-01T02:12:00Z", user_id="alice",
               ip_address="9.9.9.9", country="RU", status="failed"),
        _event("evt-3", "2026-03-01T02:14:00Z", user_id="alice",
               ip_address="9.9.9.9", country="RU", status="failed"),
        _event("evt-4", "2026-03-01T02:15:00Z", user_id="alice",
               ip_address="9.9.9.9", country="RU", status="success"),
        _event("evt-6", "2026-03-01T15:00:00Z", user_id="bob",
               ip_address="10.0.0.8", country="US", status="success"),
    ]


@pytest.fixture
def case():
    return Case(
        id="CASE-001",
        title="Payroll exfiltration",
        description="",
        status="open",
        investigator="Dana Reyes",
        created_at="2026-02-28T09:00:00+00:00",
        updated_at="2026-03-02T17:00:00+00:00",
        findings={"summary": "pending", "hosts": ["fs01"]},
    )
