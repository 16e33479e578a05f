"""Tests for forensic_timeline.gateway: filter evaluation and event stores."""

import json
import logging

import pytest

from forensic_timeline.exceptions import GatewayError
from forensic_timeline.gateway import (
    InMemoryEventStore,
    JsonlEventStore,
    load_events,
    matches_condition,
    run_query,
)
from forensic_timeline.models import Condition, StructuredFilter, TimeRange


def _record(event_id, timestamp="2026-03-01T10:00:00Z", **fields):
    record = {"id": event_id, "event_type": "login", "timestamp": timestamp}
    record.update(fields)
    return record


def _write_jsonl(path, records):
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n")
    return path


class _FailingGateway:
    def fetch(self, structured):
        raise GatewayError("connection refused")


class TestMatchesCondition:
    def test_equality(self, make_event):
        event = make_event("a", country="RU")
        assert matches_condition(event, Condition("country", "=", "RU"))
        assert not matches_condition(event, Condition("country", "=", "US"))

    def test_null_never_matches(self, make_event):
        event = make_event("a")
        assert not matches_condition(event, Condition("country", "=", "US"))
        assert not matches_condition(event, Condition("country", "!=", "US"))

    def test_metadata_fields(self, make_event):
        event = make_event("a", metadata={"port": 443})
        assert matches_condition(event, Condition("port", ">", 100))
        assert not matches_condition(event, Condition("port", "<", 100))
        assert not matches_condition(event, Condition("missing", "=", "x"))

    def test_mixed_types_compare_as_strings(self, make_event):
        event = make_event("a", metadata={"port": 443})
        assert matches_condition(event, Condition("port", "=", "443"))

    def test_timestamp_compares_as_iso_text(self, make_event):
        event = make_event("a", "2026-03-01T10:00:00+00:00")
        assert matches_condition(event, Condition("timestamp", ">", "2026-03-01T09:00:00"))
        assert matches_condition(event, Condition("timestamp", "<", "2026-03-02"))


class TestInMemoryEventStore:
    def test_all_conditions_must_hold(self, sample_events):
        store = InMemoryEventStore(sample_events)
        structured = StructuredFilter(conditions=(
            Condition("event_type", "=", "login"),
            Condition("status", "=", "failed"),
        ))
        assert [e.id for e in store.fetch(structured)] == ["evt-3", "evt-2", "evt-1"]

    def test_newest_first_and_limit(self, sample_events):
        store = InMemoryEventStore(sample_events)
        fetched = store.fetch(StructuredFilter(limit=2))
        assert [e.id for e in fetched] == ["evt-6", "evt-5"]

    def test_hour_range_is_inclusive(self, sample_events):
        store = InMemoryEventStore(sample_events)
        fetched = store.fetch(StructuredFilter(time_range=TimeRange("02:00:00", "02:00:00")))
        assert {e.id for e in fetched} == {"evt-1", "evt-2", "evt-3", "evt-4", "evt-5"}
        fetched = store.fetch(StructuredFilter(time_range=TimeRange("03:00:00", "15:00:00")))
        assert [e.id for e in fetched] == ["evt-6"]

    def test_inverted_hour_range_matches_nothing(self, sample_events):
        store = InMemoryEventStore(sample_events)
        assert store.fetch(StructuredFilter(time_range=TimeRange("23:00:00", "13:00:00"))) == []

    def test_order_by_other_field(self, sample_events):
        store = InMemoryEventStore(sample_events)
        fetched = store.fetch(StructuredFilter(order_by="user_id", limit=1))
        assert fetched[0].user_id == "bob"

    def test_empty_filter_matches_all(self, sample_events):
        store = InMemoryEventStore(sample_events)
        assert len(store.fetch(StructuredFilter(limit=0))) == 6


class TestLoadEvents:
    def test_jsonl(self, tmp_path):
        path = _write_jsonl(tmp_path / "events.jsonl", [
            _record("a", user_id="alice", country=""),
            _record("b", "2026-03-01T11:00:00", metadata={"port": 22}),
        ])
        events = load_events(path)
        assert [e.id for e in events] == ["a", "b"]
        assert events[0].country is None
        assert events[1].timestamp.tzinfo is not None
        assert events[1].metadata == {"port": 22}

    def test_json_array(self, tmp_path):
        path = tmp_path / "events.json"
        path.write_text(json.dumps([_record("a"), _record("b")]))
        assert [e.id for e in load_events(path)] == ["a", "b"]

    def test_bad_records_skipped(self, tmp_path, caplog):
        path = tmp_path / "events.jsonl"
        path.write_text(
            json.dumps(_record("a")) + "\n"
            "{not json\n"
            "\n"
            + json.dumps(_record("b", timestamp="yesterday")) + "\n"
            + json.dumps({"event_type": "login", "timestamp": "2026-03-01T10:00:00Z"}) + "\n"
            + json.dumps(["not", "an", "object"]) + "\n"
            + json.dumps(_record("c")) + "\n"
        )
        with caplog.at_level(logging.WARNING, logger="forensic_timeline.gateway"):
            events = load_events(path)
        assert [e.id for e in events] == ["a", "c"]
        assert "Corrupt JSONL line 2" in caplog.text

    def test_undecodable_line_skipped(self, tmp_path, caplog):
        path = tmp_path / "events.jsonl"
        path.write_bytes(
            json.dumps(_record("a")).encode("utf-8") + b"\n"
            + b'{"id": "\xff\xfe", "event_type": "login"}\n'
            + json.dumps(_record("c")).encode("utf-8") + b"\n"
        )
        with caplog.at_level(logging.WARNING, logger="forensic_timeline.gateway"):
            events = load_events(path)
        assert [e.id for e in events] == ["a", "c"]
        assert "Corrupt JSONL line 2" in caplog.text

    def test_undecodable_array(self, tmp_path):
        path = tmp_path / "events.json"
        path.write_bytes(b'[{"id": "\xff"}]')
        with pytest.raises(GatewayError, match="Invalid JSON"):
            load_events(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(GatewayError, match="Cannot read event file"):
            load_events(tmp_path / "missing.jsonl")

    def test_malformed_array(self, tmp_path):
        path = tmp_path / "events.json"
        path.write_text('[{"id": "a",')
        with pytest.raises(GatewayError, match="Invalid JSON"):
            load_events(path)


class TestJsonlEventStore:
    def test_reads_file_on_each_fetch(self, tmp_path):
        path = _write_jsonl(tmp_path / "events.jsonl", [_record("a")])
        store = JsonlEventStore(path)
        assert [e.id for e in store.fetch(StructuredFilter())] == ["a"]
        _write_jsonl(path, [_record("a"), _record("b", "2026-03-01T12:00:00Z")])
        assert [e.id for e in store.fetch(StructuredFilter())] == ["b", "a"]

    def test_missing_file_raises_gateway_error(self, tmp_path):
        with pytest.raises(GatewayError):
            JsonlEventStore(tmp_path / "nope.jsonl").fetch(StructuredFilter())


class TestRunQuery:
    def test_end_to_end(self, sample_events):
        result = run_query("failed login attempts from Russia", InMemoryEventStore(sample_events))
        assert result.error is None
        assert result.results_count == 3
        assert [e.id for e in result.events] == ["evt-3", "evt-2", "evt-1"]
        assert result.sql_query.startswith("SELECT * FROM forensic_events WHERE true AND")

    def test_gateway_failure_degrades_to_empty(self, caplog):
        with caplog.at_level(logging.WARNING, logger="forensic_timeline.gateway"):
            result = run_query("failed logins", _FailingGateway())
        assert result.events == []
        assert result.error == "connection refused"
        assert "connection refused" in caplog.text
        assert result.to_dict()["error"] == "connection refused"

    def test_undecodable_store_still_answers(self, tmp_path):
        path = tmp_path / "events.jsonl"
        path.write_bytes(
            json.dumps(_record("a", status="failed")).encode("utf-8") + b"\n\xff\xfe\n"
        )
        result = run_query("failed logins", JsonlEventStore(path))
        assert result.error is None
        assert [e.id for e in result.events] == ["a"]

    def test_undecodable_array_degrades_to_empty(self, tmp_path):
        path = tmp_path / "events.json"
        path.write_bytes(b"[\xff]")
        result = run_query("failed logins", JsonlEventStore(path))
        assert result.events == []
        assert "Invalid JSON" in result.error

    def test_to_dict(self, sample_events):
        data = run_query("logins by user bob", InMemoryEventStore(sample_events)).to_dict()
        assert data["natural_language"] == "logins by user bob"
        assert data["results_count"] == 1
        assert data["events"][0]["id"] == "evt-6"
        assert data["filter"]["descending"] is True
        assert "error" not in data
