"""Tests for forensic_timeline.query: free text to structured filter."""

import pytest

from forensic_timeline.exceptions import ValidationError
from forensic_timeline.models import Condition, StructuredFilter, TimeRange
from forensic_timeline.query import (
    CONDITION_RULES,
    parse_hour_range,
    parse_query,
    render_query,
    translate,
)


def _conditions(text):
    return [(c.field, c.operator, c.value) for c in parse_query(text).conditions]


class TestUnmatchedInput:
    @pytest.mark.parametrize("text", ["show me everything", "", "WHAT HAPPENED?"])
    def test_no_conditions(self, text):
        structured, sql = translate(text)
        assert structured.conditions == ()
        assert structured.time_range is None
        assert structured.order_by == "timestamp"
        assert structured.limit == 100
        assert sql == "SELECT * FROM forensic_events WHERE true ORDER BY timestamp DESC LIMIT 100"


class TestConditionDetectors:
    def test_failed_logins_from_russia(self):
        structured, sql = translate("Find all failed login attempts from Russia")
        assert list(structured.conditions) == [
            Condition("event_type", "=", "login"),
            Condition("status", "=", "failed"),
            Condition("country", "=", "RU"),
        ]
        assert sql.count(" AND ") == 3
        assert "ORDER BY timestamp DESC" in sql
        assert "LIMIT 100" in sql
        assert sql == (
            "SELECT * FROM forensic_events WHERE true"
            " AND event_type = 'login' AND status = 'failed' AND country = 'RU'"
            " ORDER BY timestamp DESC LIMIT 100"
        )

    def test_login_attempt_adds_single_condition(self):
        assert _conditions("every login attempt") == [("event_type", "=", "login")]

    def test_unrelated_detectors_both_fire_in_table_order(self):
        assert _conditions("successful file download by user alice") == [
            ("action", "=", "file_download"),
            ("status", "=", "success"),
            ("user_id", "=", "alice"),
        ]

    def test_file_access(self):
        assert _conditions("file read events") == [("event_type", "=", "file_access")]

    def test_failure_synonym(self):
        assert _conditions("authentication failure") == [("status", "=", "failed")]

    def test_succeeded_synonym(self):
        assert _conditions("attempts that succeeded") == [("status", "=", "success")]

    @pytest.mark.parametrize("text", ["logins from outside the US", "logins from outside us"])
    def test_outside_us(self, text):
        assert _conditions(text)[-1] == ("country", "!=", "US")

    def test_place_is_truncated_to_two_letters(self):
        assert _conditions("logins from the United Kingdom") == [
            ("event_type", "=", "login"),
            ("country", "=", "UN"),
        ]

    def test_place_stops_at_connector(self):
        assert _conditions("downloads from china with a vpn") == [
            ("action", "=", "file_download"),
            ("country", "=", "CH"),
        ]

    def test_place_before_hour_range(self):
        structured = parse_query("failed logins from germany between 1 and 3pm")
        assert structured.conditions[-1] == Condition("country", "=", "GE")
        assert structured.time_range == TimeRange("13:00:00", "15:00:00")

    def test_ip_address(self):
        assert _conditions("events where ip address is 10.0.0.5") == [
            ("ip_address", "=", "10.0.0.5")
        ]

    def test_user_id_is_lowercased(self):
        assert _conditions("activity for user id is Alice_01") == [
            ("user_id", "=", "alice_01")
        ]

    def test_quoted_user(self):
        assert _conditions("network events for user 'bob'") == [("user_id", "=", "bob")]

    def test_rule_table_order(self):
        assert [name for name, _ in CONDITION_RULES] == [
            "login",
            "download",
            "file_access",
            "success",
            "failure",
            "country",
            "ip_address",
            "user_id",
        ]


class TestHourRange:
    def test_explicit_am_start_pm_end(self):
        assert parse_hour_range("between 2 am and 4 pm") == TimeRange("02:00:00", "16:00:00")

    def test_single_pm_suffix_applies_to_start(self):
        assert parse_hour_range("between 1 and 3pm") == TimeRange("13:00:00", "15:00:00")

    def test_start_suffix_only(self):
        assert parse_hour_range("between 2pm and 4") == TimeRange("14:00:00", "16:00:00")

    def test_midnight_am(self):
        assert parse_hour_range("between 12am and 5am") == TimeRange("00:00:00", "05:00:00")

    def test_no_suffix(self):
        assert parse_hour_range("between 9 and 5") == TimeRange("09:00:00", "05:00:00")

    def test_both_pm(self):
        assert parse_hour_range("between 10pm and 11pm") == TimeRange("22:00:00", "23:00:00")

    def test_start_shift_compares_against_shifted_end(self):
        # end 1pm -> 13, start 11 < 13 so it shifts to 23 and passes the end
        assert parse_hour_range("between 11 and 1pm") == TimeRange("23:00:00", "13:00:00")

    def test_absent(self):
        assert parse_hour_range("logins last tuesday") is None

    def test_rendered_with_numeric_hours(self):
        structured, sql = translate("logins between 2 AM and 4 PM")
        assert structured.time_range == TimeRange("02:00:00", "16:00:00")
        assert (
            " AND EXTRACT(HOUR FROM timestamp) >= 2"
            " AND EXTRACT(HOUR FROM timestamp) <= 16"
            " ORDER BY timestamp DESC"
        ) in sql


class TestRenderQuery:
    def test_non_string_values_are_literal(self):
        structured = StructuredFilter(conditions=(Condition("port", ">", 1024),))
        assert " AND port > 1024 " in render_query(structured)

    def test_empty_ordering_and_limit_omitted(self):
        structured = StructuredFilter(order_by="", limit=0)
        assert render_query(structured) == "SELECT * FROM forensic_events WHERE true"

    def test_invalid_operator_rejected(self):
        with pytest.raises(ValidationError):
            Condition("status", "LIKE", "fail%")
