"""Unit tests for temporal query parsing."""

from datetime import UTC, datetime, timedelta

import pytest

from waffle_intel.application.services.query_parser import (
    QueryParser,
    normalize_query,
)

# A Wednesday afternoon.
NOW = datetime(2024, 6, 12, 15, 30, tzinfo=UTC)


@pytest.fixture
def parser():
    return QueryParser(now=lambda: NOW)


class TestQueryParser:
    """Tests for phrase extraction and range math."""

    def test_last_week(self, parser):
        parsed = parser.parse("waffles about hiking last week")
        assert parsed.cleaned == "waffles about hiking"
        assert parsed.temporal_phrase == "last week"
        assert parsed.date_range is not None
        assert parsed.date_range.start == NOW - timedelta(days=7)
        assert parsed.date_range.end == NOW

    def test_no_phrase(self, parser):
        """Test a query without time words is left alone."""
        parsed = parser.parse("  birthday cake  ")
        assert parsed.cleaned == "birthday cake"
        assert parsed.date_range is None
        assert parsed.temporal_phrase is None

    def test_yesterday(self, parser):
        parsed = parser.parse("what did Sam say yesterday?")
        assert parsed.date_range.start == datetime(2024, 6, 11, tzinfo=UTC)
        assert parsed.date_range.end == datetime(2024, 6, 12, tzinfo=UTC)

    def test_today(self, parser):
        parsed = parser.parse("today")
        assert parsed.date_range.start == datetime(2024, 6, 12, tzinfo=UTC)
        assert parsed.cleaned == ""
        assert parsed.text_for_embedding == "today"

    def test_this_week_starts_on_monday(self, parser):
        parsed = parser.parse("dinner plans this week")
        assert parsed.date_range.start == datetime(2024, 6, 10, tzinfo=UTC)
        assert parsed.cleaned == "dinner plans"

    @pytest.mark.parametrize(
        ("query", "days"),
        [
            ("past 3 days soccer", 3),
            ("soccer in the last 2 weeks", 14),
            ("soccer last 1 day", 1),
        ],
    )
    def test_relative_counts(self, parser, query, days):
        parsed = parser.parse(query)
        assert parsed.date_range.start == NOW - timedelta(days=days)
        assert "soccer" in parsed.cleaned

    def test_leading_preposition_is_removed(self, parser):
        parsed = parser.parse("from last month birthday")
        assert parsed.cleaned == "birthday"
        assert parsed.date_range.start == NOW - timedelta(days=30)

    def test_this_month(self, parser):
        parsed = parser.parse("this month")
        assert parsed.date_range.start == datetime(2024, 6, 1, tzinfo=UTC)

    def test_only_first_phrase_is_used(self, parser):
        parsed = parser.parse("yesterday or last month")
        assert parsed.temporal_phrase == "yesterday"
        assert parsed.cleaned == "or last month"

    def test_case_insensitive(self, parser):
        assert parser.parse("Hiking LAST WEEK").cleaned == "Hiking"


class TestNormalizeQuery:
    def test_collapses_whitespace_and_case(self):
        assert normalize_query("  Hiking\t\nTrip  ") == "hiking trip"
