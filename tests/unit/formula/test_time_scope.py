"""Unit tests for time-scope filtering."""

from datetime import datetime, timedelta

import pytest

from calcfields.formula.time_scope import filter_records_by_time_scope, time_scope_start
from calcfields.schemas.calculated_field import TimeScope

NOW = datetime(2026, 10, 14, 15, 30, 0)  # Wednesday


def ids(records):
    return [r["id"] for r in records]


class TestTimeScopeStart:
    """Tests for time_scope_start()."""

    @pytest.mark.parametrize(
        "scope,expected",
        [
            (TimeScope.TODAY, datetime(2026, 10, 14)),
            (TimeScope.WEEK, datetime(2026, 10, 12)),
            (TimeScope.MONTH, datetime(2026, 10, 1)),
            (TimeScope.MTD, datetime(2026, 10, 1)),
            (TimeScope.QUARTER, datetime(2026, 10, 1)),
            (TimeScope.YEAR, datetime(2026, 1, 1)),
            (TimeScope.YTD, datetime(2026, 1, 1)),
            (TimeScope.ROLLING_7D, datetime(2026, 10, 7, 15, 30)),
            (TimeScope.ROLLING_30D, datetime(2026, 9, 14, 15, 30)),
        ],
    )
    def test_boundaries(self, scope, expected):
        assert time_scope_start(scope, NOW) == expected

    def test_all_has_no_boundary(self):
        assert time_scope_start(TimeScope.ALL, NOW) is None

    def test_accepts_string(self):
        assert time_scope_start("today", NOW) == datetime(2026, 10, 14)

    def test_custom_scope_has_no_boundary(self):
        assert time_scope_start(TimeScope.CUSTOM, NOW) is None

    def test_unknown_scope_has_no_boundary(self):
        assert time_scope_start("fortnight", NOW) is None

    def test_week_starts_monday(self):
        sunday = datetime(2026, 10, 18, 9, 0)
        monday = datetime(2026, 10, 19, 9, 0)
        assert time_scope_start(TimeScope.WEEK, sunday) == datetime(2026, 10, 12)
        assert time_scope_start(TimeScope.WEEK, monday) == datetime(2026, 10, 19)

    def test_quarter_boundaries(self):
        assert time_scope_start(TimeScope.QUARTER, datetime(2026, 3, 31)) == datetime(2026, 1, 1)
        assert time_scope_start(TimeScope.QUARTER, datetime(2026, 5, 2)) == datetime(2026, 4, 1)
        assert time_scope_start(TimeScope.QUARTER, datetime(2026, 9, 30)) == datetime(2026, 7, 1)


class TestFilterRecordsByTimeScope:
    """Tests for filter_records_by_time_scope()."""

    @pytest.fixture
    def records(self):
        return [
            {"id": "midnight", "created_at": "2026-10-14T00:00:00"},
            {"id": "before_midnight", "created_at": "2026-10-13T23:59:59"},
            {"id": "seven_days", "created_at": (NOW - timedelta(days=7)).isoformat()},
            {"id": "just_over_seven", "created_at": (NOW - timedelta(days=7, seconds=1)).isoformat()},
            {"id": "last_quarter", "created_at": "2026-09-30T12:00:00"},
            {"id": "last_year", "created_at": "2025-12-31T23:59:59"},
            {"id": "bad_date", "created_at": "whenever"},
            {"id": "no_date"},
        ]

    def test_all_keeps_everything(self, records):
        result = filter_records_by_time_scope(records, TimeScope.ALL, now=NOW)
        assert result == records
        assert result is not records

    def test_today_from_local_midnight(self, records):
        result = filter_records_by_time_scope(records, TimeScope.TODAY, now=NOW)
        assert ids(result) == ["midnight"]

    def test_rolling_7d_is_trailing_window(self, records):
        result = filter_records_by_time_scope(records, TimeScope.ROLLING_7D, now=NOW)
        assert ids(result) == ["midnight", "before_midnight", "seven_days"]

    def test_quarter(self, records):
        result = filter_records_by_time_scope(records, TimeScope.QUARTER, now=NOW)
        assert ids(result) == ["midnight", "before_midnight", "seven_days", "just_over_seven"]

    def test_year_excludes_last_year(self, records):
        result = filter_records_by_time_scope(records, TimeScope.YTD, now=NOW)
        assert "last_year" not in ids(result)
        assert "last_quarter" in ids(result)

    def test_unparseable_dates_excluded_when_filtering(self, records):
        result = filter_records_by_time_scope(records, TimeScope.YEAR, now=NOW)
        assert "bad_date" not in ids(result)
        assert "no_date" not in ids(result)

    def test_custom_date_field(self):
        records = [
            {"id": "a", "created_at": "2020-01-01", "closed_at": "2026-10-14T09:00:00"},
            {"id": "b", "created_at": "2026-10-14T09:00:00", "closed_at": None},
        ]
        result = filter_records_by_time_scope(records, TimeScope.TODAY, date_field="closed_at", now=NOW)
        assert ids(result) == ["a"]

    def test_datetime_values(self):
        records = [{"id": "a", "created_at": NOW - timedelta(hours=1)}]
        assert ids(filter_records_by_time_scope(records, TimeScope.TODAY, now=NOW)) == ["a"]

    def test_input_not_mutated(self, records):
        snapshot = list(records)
        filter_records_by_time_scope(records, TimeScope.TODAY, now=NOW)
        assert records == snapshot
