"""Unit tests for formula functions."""

import logging
from datetime import date, datetime, timedelta, timezone

import pytest

from calcfields.formula.context import EvaluationContext
from calcfields.formula.functions import (
    FORMULA_FUNCTIONS,
    align_to,
    call_function,
    func_abs,
    func_avg,
    func_case,
    func_ceil,
    func_coalesce,
    func_count,
    func_days_between,
    func_days_since,
    func_floor,
    func_hours_since,
    func_if,
    func_max,
    func_min,
    func_months_since,
    func_round,
    func_sum,
    is_truthy,
    parse_datetime,
    strict_number,
    to_number,
)

NOW = datetime(2026, 10, 14, 15, 30, 0)


@pytest.fixture
def ctx() -> EvaluationContext:
    return EvaluationContext(now=NOW)


@pytest.fixture
def records_ctx() -> EvaluationContext:
    records = [
        {"amount": 100},
        {"amount": "50"},
        {"amount": None},
        {"amount": "n/a"},
        {"other": 7},
    ]
    return EvaluationContext(records=records, now=NOW)


class TestRegistry:
    """Tests for the function registry and dispatch."""

    def test_all_tokenizer_functions_registered(self):
        from calcfields.formula.tokenizer import FUNCTION_NAMES

        assert FUNCTION_NAMES <= set(FORMULA_FUNCTIONS)

    def test_dispatch(self, ctx):
        assert call_function("ABS", [-2], ctx) == 2

    def test_unknown_function_logs_and_returns_none(self, ctx, caplog):
        with caplog.at_level(logging.WARNING):
            assert call_function("NOPE", [1], ctx) is None
        assert "Unknown function: NOPE" in caplog.text

    def test_failing_function_returns_none(self, ctx, caplog):
        """A function that raises is reported and yields None."""
        with caplog.at_level(logging.ERROR):
            assert call_function("FLOOR", [1], ctx) == 1
            assert call_function("ROUND", [1, float("inf")], ctx) is None
        assert "ROUND failed" in caplog.text


class TestMathFunctions:
    """Tests for math functions."""

    def test_abs(self, ctx):
        assert func_abs(ctx, -4.5) == 4.5
        assert func_abs(ctx) == 0

    def test_round_halves_toward_positive_infinity(self, ctx):
        assert func_round(ctx, 2.5) == 3
        assert func_round(ctx, -2.5) == -2
        assert func_round(ctx, -2.6) == -3
        assert func_round(ctx, 2.4) == 2
        assert func_round(ctx, -0.5) == 0

    def test_round_negative_half_with_decimals(self, ctx):
        assert func_round(ctx, -1.25, 1) == -1.2

    def test_round_decimals(self, ctx):
        assert func_round(ctx, 3.14159, 2) == 3.14
        assert func_round(ctx, 1.005, 2) == 1.01

    def test_round_coerces(self, ctx):
        assert func_round(ctx, "7.6") == 8
        assert func_round(ctx, None) == 0

    def test_floor_and_ceil(self, ctx):
        assert func_floor(ctx, 2.7) == 2
        assert func_floor(ctx, -2.2) == -3
        assert func_ceil(ctx, 2.1) == 3
        assert func_ceil(ctx, "x") == 0


class TestConditionalFunctions:
    """Tests for IF, CASE and COALESCE."""

    def test_if(self, ctx):
        assert func_if(ctx, True, "yes", "no") == "yes"
        assert func_if(ctx, 0, "yes", "no") == "no"
        assert func_if(ctx, "", "yes", "no") == "no"
        assert func_if(ctx, float("nan"), "yes", "no") == "no"

    def test_if_missing_else(self, ctx):
        assert func_if(ctx, False, "yes") is None

    def test_case_first_truthy_wins(self, ctx):
        assert func_case(ctx, False, "a", True, "b", True, "c") == "b"

    def test_case_default(self, ctx):
        assert func_case(ctx, False, "a", "fallback") == "fallback"
        assert func_case(ctx, False, "a") is None

    def test_coalesce(self, ctx):
        assert func_coalesce(ctx, None, "", 0, 5) == 0
        assert func_coalesce(ctx, None, "") is None
        assert func_coalesce(ctx) is None


class TestDateFunctions:
    """Tests for date functions."""

    def test_days_since(self, ctx):
        assert func_days_since(ctx, "2026-10-01T15:30:00") == 13
        # 12 hours short of a full day rounds down
        assert func_days_since(ctx, "2026-10-14T03:30:00") == 0

    def test_days_since_date_object(self, ctx):
        assert func_days_since(ctx, date(2026, 10, 4)) == 10

    def test_days_since_unparseable(self, ctx):
        assert func_days_since(ctx, "yesterday") is None
        assert func_days_since(ctx, None) is None
        assert func_days_since(ctx, 12) is None

    def test_days_between(self, ctx):
        assert func_days_between(ctx, "2026-01-01", "2026-01-31") == 30
        assert func_days_between(ctx, "2026-01-31", "2026-01-01") == -30
        assert func_days_between(ctx, "2026-01-01", "bad") is None

    def test_months_since_ignores_day(self, ctx):
        """Calendar-field subtraction: Sep 30 to Oct 14 is one month."""
        assert func_months_since(ctx, "2026-09-30") == 1
        assert func_months_since(ctx, "2025-10-31") == 12
        assert func_months_since(ctx, "2026-10-01") == 0

    def test_hours_since(self, ctx):
        assert func_hours_since(ctx, "2026-10-14T10:00:00") == 5
        assert func_hours_since(ctx, "garbage") is None

    def test_aware_date_against_aware_now(self):
        ctx = EvaluationContext(now=datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc))
        assert func_hours_since(ctx, "2026-10-14T09:00:00Z") == 3
        assert func_hours_since(ctx, "2026-10-14T09:00:00") == 3


class TestAggregateFunctions:
    """Tests for aggregate functions."""

    def test_sum(self, records_ctx):
        assert func_sum(records_ctx, "amount") == 150

    def test_avg_counts_missing_as_zero(self, records_ctx):
        assert func_avg(records_ctx, "amount") == 30

    def test_min_pulls_toward_zero(self, records_ctx):
        """Missing values count as 0, so MIN is 0 rather than 50."""
        assert func_min(records_ctx, "amount") == 0

    def test_max(self, records_ctx):
        assert func_max(records_ctx, "amount") == 100

    def test_count_star(self, records_ctx):
        assert func_count(records_ctx, "*") == 5

    def test_count_argument_is_not_a_predicate(self, records_ctx):
        """COUNT with any argument counts every record."""
        assert func_count(records_ctx, "amount") == 5
        assert func_count(records_ctx, False) == 5

    def test_empty_record_set(self):
        ctx = EvaluationContext(records=[], now=NOW)
        assert func_sum(ctx, "amount") == 0
        assert func_avg(ctx, "amount") == 0
        assert func_min(ctx, "amount") == 0
        assert func_max(ctx, "amount") == 0
        assert func_count(ctx, "*") == 0

    def test_no_record_set_falls_back_to_scalar(self, ctx):
        assert func_sum(ctx, "12") == 12
        assert func_avg(ctx, 4) == 4
        assert func_count(ctx, "*") == 1


class TestHelpers:
    """Tests for coercion and parsing helpers."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, 0.0),
            (True, 1.0),
            (False, 0.0),
            (3, 3.0),
            (float("nan"), 0.0),
            ("  42.5 ", 42.5),
            ("-3e2", -300.0),
            ("12px", 12.0),
            ("2024-01-05", 2024.0),
            ("abc", 0.0),
            ([1], 0.0),
        ],
    )
    def test_to_number(self, value, expected):
        assert to_number(value) == expected

    def test_strict_number(self):
        assert strict_number("42") == 42.0
        assert strict_number("12px") is None
        assert strict_number(None) is None

    def test_is_truthy(self):
        assert is_truthy("0") is True
        assert is_truthy(0.0) is False
        assert is_truthy(None) is False

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2026-10-14", datetime(2026, 10, 14)),
            ("2026-10-14T08:15:00", datetime(2026, 10, 14, 8, 15)),
            ("10/14/2026", datetime(2026, 10, 14)),
            ("2026/10/14", datetime(2026, 10, 14)),
            (date(2026, 10, 14), datetime(2026, 10, 14)),
        ],
    )
    def test_parse_datetime(self, value, expected):
        assert parse_datetime(value) == expected

    def test_parse_datetime_zulu(self):
        assert parse_datetime("2026-10-14T08:15:00Z") == datetime(2026, 10, 14, 8, 15, tzinfo=timezone.utc)

    def test_parse_datetime_rejects(self):
        assert parse_datetime("") is None
        assert parse_datetime("soon") is None
        assert parse_datetime(True) is None

    def test_align_naive_to_aware_reference(self):
        reference = datetime(2026, 1, 1, tzinfo=timezone.utc)
        aligned = align_to(datetime(2026, 1, 1, 5), reference)
        assert aligned.tzinfo is timezone.utc

    def test_align_aware_to_naive_reference(self):
        aligned = align_to(datetime(2026, 1, 1, 5, tzinfo=timezone(timedelta(hours=2))), datetime(2026, 1, 1))
        assert aligned.tzinfo is None
