"""Formula functions for CalcFields.

Implements the built-in functions available in formulas. Every function
receives the evaluation context followed by its already evaluated
arguments, and is total: bad input yields 0 or None, never an exception.
"""

import logging
import math
import re
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable

from calcfields.formula.context import EvaluationContext
from calcfields.formula.tokenizer import DATE_FUNCTIONS

logger = logging.getLogger(__name__)

# Type alias for formula functions
FormulaFunction = Callable[..., Any]

# Registry of formula functions
FORMULA_FUNCTIONS: dict[str, FormulaFunction] = {}

# Functions whose bare field arguments are passed as raw record values
RAW_ARGUMENT_FUNCTIONS = DATE_FUNCTIONS | {"COALESCE"}

_NUMBER_PREFIX = re.compile(r"\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")

_DAY = timedelta(days=1)
_HOUR = timedelta(hours=1)


def register_function(name: str) -> Callable[[FormulaFunction], FormulaFunction]:
    """Decorator to register a formula function."""

    def decorator(func: FormulaFunction) -> FormulaFunction:
        FORMULA_FUNCTIONS[name.upper()] = func
        return func

    return decorator


def call_function(
    name: str,
    args: list[Any],
    context: EvaluationContext,
    log: logging.Logger | None = None,
) -> Any:
    """
    Dispatch a function call.

    Args:
        name: Upper-case function name
        args: Evaluated arguments
        context: Evaluation context
        log: Diagnostics logger (defaults to this module's logger)

    Returns:
        Function result, or None for an unknown function
    """
    log = log or logger
    func = FORMULA_FUNCTIONS.get(name)
    if func is None:
        log.warning("Unknown function: %s", name, extra={"function": name})
        return None

    try:
        return func(context, *args)
    except Exception:
        # Safe mode: a failing function never aborts the formula
        log.exception("Function %s failed", name, extra={"function": name})
        return None


# =============================================================================
# Math Functions
# =============================================================================


@register_function("ABS")
def func_abs(context: EvaluationContext, value: Any = 0, *_: Any) -> float:
    """Absolute value."""
    return abs(to_number(value))


@register_function("ROUND")
def func_round(context: EvaluationContext, value: Any = 0, decimals: Any = 0, *_: Any) -> float:
    """Round halves up (toward positive infinity), optionally to N decimals.

    ROUND(2.5) is 3 and ROUND(-2.5) is -2.
    """
    number = to_number(value)
    if not math.isfinite(number):
        return number
    places = int(to_number(decimals))
    # Half toward +inf is half-up above zero and half-down below it
    rounding = ROUND_HALF_UP if number >= 0 else ROUND_HALF_DOWN
    try:
        quantum = Decimal(1).scaleb(-places)
        return float(Decimal(repr(number)).quantize(quantum, rounding=rounding))
    except InvalidOperation:
        return number


@register_function("FLOOR")
def func_floor(context: EvaluationContext, value: Any = 0, *_: Any) -> float:
    """Round down to an integer."""
    number = to_number(value)
    return float(math.floor(number)) if math.isfinite(number) else number


@register_function("CEIL")
def func_ceil(context: EvaluationContext, value: Any = 0, *_: Any) -> float:
    """Round up to an integer."""
    number = to_number(value)
    return float(math.ceil(number)) if math.isfinite(number) else number


# =============================================================================
# Conditional Functions
# =============================================================================


@register_function("COALESCE")
def func_coalesce(context: EvaluationContext, *args: Any) -> Any:
    """First argument that is neither null nor an empty string."""
    for arg in args:
        if arg is not None and arg != "":
            return arg
    return None


@register_function("IF")
def func_if(context: EvaluationContext, condition: Any = None, if_true: Any = None, if_false: Any = None, *_: Any) -> Any:
    """Conditional: IF(condition, value_if_true, value_if_false).

    Both branches were already evaluated by the caller.
    """
    return if_true if is_truthy(condition) else if_false


@register_function("CASE")
def func_case(context: EvaluationContext, *args: Any) -> Any:
    """Multiple conditions: CASE(cond1, val1, cond2, val2, ..., [default])."""
    for i in range(0, len(args) - 1, 2):
        if is_truthy(args[i]):
            return args[i + 1]
    if len(args) % 2 == 1:
        return args[-1]
    return None


# =============================================================================
# Date Functions
# =============================================================================


@register_function("DAYS_SINCE")
def func_days_since(context: EvaluationContext, value: Any = None, *_: Any) -> int | None:
    """Whole days from a date to now."""
    d = parse_datetime(value)
    if d is None:
        return None
    return math.floor((context.now - align_to(d, context.now)) / _DAY)


@register_function("DAYS_BETWEEN")
def func_days_between(context: EvaluationContext, start: Any = None, end: Any = None, *_: Any) -> int | None:
    """Whole days from start to end."""
    d1 = parse_datetime(start)
    d2 = parse_datetime(end)
    if d1 is None or d2 is None:
        return None
    return math.floor((align_to(d2, context.now) - align_to(d1, context.now)) / _DAY)


@register_function("MONTHS_SINCE")
def func_months_since(context: EvaluationContext, value: Any = None, *_: Any) -> int | None:
    """Calendar months from a date to now, ignoring the day of month."""
    d = parse_datetime(value)
    if d is None:
        return None
    d = align_to(d, context.now)
    return (context.now.year - d.year) * 12 + (context.now.month - d.month)


@register_function("HOURS_SINCE")
def func_hours_since(context: EvaluationContext, value: Any = None, *_: Any) -> int | None:
    """Whole hours from a date to now."""
    d = parse_datetime(value)
    if d is None:
        return None
    return math.floor((context.now - align_to(d, context.now)) / _HOUR)


# =============================================================================
# Aggregate Functions
#
# The first argument names the field to reduce over context.records.
# Missing or unparseable values count as 0, MIN and MAX included.
# =============================================================================


@register_function("SUM")
def func_sum(context: EvaluationContext, field_name: Any = None, *_: Any) -> float:
    """Sum of a field across the record set."""
    if context.records is None:
        return to_number(field_name)
    return sum(_column(context, field_name), 0.0)


@register_function("AVG")
def func_avg(context: EvaluationContext, field_name: Any = None, *_: Any) -> float:
    """Average of a field across the record set; 0 for an empty set."""
    if context.records is None:
        return to_number(field_name)
    values = _column(context, field_name)
    if not values:
        return 0.0
    return sum(values) / len(values)


@register_function("COUNT")
def func_count(context: EvaluationContext, *_: Any) -> int:
    """Number of records. The argument is not a predicate: COUNT(x) == COUNT("*")."""
    if context.records is None:
        return 1
    return len(context.records)


@register_function("MIN")
def func_min(context: EvaluationContext, field_name: Any = None, *_: Any) -> float:
    """Smallest value of a field; 0 for an empty set."""
    if context.records is None:
        return to_number(field_name)
    return min(_column(context, field_name), default=0.0)


@register_function("MAX")
def func_max(context: EvaluationContext, field_name: Any = None, *_: Any) -> float:
    """Largest value of a field; 0 for an empty set."""
    if context.records is None:
        return to_number(field_name)
    return max(_column(context, field_name), default=0.0)


# =============================================================================
# Helper Functions (not exposed to formulas)
# =============================================================================


def _column(context: EvaluationContext, field_name: Any) -> list[float]:
    key = "" if field_name is None else str(field_name)
    return [to_number(record.get(key)) for record in context.records or ()]


def to_number(value: Any) -> float:
    """
    Coerce a value to a float the lenient way.

    Numbers pass through, booleans are 1/0, strings are read up to the
    first character that cannot continue a number ("12px" is 12).
    Anything else, including NaN, is 0.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
        return 0.0 if math.isnan(number) else number
    if isinstance(value, str):
        match = _NUMBER_PREFIX.match(value)
        if match is None:
            return 0.0
        return float(match.group(0))
    return 0.0


def strict_number(value: Any) -> float | None:
    """Return value as a float only if it is wholly numeric, else None."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        match = _NUMBER_PREFIX.fullmatch(value.strip())
        if match is not None:
            return float(match.group(0))
    return None


def is_truthy(value: Any) -> bool:
    """Boolean coercion for conditions: 0, NaN, "", and None are false."""
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


def parse_datetime(value: Any) -> datetime | None:
    """Parse various datetime representations."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        # Try ISO format
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            pass
        # Try common formats
        for fmt in ("%m/%d/%Y", "%Y/%m/%d", "%Y-%m-%d %H:%M:%S", "%m/%d/%Y %H:%M"):
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
    return None


def align_to(value: datetime, reference: datetime) -> datetime:
    """
    Make value comparable with reference.

    Naive values are taken to be in the reference's time zone; aware
    values compared against a naive reference are converted to local time.
    """
    if reference.tzinfo is None:
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=reference.tzinfo)
    return value
