"""Time-scope filtering for aggregations.

A time scope keeps the records whose date attribute falls on or after a
boundary instant computed once from "now", so every record in a call is
judged against the same cutoff.
"""

from collections.abc import Sequence
from datetime import datetime, timedelta

from calcfields.formula.context import Record
from calcfields.formula.functions import align_to, parse_datetime
from calcfields.schemas.calculated_field import TimeScope

DEFAULT_DATE_FIELD = "created_at"


def _midnight(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def time_scope_start(scope: TimeScope | str, now: datetime) -> datetime | None:
    """
    Get the boundary instant of a time scope.

    Args:
        scope: Time scope
        now: Reference instant

    Returns:
        The earliest instant inside the scope, or None when the scope
        does not filter (ALL, CUSTOM, or a scope this engine does not know)
    """
    try:
        scope = TimeScope(scope)
    except ValueError:
        return None

    if scope == TimeScope.ALL:
        return None
    if scope == TimeScope.TODAY:
        return _midnight(now)
    if scope == TimeScope.WEEK:
        # Weeks start on Monday
        return _midnight(now) - timedelta(days=now.weekday())
    if scope in (TimeScope.MONTH, TimeScope.MTD):
        return _midnight(now).replace(day=1)
    if scope == TimeScope.QUARTER:
        first_month = 3 * ((now.month - 1) // 3) + 1
        return _midnight(now).replace(month=first_month, day=1)
    if scope in (TimeScope.YEAR, TimeScope.YTD):
        return _midnight(now).replace(month=1, day=1)
    if scope == TimeScope.ROLLING_7D:
        return now - timedelta(hours=7 * 24)
    if scope == TimeScope.ROLLING_30D:
        return now - timedelta(hours=30 * 24)
    return None


def filter_records_by_time_scope(
    records: Sequence[Record],
    scope: TimeScope | str,
    date_field: str = DEFAULT_DATE_FIELD,
    now: datetime | None = None,
) -> list[Record]:
    """
    Keep the records that fall inside a time scope.

    Args:
        records: Candidate records
        scope: Time scope to apply
        date_field: Record attribute holding the record's timestamp
        now: Reference instant (defaults to the system clock)

    Returns:
        New list of matching records. When a filter is active, records
        whose date cannot be parsed are excluded.
    """
    now = now or datetime.now()
    start = time_scope_start(scope, now)
    if start is None:
        return list(records)

    matched = []
    for record in records:
        value = parse_datetime(record.get(date_field))
        if value is not None and align_to(value, now) >= start:
            matched.append(record)
    return matched
