"""Resolve range selectors into concrete calendar windows."""
import calendar
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Union

from tutorlytics.core.errors import InvalidDateRangeError
from tutorlytics.core.logging import get_logger
from tutorlytics.domain.periods import Granularity
from tutorlytics.domain.reports import DateRange

logger = get_logger(__name__)

# Look-back used by "all" when the student has no sessions yet
ALL_RANGE_FALLBACK_MONTHS = 3


class RangeKey(str, Enum):
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    ALL = "all"
    CUSTOM = "custom"

    @classmethod
    def coerce(cls, value: Union["RangeKey", str, None]) -> "RangeKey":
        """Map a raw selector to a RangeKey, falling back to MONTH.

        An unknown key never aborts a request; it is logged and treated as
        the current month.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning(
                f"Unknown range key {value!r}, falling back to 'month'",
                extra={"range_key": value}
            )
            return cls.MONTH


def _as_date(value: Union[date, datetime, None]) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return value


def subtract_months(day: date, months: int) -> date:
    """Calendar-month subtraction, clamping the day to the target month length."""
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def week_bounds(today: date) -> DateRange:
    start = today - timedelta(days=today.weekday())
    return DateRange(start=start, end=start + timedelta(days=6))


def month_bounds(today: date) -> DateRange:
    last_day = calendar.monthrange(today.year, today.month)[1]
    return DateRange(start=today.replace(day=1), end=today.replace(day=last_day))


def quarter_bounds(today: date) -> DateRange:
    first_month = 3 * ((today.month - 1) // 3) + 1
    last_month = first_month + 2
    last_day = calendar.monthrange(today.year, last_month)[1]
    return DateRange(
        start=date(today.year, first_month, 1),
        end=date(today.year, last_month, last_day),
    )


def year_bounds(today: date) -> DateRange:
    return DateRange(start=date(today.year, 1, 1), end=date(today.year, 12, 31))


def resolve_date_range(
    range_key: Union[RangeKey, str, None],
    today: Union[date, datetime],
    start: Union[date, datetime, None] = None,
    end: Union[date, datetime, None] = None,
    earliest_session: Union[date, datetime, None] = None,
) -> DateRange:
    """Turn a range selector into an inclusive ``DateRange``.

    Args:
        range_key: week, month, quarter, year, all or custom (unknown keys
            resolve as month)
        today: Reference day the relative windows are computed from
        start: Caller-supplied start, used only for ``custom``
        end: Caller-supplied end, used only for ``custom``
        earliest_session: Start time of the student's first session, used
            only for ``all``

    Returns:
        DateRange with ``start <= end``

    Raises:
        InvalidDateRangeError: ``custom`` without both bounds, or with
            start after end. Custom ranges are rejected rather than swapped.
    """
    key = RangeKey.coerce(range_key)
    today = _as_date(today)

    if key == RangeKey.WEEK:
        return week_bounds(today)
    if key == RangeKey.QUARTER:
        return quarter_bounds(today)
    if key == RangeKey.YEAR:
        return year_bounds(today)
    if key == RangeKey.ALL:
        first = _as_date(earliest_session)
        if first is None:
            first = subtract_months(today, ALL_RANGE_FALLBACK_MONTHS)
        # A session dated after today still yields a non-empty window
        return DateRange(start=min(first, today), end=today)
    if key == RangeKey.CUSTOM:
        start, end = _as_date(start), _as_date(end)
        if start is None or end is None:
            raise InvalidDateRangeError(
                "Custom range requires both start and end",
                details={
                    "start": start.isoformat() if start else None,
                    "end": end.isoformat() if end else None,
                }
            )
        if start > end:
            raise InvalidDateRangeError(
                f"Custom range start {start.isoformat()} is after end {end.isoformat()}",
                details={"start": start.isoformat(), "end": end.isoformat()}
            )
        return DateRange(start=start, end=end)
    return month_bounds(today)


def period_granularity(range_key: Union[RangeKey, str, None]) -> Granularity:
    """Daily buckets for week/month windows, ISO weeks for everything longer."""
    key = RangeKey.coerce(range_key)
    if key in (RangeKey.WEEK, RangeKey.MONTH):
        return Granularity.DAY
    return Granularity.WEEK
