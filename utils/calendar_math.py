"""
Calendar arithmetic used by the billing calculators.

All helpers work on ``datetime.date``. Datetimes are accepted and truncated
to their date (midnight normalization), so callers can pass either.
"""
from calendar import monthrange
from datetime import date, datetime, timedelta, timezone
from typing import Union

DateLike = Union[date, datetime]


def to_date(value: DateLike) -> date:
     """Normalize a date or datetime to a plain date."""
     if isinstance(value, datetime):
          return value.date()
     return value


def last_day_of_month(year: int, month: int) -> int:
     return monthrange(year, month)[1]


def set_day_of_month(value: DateLike, day: int) -> date:
     """
     Move a date to the given day of its month, clamped to the month length.
     Example: day 31 in February 2023 -> 2023-02-28
     """
     value = to_date(value)
     return value.replace(day=min(day, last_day_of_month(value.year, value.month)))


def add_days(value: DateLike, days: int) -> date:
     return to_date(value) + timedelta(days=days)


def add_months(value: DateLike, months: int) -> date:
     """
     Add (or subtract) calendar months, clamping the day to the target month.
     Example: 2024-01-31 + 1 month -> 2024-02-29
     """
     value = to_date(value)
     month_index = value.year * 12 + (value.month - 1) + months
     year, month = divmod(month_index, 12)
     month += 1
     return date(year, month, min(value.day, last_day_of_month(year, month)))


def days_between(start: DateLike, end: DateLike) -> int:
     """Whole days from start (inclusive) to end (exclusive)."""
     return (to_date(end) - to_date(start)).days


def months_between(start: DateLike, end: DateLike) -> int:
     """Calendar-month distance between the months of two dates, ignoring days."""
     start, end = to_date(start), to_date(end)
     return (end.year - start.year) * 12 + (end.month - start.month)


def whole_months_between(start: DateLike, end: DateLike) -> int:
     """Number of complete months from start to end (never negative)."""
     start, end = to_date(start), to_date(end)
     if end <= start:
          return 0
     months = months_between(start, end)
     if add_months(start, months) > end:
          months -= 1
     return months


def months_between_rounded_up(start: DateLike, end: DateLike) -> int:
     """Complete months from start to end, counting a partial trailing month as a full one."""
     start, end = to_date(start), to_date(end)
     months = whole_months_between(start, end)
     if add_months(start, months) < end:
          months += 1
     return months


def utcnow() -> datetime:
     """Naive UTC timestamp, matching the DateTime columns of the schema."""
     return datetime.now(timezone.utc).replace(tzinfo=None)
