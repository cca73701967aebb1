"""
Calendar month keys.

A month key is the ``YYYY-MM`` string stored as ``monthSettled`` and as the
accrual month on ledger entries.  String ordering equals chronological order.
"""

import calendar
import re
from collections.abc import Iterator
from datetime import date

_MONTH_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def make_month_key(year: int, month: int) -> str:
    if not 1 <= month <= 12:
        raise ValueError(f"Month out of range: {month}")
    return f"{year:04d}-{month:02d}"


def parse_month_key(key: str) -> tuple[int, int]:
    """Return (year, month) for a ``YYYY-MM`` key."""
    match = _MONTH_KEY_RE.match(key or "")
    if match is None:
        raise ValueError(f"Invalid month key: {key!r}")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month key: {key!r}")
    return year, month


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of the month."""
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def month_bounds_for_key(key: str) -> tuple[date, date]:
    return month_bounds(*parse_month_key(key))


def next_month(year: int, month: int) -> tuple[int, int]:
    return (year + 1, 1) if month == 12 else (year, month + 1)


def iter_month_keys(start: date, end: date) -> Iterator[str]:
    """Yield month keys from start's month through end's month inclusive."""
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        yield make_month_key(year, month)
        year, month = next_month(year, month)
