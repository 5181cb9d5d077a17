from __future__ import annotations

import calendar
from datetime import date, datetime


def add_months(base: date, months: int) -> date:
    """
    Add (or subtract, for negative values) calendar months to a date.

    The day is clamped to the last valid day of the target month, so
    2025-03-31 minus one month is 2025-02-28.
    """
    if months == 0:
        return base

    index = base.year * 12 + (base.month - 1) + months
    year, month_zero = divmod(index, 12)
    month = month_zero + 1
    day = min(base.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def start_of_day(value: date) -> datetime:
    return datetime(value.year, value.month, value.day)


def as_date(value) -> date | None:
    """Normalise DATE / DATETIME column values coming back from the driver."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
