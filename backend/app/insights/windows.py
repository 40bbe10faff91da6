from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Tuple, Union

AsOf = Union[date, datetime]


def as_of_date(as_of: AsOf) -> date:
    if isinstance(as_of, datetime):
        return as_of.date()
    return as_of


def trailing_window(as_of: AsOf, days: int) -> Tuple[date, date]:
    """Inclusive [as_of - days, as_of]."""
    end = as_of_date(as_of)
    return end - timedelta(days=days), end


def prior_window(as_of: AsOf, days: int, offset_days: int) -> Tuple[date, date]:
    """Inclusive [as_of - days, as_of - offset_days - 1]: the part of a trailing window before its recent slice."""
    end = as_of_date(as_of)
    return end - timedelta(days=days), end - timedelta(days=offset_days + 1)


def shift_years(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        # Feb 29 -> Feb 28
        return d.replace(year=d.year + years, day=28)


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def previous_month_key(d: date) -> str:
    first = d.replace(day=1)
    return month_key(first - timedelta(days=1))


def month_start(d: date) -> date:
    return d.replace(day=1)


def days_until_annual(today: date, month: int, day: int) -> int:
    """Days from today until the next month/day occurrence (0 when it is today)."""
    day = min(day, calendar.monthrange(today.year, month)[1])
    target = date(today.year, month, day)
    if target < today:
        day = min(day, calendar.monthrange(today.year + 1, month)[1])
        target = date(today.year + 1, month, day)
    return (target - today).days


def months_until(current_month: int, target_months) -> Tuple[int, int]:
    """(next target month, months until it) counting forward from current_month; never 0."""
    later = [m for m in sorted(target_months) if m > current_month]
    target = later[0] if later else sorted(target_months)[0]
    if target > current_month:
        return target, target - current_month
    return target, 12 - current_month + target
