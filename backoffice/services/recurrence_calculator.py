"""
Recurrence Calculator.

Pure calendar arithmetic mapping a recurrence rule and an anchor date to its
next occurrence. Every value is normalized to a calendar day; nothing here
touches the database.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import Iterator, Optional, Union

from backoffice.models.recurrence_rule import DayOfWeek, Frequency

# Months advanced per interval unit
MONTH_MULTIPLIERS = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.YEARLY: 12,
}


def to_day(value: Union[date, datetime]) -> date:
    """Drop any time-of-day component."""
    if isinstance(value, datetime):
        return value.date()
    return value


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(d: date, months: int, day: Optional[int] = None) -> date:
    """Add ``months`` to ``d`` and land on ``day`` (default: d.day), clamped to month end."""
    month = d.month - 1 + months
    year = d.year + month // 12
    month = month % 12 + 1
    target_day = day if day is not None else d.day
    return date(year, month, min(target_day, days_in_month(year, month)))


def _weekday_of(day_of_week: Union[DayOfWeek, str]) -> int:
    return DayOfWeek(day_of_week).weekday


def next_occurrence(
    frequency: Union[Frequency, str],
    interval: int,
    day_of_week: Optional[Union[DayOfWeek, str]] = None,
    day_of_month: Optional[int] = None,
    from_date: Union[date, datetime, None] = None,
) -> date:
    """
    Return the occurrence following ``from_date``.

    The result is always strictly after ``from_date``:
    - WEEKLY on a weekday: the next date on that weekday; when ``from_date``
      already is that weekday, ``interval`` whole weeks later
    - WEEKLY: ``interval`` weeks later
    - DAILY: ``interval`` days later
    - MONTHLY / QUARTERLY / YEARLY: ``interval`` x 1 / 3 / 12 months later, on
      ``day_of_month`` (or the same day) clamped to the target month's length

    Raises:
        ValueError: unknown frequency or weekday, interval below 1, missing from_date
    """
    frequency = Frequency(frequency)
    if interval < 1:
        raise ValueError(f"Interval must be at least 1, got {interval}")
    if from_date is None:
        raise ValueError("from_date is required")
    current = to_day(from_date)

    if frequency == Frequency.DAILY:
        return current + timedelta(days=interval)

    if frequency == Frequency.WEEKLY:
        if day_of_week is None:
            return current + timedelta(weeks=interval)
        days_ahead = (_weekday_of(day_of_week) - current.weekday()) % 7
        if days_ahead == 0:
            days_ahead = 7 * interval
        return current + timedelta(days=days_ahead)

    return add_months(current, MONTH_MULTIPLIERS[frequency] * interval, day_of_month)


def first_occurrence(
    frequency: Union[Frequency, str],
    interval: int,
    day_of_week: Optional[Union[DayOfWeek, str]] = None,
    day_of_month: Optional[int] = None,
    start_date: Union[date, datetime, None] = None,
) -> date:
    """
    Initial ``next_run_date`` for a rule starting on ``start_date``.

    A weekly rule never fires on its creation day: a start that already falls
    on the target weekday is moved one week ahead. A month-based rule with a
    day of month lands on that day in the start month, or in the following
    period when that day is already behind the start.
    """
    frequency = Frequency(frequency)
    if start_date is None:
        raise ValueError("start_date is required")
    start = to_day(start_date)

    if frequency == Frequency.WEEKLY and day_of_week is not None:
        days_ahead = (_weekday_of(day_of_week) - start.weekday()) % 7 or 7
        return start + timedelta(days=days_ahead)

    if frequency in MONTH_MULTIPLIERS and day_of_month is not None:
        candidate = start.replace(day=min(day_of_month, days_in_month(start.year, start.month)))
        while candidate < start:
            candidate = next_occurrence(frequency, interval, None, day_of_month, candidate)
        return candidate

    return start


def iter_occurrences(
    frequency: Union[Frequency, str],
    interval: int,
    day_of_week: Optional[Union[DayOfWeek, str]],
    day_of_month: Optional[int],
    first: date,
    end_date: Optional[date] = None,
) -> Iterator[date]:
    """Yield ``first`` and every following occurrence up to ``end_date`` (unbounded if None)."""
    current = to_day(first)
    while end_date is None or current <= end_date:
        yield current
        current = next_occurrence(frequency, interval, day_of_week, day_of_month, current)
