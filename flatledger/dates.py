"""
Due-weekday date arithmetic.

Every billing week is anchored to one fixed weekday. The schedule
resolver, the balance calculator and the autopayment planner all align
dates through this module so they always agree on which week a date
belongs to.
"""

from datetime import date, datetime, timedelta
from typing import Iterator
from zoneinfo import ZoneInfo

ONE_WEEK = timedelta(weeks=1)


def align_to_due_weekday(day: date, due_weekday: int) -> date:
    """
    Round forward to the next due weekday, unless `day` already is one.

    `due_weekday` follows date.weekday(): 0 = Monday ... 6 = Sunday.
    """
    if not 0 <= due_weekday <= 6:
        raise ValueError(f"due_weekday must be 0..6, got {due_weekday}")
    return day + timedelta(days=(due_weekday - day.weekday()) % 7)


def last_due_date_before(day: date, due_weekday: int) -> date:
    """Latest due weekday strictly before `day`."""
    return align_to_due_weekday(day, due_weekday) - ONE_WEEK


def iter_due_dates(start: date, end: date, due_weekday: int) -> Iterator[date]:
    """Yield every due weekday from `start` (aligned) through `end` inclusive."""
    current = align_to_due_weekday(start, due_weekday)
    while current <= end:
        yield current
        current += ONE_WEEK


def weeks_between(start: date, end: date) -> int:
    """Whole weeks from `start` to `end` (negative if end is earlier)."""
    return (end - start).days // 7


def today_in(timezone: str) -> date:
    return datetime.now(ZoneInfo(timezone)).date()
