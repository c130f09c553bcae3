"""Day-granularity date arithmetic shared by the scheduling services.

All functions are pure. Callers reject malformed input (end before start)
before calling in.
"""
from datetime import date, datetime, timedelta
from typing import Iterator

ONE_DAY = timedelta(days=1)


def days_between(a: date, b: date) -> int:
    """Inclusive day count when ``a == b`` (1), else the calendar-day difference."""
    if a == b:
        return 1
    return (b - a).days


def enumerate_range(start: date, end: date) -> Iterator[date]:
    """Every day from ``start`` to ``end`` inclusive, ascending."""
    for offset in range((end - start).days + 1):
        yield start + timedelta(days=offset)


def half_open_days(start: date, end: date) -> list[date]:
    """The days of ``[start, end)``."""
    if end <= start:
        return []
    return list(enumerate_range(start, end - ONE_DAY))


def is_past(day: date, reference_now: datetime | date) -> bool:
    """True when ``day`` is before the start of ``reference_now``'s calendar day."""
    if isinstance(reference_now, datetime):
        reference_now = reference_now.date()
    return day < reference_now


def is_adjacent(a: date, b: date) -> bool:
    """True when ``b`` is exactly the day after ``a``."""
    return b - a == ONE_DAY
