from __future__ import annotations

from datetime import date
from typing import Optional

from django.utils import timezone

MINOR_MAX_AGE = 17
SENIOR_MIN_AGE = 65
MAX_PLAUSIBLE_AGE = 150


def today() -> date:
    return timezone.localdate()


def calculate_age(birth_date: date, as_of: Optional[date] = None) -> int:
    """Whole years elapsed between ``birth_date`` and ``as_of``.

    The age increases by one exactly on each birthday anniversary and is
    clamped at zero for dates after ``as_of``.
    """
    as_of = as_of or today()
    age = as_of.year - birth_date.year - ((as_of.month, as_of.day) < (birth_date.month, birth_date.day))
    return max(0, age)


def years_ago(as_of: date, years: int) -> date:
    """Same calendar day ``years`` years before ``as_of``.

    29 February maps to 28 February in non-leap years; dates before year 1
    collapse to ``date.min``.
    """
    year = as_of.year - years
    if year < date.min.year:
        return date.min
    if year > date.max.year:
        return date.max
    try:
        return as_of.replace(year=year)
    except ValueError:
        return as_of.replace(year=year, day=28)


def latest_birth_date_for_age(age: int, as_of: Optional[date] = None) -> date:
    """Birth dates on or before this day are at least ``age`` years old."""
    return years_ago(as_of or today(), age)


def earliest_birth_date_for_age(age: int, as_of: Optional[date] = None) -> date:
    """Birth dates strictly after this day are at most ``age`` years old."""
    return years_ago(as_of or today(), age + 1)
