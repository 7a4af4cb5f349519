from datetime import date

from patients.services.ages import (
    calculate_age,
    earliest_birth_date_for_age,
    latest_birth_date_for_age,
    years_ago,
)


def test_age_increments_on_birthday():
    born = date(2000, 6, 15)
    assert calculate_age(born, date(2020, 6, 14)) == 19
    assert calculate_age(born, date(2020, 6, 15)) == 20


def test_age_is_clamped_at_zero_for_future_dates():
    assert calculate_age(date(2030, 1, 1), date(2020, 1, 1)) == 0


def test_leap_day_birthday():
    born = date(2000, 2, 29)
    assert calculate_age(born, date(2021, 2, 28)) == 20
    assert calculate_age(born, date(2021, 3, 1)) == 21
    assert years_ago(date(2024, 2, 29), 1) == date(2023, 2, 28)


def test_years_ago_clamps_to_min_date():
    assert years_ago(date(2020, 1, 1), 5000) == date.min


def test_age_bounds_are_consistent_with_calculate_age():
    as_of = date(2024, 7, 10)
    latest = latest_birth_date_for_age(30, as_of)
    earliest = earliest_birth_date_for_age(30, as_of)
    assert calculate_age(latest, as_of) == 30
    assert calculate_age(earliest, as_of) == 31
    # one day later than the exclusive bound is still 30
    assert calculate_age(date(earliest.year, earliest.month, earliest.day + 1), as_of) == 30
