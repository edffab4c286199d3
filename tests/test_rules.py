"""Test pure circulation rules."""
from datetime import date, datetime

from library.rules import (
    check_fine_eligibility,
    check_overdue,
    days_elapsed,
    overdue_cutoff,
)


def test_days_elapsed_ignores_time_of_day():
    assert days_elapsed(datetime(2025, 5, 1, 23, 59), date(2025, 5, 2)) == 1
    assert days_elapsed(date(2025, 4, 20), date(2025, 5, 10)) == 20


def test_overdue_cutoff_is_midnight():
    assert overdue_cutoff(date(2025, 6, 16), 14) == datetime(2025, 6, 2, 0, 0)


def test_check_overdue_boundary():
    borrowed = datetime(2025, 6, 1, 10, 0)
    assert not check_overdue(borrowed, date(2025, 6, 15)).passed
    result = check_overdue(borrowed, date(2025, 6, 16))
    assert result.passed
    assert result.details["days_elapsed"] == 15


def test_check_overdue_custom_period():
    assert check_overdue(date(2025, 6, 1), date(2025, 6, 4), loan_period_days=2).passed


def test_fine_eligibility_passes():
    result = check_fine_eligibility(
        borrow_date=date(2025, 5, 1),
        returned=False,
        already_fined=False,
        today=date(2025, 6, 1),
    )
    assert result.passed
    assert result.message == "Fine due"


def test_fine_eligibility_once_per_record():
    result = check_fine_eligibility(
        borrow_date=date(2025, 5, 1),
        returned=False,
        already_fined=True,
        today=date(2025, 6, 1),
    )
    assert not result.passed
    assert "already issued" in result.message


def test_fine_eligibility_not_for_returned_or_recent():
    returned = check_fine_eligibility(date(2025, 5, 1), True, False, date(2025, 6, 1))
    recent = check_fine_eligibility(date(2025, 5, 30), False, False, date(2025, 6, 1))
    assert not returned.passed
    assert not recent.passed
    assert "Within loan period" in recent.message
