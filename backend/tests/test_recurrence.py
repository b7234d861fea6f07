"""Tests for recurrence date stepping."""
from datetime import date

import pytest

from printshop.core.errors import ValidationError
from printshop.finance.recurrence import (
    advance_past,
    next_occurrence,
    project_occurrences,
    sunday_based_weekday,
)
from printshop.models.expenses import Expense


def _expense(**kw):
    base = dict(
        category="rent",
        item_name="Shop rent",
        total_amount=500.0,
        expense_date=date(2024, 1, 1),
        is_recurring=True,
        recurrence_frequency="monthly",
    )
    base.update(kw)
    return Expense(**base)


class TestNextOccurrence:
    def test_daily(self):
        assert next_occurrence(date(2024, 2, 28), "daily") == date(2024, 2, 29)

    def test_weekly_plain(self):
        assert next_occurrence(date(2024, 1, 1), "weekly") == date(2024, 1, 8)

    def test_weekly_to_configured_weekday(self):
        # 2024-01-01 is a Monday
        assert sunday_based_weekday(date(2024, 1, 1)) == 1
        assert next_occurrence(date(2024, 1, 1), "weekly", day_of_week=5) == date(2024, 1, 5)

    def test_weekly_same_weekday_moves_a_full_week(self):
        assert next_occurrence(date(2024, 1, 1), "weekly", day_of_week=1) == date(2024, 1, 8)

    def test_monthly_plain(self):
        assert next_occurrence(date(2024, 1, 15), "monthly") == date(2024, 2, 15)

    def test_monthly_day_of_month_clamps_and_recovers(self):
        step = dict(monthly_recurrence_type="day_of_month", day_of_month=31)
        feb = next_occurrence(date(2024, 1, 31), "monthly", **step)
        assert feb == date(2024, 2, 29)
        assert next_occurrence(feb, "monthly", **step) == date(2024, 3, 31)

    def test_monthly_nth_weekday(self):
        third_monday = next_occurrence(
            date(2024, 1, 10),
            "monthly",
            monthly_recurrence_type="day_of_week",
            day_of_week=1,
            week_of_month=3,
        )
        assert third_monday == date(2024, 2, 19)

    def test_monthly_fifth_weekday_falls_back_to_last(self):
        fifth_friday = next_occurrence(
            date(2024, 1, 10),
            "monthly",
            monthly_recurrence_type="day_of_week",
            day_of_week=5,
            week_of_month=5,
        )
        assert fifth_friday == date(2024, 2, 23)

    def test_quarterly_clamps(self):
        assert next_occurrence(date(2024, 1, 31), "quarterly") == date(2024, 4, 30)

    def test_yearly_fixed_month_day_clamps(self):
        nxt = next_occurrence(date(2024, 2, 29), "yearly", month_of_year=2, day_of_month=29)
        assert nxt == date(2025, 2, 28)

    def test_yearly_plain(self):
        assert next_occurrence(date(2023, 6, 1), "yearly") == date(2024, 6, 1)

    def test_invalid_frequency(self):
        with pytest.raises(ValidationError):
            next_occurrence(date(2024, 1, 1), "hourly")


class TestAdvancePast:
    def test_skips_missed_dates(self):
        expense = _expense(next_occurrence_date=date(2024, 1, 1))
        assert advance_past(expense, date(2024, 3, 15)) == date(2024, 4, 1)

    def test_result_is_strictly_after(self):
        expense = _expense(next_occurrence_date=date(2024, 1, 1))
        assert advance_past(expense, date(2024, 4, 1)) == date(2024, 5, 1)

    def test_starts_from_expense_date_when_unset(self):
        expense = _expense(expense_date=date(2024, 3, 10), recurrence_frequency="weekly")
        assert advance_past(expense, date(2024, 3, 10)) == date(2024, 3, 17)


class TestProjectOccurrences:
    def test_projects_until_horizon(self):
        expense = _expense(next_occurrence_date=date(2024, 1, 15))
        assert project_occurrences(expense, date(2024, 4, 1)) == [
            date(2024, 1, 15),
            date(2024, 2, 15),
            date(2024, 3, 15),
        ]

    def test_excludes_existing_dates(self):
        expense = _expense(next_occurrence_date=date(2024, 1, 15))
        dates = project_occurrences(expense, date(2024, 4, 1), existing={date(2024, 2, 15)})
        assert dates == [date(2024, 1, 15), date(2024, 3, 15)]

    def test_iteration_cap(self):
        expense = _expense(recurrence_frequency="daily", next_occurrence_date=date(2024, 1, 1))
        assert len(project_occurrences(expense, date(2025, 1, 1))) == 12
