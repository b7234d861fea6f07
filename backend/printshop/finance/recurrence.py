"""
Calendar stepping for recurring expenses.

Frequencies:
  daily      +1 day
  weekly     +7 days, or forward to the configured weekday
  monthly    +1 month; or a fixed day of month (clamped to the month's last
             day); or the Nth weekday of the month (e.g. 3rd Monday)
  quarterly  +3 months
  yearly     +1 year; or a fixed month/day (clamped)

Weekdays use 0 = Sunday … 6 = Saturday, the convention stored on expenses.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from printshop.core.errors import ValidationError
from printshop.models.expenses import RECURRENCE_FREQUENCIES, Expense

# Upper bound on steps when catching up a long-stale schedule
_MAX_STEPS = 10_000


def sunday_based_weekday(d: date) -> int:
    return (d.weekday() + 1) % 7


def next_occurrence(
    base: date,
    frequency: str,
    day_of_month: Optional[int] = None,
    day_of_week: Optional[int] = None,
    week_of_month: Optional[int] = None,
    month_of_year: Optional[int] = None,
    monthly_recurrence_type: Optional[str] = None,
) -> date:
    if frequency == "daily":
        return base + timedelta(days=1)

    if frequency == "weekly":
        if day_of_week is not None:
            days_to_add = (day_of_week - sunday_based_weekday(base) + 7) % 7
            return base + timedelta(days=days_to_add or 7)
        return base + timedelta(weeks=1)

    if frequency == "monthly":
        if monthly_recurrence_type == "day_of_month" and day_of_month:
            # relativedelta clamps day=31 to the last day of shorter months
            return base + relativedelta(months=1, day=day_of_month)
        if (
            monthly_recurrence_type == "day_of_week"
            and day_of_week is not None
            and week_of_month
        ):
            first_of_next = base.replace(day=1) + relativedelta(months=1)
            offset = (day_of_week - sunday_based_weekday(first_of_next) + 7) % 7
            target = first_of_next + timedelta(days=offset, weeks=week_of_month - 1)
            if target.month != first_of_next.month:
                # No 5th weekday this month: use the last one
                target -= timedelta(weeks=1)
            return target
        return base + relativedelta(months=1)

    if frequency == "quarterly":
        return base + relativedelta(months=3)

    if frequency == "yearly":
        if month_of_year is not None and day_of_month:
            return base + relativedelta(years=1, month=month_of_year, day=day_of_month)
        return base + relativedelta(years=1)

    raise ValidationError(
        f"Invalid frequency: {frequency}",
        details={"allowed": list(RECURRENCE_FREQUENCIES)},
    )


def next_occurrence_for(expense: Expense, base: Optional[date] = None) -> date:
    """Step an expense's schedule once from ``base`` (default: its next occurrence)."""
    start = base or expense.next_occurrence_date or expense.expense_date
    return next_occurrence(
        start,
        expense.recurrence_frequency or "monthly",
        day_of_month=expense.recurrence_day_of_month,
        day_of_week=expense.recurrence_day_of_week,
        week_of_month=expense.recurrence_week_of_month,
        month_of_year=expense.recurrence_month_of_year,
        monthly_recurrence_type=expense.monthly_recurrence_type,
    )


def advance_past(expense: Expense, as_of: date) -> date:
    """First schedule date strictly after ``as_of``."""
    current = expense.next_occurrence_date or expense.expense_date
    for _ in range(_MAX_STEPS):
        current = next_occurrence_for(expense, current)
        if current > as_of:
            return current
    raise ValidationError(
        "Recurrence schedule could not be advanced",
        details={"expense_id": expense.id, "as_of": str(as_of)},
    )


def project_occurrences(
    expense: Expense,
    until: date,
    existing: Optional[set[date]] = None,
    max_iterations: int = 12,
) -> list[date]:
    """Upcoming schedule dates up to ``until`` that are not already in ``existing``."""
    existing = existing or set()
    current = expense.next_occurrence_date or expense.expense_date
    dates: list[date] = []
    for _ in range(max_iterations):
        if current > until:
            break
        if current not in existing:
            dates.append(current)
        current = next_occurrence_for(expense, current)
    return dates
