"""
Recurring expense job and occurrence lifecycle.

The job is triggered externally (daily cron hitting
POST /api/cron/generate-recurring-expenses). For each live recurring
template whose next occurrence is due it creates one pending occurrence and
moves the template's next_occurrence_date past today. It then sends
reminder notifications. A failure on one expense is recorded in the report
and the job moves on to the next one.

Occurrences only move forward: pending → completed or pending → skipped.
Completing one books a concrete, fully paid Expense for that date.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from dateutil.relativedelta import relativedelta
from loguru import logger
from sqlmodel import col, select

from printshop.core.config import settings
from printshop.core.errors import ValidationError
from printshop.finance.recurrence import advance_past, project_occurrences
from printshop.models.expenses import (
    OCCURRENCE_STATUSES,
    Expense,
    ExpensePayment,
    RecurringExpenseOccurrence,
)
from printshop.models.notifications import Notification
from printshop.store import DataStore

REMINDER_TYPE = "expense_reminder"


@dataclass
class RecurringRunReport:
    generated: list[RecurringExpenseOccurrence] = field(default_factory=list)
    reminders: list[Notification] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def partial_failure(self) -> bool:
        return bool(self.errors)

    def record_error(self, expense_id: Optional[int], message: str) -> None:
        logger.warning(f"recurring: expense {expense_id}: {message}")
        self.errors.append({"expense_id": expense_id, "error": message})


def days_until(target: date, now: datetime) -> int:
    """Whole days from ``now`` to midnight of ``target``, rounded down."""
    return (datetime.combine(target, time.min) - now) // timedelta(days=1)


def generate_due_occurrences(
    store: DataStore, now: datetime, report: Optional[RecurringRunReport] = None
) -> RecurringRunReport:
    report = report or RecurringRunReport()
    today = now.date()
    for expense in store.get_due_recurring_expenses(today):
        due = expense.next_occurrence_date
        if due is None or due > today:
            continue
        try:
            if due not in store.get_occurrence_dates(expense.id):
                report.generated.append(store.create_occurrence(expense, due))
        except Exception as exc:
            report.record_error(expense.id, f"Failed to create occurrence: {exc}")
            continue
        try:
            store.advance_next_occurrence(expense, advance_past(expense, today))
        except Exception as exc:
            report.record_error(expense.id, f"Failed to advance next occurrence: {exc}")
    return report


def _reminder_due(days: int, reminder_days: int) -> bool:
    if settings.REMINDER_MATCH == "within":
        return 0 <= days <= reminder_days
    return days == reminder_days


def send_due_reminders(
    store: DataStore, now: datetime, report: Optional[RecurringRunReport] = None
) -> RecurringRunReport:
    report = report or RecurringRunReport()
    for expense in store.get_reminder_candidates():
        try:
            days = days_until(expense.next_occurrence_date, now)
            if not _reminder_due(days, expense.reminder_days):
                continue
            due_marker = expense.next_occurrence_date.isoformat()
            if store.has_notification(REMINDER_TYPE, expense.id, due_marker):
                continue
            notification = store.create_notification(
                user_id=expense.created_by,
                type=REMINDER_TYPE,
                title="Upcoming Expense Reminder",
                content=(
                    f"Reminder: {expense.item_name} expense of "
                    f"{expense.total_amount:.2f} is due in {days} days ({due_marker})."
                ),
                linked_item_type="expense",
                linked_item_id=expense.id,
            )
            report.reminders.append(notification)
        except Exception as exc:
            report.record_error(expense.id, f"Failed to create notification: {exc}")
    return report


def run_recurring_job(store: DataStore, now: Optional[datetime] = None) -> RecurringRunReport:
    now = now or datetime.utcnow()
    report = RecurringRunReport()
    generate_due_occurrences(store, now, report)
    send_due_reminders(store, now, report)
    logger.info(
        f"recurring: {len(report.generated)} occurrence(s), "
        f"{len(report.reminders)} reminder(s), {len(report.errors)} error(s)"
    )
    return report


# ── Occurrence lifecycle ─────────────────────────────────────────────────────


def _ensure_pending(occurrence: RecurringExpenseOccurrence, target: str) -> None:
    if occurrence.status != "pending":
        raise ValidationError(
            f"Occurrence is already {occurrence.status} and cannot be marked {target}",
            details={"id": occurrence.id, "status": occurrence.status},
        )


def complete_occurrence(
    store: DataStore, occurrence_id: int, now: Optional[datetime] = None
) -> tuple[RecurringExpenseOccurrence, Expense, ExpensePayment]:
    now = now or datetime.utcnow()
    occurrence = store.get_or_404(RecurringExpenseOccurrence, occurrence_id, "Occurrence")
    _ensure_pending(occurrence, "completed")
    parent = store.get_or_404(Expense, occurrence.parent_expense_id, "Parent expense")

    expense = Expense(
        category=parent.category,
        item_name=parent.item_name,
        description=parent.description,
        quantity=parent.quantity,
        unit_cost=parent.unit_cost,
        total_amount=parent.total_amount,
        amount_paid=parent.total_amount,
        payment_status="paid",
        expense_date=occurrence.occurrence_date,
        is_recurring=False,
        generated_from_recurring=True,
        parent_recurring_expense_id=parent.id,
        created_by=parent.created_by,
    )
    store.save(expense)

    payment = ExpensePayment(
        expense_id=expense.id,
        amount=expense.total_amount,
        payment_date=now.date(),
        payment_method="auto_payment",
        notes=f"Automatically created payment for recurring expense: {parent.item_name}",
        created_by=parent.created_by,
    )
    occurrence.status = "completed"
    occurrence.linked_expense_id = expense.id
    occurrence.completed_date = now
    occurrence.updated_at = now
    store.save(payment, occurrence)

    logger.info(
        f"recurring: occurrence {occurrence_id} completed → expense {expense.id}"
    )
    return occurrence, expense, payment


def skip_occurrence(store: DataStore, occurrence_id: int) -> RecurringExpenseOccurrence:
    occurrence = store.get_or_404(RecurringExpenseOccurrence, occurrence_id, "Occurrence")
    _ensure_pending(occurrence, "skipped")
    occurrence.status = "skipped"
    occurrence.updated_at = datetime.utcnow()
    store.save(occurrence)
    logger.info(f"recurring: occurrence {occurrence_id} skipped")
    return occurrence


def set_occurrence_status(store: DataStore, occurrence_id: int, status: str):
    if status not in OCCURRENCE_STATUSES:
        raise ValidationError(
            "Valid status is required (pending, completed, skipped)",
            details={"param": "status"},
        )
    if status == "completed":
        return complete_occurrence(store, occurrence_id)
    if status == "skipped":
        return skip_occurrence(store, occurrence_id)
    occurrence = store.get_or_404(RecurringExpenseOccurrence, occurrence_id, "Occurrence")
    _ensure_pending(occurrence, "pending")
    return occurrence


# ── Listings ─────────────────────────────────────────────────────────────────


def list_occurrences(
    store: DataStore, start: date, end: date
) -> list[tuple[RecurringExpenseOccurrence, Optional[Expense]]]:
    occurrences = store.fetch_all(
        select(RecurringExpenseOccurrence)
        .where(
            RecurringExpenseOccurrence.occurrence_date >= start,
            RecurringExpenseOccurrence.occurrence_date <= end,
        )
        .order_by(col(RecurringExpenseOccurrence.occurrence_date))
    )
    parents: dict[int, Optional[Expense]] = {}
    result = []
    for occ in occurrences:
        if occ.parent_expense_id not in parents:
            parents[occ.parent_expense_id] = store.get(Expense, occ.parent_expense_id)
        result.append((occ, parents[occ.parent_expense_id]))
    return result


def generate_upcoming_occurrences(
    store: DataStore, today: Optional[date] = None, months_ahead: int = 3
) -> RecurringRunReport:
    """
    Pre-create pending occurrences for every live recurring expense up to
    ``months_ahead`` months out, skipping dates that already have one.
    Templates without a next_occurrence_date start from their expense_date.
    """
    today = today or datetime.utcnow().date()
    horizon = today + relativedelta(months=months_ahead)
    report = RecurringRunReport()
    for expense in store.get_due_recurring_expenses(today):
        try:
            if expense.next_occurrence_date is None:
                store.advance_next_occurrence(expense, expense.expense_date)
            existing = store.get_occurrence_dates(expense.id)
            for due in project_occurrences(expense, horizon, existing):
                if expense.recurrence_end_date and due > expense.recurrence_end_date:
                    break
                report.generated.append(store.create_occurrence(expense, due))
        except Exception as exc:
            report.record_error(expense.id, str(exc))
    logger.info(
        f"recurring: pre-generated {len(report.generated)} occurrence(s) up to {horizon}"
    )
    return report
