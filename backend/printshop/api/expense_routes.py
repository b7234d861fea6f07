"""
Expense API routes, including recurring expenses and the cron trigger.

Endpoints:
  GET    /api/expenses                               – filtered, paginated list
  POST   /api/expenses                               – create (recurring templates too)
  GET    /api/expenses/recurring                     – occurrences in a date window
  POST   /api/expenses/recurring                     – pre-generate upcoming occurrences
  GET    /api/expenses/recurring/{occurrence_id}
  PATCH  /api/expenses/recurring/{occurrence_id}     – complete / skip an occurrence
  GET    /api/expenses/{id}                          – with payments and notes
  PUT    /api/expenses/{id}
  DELETE /api/expenses/{id}
  POST   /api/expenses/{id}/payments
  DELETE /api/expenses/{id}/payments/{pid}
  GET    /api/expenses/{id}/notes
  POST   /api/expenses/{id}/notes

  POST   /api/cron/generate-recurring-expenses       – daily job (Bearer token)
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query, status
from loguru import logger
from sqlmodel import col, select

from printshop.core.errors import ConstraintError, NotFoundError
from printshop.core.security import CurrentUser, get_current_user, verify_cron_token
from printshop.finance.allocation import allocate_expense
from printshop.finance.money import money
from printshop.finance.order_totals import purchase_payment_status
from printshop.finance.recurring import (
    RecurringRunReport,
    generate_upcoming_occurrences,
    list_occurrences,
    run_recurring_job,
    set_occurrence_status,
)
from printshop.models.expenses import (
    Expense,
    ExpenseNote,
    ExpensePayment,
    RecurringExpenseOccurrence,
)
from printshop.schemas.requests import (
    ExpenseCreate,
    ExpenseUpdate,
    NoteIn,
    OccurrenceStatusIn,
    PaymentIn,
)
from printshop.schemas.responses import (
    ExpenseDetail,
    ExpensePaymentRead,
    ExpenseRead,
    NoteRead,
    OccurrenceCompleted,
    OccurrenceRead,
    OccurrenceWithExpense,
    RecurringRunResponse,
)
from printshop.store import DataStore, get_store

expense_router = APIRouter(prefix="/api/expenses", tags=["expenses"])
cron_router = APIRouter(prefix="/api/cron", tags=["cron"])


# ── Helpers ───────────────────────────────────────────────────────────────────


def _payments(store: DataStore, expense_id: int) -> list[ExpensePayment]:
    return store.fetch_all(
        select(ExpensePayment)
        .where(ExpensePayment.expense_id == expense_id)
        .order_by(col(ExpensePayment.payment_date).desc(), col(ExpensePayment.id))
    )


def _notes(store: DataStore, expense_id: int) -> list[ExpenseNote]:
    return store.fetch_all(
        select(ExpenseNote)
        .where(ExpenseNote.expense_id == expense_id)
        .order_by(col(ExpenseNote.created_at).desc())
    )


def _detail(store: DataStore, expense: Expense) -> ExpenseDetail:
    return ExpenseDetail(
        **ExpenseRead.model_validate(expense).model_dump(),
        payments=[ExpensePaymentRead.model_validate(p) for p in _payments(store, expense.id)],
        notes=[NoteRead.model_validate(n) for n in _notes(store, expense.id)],
    )


def _sync_paid(store: DataStore, expense: Expense) -> None:
    paid = money(sum(p.amount for p in _payments(store, expense.id)))
    expense.amount_paid = paid
    expense.payment_status = purchase_payment_status(expense.total_amount, paid)
    expense.updated_at = datetime.utcnow()
    store.save(expense)


def _run_response(report: RecurringRunReport) -> RecurringRunResponse:
    return RecurringRunResponse(
        success=not report.partial_failure,
        generated_count=len(report.generated),
        reminder_count=len(report.reminders),
        occurrences=[OccurrenceRead.model_validate(o) for o in report.generated],
        errors=report.errors,
    )


def _with_expense(occ: RecurringExpenseOccurrence, expense: Optional[Expense]) -> OccurrenceWithExpense:
    return OccurrenceWithExpense(
        **OccurrenceRead.model_validate(occ).model_dump(),
        expense=ExpenseRead.model_validate(expense) if expense else None,
    )


# ── Expenses ──────────────────────────────────────────────────────────────────


@expense_router.get("", response_model=list[ExpenseRead])
def list_expenses(
    category: Optional[list[str]] = Query(default=None),
    payment_status: Optional[list[str]] = Query(default=None),
    is_recurring: Optional[bool] = Query(default=None),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    search: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=500),
    store: DataStore = Depends(get_store),
):
    stmt = select(Expense)
    if category:
        stmt = stmt.where(col(Expense.category).in_(category))
    if payment_status:
        stmt = stmt.where(col(Expense.payment_status).in_(payment_status))
    if is_recurring is not None:
        stmt = stmt.where(Expense.is_recurring == is_recurring)
    if date_from:
        stmt = stmt.where(Expense.expense_date >= date_from)
    if date_to:
        stmt = stmt.where(Expense.expense_date <= date_to)
    if search:
        stmt = stmt.where(
            (col(Expense.item_name).contains(search))
            | (col(Expense.description).contains(search))
        )
    stmt = stmt.order_by(col(Expense.expense_date).desc(), col(Expense.id).desc())
    return store.fetch_all(stmt.offset((page - 1) * page_size).limit(page_size))


@expense_router.post("", response_model=ExpenseRead, status_code=status.HTTP_201_CREATED)
def create_expense(
    body: ExpenseCreate,
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(get_current_user),
):
    expense = Expense(
        **body.model_dump(),
        payment_status=purchase_payment_status(body.total_amount, 0),
        created_by=user.id,
    )
    if expense.is_recurring:
        expense.recurrence_start_date = expense.recurrence_start_date or expense.expense_date
        expense.next_occurrence_date = expense.recurrence_start_date
    store.save(expense)
    logger.info(
        f"expenses: created {expense.id} '{expense.item_name}' {expense.total_amount}"
        + (f" recurring {expense.recurrence_frequency}" if expense.is_recurring else "")
    )
    return expense


# ── Recurring occurrences ─────────────────────────────────────────────────────


@expense_router.get("/recurring", response_model=list[OccurrenceWithExpense])
def list_recurring_occurrences(
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    store: DataStore = Depends(get_store),
):
    """Occurrences between start_date (default today) and end_date (default +30 days)."""
    start = start_date or datetime.utcnow().date()
    end = end_date or start + timedelta(days=30)
    return [_with_expense(occ, exp) for occ, exp in list_occurrences(store, start, end)]


@expense_router.post("/recurring", response_model=RecurringRunResponse)
def pregenerate_occurrences(
    months_ahead: int = Query(default=3, ge=1, le=12),
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(get_current_user),
):
    return _run_response(generate_upcoming_occurrences(store, months_ahead=months_ahead))


@expense_router.get("/recurring/{occurrence_id}", response_model=OccurrenceWithExpense)
def get_occurrence(occurrence_id: int, store: DataStore = Depends(get_store)):
    occ = store.get_or_404(RecurringExpenseOccurrence, occurrence_id, "Occurrence")
    return _with_expense(occ, store.get(Expense, occ.parent_expense_id))


@expense_router.patch(
    "/recurring/{occurrence_id}", response_model=Union[OccurrenceCompleted, OccurrenceRead]
)
def update_occurrence(
    occurrence_id: int,
    body: OccurrenceStatusIn,
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(get_current_user),
):
    result = set_occurrence_status(store, occurrence_id, body.status)
    if isinstance(result, tuple):
        occurrence, expense, payment = result
        return OccurrenceCompleted(
            occurrence=OccurrenceRead.model_validate(occurrence),
            expense=ExpenseRead.model_validate(expense),
            payment=ExpensePaymentRead.model_validate(payment),
        )
    return OccurrenceRead.model_validate(result)


# ── Single expense ────────────────────────────────────────────────────────────


@expense_router.get("/{expense_id}", response_model=ExpenseDetail)
def get_expense(expense_id: int, store: DataStore = Depends(get_store)):
    return _detail(store, store.get_or_404(Expense, expense_id, "Expense"))


@expense_router.put("/{expense_id}", response_model=ExpenseDetail)
def update_expense(expense_id: int, body: ExpenseUpdate, store: DataStore = Depends(get_store)):
    expense = store.get_or_404(Expense, expense_id, "Expense")
    update = body.model_dump(exclude_unset=True)
    for k, v in update.items():
        setattr(expense, k, v)
    if "total_amount" not in update and {"quantity", "unit_cost"} & update.keys():
        expense.total_amount = money(expense.quantity * expense.unit_cost)
    if expense.is_recurring and expense.next_occurrence_date is None:
        expense.next_occurrence_date = expense.recurrence_start_date or expense.expense_date
    _sync_paid(store, expense)
    return _detail(store, expense)


@expense_router.delete("/{expense_id}")
def delete_expense(expense_id: int, store: DataStore = Depends(get_store)) -> dict:
    expense = store.get_or_404(Expense, expense_id, "Expense")
    occurrences = store.fetch_all(
        select(RecurringExpenseOccurrence).where(
            RecurringExpenseOccurrence.parent_expense_id == expense_id
        )
    )
    if any(o.status == "completed" for o in occurrences):
        raise ConstraintError(
            "Cannot delete a recurring expense with completed occurrences",
            details={"id": expense_id},
        )
    store.delete(*occurrences, *_payments(store, expense_id), *_notes(store, expense_id), expense)
    logger.info(f"expenses: deleted {expense_id}")
    return {"status": "deleted", "id": expense_id}


# ── Payments & notes ──────────────────────────────────────────────────────────


@expense_router.post(
    "/{expense_id}/payments", response_model=ExpenseDetail, status_code=status.HTTP_201_CREATED
)
def add_expense_payment(
    expense_id: int,
    body: PaymentIn,
    allocate: bool = Query(default=False, description="Debit the payment across accounts"),
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(get_current_user),
):
    expense = store.get_or_404(Expense, expense_id, "Expense")
    payment = ExpensePayment(expense_id=expense.id, created_by=user.id, **body.model_dump())
    store.save(payment)
    if allocate:
        result, _ = allocate_expense(
            store, payment.amount, str(expense.id), f"Expense: {expense.item_name}"
        )
        if not result.success:
            logger.error(f"expenses: allocating payment {payment.id} failed: {result.error}")
    _sync_paid(store, expense)
    return _detail(store, expense)


@expense_router.delete("/{expense_id}/payments/{payment_id}", response_model=ExpenseDetail)
def delete_expense_payment(
    expense_id: int, payment_id: int, store: DataStore = Depends(get_store)
):
    expense = store.get_or_404(Expense, expense_id, "Expense")
    payment = store.get(ExpensePayment, payment_id)
    if payment is None or payment.expense_id != expense.id:
        raise NotFoundError("Payment not found", details={"id": payment_id})
    store.delete(payment)
    _sync_paid(store, expense)
    return _detail(store, expense)


@expense_router.get("/{expense_id}/notes", response_model=list[NoteRead])
def list_expense_notes(expense_id: int, store: DataStore = Depends(get_store)):
    store.get_or_404(Expense, expense_id, "Expense")
    return _notes(store, expense_id)


@expense_router.post(
    "/{expense_id}/notes", response_model=NoteRead, status_code=status.HTTP_201_CREATED
)
def add_expense_note(
    expense_id: int,
    body: NoteIn,
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(get_current_user),
):
    store.get_or_404(Expense, expense_id, "Expense")
    note = ExpenseNote(expense_id=expense_id, text=body.text, created_by=user.id)
    store.save(note)
    return note


# ── Cron ──────────────────────────────────────────────────────────────────────


@cron_router.post(
    "/generate-recurring-expenses",
    response_model=RecurringRunResponse,
    dependencies=[Depends(verify_cron_token)],
)
def cron_generate_recurring_expenses(store: DataStore = Depends(get_store)):
    return _run_response(run_recurring_job(store))
