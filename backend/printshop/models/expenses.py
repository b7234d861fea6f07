"""SQLModel models for expenses, recurring templates and their occurrences."""
from typing import Optional
from datetime import date, datetime
from sqlmodel import SQLModel, Field

RECURRENCE_FREQUENCIES = ("daily", "weekly", "monthly", "quarterly", "yearly")
OCCURRENCE_STATUSES = ("pending", "completed", "skipped")


class Expense(SQLModel, table=True):
    """
    A business expense. When is_recurring is set the row is a template:
    the recurring job spawns RecurringExpenseOccurrence rows from it.
    """

    __tablename__ = "expenses"

    id: Optional[int] = Field(default=None, primary_key=True)
    category: str = Field(index=True)
    item_name: str
    description: Optional[str] = None
    quantity: float = Field(default=1.0)
    unit_cost: float = Field(default=0.0)
    total_amount: float = Field(default=0.0)
    amount_paid: float = Field(default=0.0)
    payment_status: str = Field(default="unpaid", index=True)
    expense_date: date = Field(index=True)

    # Recurrence
    is_recurring: bool = Field(default=False, index=True)
    recurrence_frequency: Optional[str] = None
    recurrence_start_date: Optional[date] = None
    recurrence_end_date: Optional[date] = None
    next_occurrence_date: Optional[date] = Field(default=None, index=True)
    reminder_days: Optional[int] = None
    recurrence_day_of_month: Optional[int] = None
    recurrence_day_of_week: Optional[int] = None  # 0 = Sunday … 6 = Saturday
    recurrence_week_of_month: Optional[int] = None
    recurrence_month_of_year: Optional[int] = None
    monthly_recurrence_type: Optional[str] = None  # day_of_month | day_of_week

    # Set on expenses created by completing an occurrence
    generated_from_recurring: bool = Field(default=False)
    parent_recurring_expense_id: Optional[int] = Field(
        default=None, foreign_key="expenses.id", index=True
    )

    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class ExpensePayment(SQLModel, table=True):
    __tablename__ = "expense_payments"

    id: Optional[int] = Field(default=None, primary_key=True)
    expense_id: int = Field(foreign_key="expenses.id", index=True)
    amount: float
    payment_date: date
    payment_method: str = Field(default="cash")
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ExpenseNote(SQLModel, table=True):
    __tablename__ = "expense_notes"

    id: Optional[int] = Field(default=None, primary_key=True)
    expense_id: int = Field(foreign_key="expenses.id", index=True)
    text: str
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class RecurringExpenseOccurrence(SQLModel, table=True):
    """One due instance of a recurring expense. pending → completed | skipped, never back."""

    __tablename__ = "recurring_expense_occurrences"

    id: Optional[int] = Field(default=None, primary_key=True)
    parent_expense_id: int = Field(foreign_key="expenses.id", index=True)
    occurrence_date: date = Field(index=True)
    status: str = Field(default="pending", index=True)
    linked_expense_id: Optional[int] = Field(default=None, foreign_key="expenses.id")
    completed_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
