"""Pydantic response schemas for API endpoints."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional
from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    db: str
    version: str = "1.0.0"
    data_dir: str


# ── Accounts ──────────────────────────────────────────────────────────────────


class AccountRead(BaseModel):
    id: int
    name: str
    type: str
    description: Optional[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AccountWithBalance(AccountRead):
    balance: float = 0.0


class AccountTransactionRead(BaseModel):
    id: int
    account_id: int
    amount: float
    transaction_type: str
    source_type: str
    source_id: Optional[str]
    description: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class AllocationRuleRead(BaseModel):
    id: int
    source_type: str
    account_id: int
    percentage: float
    is_active: bool
    created_at: datetime
    updated_at: datetime
    account_name: Optional[str] = None

    class Config:
        from_attributes = True


class AllocationEntryRead(BaseModel):
    account_id: int
    amount: float
    transaction_type: str
    source_type: str
    source_id: Optional[str] = None
    description: Optional[str] = None

    class Config:
        from_attributes = True


class AllocationResponse(BaseModel):
    success: bool
    error: Optional[str] = None
    transactions: list[AllocationEntryRead] = []
    recorded: int = 0


# ── Orders ────────────────────────────────────────────────────────────────────


class ClientRead(BaseModel):
    id: int
    name: str
    phone: Optional[str]
    email: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class OrderItemRead(BaseModel):
    id: int
    order_id: int
    item_id: Optional[str]
    category_id: Optional[str]
    item_name: str
    category_name: str
    quantity: float
    unit_price: float
    total_amount: float
    profit_amount: float
    labor_amount: float

    class Config:
        from_attributes = True


class OrderPaymentRead(BaseModel):
    id: int
    order_id: int
    amount: float
    payment_date: date
    payment_method: str
    created_at: datetime

    class Config:
        from_attributes = True


class OrderRead(BaseModel):
    id: int
    client_id: Optional[int]
    order_date: date
    status: str
    payment_status: str
    total_amount: float
    amount_paid: float
    balance: float
    notes: Optional[str]
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrderDetail(OrderRead):
    client: Optional[ClientRead] = None
    items: list[OrderItemRead] = []
    payments: list[OrderPaymentRead] = []


class OrderListResponse(BaseModel):
    total: int
    page: int
    page_size: int
    items: list[OrderRead]


class OrderTotalsResponse(BaseModel):
    ok: bool
    error: Optional[str] = None
    total_amount: Optional[float] = None
    amount_paid: Optional[float] = None
    balance: Optional[float] = None
    payment_status: Optional[str] = None


# ── Materials ─────────────────────────────────────────────────────────────────


class MaterialPurchaseRead(BaseModel):
    id: int
    supplier_name: str
    material_name: str
    purchase_date: date
    quantity: float
    unit_price: float
    total_amount: float
    amount_paid: float
    payment_status: str
    installment_plan: bool
    total_installments: Optional[int]
    payment_frequency: Optional[str]
    next_payment_date: Optional[date]
    reminder_days: Optional[int]
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MaterialPaymentRead(BaseModel):
    id: int
    purchase_id: int
    amount: float
    payment_date: date
    payment_method: str
    notes: Optional[str]
    created_by: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class MaterialInstallmentRead(BaseModel):
    id: int
    purchase_id: int
    installment_number: int
    amount: float
    due_date: date
    status: str
    payment_id: Optional[int]

    class Config:
        from_attributes = True


class NoteRead(BaseModel):
    id: int
    text: str
    created_by: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class MaterialPurchaseDetail(MaterialPurchaseRead):
    payments: list[MaterialPaymentRead] = []
    notes: list[NoteRead] = []
    installments: list[MaterialInstallmentRead] = []


# ── Expenses ──────────────────────────────────────────────────────────────────


class ExpenseRead(BaseModel):
    id: int
    category: str
    item_name: str
    description: Optional[str]
    quantity: float
    unit_cost: float
    total_amount: float
    amount_paid: float
    payment_status: str
    expense_date: date
    is_recurring: bool
    recurrence_frequency: Optional[str]
    recurrence_start_date: Optional[date]
    recurrence_end_date: Optional[date]
    next_occurrence_date: Optional[date]
    reminder_days: Optional[int]
    recurrence_day_of_month: Optional[int]
    recurrence_day_of_week: Optional[int]
    recurrence_week_of_month: Optional[int]
    recurrence_month_of_year: Optional[int]
    monthly_recurrence_type: Optional[str]
    generated_from_recurring: bool
    parent_recurring_expense_id: Optional[int]
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ExpensePaymentRead(BaseModel):
    id: int
    expense_id: int
    amount: float
    payment_date: date
    payment_method: str
    notes: Optional[str]
    created_by: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class ExpenseDetail(ExpenseRead):
    payments: list[ExpensePaymentRead] = []
    notes: list[NoteRead] = []


class OccurrenceRead(BaseModel):
    id: int
    parent_expense_id: int
    occurrence_date: date
    status: str
    linked_expense_id: Optional[int]
    completed_date: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OccurrenceWithExpense(OccurrenceRead):
    expense: Optional[ExpenseRead] = None


class OccurrenceCompleted(BaseModel):
    occurrence: OccurrenceRead
    expense: ExpenseRead
    payment: ExpensePaymentRead


class RecurringRunResponse(BaseModel):
    success: bool
    generated_count: int
    reminder_count: int
    occurrences: list[OccurrenceRead] = []
    errors: list[dict[str, Any]] = []


# ── Notifications ─────────────────────────────────────────────────────────────


class NotificationRead(BaseModel):
    id: int
    user_id: Optional[str]
    type: str
    title: str
    content: str
    linked_item_type: Optional[str]
    linked_item_id: Optional[int]
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


# ── Settings ──────────────────────────────────────────────────────────────────


class ProfitPreviewResponse(BaseModel):
    profit_amount: float
    labor_amount: float
    total_amount: float
    matched_by: Optional[str] = None
    override_id: Optional[str] = None
