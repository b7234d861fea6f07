"""Pydantic request bodies for the write endpoints."""
from __future__ import annotations

from datetime import date
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, Field, field_validator, model_validator

from printshop.models.accounts import ACCOUNT_TYPES, SOURCE_TYPES
from printshop.models.expenses import OCCURRENCE_STATUSES, RECURRENCE_FREQUENCIES
from printshop.models.materials import PAYMENT_FREQUENCIES
from printshop.models.orders import ORDER_STATUSES


def _percentage(v: Optional[float]) -> Optional[float]:
    if v is not None and not (0 < v <= 100):
        raise ValueError("percentage must be greater than 0 and at most 100")
    return v


def _positive(v: Optional[float]) -> Optional[float]:
    if v is not None and v <= 0:
        raise ValueError("must be greater than zero")
    return v


Percentage = Annotated[float, AfterValidator(_percentage)]
PositiveNumber = Annotated[float, AfterValidator(_positive)]


# ── Accounts ──────────────────────────────────────────────────────────────────


class AccountCreate(BaseModel):
    name: str = Field(min_length=1)
    type: str = "custom"
    description: Optional[str] = None
    is_active: bool = True

    @field_validator("type")
    @classmethod
    def known_type(cls, v: str) -> str:
        if v not in ACCOUNT_TYPES:
            raise ValueError(f"type must be one of {', '.join(ACCOUNT_TYPES)}")
        return v


class AccountUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    type: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("type")
    @classmethod
    def known_type(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in ACCOUNT_TYPES:
            raise ValueError(f"type must be one of {', '.join(ACCOUNT_TYPES)}")
        return v


class AllocateRequest(BaseModel):
    amount: float
    source_type: str
    source_id: Optional[str] = None
    description: Optional[str] = None
    record: bool = True


class RuleCreate(BaseModel):
    source_type: str
    account_id: int
    percentage: Percentage
    is_active: bool = True

    @field_validator("source_type")
    @classmethod
    def known_source(cls, v: str) -> str:
        if v not in SOURCE_TYPES:
            raise ValueError(f"source_type must be one of {', '.join(SOURCE_TYPES)}")
        return v


class RuleUpdate(BaseModel):
    source_type: Optional[str] = None
    account_id: Optional[int] = None
    percentage: Optional[Percentage] = None
    is_active: Optional[bool] = None

    @field_validator("source_type")
    @classmethod
    def known_source(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in SOURCE_TYPES:
            raise ValueError(f"source_type must be one of {', '.join(SOURCE_TYPES)}")
        return v


# ── Orders ────────────────────────────────────────────────────────────────────


class ClientCreate(BaseModel):
    name: str = Field(min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None


class OrderItemIn(BaseModel):
    item_id: Optional[str] = None
    category_id: Optional[str] = None
    item_name: str = Field(min_length=1)
    category_name: str = ""
    quantity: PositiveNumber
    unit_price: float

    @field_validator("unit_price")
    @classmethod
    def non_negative_price(cls, v: float) -> float:
        if v < 0:
            raise ValueError("unit_price must not be negative")
        return v


class OrderCreate(BaseModel):
    client_id: Optional[int] = None
    order_date: date
    status: str = "pending"
    notes: Optional[str] = None
    items: list[OrderItemIn] = []
    allocate_profit: bool = False

    @field_validator("status")
    @classmethod
    def known_status(cls, v: str) -> str:
        if v not in ORDER_STATUSES:
            raise ValueError(f"status must be one of {', '.join(ORDER_STATUSES)}")
        return v


class OrderUpdate(BaseModel):
    client_id: Optional[int] = None
    order_date: Optional[date] = None
    status: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def known_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in ORDER_STATUSES:
            raise ValueError(f"status must be one of {', '.join(ORDER_STATUSES)}")
        return v

    @model_validator(mode="after")
    def no_null_required_fields(self) -> "OrderUpdate":
        # Omit a field to leave it unchanged; only notes and client may be cleared
        for name in ("order_date", "status"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class PaymentIn(BaseModel):
    amount: PositiveNumber
    payment_date: date
    payment_method: str = "cash"
    notes: Optional[str] = None


# ── Materials ─────────────────────────────────────────────────────────────────


class MaterialPurchaseCreate(BaseModel):
    supplier_name: str = Field(min_length=1)
    material_name: str = Field(min_length=1)
    purchase_date: date
    quantity: PositiveNumber = 1.0
    unit_price: float = 0.0
    total_amount: Optional[float] = None

    @model_validator(mode="after")
    def fill_total(self) -> "MaterialPurchaseCreate":
        if self.total_amount is None:
            self.total_amount = round(self.quantity * self.unit_price, 2)
        return self


class MaterialPurchaseUpdate(BaseModel):
    supplier_name: Optional[str] = None
    material_name: Optional[str] = None
    purchase_date: Optional[date] = None
    quantity: Optional[float] = None
    unit_price: Optional[float] = None
    total_amount: Optional[float] = None
    reminder_days: Optional[int] = None


class NoteIn(BaseModel):
    text: str = Field(min_length=1)


class InstallmentPlanIn(BaseModel):
    total_installments: int
    payment_frequency: str
    first_payment_date: date
    reminder_days: Optional[int] = 3

    @field_validator("total_installments")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("total_installments must be a positive integer")
        return v

    @field_validator("payment_frequency")
    @classmethod
    def known_frequency(cls, v: str) -> str:
        if v not in PAYMENT_FREQUENCIES:
            raise ValueError(f"payment_frequency must be one of {', '.join(PAYMENT_FREQUENCIES)}")
        return v


class InstallmentUpdate(BaseModel):
    amount: Optional[float] = None
    due_date: Optional[date] = None
    status: Optional[str] = None
    payment_id: Optional[int] = None

    @field_validator("status")
    @classmethod
    def known_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in ("pending", "paid", "overdue"):
            raise ValueError("status must be one of pending, paid, overdue")
        return v


# ── Expenses ──────────────────────────────────────────────────────────────────


class ExpenseBase(BaseModel):
    recurrence_frequency: Optional[str] = None
    recurrence_start_date: Optional[date] = None
    recurrence_end_date: Optional[date] = None
    reminder_days: Optional[int] = None
    recurrence_day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    recurrence_day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    recurrence_week_of_month: Optional[int] = Field(default=None, ge=1, le=5)
    recurrence_month_of_year: Optional[int] = Field(default=None, ge=1, le=12)
    monthly_recurrence_type: Optional[str] = None

    @field_validator("recurrence_frequency")
    @classmethod
    def known_frequency(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in RECURRENCE_FREQUENCIES:
            raise ValueError(
                f"recurrence_frequency must be one of {', '.join(RECURRENCE_FREQUENCIES)}"
            )
        return v

    @field_validator("monthly_recurrence_type")
    @classmethod
    def known_monthly_type(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in ("day_of_month", "day_of_week"):
            raise ValueError("monthly_recurrence_type must be day_of_month or day_of_week")
        return v


class ExpenseCreate(ExpenseBase):
    category: str = Field(min_length=1)
    item_name: str = Field(min_length=1)
    description: Optional[str] = None
    quantity: float = 1.0
    unit_cost: float = 0.0
    total_amount: Optional[float] = None
    expense_date: date
    is_recurring: bool = False

    @model_validator(mode="after")
    def check_recurrence(self) -> "ExpenseCreate":
        if self.total_amount is None:
            self.total_amount = round(self.quantity * self.unit_cost, 2)
        if self.is_recurring and not self.recurrence_frequency:
            raise ValueError("recurrence_frequency is required for recurring expenses")
        return self


class ExpenseUpdate(ExpenseBase):
    category: Optional[str] = None
    item_name: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[float] = None
    unit_cost: Optional[float] = None
    total_amount: Optional[float] = None
    expense_date: Optional[date] = None
    is_recurring: Optional[bool] = None
    next_occurrence_date: Optional[date] = None


class OccurrenceStatusIn(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def known_status(cls, v: str) -> str:
        if v not in OCCURRENCE_STATUSES:
            raise ValueError("Valid status is required (pending, completed, skipped)")
        return v


# ── Notifications ─────────────────────────────────────────────────────────────


class NotificationUpdate(BaseModel):
    is_read: bool
