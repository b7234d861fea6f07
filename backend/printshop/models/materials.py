"""SQLModel models for material purchases and their payments, installments and notes."""
from typing import Optional
from datetime import date, datetime
from sqlmodel import SQLModel, Field

PAYMENT_FREQUENCIES = ("weekly", "biweekly", "monthly", "quarterly")


class MaterialPurchase(SQLModel, table=True):
    """A supplier purchase. payment_status follows amount_paid."""

    __tablename__ = "material_purchases"

    id: Optional[int] = Field(default=None, primary_key=True)
    supplier_name: str = Field(index=True)
    material_name: str = Field(index=True)
    purchase_date: date = Field(index=True)
    quantity: float = Field(default=1.0)
    unit_price: float = Field(default=0.0)
    total_amount: float = Field(default=0.0)
    amount_paid: float = Field(default=0.0)
    payment_status: str = Field(default="unpaid", index=True)

    # Installment plan metadata (set when a plan is generated)
    installment_plan: bool = Field(default=False)
    total_installments: Optional[int] = None
    payment_frequency: Optional[str] = None
    next_payment_date: Optional[date] = None
    reminder_days: Optional[int] = None

    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class MaterialPayment(SQLModel, table=True):
    __tablename__ = "material_payments"

    id: Optional[int] = Field(default=None, primary_key=True)
    purchase_id: int = Field(foreign_key="material_purchases.id", index=True)
    amount: float
    payment_date: date
    payment_method: str = Field(default="cash")
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class MaterialInstallment(SQLModel, table=True):
    __tablename__ = "material_installments"

    id: Optional[int] = Field(default=None, primary_key=True)
    purchase_id: int = Field(foreign_key="material_purchases.id", index=True)
    installment_number: int  # 1-based
    amount: float
    due_date: date = Field(index=True)
    status: str = Field(default="pending")  # pending, paid, overdue
    payment_id: Optional[int] = Field(default=None, foreign_key="material_payments.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class MaterialNote(SQLModel, table=True):
    __tablename__ = "material_notes"

    id: Optional[int] = Field(default=None, primary_key=True)
    purchase_id: int = Field(foreign_key="material_purchases.id", index=True)
    text: str
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
