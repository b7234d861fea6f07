"""SQLModel models for clients, orders and their items and payments."""
from typing import Optional
from datetime import date, datetime
from sqlmodel import SQLModel, Field

ORDER_STATUSES = ("pending", "in_progress", "completed", "delivered", "cancelled")


class Client(SQLModel, table=True):
    __tablename__ = "clients"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    phone: Optional[str] = None
    email: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Order(SQLModel, table=True):
    """
    A customer order. total_amount, amount_paid and payment_status are
    maintained by the order totals aggregator; balance is derived and
    never stored.
    """

    __tablename__ = "orders"

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: Optional[int] = Field(default=None, foreign_key="clients.id", index=True)
    order_date: date = Field(index=True)
    status: str = Field(default="pending", index=True)
    payment_status: str = Field(default="unpaid", index=True)
    total_amount: float = Field(default=0.0)
    amount_paid: float = Field(default=0.0)
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def balance(self) -> float:
        return round((self.total_amount or 0.0) - (self.amount_paid or 0.0), 2)


class OrderItem(SQLModel, table=True):
    """Line item. profit_amount / labor_amount are per-unit figures fixed at write time."""

    __tablename__ = "order_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    item_id: Optional[str] = Field(default=None, index=True)
    category_id: Optional[str] = Field(default=None, index=True)
    item_name: str
    category_name: str
    quantity: float
    unit_price: float
    total_amount: float = Field(default=0.0)
    profit_amount: float = Field(default=0.0)
    labor_amount: float = Field(default=0.0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class OrderPayment(SQLModel, table=True):
    __tablename__ = "order_payments"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    amount: float
    payment_date: date
    payment_method: str = Field(default="cash")
    created_at: datetime = Field(default_factory=datetime.utcnow)
