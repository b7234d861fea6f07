"""SQLModel models for ledger accounts, their transactions and allocation rules."""
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

SOURCE_TYPES = ("profit", "labor", "order_payment", "expense")
ACCOUNT_TYPES = ("profit", "labor", "expense", "revenue", "custom")


class Account(SQLModel, table=True):
    """A ledger account money can be allocated to."""

    __tablename__ = "accounts"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    type: str = Field(default="custom", index=True)  # profit, labor, expense, revenue, custom
    description: Optional[str] = None
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class AccountTransaction(SQLModel, table=True):
    """Append-only ledger entry. Never updated after insert."""

    __tablename__ = "account_transactions"

    id: Optional[int] = Field(default=None, primary_key=True)
    account_id: int = Field(foreign_key="accounts.id", index=True)
    amount: float
    transaction_type: str  # credit | debit
    source_type: str = Field(index=True)
    source_id: Optional[str] = Field(default=None, index=True)
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class AllocationRule(SQLModel, table=True):
    """
    Percentage of incoming money of one source type routed to an account.
    Active percentages per source type never add up to more than 100.
    """

    __tablename__ = "account_allocation_rules"

    id: Optional[int] = Field(default=None, primary_key=True)
    source_type: str = Field(index=True)
    account_id: int = Field(foreign_key="accounts.id", index=True)
    percentage: float
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
