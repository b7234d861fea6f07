"""
Data store facade used by the finance calculators.

Wraps a SQLModel ``Session`` and exposes the handful of row operations the
calculators need. Any SQLAlchemy failure is re-raised as ``StoreError`` so
callers only deal with the application error taxonomy.
"""
from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Iterable, Optional, Type, TypeVar

from fastapi import Depends
from loguru import logger
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, col, select

from printshop.core.database import get_session
from printshop.core.errors import NotFoundError, StoreError
from printshop.models.accounts import AccountTransaction, AllocationRule
from printshop.models.expenses import Expense, RecurringExpenseOccurrence
from printshop.models.materials import MaterialInstallment, MaterialPurchase
from printshop.models.notifications import Notification
from printshop.models.orders import Order, OrderItem, OrderPayment

M = TypeVar("M", bound=SQLModel)


class DataStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error(f"store: {action} failed: {exc}")
            raise StoreError(f"Failed to {action}", details=str(exc)) from exc

    # ── Generic helpers ──────────────────────────────────────────────────────

    def get(self, model: Type[M], row_id: Any) -> Optional[M]:
        with self._guard(f"fetch {model.__tablename__}"):
            return self.session.get(model, row_id)

    def get_or_404(self, model: Type[M], row_id: Any, label: str) -> M:
        row = self.get(model, row_id)
        if row is None:
            raise NotFoundError(f"{label} not found", details={"id": row_id})
        return row

    def fetch_all(self, stmt) -> list:
        with self._guard("run query"):
            return list(self.session.exec(stmt).all())

    def save(self, *rows: SQLModel) -> None:
        """Add rows and commit them together, refreshing generated values."""
        with self._guard("save rows"):
            for row in rows:
                self.session.add(row)
            self.session.commit()
            for row in rows:
                self.session.refresh(row)

    def delete(self, *rows: SQLModel) -> None:
        with self._guard("delete rows"):
            for row in rows:
                self.session.delete(row)
            self.session.commit()

    # ── Allocation ───────────────────────────────────────────────────────────

    def get_active_rules(self, source_type: str) -> list[AllocationRule]:
        """Active rules for a source type, largest percentage first, then by id."""
        stmt = (
            select(AllocationRule)
            .where(
                AllocationRule.source_type == source_type,
                AllocationRule.is_active == True,  # noqa: E712
            )
            .order_by(col(AllocationRule.percentage).desc(), col(AllocationRule.id))
        )
        with self._guard("fetch allocation rules"):
            return list(self.session.exec(stmt).all())

    def insert_transactions(
        self, transactions: Iterable[AccountTransaction]
    ) -> list[AccountTransaction]:
        rows = list(transactions)
        if rows:
            self.save(*rows)
        return rows

    # ── Materials ────────────────────────────────────────────────────────────

    def get_purchase(self, purchase_id: int) -> Optional[MaterialPurchase]:
        return self.get(MaterialPurchase, purchase_id)

    def get_installments(self, purchase_id: int) -> list[MaterialInstallment]:
        return self.fetch_all(
            select(MaterialInstallment)
            .where(MaterialInstallment.purchase_id == purchase_id)
            .order_by(MaterialInstallment.installment_number)
        )

    def insert_installments(
        self,
        purchase: MaterialPurchase,
        installments: list[MaterialInstallment],
        replace_existing: bool = True,
    ) -> list[MaterialInstallment]:
        """Write a whole plan in one commit; nothing is persisted on failure."""
        with self._guard("create installment plan"):
            if replace_existing:
                for old in self.session.exec(
                    select(MaterialInstallment).where(
                        MaterialInstallment.purchase_id == purchase.id
                    )
                ).all():
                    self.session.delete(old)
            self.session.add(purchase)
            for inst in installments:
                self.session.add(inst)
            self.session.commit()
            for inst in installments:
                self.session.refresh(inst)
            self.session.refresh(purchase)
        return installments

    # ── Recurring expenses ───────────────────────────────────────────────────

    def get_due_recurring_expenses(self, as_of: date) -> list[Expense]:
        """Recurring templates whose end date is unset or not yet passed."""
        stmt = (
            select(Expense)
            .where(
                Expense.is_recurring == True,  # noqa: E712
                or_(
                    col(Expense.recurrence_end_date).is_(None),
                    col(Expense.recurrence_end_date) >= as_of,
                ),
            )
            .order_by(col(Expense.id))
        )
        with self._guard("fetch recurring expenses"):
            return list(self.session.exec(stmt).all())

    def get_reminder_candidates(self) -> list[Expense]:
        stmt = (
            select(Expense)
            .where(
                Expense.is_recurring == True,  # noqa: E712
                col(Expense.reminder_days).is_not(None),
                col(Expense.next_occurrence_date).is_not(None),
            )
            .order_by(col(Expense.id))
        )
        with self._guard("fetch reminder candidates"):
            return list(self.session.exec(stmt).all())

    def create_occurrence(
        self, expense: Expense, occurrence_date: date
    ) -> RecurringExpenseOccurrence:
        occurrence = RecurringExpenseOccurrence(
            parent_expense_id=expense.id,
            occurrence_date=occurrence_date,
            status="pending",
        )
        self.save(occurrence)
        return occurrence

    def get_occurrence_dates(self, expense_id: int) -> set[date]:
        rows = self.fetch_all(
            select(RecurringExpenseOccurrence.occurrence_date).where(
                RecurringExpenseOccurrence.parent_expense_id == expense_id
            )
        )
        return set(rows)

    def advance_next_occurrence(self, expense: Expense, next_date: date) -> Expense:
        expense.next_occurrence_date = next_date
        expense.updated_at = datetime.utcnow()
        self.save(expense)
        return expense

    def create_notification(self, **fields: Any) -> Notification:
        notification = Notification(**fields)
        self.save(notification)
        return notification

    def has_notification(self, type_: str, linked_item_id: int, marker: str) -> bool:
        """True when a notification of ``type_`` for the item mentions ``marker``."""
        stmt = select(Notification.id).where(
            Notification.type == type_,
            Notification.linked_item_id == linked_item_id,
            col(Notification.content).contains(marker),
        )
        with self._guard("fetch notifications"):
            return self.session.exec(stmt).first() is not None

    # ── Orders ───────────────────────────────────────────────────────────────

    def get_order_items(self, order_id: int) -> list[OrderItem]:
        return self.fetch_all(
            select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id)
        )

    def get_order_payments(self, order_id: int) -> list[OrderPayment]:
        return self.fetch_all(
            select(OrderPayment)
            .where(OrderPayment.order_id == order_id)
            .order_by(col(OrderPayment.payment_date).desc(), col(OrderPayment.id))
        )

    def update_order(self, order_id: int, fields: dict) -> Order:
        order = self.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found", details={"id": order_id})
        for k, v in fields.items():
            setattr(order, k, v)
        order.updated_at = datetime.utcnow()
        self.save(order)
        return order


def get_store(session: Session = Depends(get_session)) -> DataStore:
    """FastAPI dependency: a DataStore bound to the request's session."""
    return DataStore(session)
