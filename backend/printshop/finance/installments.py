"""
Installment plans for material purchases.

The outstanding balance is split into N equal cent-rounded parts; the last
installment takes whatever rounding left over, so the plan always sums to
the balance exactly. Due dates step from the first payment date by the
payment frequency.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from dateutil.relativedelta import relativedelta
from loguru import logger

from printshop.core.errors import NotFoundError, ValidationError
from printshop.finance.money import Number, round2, to_decimal
from printshop.models.materials import MaterialInstallment
from printshop.store import DataStore

FREQUENCY_STEPS: dict[str, relativedelta] = {
    "weekly": relativedelta(weeks=1),
    "biweekly": relativedelta(weeks=2),
    "monthly": relativedelta(months=1),
    "quarterly": relativedelta(months=3),
}


@dataclass(frozen=True)
class PlannedInstallment:
    installment_number: int
    amount: Decimal
    due_date: date
    status: str = "pending"


def step_for(frequency: str) -> relativedelta:
    # Unknown frequencies fall back to monthly
    return FREQUENCY_STEPS.get(frequency, FREQUENCY_STEPS["monthly"])


def generate_plan(
    outstanding_balance: Number,
    total_installments: int,
    frequency: str,
    first_payment_date: date,
) -> list[PlannedInstallment]:
    """Pure plan computation. Amounts are Decimals that sum to the balance exactly."""
    if not total_installments or total_installments < 1:
        raise ValidationError(
            "total_installments must be a positive integer",
            details={"total_installments": total_installments},
        )
    if not frequency:
        raise ValidationError("payment_frequency is required")
    if first_payment_date is None:
        raise ValidationError("first_payment_date is required")

    balance = to_decimal(outstanding_balance)
    per_installment = round2(balance / total_installments)
    last_installment = balance - per_installment * (total_installments - 1)
    if per_installment <= 0 or last_installment <= 0:
        raise ValidationError(
            "Balance is too small to split into that many installments",
            details={
                "outstanding_balance": float(balance),
                "total_installments": total_installments,
            },
        )
    step = step_for(frequency)

    plan: list[PlannedInstallment] = []
    due = first_payment_date
    for number in range(1, total_installments + 1):
        if number == total_installments:
            amount = last_installment
        else:
            amount = per_installment
        plan.append(PlannedInstallment(number, amount, due))
        # Each date steps from the previous one (Jan 31 → Feb 29 → Mar 29)
        due = due + step
    return plan


def create_installment_plan(
    store: DataStore,
    purchase_id: int,
    total_installments: int,
    frequency: str,
    first_payment_date: date,
    reminder_days: Optional[int] = 3,
) -> list[MaterialInstallment]:
    """
    Generate and persist a plan for the purchase's outstanding balance.
    Validation happens before any write; the plan replaces any earlier one.
    """
    purchase = store.get_purchase(purchase_id)
    if purchase is None:
        raise NotFoundError("Material purchase not found", details={"id": purchase_id})

    outstanding = to_decimal(purchase.total_amount) - to_decimal(purchase.amount_paid)
    if outstanding <= 0:
        raise ValidationError(
            "Purchase has no outstanding balance to split into installments",
            details={"outstanding_balance": float(outstanding)},
        )

    plan = generate_plan(outstanding, total_installments, frequency, first_payment_date)

    rows = [
        MaterialInstallment(
            purchase_id=purchase.id,
            installment_number=p.installment_number,
            amount=float(p.amount),
            due_date=p.due_date,
            status=p.status,
        )
        for p in plan
    ]
    purchase.installment_plan = True
    purchase.total_installments = total_installments
    purchase.payment_frequency = frequency
    purchase.next_payment_date = first_payment_date
    purchase.reminder_days = reminder_days
    purchase.updated_at = datetime.utcnow()

    store.insert_installments(purchase, rows)
    logger.info(
        f"installments: purchase {purchase_id} → {total_installments} x {frequency} "
        f"from {first_payment_date} (balance {outstanding})"
    )
    return rows
