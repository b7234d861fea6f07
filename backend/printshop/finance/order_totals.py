"""
Order totals aggregator.

Run after any item or payment change on an order: re-sums items and
payments and writes total_amount, amount_paid and payment_status back.
``balance`` is derived from those two columns and is never written.

This step is best-effort. It logs and reports failures in the returned
``BestEffort`` but never raises, so a failed recompute cannot fail the
item/payment mutation that triggered it. The read-then-write is not
guarded against concurrent writers; the next recompute corrects any
stale total.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from loguru import logger

from printshop.core.errors import AppError, BestEffort
from printshop.finance.money import Number, money, to_decimal
from printshop.store import DataStore


@dataclass(frozen=True)
class OrderTotals:
    total_amount: float
    amount_paid: float
    balance: float
    payment_status: str


def payment_status_for(total: Number, paid: Number) -> str:
    total_d, paid_d = to_decimal(total), to_decimal(paid)
    if total_d == 0 or paid_d <= 0:
        return "unpaid"
    if paid_d >= total_d:
        return "paid"
    return "partially_paid"


def purchase_payment_status(total: Number, paid: Number) -> str:
    """Material purchases and expenses: a zero-total record counts as settled."""
    total_d, paid_d = to_decimal(total), to_decimal(paid)
    if paid_d >= total_d:
        return "paid"
    if paid_d > 0:
        return "partially_paid"
    return "unpaid"


def compute_order_totals(
    item_totals: Iterable[Number], payment_amounts: Iterable[Number]
) -> OrderTotals:
    total = sum((to_decimal(v) for v in item_totals), to_decimal(0))
    paid = sum((to_decimal(v) for v in payment_amounts), to_decimal(0))
    return OrderTotals(
        total_amount=money(total),
        amount_paid=money(paid),
        balance=money(total - paid),
        payment_status=payment_status_for(total, paid),
    )


def recompute_order_totals(store: DataStore, order_id: int) -> BestEffort[OrderTotals]:
    try:
        items = store.get_order_items(order_id)
        payments = store.get_order_payments(order_id)
        totals = compute_order_totals(
            (i.total_amount for i in items), (p.amount for p in payments)
        )
        store.update_order(
            order_id,
            {
                "total_amount": totals.total_amount,
                "amount_paid": totals.amount_paid,
                "payment_status": totals.payment_status,
                "updated_at": datetime.utcnow(),
            },
        )
    except AppError as exc:
        logger.error(f"order_totals: recompute for order {order_id} failed: {exc.message}")
        return BestEffort.failure(exc.message)
    except Exception as exc:
        logger.exception(f"order_totals: recompute for order {order_id} failed: {exc}")
        return BestEffort.failure(str(exc))

    logger.debug(
        f"order_totals: order {order_id} → total={totals.total_amount} "
        f"paid={totals.amount_paid} status={totals.payment_status}"
    )
    return BestEffort.success(totals)
