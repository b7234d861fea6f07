"""Tests for order totals aggregation."""
from datetime import date

import pytest

from printshop.finance.order_totals import (
    compute_order_totals,
    payment_status_for,
    purchase_payment_status,
    recompute_order_totals,
)
from printshop.models.orders import Order, OrderItem, OrderPayment


class TestPaymentStatus:
    @pytest.mark.parametrize(
        "total,paid,expected",
        [
            (150, 150, "paid"),
            (150, 200, "paid"),
            (150, 50, "partially_paid"),
            (150, 0, "unpaid"),
            (0, 0, "unpaid"),
            (0, 10, "unpaid"),
        ],
    )
    def test_order_status(self, total, paid, expected):
        assert payment_status_for(total, paid) == expected

    @pytest.mark.parametrize(
        "total,paid,expected",
        [(100, 100, "paid"), (100, 40, "partially_paid"), (100, 0, "unpaid"), (0, 0, "paid")],
    )
    def test_purchase_status(self, total, paid, expected):
        assert purchase_payment_status(total, paid) == expected


class TestComputeOrderTotals:
    def test_sums_in_cents(self):
        totals = compute_order_totals([0.1, 0.2, 99.7], [30, 0.05])
        assert totals.total_amount == 100.0
        assert totals.amount_paid == 30.05
        assert totals.balance == 69.95
        assert totals.payment_status == "partially_paid"

    def test_empty_order(self):
        totals = compute_order_totals([], [])
        assert (totals.total_amount, totals.amount_paid, totals.balance) == (0.0, 0.0, 0.0)
        assert totals.payment_status == "unpaid"


class TestRecompute:
    @pytest.fixture
    def order(self, store):
        order = Order(order_date=date(2024, 5, 1))
        store.save(order)
        store.save(
            OrderItem(
                order_id=order.id,
                item_name="Flyer",
                category_name="Print",
                quantity=100,
                unit_price=1.5,
                total_amount=150.0,
            )
        )
        return order

    def test_paid_in_full(self, store, order):
        store.save(OrderPayment(order_id=order.id, amount=150, payment_date=date(2024, 5, 2)))
        result = recompute_order_totals(store, order.id)
        assert result.ok
        refreshed = store.get(Order, order.id)
        assert refreshed.total_amount == 150.0
        assert refreshed.amount_paid == 150.0
        assert refreshed.payment_status == "paid"
        assert refreshed.balance == 0

    def test_partial_payment(self, store, order):
        store.save(OrderPayment(order_id=order.id, amount=50, payment_date=date(2024, 5, 2)))
        recompute_order_totals(store, order.id)
        refreshed = store.get(Order, order.id)
        assert refreshed.payment_status == "partially_paid"
        assert refreshed.balance == 100.0

    def test_no_payments(self, store, order):
        recompute_order_totals(store, order.id)
        assert store.get(Order, order.id).payment_status == "unpaid"

    def test_idempotent(self, store, order):
        first = recompute_order_totals(store, order.id).value
        second = recompute_order_totals(store, order.id).value
        assert first == second

    def test_missing_order_reports_failure(self, store):
        result = recompute_order_totals(store, 12345)
        assert not result.ok
        assert result.error == "Order not found"
        assert result.value is None
