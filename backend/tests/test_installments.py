"""Tests for installment plan generation."""
from datetime import date
from decimal import Decimal

import pytest

from printshop.core.errors import NotFoundError, ValidationError
from printshop.finance.installments import create_installment_plan, generate_plan
from printshop.models.materials import MaterialPurchase


class TestGeneratePlan:
    def test_three_monthly_installments(self):
        plan = generate_plan(100, 3, "monthly", date(2024, 1, 1))
        assert [p.amount for p in plan] == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
        assert [p.due_date for p in plan] == [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1)]
        assert [p.installment_number for p in plan] == [1, 2, 3]
        assert {p.status for p in plan} == {"pending"}

    @pytest.mark.parametrize(
        "balance,n",
        [(100, 1), (100, 7), (999.99, 12), ("1234.57", 9), (0.05, 4), (50000, 36)],
    )
    def test_sum_is_exact_and_dates_increase(self, balance, n):
        plan = generate_plan(balance, n, "weekly", date(2024, 1, 31))
        assert len(plan) == n
        assert sum(p.amount for p in plan) == Decimal(str(balance))
        dates = [p.due_date for p in plan]
        assert all(a < b for a, b in zip(dates, dates[1:]))

    @pytest.mark.parametrize("balance,n", [(0.05, 10), (0.05, 20), (1.50, 100), (0.01, 2)])
    def test_too_many_installments_for_balance(self, balance, n):
        with pytest.raises(ValidationError):
            generate_plan(balance, n, "monthly", date(2024, 1, 1))

    def test_smallest_positive_split(self):
        plan = generate_plan("0.03", 3, "monthly", date(2024, 1, 1))
        assert [p.amount for p in plan] == [Decimal("0.01")] * 3

    def test_frequency_steps(self):
        start = date(2024, 1, 1)
        assert generate_plan(10, 2, "weekly", start)[1].due_date == date(2024, 1, 8)
        assert generate_plan(10, 2, "biweekly", start)[1].due_date == date(2024, 1, 15)
        assert generate_plan(10, 2, "quarterly", start)[1].due_date == date(2024, 4, 1)

    def test_month_end_steps_from_previous_date(self):
        plan = generate_plan(30, 3, "monthly", date(2024, 1, 31))
        assert [p.due_date for p in plan] == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 29)]

    def test_unknown_frequency_falls_back_to_monthly(self):
        plan = generate_plan(20, 2, "fortnightly-ish", date(2024, 5, 10))
        assert plan[1].due_date == date(2024, 6, 10)

    def test_invalid_inputs(self):
        with pytest.raises(ValidationError):
            generate_plan(100, 0, "monthly", date(2024, 1, 1))
        with pytest.raises(ValidationError):
            generate_plan(100, 3, "", date(2024, 1, 1))
        with pytest.raises(ValidationError):
            generate_plan(100, 3, "monthly", None)


class TestCreateInstallmentPlan:
    @pytest.fixture
    def purchase(self, store):
        p = MaterialPurchase(
            supplier_name="Paper Co",
            material_name="A3 gloss",
            purchase_date=date(2024, 1, 1),
            total_amount=150.0,
            amount_paid=50.0,
        )
        store.save(p)
        return p

    def test_splits_outstanding_balance(self, store, purchase):
        rows = create_installment_plan(store, purchase.id, 3, "monthly", date(2024, 2, 1))
        assert [r.amount for r in rows] == [33.33, 33.33, 33.34]
        assert all(r.id is not None for r in rows)

        refreshed = store.get_purchase(purchase.id)
        assert refreshed.installment_plan is True
        assert refreshed.total_installments == 3
        assert refreshed.payment_frequency == "monthly"
        assert refreshed.next_payment_date == date(2024, 2, 1)
        assert refreshed.reminder_days == 3

    def test_new_plan_replaces_old(self, store, purchase):
        create_installment_plan(store, purchase.id, 3, "monthly", date(2024, 2, 1))
        create_installment_plan(store, purchase.id, 2, "weekly", date(2024, 2, 1), reminder_days=5)
        rows = store.get_installments(purchase.id)
        assert [r.amount for r in rows] == [50.0, 50.0]
        assert store.get_purchase(purchase.id).reminder_days == 5

    def test_missing_purchase(self, store):
        with pytest.raises(NotFoundError):
            create_installment_plan(store, 999, 3, "monthly", date(2024, 2, 1))

    def test_fully_paid_purchase_rejected_without_writes(self, store, purchase):
        purchase.amount_paid = 150.0
        store.save(purchase)
        with pytest.raises(ValidationError):
            create_installment_plan(store, purchase.id, 3, "monthly", date(2024, 2, 1))
        assert store.get_installments(purchase.id) == []
        assert store.get_purchase(purchase.id).installment_plan is False

    def test_oversplit_balance_rejected_without_writes(self, store, purchase):
        purchase.amount_paid = 149.95
        store.save(purchase)
        with pytest.raises(ValidationError):
            create_installment_plan(store, purchase.id, 10, "monthly", date(2024, 2, 1))
        assert store.get_installments(purchase.id) == []
        assert store.get_purchase(purchase.id).installment_plan is False
