"""Unit tests for the allocation engine."""
import pytest
from sqlmodel import select

from printshop.core.errors import ConstraintError, StoreError, ValidationError
from printshop.finance.allocation import (
    allocate,
    allocate_and_record,
    allocate_profit,
    check_rule_capacity,
    compute_allocations,
    create_transactions,
    transaction_type_for,
)
from printshop.models.accounts import Account, AccountTransaction, AllocationRule


def _rule(rule_id, account_id, pct, source_type="profit"):
    return AllocationRule(id=rule_id, account_id=account_id, percentage=pct, source_type=source_type)


@pytest.fixture
def accounts(store):
    rows = [Account(name=n, type="profit") for n in ("Savings", "Owner", "Reinvest")]
    store.save(*rows)
    return rows


class TestComputeAllocations:
    def test_largest_percentage_first(self):
        entries = compute_allocations(
            200, [_rule(1, 10, 20), _rule(2, 11, 50), _rule(3, 12, 30)], "profit"
        )
        assert [e.account_id for e in entries] == [11, 12, 10]
        assert [e.amount for e in entries] == [100.0, 60.0, 40.0]

    def test_ties_keep_rule_id_order(self):
        entries = compute_allocations(100, [_rule(7, 2, 25), _rule(3, 1, 25)], "labor")
        assert [e.rule_id for e in entries] == [3, 7]

    def test_no_rules_gives_empty_list(self):
        assert compute_allocations(100, [], "profit") == []

    def test_zero_total_percentage_gives_empty_list(self):
        assert compute_allocations(100, [_rule(1, 1, 0)], "profit") == []

    def test_sum_matches_total_percentage(self):
        rules = [_rule(1, 1, 40), _rule(2, 2, 35), _rule(3, 3, 15)]
        entries = compute_allocations(1234.56, rules, "order_payment")
        assert sum(e.amount for e in entries) == pytest.approx(1234.56 * 0.90, abs=0.02)

    def test_amounts_rounded_half_up_to_cents(self):
        entries = compute_allocations(0.05, [_rule(1, 1, 50)], "profit")
        assert entries[0].amount == 0.03

    def test_zero_cent_shares_dropped(self):
        entries = compute_allocations(0.01, [_rule(1, 1, 70), _rule(2, 2, 30)], "profit")
        assert [(e.rule_id, e.amount) for e in entries] == [(1, 0.01)]

    def test_expense_is_debit_everything_else_credit(self):
        assert transaction_type_for("expense") == "debit"
        for source in ("profit", "labor", "order_payment"):
            assert transaction_type_for(source) == "credit"
        entries = compute_allocations(10, [_rule(1, 1, 100, "expense")], "expense")
        assert entries[0].transaction_type == "debit"

    def test_source_id_and_description_carried(self):
        entries = compute_allocations(
            10, [_rule(1, 1, 100)], "profit", source_id="item-9", description="Profit for item"
        )
        assert entries[0].source_id == "item-9"
        assert entries[0].description == "Profit for item"


class TestAllocate:
    def test_rejects_non_positive_amount(self, store):
        with pytest.raises(ValidationError):
            allocate(store, 0, "profit")
        with pytest.raises(ValidationError):
            allocate(store, -5, "profit")

    def test_rejects_unknown_source_type(self, store):
        with pytest.raises(ValidationError):
            allocate(store, 10, "bonus")

    def test_uses_only_active_rules(self, store, accounts):
        store.save(
            AllocationRule(source_type="profit", account_id=accounts[0].id, percentage=60),
            AllocationRule(
                source_type="profit", account_id=accounts[1].id, percentage=40, is_active=False
            ),
        )
        result = allocate(store, 50, "profit")
        assert result.success
        assert [(e.account_id, e.amount) for e in result.transactions] == [(accounts[0].id, 30.0)]

    def test_store_failure_reported_not_raised(self):
        class BrokenStore:
            def get_active_rules(self, source_type):
                raise StoreError("Failed to fetch allocation rules")

        result = allocate(BrokenStore(), 10, "profit")
        assert result.success is False
        assert result.error == "Failed to fetch allocation rules"
        assert result.transactions == []

    def test_create_transactions_writes_ledger_rows(self, store, accounts):
        store.save(
            AllocationRule(source_type="labor", account_id=accounts[0].id, percentage=70),
            AllocationRule(source_type="labor", account_id=accounts[1].id, percentage=30),
        )
        result = allocate(store, 10, "labor", source_id="42")
        rows = create_transactions(store, result)
        assert len(rows) == 2
        stored = store.fetch_all(select(AccountTransaction))
        assert sorted(t.amount for t in stored) == [3.0, 7.0]
        assert {t.transaction_type for t in stored} == {"credit"}
        assert {t.source_id for t in stored} == {"42"}

    def test_create_transactions_skips_failed_result(self, store):
        from printshop.finance.allocation import AllocationResult

        assert create_transactions(store, AllocationResult(success=False, error="x")) == []

    def test_wrappers_use_default_description(self, store, accounts):
        store.save(AllocationRule(source_type="profit", account_id=accounts[2].id, percentage=100))
        result, rows = allocate_profit(store, 25)
        assert result.success
        assert rows[0].description == "Profit allocation"
        assert rows[0].amount == 25.0

    def test_shares_rounding_to_zero_are_not_recorded(self, store, accounts):
        store.save(
            AllocationRule(source_type="profit", account_id=accounts[0].id, percentage=70),
            AllocationRule(source_type="profit", account_id=accounts[1].id, percentage=30),
        )
        result, rows = allocate_profit(store, 0.01)
        assert result.success
        assert [(r.account_id, r.amount) for r in rows] == [(accounts[0].id, 0.01)]
        stored = store.fetch_all(select(AccountTransaction))
        assert [t.amount for t in stored] == [0.01]

    def test_no_rules_records_nothing(self, store):
        result, rows = allocate_and_record(store, 25, "expense")
        assert result.success
        assert rows == []


class TestRuleCapacity:
    def test_exceeding_100_raises(self, store, accounts):
        store.save(AllocationRule(source_type="profit", account_id=accounts[0].id, percentage=70))
        with pytest.raises(ConstraintError):
            check_rule_capacity(store, "profit", 40)

    def test_exactly_100_allowed(self, store, accounts):
        store.save(AllocationRule(source_type="profit", account_id=accounts[0].id, percentage=70))
        assert check_rule_capacity(store, "profit", 30) == 100

    def test_update_excludes_rule_itself(self, store, accounts):
        rule = AllocationRule(source_type="profit", account_id=accounts[0].id, percentage=70)
        store.save(rule)
        assert check_rule_capacity(store, "profit", 90, exclude_rule_id=rule.id) == 90

    def test_other_source_types_do_not_count(self, store, accounts):
        store.save(AllocationRule(source_type="labor", account_id=accounts[0].id, percentage=100))
        assert check_rule_capacity(store, "profit", 100) == 100
