"""
Allocation engine: splits an amount across ledger accounts.

Active AllocationRules for a source type (profit, labor, order_payment,
expense) are applied largest percentage first; ties keep rule id order.
Each share is ``amount * percentage / 100`` rounded half-up to cents.

Allocation trusts whatever rules are active right now. The "at most 100 %
per source type" invariant is enforced when rules are written, by
``check_rule_capacity``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from loguru import logger

from printshop.core.errors import ConstraintError, StoreError, ValidationError
from printshop.finance.money import money, to_decimal
from printshop.models.accounts import SOURCE_TYPES, AccountTransaction, AllocationRule
from printshop.store import DataStore

DEFAULT_DESCRIPTIONS = {
    "profit": "Profit allocation",
    "labor": "Labor allocation",
    "order_payment": "Order payment allocation",
    "expense": "Expense allocation",
}


@dataclass
class AllocationEntry:
    account_id: int
    amount: float
    transaction_type: str
    source_type: str
    source_id: Optional[str] = None
    description: Optional[str] = None
    rule_id: Optional[int] = None


@dataclass
class AllocationResult:
    success: bool
    error: Optional[str] = None
    transactions: list[AllocationEntry] = field(default_factory=list)


def transaction_type_for(source_type: str) -> str:
    """Money coming in is credited; expenses are debited."""
    return "debit" if source_type == "expense" else "credit"


def _validate_source_type(source_type: str) -> None:
    if source_type not in SOURCE_TYPES:
        raise ValidationError(
            f"Invalid source type '{source_type}'",
            details={"allowed": list(SOURCE_TYPES)},
        )


def compute_allocations(
    amount: float,
    rules: Iterable[AllocationRule],
    source_type: str,
    source_id: Optional[str] = None,
    description: Optional[str] = None,
    transaction_type: Optional[str] = None,
) -> list[AllocationEntry]:
    """
    Pure split of ``amount`` over ``rules``. No rules or 0 % in total → [].
    Shares that round to zero cents are dropped; ledger amounts are positive.
    """
    ordered = sorted(rules, key=lambda r: (-r.percentage, r.id or 0))
    total_percentage = sum(r.percentage for r in ordered)
    if not ordered or total_percentage == 0:
        return []

    tx_type = transaction_type or transaction_type_for(source_type)
    base = to_decimal(amount)
    entries = []
    for rule in ordered:
        share = money(base * to_decimal(rule.percentage) / 100)
        if share <= 0:
            continue
        entries.append(
            AllocationEntry(
                account_id=rule.account_id,
                amount=share,
                transaction_type=tx_type,
                source_type=source_type,
                source_id=source_id,
                description=description,
                rule_id=rule.id,
            )
        )
    return entries


def allocate(
    store: DataStore,
    amount: float,
    source_type: str,
    source_id: Optional[str] = None,
    description: Optional[str] = None,
    transaction_type: Optional[str] = None,
) -> AllocationResult:
    """Work out the account split for ``amount``. Store failures come back as success=False."""
    if amount is None or amount <= 0:
        raise ValidationError("Amount must be greater than zero", details={"amount": amount})
    _validate_source_type(source_type)

    try:
        rules = store.get_active_rules(source_type)
    except StoreError as exc:
        logger.error(f"allocation: could not load rules for {source_type}: {exc.message}")
        return AllocationResult(success=False, error="Failed to fetch allocation rules")

    entries = compute_allocations(
        amount,
        rules,
        source_type,
        source_id=source_id,
        description=description,
        transaction_type=transaction_type,
    )
    logger.debug(f"allocation: {amount} {source_type} → {len(entries)} account(s)")
    return AllocationResult(success=True, transactions=entries)


def create_transactions(
    store: DataStore, result: AllocationResult
) -> list[AccountTransaction]:
    """Persist one ledger transaction per allocation entry."""
    if not result.success or not result.transactions:
        return []
    rows = [
        AccountTransaction(
            account_id=entry.account_id,
            amount=entry.amount,
            transaction_type=entry.transaction_type,
            source_type=entry.source_type,
            source_id=entry.source_id,
            description=entry.description,
        )
        for entry in result.transactions
    ]
    store.insert_transactions(rows)
    logger.info(
        f"allocation: recorded {len(rows)} {rows[0].source_type} transaction(s)"
    )
    return rows


def allocate_and_record(
    store: DataStore,
    amount: float,
    source_type: str,
    source_id: Optional[str] = None,
    description: Optional[str] = None,
) -> tuple[AllocationResult, list[AccountTransaction]]:
    result = allocate(
        store,
        amount,
        source_type,
        source_id=source_id,
        description=description or DEFAULT_DESCRIPTIONS.get(source_type),
    )
    if not result.success:
        return result, []
    try:
        rows = create_transactions(store, result)
    except StoreError as exc:
        return AllocationResult(success=False, error=exc.message), []
    return result, rows


def allocate_profit(store: DataStore, amount: float, source_id=None, description=None):
    return allocate_and_record(store, amount, "profit", source_id, description)


def allocate_labor(store: DataStore, amount: float, source_id=None, description=None):
    return allocate_and_record(store, amount, "labor", source_id, description)


def allocate_order_payment(store: DataStore, amount: float, source_id=None, description=None):
    return allocate_and_record(store, amount, "order_payment", source_id, description)


def allocate_expense(store: DataStore, amount: float, source_id=None, description=None):
    return allocate_and_record(store, amount, "expense", source_id, description)


def check_rule_capacity(
    store: DataStore,
    source_type: str,
    percentage: float,
    exclude_rule_id: Optional[int] = None,
) -> float:
    """
    Raise ConstraintError when adding ``percentage`` to the other active rules
    of ``source_type`` would go past 100. Returns the resulting total.
    """
    _validate_source_type(source_type)
    others = [
        r for r in store.get_active_rules(source_type) if r.id != exclude_rule_id
    ]
    total = round(sum(r.percentage for r in others) + percentage, 6)
    if total > 100:
        raise ConstraintError(
            "Total percentage for this source type would exceed 100%",
            details={"source_type": source_type, "total": total},
        )
    return total
