"""
Ledger account, transaction and allocation-rule routes.

Endpoints:
  GET    /api/accounts                      – list accounts (with running balance)
  POST   /api/accounts                      – create account (admin/manager)
  GET    /api/accounts/{id}
  PUT    /api/accounts/{id}                 – update (admin/manager)
  DELETE /api/accounts/{id}                 – refused while transactions exist
  GET    /api/accounts/{id}/transactions
  POST   /api/accounts/allocate             – split an amount by the active rules

  GET    /api/account-rules                 – filters: source_type, account_id, is_active
  POST   /api/account-rules                 – create rule (admin/manager)
  GET    /api/account-rules/{id}
  PUT    /api/account-rules/{id}            – update rule (admin/manager)
  DELETE /api/account-rules/{id}            – (admin/manager)

Active rule percentages per source type may never add up to more than 100.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from loguru import logger
from sqlmodel import col, func, select

from printshop.core.errors import ConstraintError, StoreError
from printshop.core.security import CurrentUser, get_current_user, require_roles
from printshop.finance.allocation import (
    AllocationResult,
    allocate,
    check_rule_capacity,
    create_transactions,
)
from printshop.models.accounts import Account, AccountTransaction, AllocationRule
from printshop.schemas.requests import (
    AccountCreate,
    AccountUpdate,
    AllocateRequest,
    RuleCreate,
    RuleUpdate,
)
from printshop.schemas.responses import (
    AccountRead,
    AccountTransactionRead,
    AccountWithBalance,
    AllocationEntryRead,
    AllocationResponse,
    AllocationRuleRead,
)
from printshop.store import DataStore, get_store

account_router = APIRouter(prefix="/api/accounts", tags=["accounts"])
rule_router = APIRouter(prefix="/api/account-rules", tags=["account-rules"])

_managers = require_roles("admin", "manager")


# ── Helpers ───────────────────────────────────────────────────────────────────


def _balances(store: DataStore) -> dict[int, float]:
    """Credits minus debits per account."""
    rows = store.fetch_all(
        select(
            AccountTransaction.account_id,
            AccountTransaction.transaction_type,
            func.sum(AccountTransaction.amount),
        ).group_by(AccountTransaction.account_id, AccountTransaction.transaction_type)
    )
    balances: dict[int, float] = {}
    for account_id, tx_type, total in rows:
        sign = -1 if tx_type == "debit" else 1
        balances[account_id] = round(balances.get(account_id, 0.0) + sign * float(total or 0), 2)
    return balances


def _rule_read(rule: AllocationRule, store: DataStore) -> AllocationRuleRead:
    account = store.get(Account, rule.account_id)
    out = AllocationRuleRead.model_validate(rule)
    out.account_name = account.name if account else None
    return out


def _allocation_response(result: AllocationResult, recorded: int = 0) -> AllocationResponse:
    return AllocationResponse(
        success=result.success,
        error=result.error,
        transactions=[AllocationEntryRead.model_validate(e) for e in result.transactions],
        recorded=recorded,
    )


# ── Accounts ──────────────────────────────────────────────────────────────────


@account_router.get("", response_model=list[AccountWithBalance])
def list_accounts(
    type: Optional[str] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
    store: DataStore = Depends(get_store),
):
    stmt = select(Account)
    if type:
        stmt = stmt.where(Account.type == type)
    if is_active is not None:
        stmt = stmt.where(Account.is_active == is_active)
    accounts = store.fetch_all(stmt.order_by(Account.name))
    balances = _balances(store)
    return [
        AccountWithBalance(
            **AccountRead.model_validate(a).model_dump(), balance=balances.get(a.id, 0.0)
        )
        for a in accounts
    ]


@account_router.post("", response_model=AccountRead, status_code=status.HTTP_201_CREATED)
def create_account(
    body: AccountCreate,
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(_managers),
):
    account = Account(**body.model_dump())
    store.save(account)
    logger.info(f"accounts: '{account.name}' ({account.type}) created by {user.id}")
    return account


@account_router.post("/allocate", response_model=AllocationResponse)
def allocate_amount(
    body: AllocateRequest,
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(get_current_user),
):
    """Split ``amount`` across accounts; with ``record`` the ledger rows are written."""
    result = allocate(
        store,
        body.amount,
        body.source_type,
        source_id=body.source_id,
        description=body.description,
    )
    if not body.record:
        return _allocation_response(result)
    try:
        recorded = create_transactions(store, result)
    except StoreError as exc:
        return _allocation_response(
            AllocationResult(success=False, error=exc.message, transactions=result.transactions)
        )
    return _allocation_response(result, len(recorded))


@account_router.get("/{account_id}", response_model=AccountWithBalance)
def get_account(account_id: int, store: DataStore = Depends(get_store)):
    account = store.get_or_404(Account, account_id, "Account")
    return AccountWithBalance(
        **AccountRead.model_validate(account).model_dump(),
        balance=_balances(store).get(account.id, 0.0),
    )


@account_router.put("/{account_id}", response_model=AccountRead)
def update_account(
    account_id: int,
    body: AccountUpdate,
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(_managers),
):
    account = store.get_or_404(Account, account_id, "Account")
    for k, v in body.model_dump(exclude_unset=True).items():
        setattr(account, k, v)
    account.updated_at = datetime.utcnow()
    store.save(account)
    return account


@account_router.delete("/{account_id}")
def delete_account(
    account_id: int,
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(_managers),
) -> dict:
    account = store.get_or_404(Account, account_id, "Account")
    used = store.fetch_all(
        select(AccountTransaction.id).where(AccountTransaction.account_id == account_id).limit(1)
    )
    if used:
        raise ConstraintError(
            "Cannot delete account with transactions",
            details={"id": account_id},
        )
    rules = store.fetch_all(select(AllocationRule).where(AllocationRule.account_id == account_id))
    store.delete(*rules, account)
    logger.info(f"accounts: deleted '{account.name}' and {len(rules)} rule(s)")
    return {"status": "deleted", "id": account_id}


@account_router.get("/{account_id}/transactions", response_model=list[AccountTransactionRead])
def list_account_transactions(
    account_id: int,
    source_type: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=500),
    store: DataStore = Depends(get_store),
):
    store.get_or_404(Account, account_id, "Account")
    stmt = select(AccountTransaction).where(AccountTransaction.account_id == account_id)
    if source_type:
        stmt = stmt.where(AccountTransaction.source_type == source_type)
    stmt = stmt.order_by(col(AccountTransaction.created_at).desc(), col(AccountTransaction.id).desc())
    return store.fetch_all(stmt.offset((page - 1) * page_size).limit(page_size))


# ── Allocation rules ──────────────────────────────────────────────────────────


@rule_router.get("", response_model=list[AllocationRuleRead])
def list_rules(
    source_type: Optional[str] = Query(default=None),
    account_id: Optional[int] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
    store: DataStore = Depends(get_store),
):
    stmt = select(AllocationRule)
    if source_type:
        stmt = stmt.where(AllocationRule.source_type == source_type)
    if account_id:
        stmt = stmt.where(AllocationRule.account_id == account_id)
    if is_active is not None:
        stmt = stmt.where(AllocationRule.is_active == is_active)
    stmt = stmt.order_by(AllocationRule.source_type, col(AllocationRule.percentage).desc())
    return [_rule_read(r, store) for r in store.fetch_all(stmt)]


@rule_router.post("", response_model=AllocationRuleRead, status_code=status.HTTP_201_CREATED)
def create_rule(
    body: RuleCreate,
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(_managers),
):
    store.get_or_404(Account, body.account_id, "Account")
    if body.is_active:
        check_rule_capacity(store, body.source_type, body.percentage)
    rule = AllocationRule(**body.model_dump())
    store.save(rule)
    logger.info(
        f"account_rules: {rule.percentage}% of {rule.source_type} → account {rule.account_id}"
    )
    return _rule_read(rule, store)


@rule_router.get("/{rule_id}", response_model=AllocationRuleRead)
def get_rule(rule_id: int, store: DataStore = Depends(get_store)):
    return _rule_read(store.get_or_404(AllocationRule, rule_id, "Allocation rule"), store)


@rule_router.put("/{rule_id}", response_model=AllocationRuleRead)
def update_rule(
    rule_id: int,
    body: RuleUpdate,
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(_managers),
):
    rule = store.get_or_404(AllocationRule, rule_id, "Allocation rule")
    update = body.model_dump(exclude_unset=True, exclude_none=True)
    if "account_id" in update:
        store.get_or_404(Account, update["account_id"], "Account")

    source_type = update.get("source_type", rule.source_type)
    percentage = update.get("percentage", rule.percentage)
    is_active = update.get("is_active", rule.is_active)
    if is_active:
        check_rule_capacity(store, source_type, percentage, exclude_rule_id=rule.id)

    for k, v in update.items():
        setattr(rule, k, v)
    rule.updated_at = datetime.utcnow()
    store.save(rule)
    return _rule_read(rule, store)


@rule_router.delete("/{rule_id}")
def delete_rule(
    rule_id: int,
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(_managers),
) -> dict:
    rule = store.get_or_404(AllocationRule, rule_id, "Allocation rule")
    store.delete(rule)
    return {"status": "deleted", "id": rule_id}
