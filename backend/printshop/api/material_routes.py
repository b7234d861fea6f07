"""
Material purchase API routes.

Endpoints:
  GET    /api/material-purchases                            – filtered list
  POST   /api/material-purchases                            – create purchase
  GET    /api/material-purchases/{id}                       – with payments, notes, installments
  PUT    /api/material-purchases/{id}
  DELETE /api/material-purchases/{id}                       – cascades to children
  POST   /api/material-purchases/{id}/payments
  DELETE /api/material-purchases/{id}/payments/{pid}
  GET    /api/material-purchases/{id}/notes
  POST   /api/material-purchases/{id}/notes
  GET    /api/material-purchases/{id}/installments
  POST   /api/material-purchases/{id}/installments          – generate a plan
  GET    /api/material-purchases/{id}/installments/{iid}
  PUT    /api/material-purchases/{id}/installments/{iid}
  DELETE /api/material-purchases/{id}/installments/{iid}

amount_paid is always the sum of recorded payments and payment_status
follows it.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from loguru import logger
from sqlmodel import col, select

from printshop.core.errors import NotFoundError
from printshop.core.security import CurrentUser, get_current_user
from printshop.finance.installments import create_installment_plan
from printshop.finance.money import money
from printshop.finance.order_totals import purchase_payment_status
from printshop.models.materials import (
    MaterialInstallment,
    MaterialNote,
    MaterialPayment,
    MaterialPurchase,
)
from printshop.schemas.requests import (
    InstallmentPlanIn,
    InstallmentUpdate,
    MaterialPurchaseCreate,
    MaterialPurchaseUpdate,
    NoteIn,
    PaymentIn,
)
from printshop.schemas.responses import (
    MaterialInstallmentRead,
    MaterialPaymentRead,
    MaterialPurchaseDetail,
    MaterialPurchaseRead,
    NoteRead,
)
from printshop.store import DataStore, get_store

material_router = APIRouter(prefix="/api/material-purchases", tags=["material-purchases"])


# ── Helpers ───────────────────────────────────────────────────────────────────


def _payments(store: DataStore, purchase_id: int) -> list[MaterialPayment]:
    return store.fetch_all(
        select(MaterialPayment)
        .where(MaterialPayment.purchase_id == purchase_id)
        .order_by(col(MaterialPayment.payment_date).desc(), col(MaterialPayment.id))
    )


def _notes(store: DataStore, purchase_id: int) -> list[MaterialNote]:
    return store.fetch_all(
        select(MaterialNote)
        .where(MaterialNote.purchase_id == purchase_id)
        .order_by(col(MaterialNote.created_at).desc())
    )


def _detail(store: DataStore, purchase: MaterialPurchase) -> MaterialPurchaseDetail:
    return MaterialPurchaseDetail(
        **MaterialPurchaseRead.model_validate(purchase).model_dump(),
        payments=[MaterialPaymentRead.model_validate(p) for p in _payments(store, purchase.id)],
        notes=[NoteRead.model_validate(n) for n in _notes(store, purchase.id)],
        installments=[
            MaterialInstallmentRead.model_validate(i) for i in store.get_installments(purchase.id)
        ],
    )


def _sync_paid(store: DataStore, purchase: MaterialPurchase) -> MaterialPurchase:
    paid = money(sum(p.amount for p in _payments(store, purchase.id)))
    purchase.amount_paid = paid
    purchase.payment_status = purchase_payment_status(purchase.total_amount, paid)
    purchase.updated_at = datetime.utcnow()
    store.save(purchase)
    return purchase


def _sync_next_payment_date(store: DataStore, purchase: MaterialPurchase) -> None:
    if not purchase.installment_plan:
        return
    pending = [i for i in store.get_installments(purchase.id) if i.status != "paid"]
    purchase.next_payment_date = min((i.due_date for i in pending), default=None)
    purchase.updated_at = datetime.utcnow()
    store.save(purchase)


def _installment(store: DataStore, purchase_id: int, installment_id: int) -> MaterialInstallment:
    inst = store.get(MaterialInstallment, installment_id)
    if inst is None or inst.purchase_id != purchase_id:
        raise NotFoundError(
            "Installment not found", details={"id": installment_id, "purchase_id": purchase_id}
        )
    return inst


# ── Purchases ─────────────────────────────────────────────────────────────────


@material_router.get("", response_model=list[MaterialPurchaseRead])
def list_purchases(
    supplier: Optional[str] = Query(default=None),
    payment_status: Optional[list[str]] = Query(default=None),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=100, ge=1, le=500),
    store: DataStore = Depends(get_store),
):
    stmt = select(MaterialPurchase)
    if supplier:
        stmt = stmt.where(col(MaterialPurchase.supplier_name).contains(supplier))
    if payment_status:
        stmt = stmt.where(col(MaterialPurchase.payment_status).in_(payment_status))
    if date_from:
        stmt = stmt.where(MaterialPurchase.purchase_date >= date_from)
    if date_to:
        stmt = stmt.where(MaterialPurchase.purchase_date <= date_to)
    stmt = stmt.order_by(col(MaterialPurchase.purchase_date).desc(), col(MaterialPurchase.id).desc())
    return store.fetch_all(stmt.offset((page - 1) * page_size).limit(page_size))


@material_router.post("", response_model=MaterialPurchaseRead, status_code=status.HTTP_201_CREATED)
def create_purchase(
    body: MaterialPurchaseCreate,
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(get_current_user),
):
    purchase = MaterialPurchase(
        **body.model_dump(),
        payment_status=purchase_payment_status(body.total_amount, 0),
        created_by=user.id,
    )
    store.save(purchase)
    logger.info(
        f"materials: purchase {purchase.id} '{purchase.material_name}' "
        f"from {purchase.supplier_name} ({purchase.total_amount})"
    )
    return purchase


@material_router.get("/{purchase_id}", response_model=MaterialPurchaseDetail)
def get_purchase(purchase_id: int, store: DataStore = Depends(get_store)):
    return _detail(store, store.get_or_404(MaterialPurchase, purchase_id, "Material purchase"))


@material_router.put("/{purchase_id}", response_model=MaterialPurchaseDetail)
def update_purchase(
    purchase_id: int, body: MaterialPurchaseUpdate, store: DataStore = Depends(get_store)
):
    purchase = store.get_or_404(MaterialPurchase, purchase_id, "Material purchase")
    update = body.model_dump(exclude_unset=True)
    for k, v in update.items():
        setattr(purchase, k, v)
    if "total_amount" not in update and {"quantity", "unit_price"} & update.keys():
        purchase.total_amount = money(purchase.quantity * purchase.unit_price)
    _sync_paid(store, purchase)
    return _detail(store, purchase)


@material_router.delete("/{purchase_id}")
def delete_purchase(purchase_id: int, store: DataStore = Depends(get_store)) -> dict:
    purchase = store.get_or_404(MaterialPurchase, purchase_id, "Material purchase")
    installments = store.get_installments(purchase_id)
    payments = _payments(store, purchase_id)
    notes = _notes(store, purchase_id)
    store.delete(*installments, *notes, *payments, purchase)
    logger.info(f"materials: deleted purchase {purchase_id}")
    return {"status": "deleted", "id": purchase_id}


# ── Payments ──────────────────────────────────────────────────────────────────


@material_router.post(
    "/{purchase_id}/payments",
    response_model=MaterialPurchaseDetail,
    status_code=status.HTTP_201_CREATED,
)
def add_purchase_payment(
    purchase_id: int,
    body: PaymentIn,
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(get_current_user),
):
    purchase = store.get_or_404(MaterialPurchase, purchase_id, "Material purchase")
    store.save(MaterialPayment(purchase_id=purchase.id, created_by=user.id, **body.model_dump()))
    _sync_paid(store, purchase)
    return _detail(store, purchase)


@material_router.delete("/{purchase_id}/payments/{payment_id}", response_model=MaterialPurchaseDetail)
def delete_purchase_payment(
    purchase_id: int, payment_id: int, store: DataStore = Depends(get_store)
):
    purchase = store.get_or_404(MaterialPurchase, purchase_id, "Material purchase")
    payment = store.get(MaterialPayment, payment_id)
    if payment is None or payment.purchase_id != purchase.id:
        raise NotFoundError("Payment not found", details={"id": payment_id})
    linked = store.fetch_all(
        select(MaterialInstallment).where(MaterialInstallment.payment_id == payment_id)
    )
    for inst in linked:
        inst.payment_id = None
        inst.status = "pending"
    if linked:
        store.save(*linked)
    store.delete(payment)
    _sync_paid(store, purchase)
    _sync_next_payment_date(store, purchase)
    return _detail(store, purchase)


# ── Notes ─────────────────────────────────────────────────────────────────────


@material_router.get("/{purchase_id}/notes", response_model=list[NoteRead])
def list_purchase_notes(purchase_id: int, store: DataStore = Depends(get_store)):
    store.get_or_404(MaterialPurchase, purchase_id, "Material purchase")
    return _notes(store, purchase_id)


@material_router.post(
    "/{purchase_id}/notes", response_model=NoteRead, status_code=status.HTTP_201_CREATED
)
def add_purchase_note(
    purchase_id: int,
    body: NoteIn,
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(get_current_user),
):
    store.get_or_404(MaterialPurchase, purchase_id, "Material purchase")
    note = MaterialNote(purchase_id=purchase_id, text=body.text, created_by=user.id)
    store.save(note)
    return note


# ── Installments ──────────────────────────────────────────────────────────────


@material_router.get("/{purchase_id}/installments", response_model=list[MaterialInstallmentRead])
def list_installments(purchase_id: int, store: DataStore = Depends(get_store)):
    store.get_or_404(MaterialPurchase, purchase_id, "Material purchase")
    return store.get_installments(purchase_id)


@material_router.post(
    "/{purchase_id}/installments",
    response_model=list[MaterialInstallmentRead],
    status_code=status.HTTP_201_CREATED,
)
def create_installments(
    purchase_id: int, body: InstallmentPlanIn, store: DataStore = Depends(get_store)
):
    return create_installment_plan(
        store,
        purchase_id,
        body.total_installments,
        body.payment_frequency,
        body.first_payment_date,
        reminder_days=body.reminder_days,
    )


@material_router.get(
    "/{purchase_id}/installments/{installment_id}", response_model=MaterialInstallmentRead
)
def get_installment(purchase_id: int, installment_id: int, store: DataStore = Depends(get_store)):
    return _installment(store, purchase_id, installment_id)


@material_router.put(
    "/{purchase_id}/installments/{installment_id}", response_model=MaterialInstallmentRead
)
def update_installment(
    purchase_id: int,
    installment_id: int,
    body: InstallmentUpdate,
    store: DataStore = Depends(get_store),
):
    purchase = store.get_or_404(MaterialPurchase, purchase_id, "Material purchase")
    inst = _installment(store, purchase_id, installment_id)
    for k, v in body.model_dump(exclude_unset=True).items():
        setattr(inst, k, v)
    inst.updated_at = datetime.utcnow()
    store.save(inst)
    _sync_next_payment_date(store, purchase)
    return inst


@material_router.delete("/{purchase_id}/installments/{installment_id}")
def delete_installment(
    purchase_id: int, installment_id: int, store: DataStore = Depends(get_store)
) -> dict:
    purchase = store.get_or_404(MaterialPurchase, purchase_id, "Material purchase")
    store.delete(_installment(store, purchase_id, installment_id))
    _sync_next_payment_date(store, purchase)
    return {"status": "deleted", "id": installment_id}
