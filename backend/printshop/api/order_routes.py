"""
Order API routes.

Endpoints:
  GET    /api/clients                        – list clients (optional name search)
  POST   /api/clients                        – create client

  GET    /api/orders                         – filtered, paginated order list
  POST   /api/orders                         – create order (optionally with items)
  GET    /api/orders/export                  – OrderList.xlsx download
  GET    /api/orders/{id}                    – order with client, items and payments
  PATCH  /api/orders/{id}                    – update header fields
  DELETE /api/orders/{id}                    – delete order, items and payments
  POST   /api/orders/{id}/items              – add item
  PUT    /api/orders/{id}/items/{item_id}    – replace item
  DELETE /api/orders/{id}/items/{item_id}
  GET    /api/orders/{id}/payments
  POST   /api/orders/{id}/payments           – record payment (?allocate=true to split it)
  DELETE /api/orders/{id}/payments/{pid}
  POST   /api/orders/{id}/recalculate        – rerun the totals aggregator

Every item/payment mutation is followed by the (best-effort) order totals
aggregator. Item profit/labor figures use the profit settings loaded once
for the request.
"""
from __future__ import annotations

import io
from datetime import date
from typing import Optional

import openpyxl
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse
from loguru import logger
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from sqlmodel import col, func, select

from printshop.core.errors import NotFoundError
from printshop.core.security import CurrentUser, get_current_user
from printshop.finance.allocation import allocate_order_payment
from printshop.finance.money import money
from printshop.finance.order_totals import recompute_order_totals
from printshop.finance.profit import (
    PricedItem,
    ProfitBreakdown,
    ProfitSettings,
    allocate_item_profit,
    compute_profit_and_labor,
)
from printshop.models.orders import Client, Order, OrderItem, OrderPayment
from printshop.schemas.requests import (
    ClientCreate,
    OrderCreate,
    OrderItemIn,
    OrderUpdate,
    PaymentIn,
)
from printshop.schemas.responses import (
    ClientRead,
    OrderDetail,
    OrderItemRead,
    OrderListResponse,
    OrderPaymentRead,
    OrderRead,
    OrderTotalsResponse,
)
from printshop.settings_store import load_profit_settings
from printshop.store import DataStore, get_store

order_router = APIRouter(prefix="/api/orders", tags=["orders"])
client_router = APIRouter(prefix="/api/clients", tags=["clients"])


# ── Helpers ───────────────────────────────────────────────────────────────────


def _priced_item(
    order_id: int, body: OrderItemIn, profit_settings: ProfitSettings
) -> tuple[OrderItem, ProfitBreakdown]:
    breakdown = compute_profit_and_labor(PricedItem(**body.model_dump()), profit_settings)
    item = OrderItem(
        order_id=order_id,
        **body.model_dump(),
        total_amount=money(breakdown.total_amount),
        profit_amount=money(breakdown.profit_amount),
        labor_amount=money(breakdown.labor_amount),
    )
    return item, breakdown


def _order_detail(store: DataStore, order: Order) -> OrderDetail:
    client = store.get(Client, order.client_id) if order.client_id else None
    return OrderDetail(
        **OrderRead.model_validate(order).model_dump(),
        client=ClientRead.model_validate(client) if client else None,
        items=[OrderItemRead.model_validate(i) for i in store.get_order_items(order.id)],
        payments=[OrderPaymentRead.model_validate(p) for p in store.get_order_payments(order.id)],
    )


def _owned(store: DataStore, model, row_id: int, order: Order, label: str):
    row = store.get(model, row_id)
    if row is None or row.order_id != order.id:
        raise NotFoundError(f"{label} not found", details={"id": row_id, "order_id": order.id})
    return row


def _refresh_totals(store: DataStore, order: Order) -> None:
    result = recompute_order_totals(store, order.id)
    if not result.ok:
        logger.warning(f"orders: totals for order {order.id} may be stale ({result.error})")


# ── Clients ───────────────────────────────────────────────────────────────────


@client_router.get("", response_model=list[ClientRead])
def list_clients(
    search: Optional[str] = Query(default=None),
    store: DataStore = Depends(get_store),
):
    stmt = select(Client)
    if search:
        stmt = stmt.where(col(Client.name).contains(search))
    return store.fetch_all(stmt.order_by(Client.name))


@client_router.post("", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
def create_client(body: ClientCreate, store: DataStore = Depends(get_store)):
    client = Client(**body.model_dump())
    store.save(client)
    return client


# ── Orders ────────────────────────────────────────────────────────────────────


def _filtered_orders(
    order_status: Optional[list[str]],
    payment_status: Optional[list[str]],
    client_id: Optional[int],
    date_from: Optional[date],
    date_to: Optional[date],
):
    stmt = select(Order)
    if order_status:
        stmt = stmt.where(col(Order.status).in_(order_status))
    if payment_status:
        stmt = stmt.where(col(Order.payment_status).in_(payment_status))
    if client_id:
        stmt = stmt.where(Order.client_id == client_id)
    if date_from:
        stmt = stmt.where(Order.order_date >= date_from)
    if date_to:
        stmt = stmt.where(Order.order_date <= date_to)
    return stmt


@order_router.get("", response_model=OrderListResponse)
def list_orders(
    order_status: Optional[list[str]] = Query(default=None, alias="status"),
    payment_status: Optional[list[str]] = Query(default=None),
    client_id: Optional[int] = Query(default=None),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=500),
    store: DataStore = Depends(get_store),
):
    stmt = _filtered_orders(order_status, payment_status, client_id, date_from, date_to)
    total = store.fetch_all(select(func.count()).select_from(stmt.subquery()))[0]

    stmt = stmt.order_by(col(Order.order_date).desc(), col(Order.id).desc())
    stmt = stmt.offset((page - 1) * page_size).limit(page_size)
    return OrderListResponse(
        total=total,
        page=page,
        page_size=page_size,
        items=[OrderRead.model_validate(o) for o in store.fetch_all(stmt)],
    )


@order_router.post("", response_model=OrderDetail, status_code=status.HTTP_201_CREATED)
def create_order(
    body: OrderCreate,
    store: DataStore = Depends(get_store),
    user: CurrentUser = Depends(get_current_user),
):
    if body.client_id:
        store.get_or_404(Client, body.client_id, "Client")
    order = Order(
        client_id=body.client_id,
        order_date=body.order_date,
        status=body.status,
        notes=body.notes,
        created_by=user.id,
    )
    store.save(order)

    profit_settings = load_profit_settings()
    priced = [_priced_item(order.id, item, profit_settings) for item in body.items]
    if priced:
        store.save(*(item for item, _ in priced))
        if body.allocate_profit:
            for item, breakdown in priced:
                allocate_item_profit(
                    store, item.id, item.item_name, item.quantity, item.unit_price, breakdown
                )
    _refresh_totals(store, order)
    logger.info(f"orders: created order {order.id} with {len(priced)} item(s)")
    return _order_detail(store, order)


@order_router.get("/export")
def export_orders_excel(
    order_status: Optional[list[str]] = Query(default=None, alias="status"),
    payment_status: Optional[list[str]] = Query(default=None),
    client_id: Optional[int] = Query(default=None),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    store: DataStore = Depends(get_store),
):
    """Generate an OrderList.xlsx (orders sheet + items sheet) as a download."""
    stmt = _filtered_orders(order_status, payment_status, client_id, date_from, date_to)
    orders = store.fetch_all(stmt.order_by(col(Order.order_date), col(Order.id)))
    clients = {c.id: c.name for c in store.fetch_all(select(Client))}

    wb = openpyxl.Workbook()

    # ── Sheet 1: Orders ───────────────────────────────────────────────────────
    ws = wb.active
    ws.title = "Orders"

    header_fill = PatternFill(start_color="1F3864", end_color="1F3864", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF", size=10)
    row_font = Font(size=10)
    center = Alignment(horizontal="center", vertical="center")
    unpaid_fill = PatternFill(start_color="FCE4D6", end_color="FCE4D6", fill_type="solid")

    headers = [
        "Order #", "Date", "Client", "Status", "Payment Status",
        "Total", "Paid", "Balance",
    ]
    for col_idx, h in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_idx, value=h)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = center

    for row_idx, o in enumerate(orders, 2):
        data = [
            o.id,
            o.order_date.isoformat(),
            clients.get(o.client_id, ""),
            o.status,
            o.payment_status,
            round(o.total_amount, 2),
            round(o.amount_paid, 2),
            o.balance,
        ]
        for col_idx, val in enumerate(data, 1):
            cell = ws.cell(row=row_idx, column=col_idx, value=val)
            cell.font = row_font
            if o.balance > 0:
                cell.fill = unpaid_fill

    for col_idx in range(1, len(headers) + 1):
        col_letter = get_column_letter(col_idx)
        max_len = max(
            len(str(ws.cell(row=r, column=col_idx).value or ""))
            for r in range(1, len(orders) + 2)
        )
        ws.column_dimensions[col_letter].width = min(max_len + 4, 45)

    # ── Sheet 2: Items ────────────────────────────────────────────────────────
    ws2 = wb.create_sheet("Items")
    item_headers = [
        "Order #", "Item", "Category", "Qty", "Unit Price", "Total", "Profit / unit", "Labor / unit",
    ]
    for col_idx, h in enumerate(item_headers, 1):
        cell = ws2.cell(row=1, column=col_idx, value=h)
        cell.font = header_font
        cell.fill = header_fill

    row_idx = 2
    for o in orders:
        for item in store.get_order_items(o.id):
            data = [
                o.id, item.item_name, item.category_name, item.quantity,
                item.unit_price, item.total_amount, item.profit_amount, item.labor_amount,
            ]
            for col_idx, val in enumerate(data, 1):
                ws2.cell(row=row_idx, column=col_idx, value=val).font = row_font
            row_idx += 1

    for col_idx, width in [(1, 10), (2, 40), (3, 25), (4, 8), (5, 12), (6, 12), (7, 14), (8, 14)]:
        ws2.column_dimensions[get_column_letter(col_idx)].width = width

    # Stream to client
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)

    logger.info(f"orders: exported {len(orders)} order(s) to xlsx")
    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": "attachment; filename=OrderList.xlsx"},
    )


@order_router.get("/{order_id}", response_model=OrderDetail)
def get_order(order_id: int, store: DataStore = Depends(get_store)):
    return _order_detail(store, store.get_or_404(Order, order_id, "Order"))


@order_router.patch("/{order_id}", response_model=OrderDetail)
def update_order(order_id: int, body: OrderUpdate, store: DataStore = Depends(get_store)):
    update = body.model_dump(exclude_unset=True)
    if update.get("client_id"):
        store.get_or_404(Client, update["client_id"], "Client")
    order = store.update_order(order_id, update)
    return _order_detail(store, order)


@order_router.delete("/{order_id}")
def delete_order(order_id: int, store: DataStore = Depends(get_store)) -> dict:
    order = store.get_or_404(Order, order_id, "Order")
    items = store.get_order_items(order_id)
    payments = store.get_order_payments(order_id)
    store.delete(*items, *payments, order)
    logger.info(f"orders: deleted order {order_id}")
    return {"status": "deleted", "id": order_id}


# ── Items ─────────────────────────────────────────────────────────────────────


@order_router.post(
    "/{order_id}/items", response_model=OrderDetail, status_code=status.HTTP_201_CREATED
)
def add_order_item(
    order_id: int,
    body: OrderItemIn,
    allocate: bool = Query(default=False, description="Allocate the item's profit/labor"),
    store: DataStore = Depends(get_store),
):
    order = store.get_or_404(Order, order_id, "Order")
    item, breakdown = _priced_item(order.id, body, load_profit_settings())
    store.save(item)
    if allocate:
        allocate_item_profit(store, item.id, item.item_name, item.quantity, item.unit_price, breakdown)
    _refresh_totals(store, order)
    return _order_detail(store, order)


@order_router.put("/{order_id}/items/{item_id}", response_model=OrderDetail)
def update_order_item(
    order_id: int,
    item_id: int,
    body: OrderItemIn,
    store: DataStore = Depends(get_store),
):
    order = store.get_or_404(Order, order_id, "Order")
    item = _owned(store, OrderItem, item_id, order, "Order item")

    priced, _ = _priced_item(order.id, body, load_profit_settings())
    for field in (
        "item_id", "category_id", "item_name", "category_name", "quantity",
        "unit_price", "total_amount", "profit_amount", "labor_amount",
    ):
        setattr(item, field, getattr(priced, field))
    item.updated_at = priced.updated_at
    store.save(item)
    _refresh_totals(store, order)
    return _order_detail(store, order)


@order_router.delete("/{order_id}/items/{item_id}", response_model=OrderDetail)
def delete_order_item(order_id: int, item_id: int, store: DataStore = Depends(get_store)):
    order = store.get_or_404(Order, order_id, "Order")
    item = _owned(store, OrderItem, item_id, order, "Order item")
    store.delete(item)
    _refresh_totals(store, order)
    return _order_detail(store, order)


# ── Payments ──────────────────────────────────────────────────────────────────


@order_router.get("/{order_id}/payments", response_model=list[OrderPaymentRead])
def list_order_payments(order_id: int, store: DataStore = Depends(get_store)):
    store.get_or_404(Order, order_id, "Order")
    return store.get_order_payments(order_id)


@order_router.post(
    "/{order_id}/payments", response_model=OrderDetail, status_code=status.HTTP_201_CREATED
)
def add_order_payment(
    order_id: int,
    body: PaymentIn,
    allocate: bool = Query(default=False, description="Split the payment across accounts"),
    store: DataStore = Depends(get_store),
):
    order = store.get_or_404(Order, order_id, "Order")
    payment = OrderPayment(
        order_id=order.id,
        amount=body.amount,
        payment_date=body.payment_date,
        payment_method=body.payment_method,
    )
    store.save(payment)
    if allocate:
        result, _ = allocate_order_payment(
            store, payment.amount, str(payment.id), f"Payment for order {order.id}"
        )
        if not result.success:
            logger.error(f"orders: allocating payment {payment.id} failed: {result.error}")
    _refresh_totals(store, order)
    return _order_detail(store, order)


@order_router.delete("/{order_id}/payments/{payment_id}", response_model=OrderDetail)
def delete_order_payment(order_id: int, payment_id: int, store: DataStore = Depends(get_store)):
    order = store.get_or_404(Order, order_id, "Order")
    payment = _owned(store, OrderPayment, payment_id, order, "Payment")
    store.delete(payment)
    _refresh_totals(store, order)
    return _order_detail(store, order)


@order_router.post("/{order_id}/recalculate", response_model=OrderTotalsResponse)
def recalculate_order(order_id: int, store: DataStore = Depends(get_store)):
    store.get_or_404(Order, order_id, "Order")
    result = recompute_order_totals(store, order_id)
    if not result.ok:
        return OrderTotalsResponse(ok=False, error=result.error)
    totals = result.value
    return OrderTotalsResponse(
        ok=True,
        total_amount=totals.total_amount,
        amount_paid=totals.amount_paid,
        balance=totals.balance,
        payment_status=totals.payment_status,
    )
