"""
Profit / labor calculator for order items.

Percentages come from the first matching override, tried in this order:

  1. item override whose id equals the item's item_id
  2. item override whose name equals the item name (case-insensitive)
  3. category override whose id equals the item's category_id
  4. category override whose name equals the category name (case-insensitive)

falling back to the global settings. An override may leave either
percentage unset, in which case the global value is used for that one.

Bases:
  unit_price  profit = unit_price * p / 100
              labor  = (unit_price - profit) * l / 100
  total_cost  profit = total * p / 100
              labor  = (total - profit) * l / 100

Labor is always 0 when include_labor is off, and everything is 0 when the
calculator is disabled.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Callable, Literal, Optional

from loguru import logger
from pydantic import BaseModel, Field, field_validator

from printshop.finance.allocation import allocate_labor, allocate_profit
from printshop.store import DataStore


class ProfitOverride(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: Literal["item", "category"]
    name: str
    profit_percentage: Optional[float] = None
    labor_percentage: Optional[float] = None

    @field_validator("profit_percentage", "labor_percentage")
    @classmethod
    def percentage_range(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not (0 <= v <= 100):
            raise ValueError("percentage must be between 0 and 100")
        return v


class ProfitSettings(BaseModel):
    enabled: bool = False
    calculation_basis: Literal["unit_price", "total_cost"] = "unit_price"
    default_profit_percentage: float = 30
    include_labor: bool = False
    labor_percentage: float = 10
    overrides: list[ProfitOverride] = []

    @field_validator("default_profit_percentage", "labor_percentage")
    @classmethod
    def percentage_range(cls, v: float) -> float:
        if not (0 <= v <= 100):
            raise ValueError("percentage must be between 0 and 100")
        return v


class PricedItem(BaseModel):
    """The slice of an order item the calculator needs."""

    item_id: Optional[str] = None
    category_id: Optional[str] = None
    item_name: str = ""
    category_name: str = ""
    quantity: float = 1
    unit_price: float = 0
    total_amount: Optional[float] = None


@dataclass(frozen=True)
class OverrideMatch:
    strategy: str
    override: ProfitOverride


@dataclass(frozen=True)
class ProfitBreakdown:
    profit_amount: float
    labor_amount: float
    total_amount: float
    matched: Optional[OverrideMatch] = None
    # unit_price basis gives per-unit amounts; total_cost gives line amounts
    per_unit: bool = True


# ── Override lookup ──────────────────────────────────────────────────────────

Matcher = Callable[[ProfitOverride, PricedItem], bool]


def _same_name(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()


OVERRIDE_LOOKUP: tuple[tuple[str, Matcher], ...] = (
    ("item_id", lambda o, i: o.type == "item" and bool(i.item_id) and o.id == i.item_id),
    ("item_name", lambda o, i: o.type == "item" and _same_name(o.name, i.item_name)),
    (
        "category_id",
        lambda o, i: o.type == "category" and bool(i.category_id) and o.id == i.category_id,
    ),
    (
        "category_name",
        lambda o, i: o.type == "category" and _same_name(o.name, i.category_name),
    ),
)


def find_override(item: PricedItem, settings: ProfitSettings) -> Optional[OverrideMatch]:
    for strategy, matches in OVERRIDE_LOOKUP:
        for override in settings.overrides:
            if matches(override, item):
                return OverrideMatch(strategy, override)
    return None


# ── Calculation ──────────────────────────────────────────────────────────────


def compute_profit_and_labor(item: PricedItem, settings: ProfitSettings) -> ProfitBreakdown:
    line_total = item.quantity * item.unit_price
    if not settings.enabled:
        return ProfitBreakdown(0.0, 0.0, line_total)

    match = find_override(item, settings)
    override = match.override if match else None

    profit_pct = settings.default_profit_percentage
    labor_pct = settings.labor_percentage
    if override is not None and override.profit_percentage is not None:
        profit_pct = override.profit_percentage
    if override is not None and override.labor_percentage is not None:
        labor_pct = override.labor_percentage

    if settings.calculation_basis == "unit_price":
        base = item.unit_price
    else:
        base = item.total_amount if item.total_amount is not None else line_total

    profit = base * profit_pct / 100
    labor = (base - profit) * labor_pct / 100 if settings.include_labor else 0.0

    logger.debug(
        f"profit: '{item.item_name}' basis={settings.calculation_basis} "
        f"p={profit_pct}% l={labor_pct}% → profit={profit} labor={labor}"
        + (f" (override by {match.strategy})" if match else "")
    )
    return ProfitBreakdown(
        profit, labor, line_total, match, per_unit=settings.calculation_basis == "unit_price"
    )


def allocate_item_profit(
    store: DataStore,
    item_id: Optional[int],
    item_name: str,
    quantity: float,
    unit_price: float,
    breakdown: ProfitBreakdown,
) -> list:
    """
    Push an item's profit and labor through the allocation engine. Per-unit
    amounts are scaled by quantity first. Returns the ledger rows written; zero
    amounts are skipped.
    """
    source_id = str(item_id) if item_id is not None else None
    factor = quantity if breakdown.per_unit else 1
    recorded = []
    if breakdown.profit_amount > 0:
        result, rows = allocate_profit(
            store,
            breakdown.profit_amount * factor,
            source_id,
            f"Profit allocation for {item_name} ({quantity} x {unit_price})",
        )
        if not result.success:
            logger.error(f"profit: allocating profit for item {item_id} failed: {result.error}")
        recorded.extend(rows)
    if breakdown.labor_amount > 0:
        result, rows = allocate_labor(
            store,
            breakdown.labor_amount * factor,
            source_id,
            f"Labor allocation for {item_name} ({quantity} x {unit_price})",
        )
        if not result.success:
            logger.error(f"profit: allocating labor for item {item_id} failed: {result.error}")
        recorded.extend(rows)
    return recorded
