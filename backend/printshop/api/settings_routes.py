"""
Profit Settings Routes: /api/settings/profit

  GET   /api/settings/profit           – current settings (defaults if never saved)
  PUT   /api/settings/profit           – admin: everything; manager: overrides only
  POST  /api/settings/profit/preview   – profit/labor for one item under the
                                         current (or supplied) settings

Storage: DATA_DIR/profit_settings.json (see printshop.settings_store).
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel

from printshop.core.security import CurrentUser, require_roles
from printshop.finance.profit import PricedItem, ProfitSettings, compute_profit_and_labor
from printshop.schemas.responses import ProfitPreviewResponse
from printshop.settings_store import load_profit_settings, save_profit_settings

settings_router = APIRouter(prefix="/api/settings", tags=["settings"])


# ── Pydantic schemas ──────────────────────────────────────────────────────────


class ProfitSettingsEnvelope(BaseModel):
    settings: ProfitSettings


class ProfitPreviewRequest(BaseModel):
    item: PricedItem
    settings: Optional[ProfitSettings] = None


# ── Routes ────────────────────────────────────────────────────────────────────


@settings_router.get("/profit", response_model=ProfitSettingsEnvelope)
def get_profit_settings():
    return ProfitSettingsEnvelope(settings=load_profit_settings())


@settings_router.put("/profit", response_model=ProfitSettingsEnvelope)
def update_profit_settings(
    body: ProfitSettingsEnvelope,
    user: CurrentUser = Depends(require_roles("admin", "manager")),
):
    incoming = body.settings
    if user.role == "admin":
        updated = incoming
    else:
        # Managers may only change the override list
        current = load_profit_settings()
        updated = current.model_copy(update={"overrides": incoming.overrides})

    save_profit_settings(updated)
    logger.info(f"profit_settings: updated by {user.id} ({user.role})")
    return ProfitSettingsEnvelope(settings=updated)


@settings_router.post("/profit/preview", response_model=ProfitPreviewResponse)
def preview_profit(body: ProfitPreviewRequest):
    profit_settings = body.settings or load_profit_settings()
    breakdown = compute_profit_and_labor(body.item, profit_settings)
    return ProfitPreviewResponse(
        profit_amount=round(breakdown.profit_amount, 2),
        labor_amount=round(breakdown.labor_amount, 2),
        total_amount=round(breakdown.total_amount, 2),
        matched_by=breakdown.matched.strategy if breakdown.matched else None,
        override_id=breakdown.matched.override.id if breakdown.matched else None,
    )
