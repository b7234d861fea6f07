"""
Profit settings persistence.

A single JSON document under DATA_DIR:

    profit_settings.json
    { enabled, calculation_basis, default_profit_percentage, include_labor,
      labor_percentage, overrides: [{id, type, name, profit_percentage?,
      labor_percentage?}], last_modified }

Missing or unreadable files fall back to the defaults. Callers load the
settings once per request and pass them to the calculator explicitly.
"""
from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from printshop.core.config import settings
from printshop.core.errors import StoreError
from printshop.finance.profit import ProfitSettings

PROFIT_SETTINGS_FILE = "profit_settings.json"


def _settings_path(data_dir: Optional[Path] = None) -> Path:
    return Path(data_dir or settings.DATA_DIR) / PROFIT_SETTINGS_FILE


def load_profit_settings(data_dir: Optional[Path] = None) -> ProfitSettings:
    path = _settings_path(data_dir)
    if not path.exists():
        return ProfitSettings()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        raw.pop("last_modified", None)
        return ProfitSettings.model_validate(raw)
    except (OSError, ValueError, PydanticValidationError) as exc:
        logger.error(f"profit_settings: failed to load {path}: {exc}")
        return ProfitSettings()


def save_profit_settings(
    profit_settings: ProfitSettings, data_dir: Optional[Path] = None
) -> ProfitSettings:
    path = _settings_path(data_dir)
    payload = profit_settings.model_dump()
    payload["last_modified"] = datetime.utcnow().isoformat()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    except OSError as exc:
        logger.error(f"profit_settings: failed to save {path}: {exc}")
        raise StoreError("Failed to update profit settings", details=str(exc)) from exc
    logger.info(
        f"profit_settings: saved (enabled={profit_settings.enabled}, "
        f"{len(profit_settings.overrides)} override(s))"
    )
    return profit_settings
