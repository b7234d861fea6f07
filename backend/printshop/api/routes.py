"""
Service-level REST routes.

Endpoints:
  GET  /api/health
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from printshop.core.config import settings
from printshop.core.database import get_session
from printshop.models.accounts import Account
from printshop.schemas.responses import HealthResponse

router = APIRouter(prefix="/api")


# ── Health ────────────────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
def health(session: Session = Depends(get_session)):
    try:
        session.exec(select(Account).limit(1))
        db_status = "ok"
    except SQLAlchemyError as e:
        logger.error(f"health: database check failed: {e}")
        db_status = f"error: {e}"
    return HealthResponse(
        status="ok",
        db=db_status,
        data_dir=str(settings.DATA_DIR),
    )
