"""Health endpoints for API v1."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orderflow.core.config import Config
from orderflow.core.dependencies import get_db_session, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health(db: Session = Depends(get_db_session), cfg: Config = Depends(get_settings)) -> dict:
    """Liveness plus database reachability; the WooCommerce store is not called."""
    try:
        db.execute(text("SELECT 1"))
        database_ok = True
    except SQLAlchemyError as exc:
        logger.warning("health.database.unreachable", extra={"event": "health.database.unreachable", "error": str(exc)})
        database_ok = False
    return {
        "status": "ok" if database_ok else "degraded",
        "service": cfg.APP_NAME,
        "version": cfg.APP_VERSION,
        "database": database_ok,
        "woocommerce_configured": cfg.woocommerce_configured,
    }
