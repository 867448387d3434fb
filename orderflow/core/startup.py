"""Startup validation and bootstrap helpers."""

from __future__ import annotations

import logging

from sqlalchemy import inspect

from orderflow.core.config import get_config
from orderflow.core.logging_config import configure_logging
from orderflow.database.db import get_active_database_url, get_engine, verify_database_connection
from orderflow.models import Base

logger = logging.getLogger(__name__)


def missing_tables() -> list[str]:
    """Workflow tables the connected database doesn't have yet."""
    existing = set(inspect(get_engine()).get_table_names())
    return sorted(set(Base.metadata.tables) - existing)


def validate_startup_config() -> None:
    """Fail-fast config, connectivity and schema checks."""
    config = get_config()
    database_ok = verify_database_connection()
    active_database_url = get_active_database_url()
    if not database_ok and config.DB_CONNECTIVITY_REQUIRED:
        raise RuntimeError("Database connectivity check failed.")
    if not database_ok:
        logger.warning(
            "startup.database.connectivity_optional_failed",
            extra={"event": "startup.database.connectivity_optional_failed"},
        )
    else:
        missing = missing_tables()
        if missing and config.is_production:
            raise RuntimeError(f"Workflow schema is missing tables: {', '.join(missing)}. Run migrations.")
        if missing:
            logger.warning(
                "startup.database.schema_incomplete",
                extra={"event": "startup.database.schema_incomplete", "missing_tables": missing},
            )

    if config.is_production and active_database_url.startswith("sqlite"):
        logger.warning(
            "startup.production.sqlite_detected",
            extra={"event": "startup.production.sqlite_detected"},
        )

    if not config.woocommerce_configured:
        logger.warning(
            "startup.woocommerce.not_configured",
            extra={"event": "startup.woocommerce.not_configured"},
        )

    logger.info(
        "startup.config.validated",
        extra={
            "event": "startup.config.validated",
            "env": config.ENV,
            "database_url_scheme": active_database_url.split("://", 1)[0],
            "db_connectivity_required": config.DB_CONNECTIVITY_REQUIRED,
            "woocommerce_configured": config.woocommerce_configured,
            "sync_interval_minutes": config.SYNC_INTERVAL_MINUTES,
        },
    )


def bootstrap() -> None:
    """Initialize logging and validate runtime configuration."""
    configure_logging()
    validate_startup_config()
