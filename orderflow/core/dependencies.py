"""Dependency providers for API handlers and background workers."""

from __future__ import annotations

import logging
from collections.abc import Generator

from sqlalchemy.orm import Session

from orderflow.core.config import Config, get_config
from orderflow.database.db import get_db
from orderflow.services.woocommerce_client import OrderSystemClient, WooCommerceClient

logger = logging.getLogger(__name__)


def get_settings() -> Config:
    """Return validated application configuration."""
    return get_config()


def get_db_session() -> Generator[Session, None, None]:
    """Yield SQLAlchemy session for dependency injection."""
    yield from get_db()


def get_order_system() -> OrderSystemClient | None:
    """WooCommerce client, or None when the store isn't configured (moves stay local)."""
    if not get_settings().woocommerce_configured:
        return None
    return WooCommerceClient.from_config()
