from __future__ import annotations

import pytest

from orderflow.core.config import _build_config
from orderflow.core.exceptions import ConfigurationError


def test_defaults_build_a_development_config(monkeypatch):
    for name in ("DATABASE_URL", "WC_STORE_URL", "WC_CONSUMER_KEY", "WC_CONSUMER_SECRET", "SYNC_INTERVAL"):
        monkeypatch.delenv(name, raising=False)

    config = _build_config("development")

    assert config.DEBUG is True
    assert config.DATABASE_URL.startswith("sqlite")
    assert config.woocommerce_configured is False
    assert config.SYNC_INTERVAL_MINUTES == 30


def test_production_forces_debug_off(monkeypatch):
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("DATABASE_URL", "postgresql://orderflow:secret@db:5432/orderflow")

    config = _build_config("production")

    assert config.DEBUG is False
    assert config.DB_CONNECTIVITY_REQUIRED is True


def test_woocommerce_needs_all_three_credentials(monkeypatch):
    monkeypatch.setenv("WC_STORE_URL", "https://shop.example.com")
    monkeypatch.setenv("WC_CONSUMER_KEY", "ck_test")
    monkeypatch.delenv("WC_CONSUMER_SECRET", raising=False)

    assert _build_config("development").woocommerce_configured is False

    monkeypatch.setenv("WC_CONSUMER_SECRET", "cs_test")
    assert _build_config("development").woocommerce_configured is True


@pytest.mark.parametrize(
    ("name", "value", "message"),
    [
        ("WC_PAGE_SIZE", "250", "WC_PAGE_SIZE"),
        ("WC_MAX_RETRIES", "-1", "WC_MAX_RETRIES"),
        ("SYNC_INTERVAL", "0", "SYNC_INTERVAL"),
        ("WC_STORE_URL", "ftp://shop.example.com", "WC_STORE_URL"),
        ("DATABASE_URL", "mysql://db/orders", "DATABASE_URL"),
        ("LOG_LEVEL", "chatty", "LOG_LEVEL"),
    ],
)
def test_invalid_settings_are_rejected(monkeypatch, name, value, message):
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError, match=message):
        _build_config("development")


def test_placeholder_credentials_rejected_in_production(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://orderflow:change_me@db:5432/orderflow")

    with pytest.raises(ConfigurationError, match="placeholder"):
        _build_config("production")
