"""Configuration module for the orderflow application."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse

from dotenv import load_dotenv

from orderflow.core.exceptions import ConfigurationError

load_dotenv()


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    """Runtime configuration with validation."""

    APP_NAME: str
    APP_VERSION: str
    ENV: str
    DEBUG: bool
    DATABASE_URL: str
    DB_CONNECTIVITY_REQUIRED: bool
    WC_STORE_URL: str | None
    WC_CONSUMER_KEY: str | None
    WC_CONSUMER_SECRET: str | None
    WC_TIMEOUT_SECONDS: int
    WC_PAGE_SIZE: int
    WC_MAX_RETRIES: int
    SYNC_INTERVAL_MINUTES: int
    SYNC_DAYS_BACK: int
    REDIS_URL: str
    CELERY_BROKER_URL: str
    CELERY_RESULT_BACKEND: str
    API_PREFIX: str
    LOG_LEVEL: str
    LOG_FILE: str

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"

    @property
    def woocommerce_configured(self) -> bool:
        return bool(self.WC_STORE_URL and self.WC_CONSUMER_KEY and self.WC_CONSUMER_SECRET)


def _build_config(env: str | None = None) -> Config:
    resolved_env = (env or os.getenv("ENV", "development")).strip().lower()
    debug = _as_bool(os.getenv("DEBUG"), default=(resolved_env != "production"))

    config = Config(
        APP_NAME="orderflow",
        APP_VERSION=os.getenv("APP_VERSION", "1.0.0"),
        ENV=resolved_env,
        DEBUG=debug if resolved_env != "production" else False,
        DATABASE_URL=os.getenv("DATABASE_URL", "sqlite:///./orderflow.db"),
        DB_CONNECTIVITY_REQUIRED=_as_bool(
            os.getenv("DB_CONNECTIVITY_REQUIRED"), default=(resolved_env == "production")
        ),
        WC_STORE_URL=os.getenv("WC_STORE_URL"),
        WC_CONSUMER_KEY=os.getenv("WC_CONSUMER_KEY"),
        WC_CONSUMER_SECRET=os.getenv("WC_CONSUMER_SECRET"),
        WC_TIMEOUT_SECONDS=int(os.getenv("WC_TIMEOUT_SECONDS", "30")),
        WC_PAGE_SIZE=int(os.getenv("WC_PAGE_SIZE", "100")),
        WC_MAX_RETRIES=int(os.getenv("WC_MAX_RETRIES", "2")),
        SYNC_INTERVAL_MINUTES=int(os.getenv("SYNC_INTERVAL", "30")),
        SYNC_DAYS_BACK=int(os.getenv("SYNC_DAYS_BACK", "730")),
        REDIS_URL=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        CELERY_BROKER_URL=os.getenv("CELERY_BROKER_URL", os.getenv("REDIS_URL", "redis://localhost:6379/0")),
        CELERY_RESULT_BACKEND=os.getenv("CELERY_RESULT_BACKEND", os.getenv("REDIS_URL", "redis://localhost:6379/0")),
        API_PREFIX=os.getenv("API_PREFIX", "/api/v1"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
        LOG_FILE=os.getenv("LOG_FILE", ""),
    )
    _validate_config(config)
    return config


def _validate_database_url(database_url: str) -> None:
    parsed = urlparse(database_url)
    if parsed.scheme not in {"sqlite", "postgresql", "postgresql+psycopg2"}:
        raise ConfigurationError(
            "DATABASE_URL must use sqlite:// or postgresql:// style URL."
        )
    if parsed.scheme.startswith("postgresql") and not parsed.hostname:
        raise ConfigurationError("PostgreSQL DATABASE_URL is missing hostname.")


def _validate_config(config: Config) -> None:
    _validate_database_url(config.DATABASE_URL)

    if config.WC_STORE_URL:
        parsed = urlparse(config.WC_STORE_URL)
        if parsed.scheme not in {"http", "https"} or not parsed.hostname:
            raise ConfigurationError("WC_STORE_URL must be an http(s) URL.")
    if config.WC_TIMEOUT_SECONDS < 1:
        raise ConfigurationError("WC_TIMEOUT_SECONDS must be >= 1.")
    if not 1 <= config.WC_PAGE_SIZE <= 100:
        raise ConfigurationError("WC_PAGE_SIZE must be between 1 and 100.")
    if config.WC_MAX_RETRIES < 0:
        raise ConfigurationError("WC_MAX_RETRIES must be >= 0.")
    if config.SYNC_INTERVAL_MINUTES < 1:
        raise ConfigurationError("SYNC_INTERVAL must be >= 1.")
    if config.SYNC_DAYS_BACK < 1:
        raise ConfigurationError("SYNC_DAYS_BACK must be >= 1.")
    if config.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigurationError("LOG_LEVEL must be one of DEBUG/INFO/WARNING/ERROR/CRITICAL.")
    if config.is_production and "change_me" in config.DATABASE_URL.lower():
        raise ConfigurationError("Production DATABASE_URL uses placeholder credentials.")


@lru_cache(maxsize=8)
def get_config(env: str | None = None) -> Config:
    """Get validated configuration for the requested environment."""
    return _build_config(env)
