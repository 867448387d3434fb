from __future__ import annotations

"""Celery application bootstrap."""

import os

from celery import Celery
from celery.signals import setup_logging

from orderflow.core.config import get_config
from orderflow.core.logging_config import configure_logging

config = get_config()

celery_app = Celery(
    "orderflow",
    broker=config.CELERY_BROKER_URL,
    backend=config.CELERY_RESULT_BACKEND,
    include=["orderflow.tasks.sync_tasks"],
)
celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    beat_schedule={
        "sync-all-orders": {
            "task": "orderflow.sync_all_orders",
            "schedule": config.SYNC_INTERVAL_MINUTES * 60.0,
        },
    },
)

# Local/dev convenience: run tasks synchronously when requested.
if os.getenv("CELERY_TASK_ALWAYS_EAGER", "false").lower() in {"1", "true", "yes", "on"}:
    celery_app.conf.task_always_eager = True


@setup_logging.connect
def _configure_worker_logging(**kwargs) -> None:
    configure_logging(force=True)
