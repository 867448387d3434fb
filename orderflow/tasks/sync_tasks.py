from __future__ import annotations

import logging
import uuid
from typing import Any

from orderflow.database.db import get_db_session
from orderflow.services.order_sync_service import OrderSyncService, active_tenant_ids
from orderflow.tasks.celery_app import celery_app
from orderflow.tasks.hooks import after_task, before_task

logger = logging.getLogger(__name__)

SYNC_TENANT_TASK = "orderflow.sync_tenant_orders"
SYNC_ALL_TASK = "orderflow.sync_all_orders"


def run_tenant_sync(tenant_id: int, days_back: int | None = None, run_id: str | None = None) -> dict[str, Any]:
    """Sync one tenant in its own session and return the result as a plain dict."""
    context = {"tenant_id": tenant_id, "run_id": run_id or f"run-{uuid.uuid4().hex}", "trace_id": uuid.uuid4().hex}
    logger.info("task.start", extra=before_task(SYNC_TENANT_TASK, context))
    try:
        with get_db_session() as db:
            result = OrderSyncService(db).sync_tenant(tenant_id, days_back)
    except Exception as exc:
        logger.error(
            "task.failed",
            extra=after_task(
                SYNC_TENANT_TASK, context, "failed", error=str(exc), status_code=getattr(exc, "status_code", None)
            ),
        )
        raise
    payload = result.as_dict()
    logger.info("task.finish", extra=after_task(SYNC_TENANT_TASK, context, "succeeded", **_summary(payload)))
    return payload


def run_full_sync(days_back: int | None = None, run_id: str | None = None) -> dict[str, Any]:
    """Sync every active tenant. A failing tenant does not stop the others."""
    with get_db_session() as db:
        tenant_ids = active_tenant_ids(db)

    succeeded: list[int] = []
    failed: list[dict[str, Any]] = []
    for tenant_id in tenant_ids:
        try:
            run_tenant_sync(tenant_id, days_back, run_id)
            succeeded.append(tenant_id)
        except Exception as exc:
            failed.append({"tenant_id": tenant_id, "error": str(exc)})
            logger.error(
                "orders.sync.tenant_failed",
                extra={"event": "orders.sync.tenant_failed", "tenant_id": tenant_id, "error": str(exc)},
            )
    return {"tenants": len(tenant_ids), "succeeded": succeeded, "failed": failed}


def _summary(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: payload[key] for key in ("fetched", "created", "updated", "failed")}


@celery_app.task(name=SYNC_TENANT_TASK, bind=True)
def sync_tenant_orders(self, tenant_id: int, days_back: int | None = None) -> dict[str, Any]:
    return run_tenant_sync(tenant_id, days_back, run_id=self.request.id)


@celery_app.task(name=SYNC_ALL_TASK, bind=True)
def sync_all_orders(self, days_back: int | None = None) -> dict[str, Any]:
    return run_full_sync(days_back, run_id=self.request.id)
