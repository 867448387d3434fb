"""Import job: fetch orders, refresh the cache, reconcile the board."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from orderflow.core.config import get_config
from orderflow.models import Tenant
from orderflow.models.base import utcnow
from orderflow.schemas.workflow import StatusCount
from orderflow.services.base_service import BaseService
from orderflow.services.order_cache_service import OrderCacheService
from orderflow.services.reconciliation_engine import BulkReconcileResult, ReconciliationEngine
from orderflow.services.woocommerce_client import OrderSystemClient, WooCommerceClient

logger = logging.getLogger(__name__)


def active_tenant_ids(db: Session) -> list[int]:
    stmt = select(Tenant.id).where(Tenant.is_active.is_(True)).order_by(Tenant.id.asc())
    return list(db.scalars(stmt))


@dataclass
class SyncResult:
    tenant_id: int
    fetched: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    reconcile: BulkReconcileResult = field(default_factory=BulkReconcileResult)

    @property
    def processed(self) -> int:
        return self.created + self.updated

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["processed"] = self.processed
        data["reconcile"]["processed"] = self.reconcile.processed
        return data


class OrderSyncService(BaseService):
    def __init__(self, db: Session | None = None, order_system: OrderSystemClient | None = None) -> None:
        super().__init__(db)
        self.order_system = order_system or WooCommerceClient.from_config()
        self.orders = OrderCacheService(self.db)
        self.engine = ReconciliationEngine(self.db, self.order_system)

    def sync_tenant(self, tenant_id: int, days_back: int | None = None) -> SyncResult:
        """Import the last ``days_back`` days of orders for one tenant.

        Fetch failures propagate. Orders that fail to cache are logged and
        counted; the rest of the batch carries on.
        """
        days_back = days_back or get_config().SYNC_DAYS_BACK
        since = utcnow() - timedelta(days=days_back)
        result = SyncResult(tenant_id=tenant_id)

        snapshots = self.order_system.fetch_orders(tenant_id, since)
        result.fetched = len(snapshots)

        observed: Counter[str] = Counter()
        for snapshot in snapshots:
            try:
                _, created = self.orders.cache_order(tenant_id, snapshot)
            except Exception as exc:
                self.rollback()
                result.failed += 1
                logger.error(
                    "orders.sync.item_failed",
                    extra={
                        "event": "orders.sync.item_failed",
                        "tenant_id": tenant_id,
                        "external_order_id": snapshot.external_id,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                continue
            if created:
                result.created += 1
            else:
                result.updated += 1
            observed[snapshot.status] += 1

        counts = [StatusCount(status=status, count=count) for status, count in sorted(observed.items())]
        result.reconcile = self.engine.bulk_reconcile(tenant_id, counts)
        self._mark_synced(tenant_id)

        logger.info(
            "orders.sync.completed",
            extra={
                "event": "orders.sync.completed",
                "tenant_id": tenant_id,
                "days_back": days_back,
                "fetched": result.fetched,
                "created": result.created,
                "updated": result.updated,
                "failed": result.failed,
                "work_items_created": result.reconcile.created,
                "work_items_updated": result.reconcile.updated,
            },
        )
        return result

    def _mark_synced(self, tenant_id: int) -> None:
        with self.transaction():
            tenant = self.db.get(Tenant, tenant_id)
            if tenant is not None:
                tenant.last_synced_at = utcnow()
