"""Local cache of orders imported from the external order system."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from orderflow.core.exceptions import NotFoundError
from orderflow.models import CachedOrder
from orderflow.models.base import utcnow
from orderflow.schemas.customization import CustomizationRecord
from orderflow.schemas.orders import OrderSnapshot
from orderflow.schemas.workflow import StatusCount
from orderflow.services.base_service import BaseService
from orderflow.services.customization_extractor import extract_from_line_items

logger = logging.getLogger(__name__)


def serialize_customization(record: CustomizationRecord | None) -> str | None:
    if record is None or not record.has_attributes():
        return None
    return record.model_dump_json()


def parse_customization(raw: str | None, order_id: int | None = None) -> CustomizationRecord | None:
    """Decode a stored record. Malformed or empty payloads read as no customization."""
    if not raw:
        return None
    try:
        record = CustomizationRecord.model_validate_json(raw)
    except (PydanticValidationError, ValueError):
        logger.warning(
            "orders.customization.malformed",
            extra={"event": "orders.customization.malformed", "order_id": order_id},
        )
        return None
    return record if record.has_attributes() else None


@dataclass
class BackfillStats:
    scanned: int = 0
    updated: int = 0
    cleared: int = 0
    unchanged: int = 0


class OrderCacheService(BaseService):
    def cache_order(self, tenant_id: int, snapshot: OrderSnapshot) -> tuple[CachedOrder, bool]:
        """Insert or refresh the cached copy of ``snapshot``. Returns (order, created)."""
        order = self.get_by_external_id(tenant_id, snapshot.external_id)
        created = False
        if order is None:
            order = CachedOrder(tenant_id=tenant_id, external_order_id=snapshot.external_id)
            self._apply_snapshot(order, snapshot)
            try:
                with self.db.begin_nested():
                    self.db.add(order)
                created = True
            except IntegrityError:
                order = self.get_by_external_id(tenant_id, snapshot.external_id)
                if order is None:
                    raise
        if not created:
            self._apply_snapshot(order, snapshot)
        self.commit()
        return order, created

    def get_order(self, order_id: int, tenant_id: int | None = None) -> CachedOrder:
        order = self.db.get(CachedOrder, order_id)
        if order is None or (tenant_id is not None and order.tenant_id != tenant_id):
            raise NotFoundError(f"Order {order_id} not found.")
        return order

    def get_by_external_id(self, tenant_id: int, external_order_id: int) -> CachedOrder | None:
        stmt = select(CachedOrder).where(
            CachedOrder.tenant_id == tenant_id,
            CachedOrder.external_order_id == external_order_id,
        )
        return self.db.scalars(stmt).first()

    def list_orders(self, tenant_id: int, statuses: Iterable[str] | None = None) -> list[CachedOrder]:
        stmt = select(CachedOrder).where(CachedOrder.tenant_id == tenant_id)
        if statuses is not None:
            stmt = stmt.where(CachedOrder.status.in_([status.strip().lower() for status in statuses]))
        return list(self.db.scalars(stmt.order_by(CachedOrder.id.asc())))

    def get_customization(self, order: CachedOrder) -> CustomizationRecord | None:
        return parse_customization(order.customization_details, order.id)

    def store_customization(self, order_id: int, record: CustomizationRecord | None) -> CachedOrder:
        order = self.get_order(order_id)
        order.customization_details = serialize_customization(record)
        self.commit()
        return order

    def status_counts(self, tenant_id: int) -> list[StatusCount]:
        stmt = (
            select(CachedOrder.status, func.count(CachedOrder.id))
            .where(CachedOrder.tenant_id == tenant_id)
            .group_by(CachedOrder.status)
            .order_by(CachedOrder.status.asc())
        )
        return [StatusCount(status=status, count=count) for status, count in self.db.execute(stmt).all()]

    def mark_status(self, order_id: int, status: str) -> CachedOrder:
        order = self.get_order(order_id)
        order.status = status.strip().lower()
        self.commit()
        return order

    def backfill_customizations(self, tenant_id: int | None = None, only_missing: bool = False) -> BackfillStats:
        """Recompute stored customization records from each order's raw line items."""
        stats = BackfillStats()
        stmt = select(CachedOrder).order_by(CachedOrder.id.asc())
        if tenant_id is not None:
            stmt = stmt.where(CachedOrder.tenant_id == tenant_id)
        if only_missing:
            stmt = stmt.where(CachedOrder.customization_details.is_(None))

        for order in self.db.scalars(stmt).all():
            stats.scanned += 1
            line_items = (order.raw_data or {}).get("line_items") or []
            serialized = serialize_customization(extract_from_line_items(line_items))
            if serialized == order.customization_details:
                stats.unchanged += 1
                continue
            if serialized is None:
                stats.cleared += 1
            else:
                stats.updated += 1
            order.customization_details = serialized
        self.commit()

        logger.info(
            "orders.customization.backfilled",
            extra={
                "event": "orders.customization.backfilled",
                "tenant_id": tenant_id,
                "scanned": stats.scanned,
                "updated": stats.updated,
                "cleared": stats.cleared,
            },
        )
        return stats

    @staticmethod
    def _apply_snapshot(order: CachedOrder, snapshot: OrderSnapshot) -> None:
        order.status = snapshot.status
        order.date_created = snapshot.date_created
        order.date_modified = snapshot.date_modified
        order.customer_name = snapshot.customer_name
        order.total = snapshot.total
        order.raw_data = snapshot.raw
        order.customization_details = serialize_customization(extract_from_line_items(snapshot.line_items))
        order.synced_at = utcnow()
