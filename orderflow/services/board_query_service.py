"""Read side of the workflow: board, filter options, stats and overdue items."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from sqlalchemy import case, func, select

from orderflow.models import CachedOrder, Priority, Stage, WorkItem
from orderflow.models.base import ensure_utc, utcnow
from orderflow.schemas.common import Pagination
from orderflow.schemas.customization import CustomizationRecord
from orderflow.schemas.workflow import (
    BoardFilters,
    BoardItem,
    BoardView,
    FilterOptions,
    StageStats,
    StageView,
    WorkflowStats,
)
from orderflow.services.base_service import BaseService
from orderflow.services.customization_extractor import format_customization_summary
from orderflow.services.order_cache_service import parse_customization
from orderflow.services.stage_registry import StageRegistry

logger = logging.getLogger(__name__)


def utc_day_range(first_day: date, last_day: date | None = None) -> tuple[datetime, datetime]:
    """Inclusive UTC bounds covering whole calendar days, for ``BoardFilters``.

    ``utc_day_range(date(2024, 3, 1), date(2024, 3, 31))`` spans
    2024-03-01T00:00:00Z through 2024-03-31T23:59:59.999999Z.
    """
    last_day = last_day or first_day
    start = datetime.combine(first_day, time.min, tzinfo=timezone.utc)
    end = datetime.combine(last_day, time.max, tzinfo=timezone.utc)
    return start, end


class BoardQueryService(BaseService):
    def get_board(
        self,
        tenant_id: int,
        filters: BoardFilters | dict[str, Any] | None = None,
        pagination: Pagination | None = None,
    ) -> BoardView:
        """Every stage of the tenant plus the work items matching ``filters``.

        Hidden stages are included. Attribute filters compare each order's cached
        customization record by equality; orders whose record can't be read are
        treated as uncustomized. Items whose stage no longer exists are left out.
        """
        filters = BoardFilters.build(filters)
        stages = StageRegistry(self.db).list_stages(tenant_id)
        attribute_filters = filters.attribute_filters()

        stmt = (
            select(WorkItem, CachedOrder)
            .join(CachedOrder, CachedOrder.id == WorkItem.order_id)
            .join(Stage, Stage.id == WorkItem.stage_id)
            .where(CachedOrder.tenant_id == tenant_id, Stage.tenant_id == tenant_id)
            .order_by(
                Stage.position.asc(),
                WorkItem.priority.desc(),
                WorkItem.last_updated.desc(),
                WorkItem.id.asc(),
            )
        )
        if filters.date_from is not None:
            stmt = stmt.where(CachedOrder.date_created >= filters.date_from)
        if filters.date_to is not None:
            stmt = stmt.where(CachedOrder.date_created <= filters.date_to)

        now = utcnow()
        matched: list[BoardItem] = []
        for item, order in self.db.execute(stmt).all():
            record = parse_customization(order.customization_details, order.id)
            if attribute_filters and not _matches(record, attribute_filters):
                continue
            matched.append(_board_item(item, order, record, now))

        total = len(matched)
        offset = pagination.offset if pagination else 0
        limit = pagination.limit if pagination else None
        page = pagination.apply(matched) if pagination else matched
        return BoardView(
            stages=[StageView.model_validate(stage) for stage in stages],
            items=page,
            total=total,
            limit=limit,
            offset=offset,
        )

    def get_filter_options(self, tenant_id: int) -> FilterOptions:
        stmt = select(CachedOrder.id, CachedOrder.customization_details).where(
            CachedOrder.tenant_id == tenant_id,
            CachedOrder.customization_details.is_not(None),
        )
        styles: set[str] = set()
        fonts: set[str] = set()
        colors: set[str] = set()
        for order_id, raw in self.db.execute(stmt).all():
            record = parse_customization(raw, order_id)
            if record is None:
                continue
            if record.style:
                styles.add(record.style)
            if record.font:
                fonts.add(record.font)
            if record.color:
                colors.add(record.color)
        return FilterOptions(styles=sorted(styles), fonts=sorted(fonts), colors=sorted(colors))

    def get_stats(self, tenant_id: int) -> WorkflowStats:
        stmt = (
            select(
                Stage.id,
                Stage.name,
                func.count(WorkItem.id),
                func.coalesce(func.sum(case((WorkItem.priority == int(Priority.RUSH), 1), else_=0)), 0),
            )
            .outerjoin(WorkItem, WorkItem.stage_id == Stage.id)
            .where(Stage.tenant_id == tenant_id)
            .group_by(Stage.id, Stage.name, Stage.position)
            .order_by(Stage.position.asc(), Stage.id.asc())
        )
        stages = [
            StageStats(stage_id=stage_id, stage_name=name, total_orders=total, rush_orders=int(rush))
            for stage_id, name, total, rush in self.db.execute(stmt).all()
        ]
        unassigned = self.db.scalar(
            select(func.count(WorkItem.id))
            .join(Stage, Stage.id == WorkItem.stage_id)
            .where(Stage.tenant_id == tenant_id, WorkItem.assigned_to.is_(None))
        )
        return WorkflowStats(
            stages=stages,
            total_orders=sum(stage.total_orders for stage in stages),
            unassigned_orders=unassigned or 0,
        )

    def get_overdue(self, tenant_id: int, hours: int = 24) -> list[BoardItem]:
        """Work items that have sat in their current stage for more than ``hours``."""
        now = utcnow()
        cutoff = now - timedelta(hours=hours)
        stmt = (
            select(WorkItem, CachedOrder)
            .join(CachedOrder, CachedOrder.id == WorkItem.order_id)
            .join(Stage, Stage.id == WorkItem.stage_id)
            .where(Stage.tenant_id == tenant_id, WorkItem.last_updated < cutoff)
            .order_by(WorkItem.last_updated.asc(), WorkItem.id.asc())
        )
        return [
            _board_item(item, order, parse_customization(order.customization_details, order.id), now)
            for item, order in self.db.execute(stmt).all()
        ]


def _matches(record: CustomizationRecord | None, attribute_filters: dict[str, str]) -> bool:
    if record is None:
        return False
    return all(getattr(record, name) == value for name, value in attribute_filters.items())


def _board_item(item: WorkItem, order: CachedOrder, record: CustomizationRecord | None, now: datetime) -> BoardItem:
    last_updated = ensure_utc(item.last_updated)
    return BoardItem(
        order_id=order.id,
        external_order_id=order.external_order_id,
        stage_id=item.stage_id,
        assigned_to=item.assigned_to,
        priority=Priority(item.priority),
        notes=item.notes,
        last_updated=last_updated,
        time_in_stage_minutes=max(int((now - last_updated).total_seconds() // 60), 0),
        status=order.status,
        customer_name=order.customer_name,
        total=float(order.total) if order.total is not None else None,
        date_created=ensure_utc(order.date_created),
        customization=record,
        summary=format_customization_summary(record),
    )
