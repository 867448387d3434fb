"""Workflow board endpoints for API v1."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from orderflow.api.v1._context import RequestIdentity, domain_errors, get_identity
from orderflow.core.exceptions import NotFoundError
from orderflow.core.dependencies import get_db_session, get_order_system
from orderflow.schemas.common import Pagination
from orderflow.schemas.workflow import (
    BoardItem,
    BoardView,
    BulkUpdateRequest,
    FilterOptions,
    HistoryEntry,
    StagesReplaceRequest,
    StageView,
    StageVisibilityRequest,
    WorkflowStats,
    WorkItemUpdateRequest,
)
from orderflow.services.board_query_service import BoardQueryService, utc_day_range
from orderflow.services.order_cache_service import OrderCacheService
from orderflow.services.reconciliation_engine import ReconciliationEngine
from orderflow.services.stage_registry import StageRegistry
from orderflow.services.transition_ledger import TransitionLedger
from orderflow.services.woocommerce_client import OrderSystemClient
from orderflow.tasks.sync_tasks import sync_tenant_orders

router = APIRouter(prefix="/workflow", tags=["workflow"])


@router.get("/board", response_model=BoardView)
def get_board(
    style: str | None = Query(default=None),
    font: str | None = Query(default=None),
    color: str | None = Query(default=None),
    date_from: date | None = Query(default=None, description="First calendar day (UTC), inclusive."),
    date_to: date | None = Query(default=None, description="Last calendar day (UTC), inclusive."),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    identity: RequestIdentity = Depends(get_identity),
    db: Session = Depends(get_db_session),
) -> BoardView:
    filters: dict = {"style": style, "font": font, "color": color}
    if date_from is not None:
        filters["date_from"] = utc_day_range(date_from)[0]
    if date_to is not None:
        filters["date_to"] = utc_day_range(date_to)[1]
    with domain_errors():
        return BoardQueryService(db).get_board(identity.tenant_id, filters, Pagination(limit=limit, offset=offset))


@router.get("/filter-options", response_model=FilterOptions)
def get_filter_options(
    identity: RequestIdentity = Depends(get_identity),
    db: Session = Depends(get_db_session),
) -> FilterOptions:
    return BoardQueryService(db).get_filter_options(identity.tenant_id)


@router.get("/stages", response_model=list[StageView])
def list_stages(
    identity: RequestIdentity = Depends(get_identity),
    db: Session = Depends(get_db_session),
) -> list[StageView]:
    return [StageView.model_validate(stage) for stage in StageRegistry(db).list_stages(identity.tenant_id)]


@router.put("/stages", response_model=list[StageView])
def replace_stages(
    payload: StagesReplaceRequest,
    identity: RequestIdentity = Depends(get_identity),
    db: Session = Depends(get_db_session),
) -> list[StageView]:
    identity.require_actor()
    with domain_errors():
        stages = StageRegistry(db).replace_stages(identity.tenant_id, payload.stages)
    return [StageView.model_validate(stage) for stage in stages]


@router.patch("/stages/{stage_id}/visibility", response_model=StageView)
def set_stage_visibility(
    stage_id: int,
    payload: StageVisibilityRequest,
    identity: RequestIdentity = Depends(get_identity),
    db: Session = Depends(get_db_session),
) -> StageView:
    with domain_errors():
        stage = StageRegistry(db).set_visibility(identity.tenant_id, stage_id, payload.is_hidden)
    return StageView.model_validate(stage)


@router.get("/orders/{order_id}/history", response_model=list[HistoryEntry])
def get_history(
    order_id: int,
    identity: RequestIdentity = Depends(get_identity),
    db: Session = Depends(get_db_session),
) -> list[HistoryEntry]:
    with domain_errors():
        OrderCacheService(db).get_order(order_id, identity.tenant_id)
        return TransitionLedger(db).history(order_id)


@router.post("/orders/{order_id}/enroll", status_code=status.HTTP_201_CREATED)
def enroll_order(
    order_id: int,
    identity: RequestIdentity = Depends(get_identity),
    db: Session = Depends(get_db_session),
) -> dict:
    actor = identity.require_actor()
    with domain_errors():
        OrderCacheService(db).get_order(order_id, identity.tenant_id)
        item = ReconciliationEngine(db).enroll_order(order_id, actor)
    return {"order_id": item.order_id, "stage_id": item.stage_id}


@router.patch("/orders/{order_id}")
def update_work_item(
    order_id: int,
    payload: WorkItemUpdateRequest,
    identity: RequestIdentity = Depends(get_identity),
    db: Session = Depends(get_db_session),
    order_system: OrderSystemClient | None = Depends(get_order_system),
) -> dict:
    actor = identity.require_actor()
    changes = payload.model_dump(exclude_unset=True)
    stage_id = changes.pop("stage_id", None)
    response: dict = {"order_id": order_id}
    with domain_errors():
        OrderCacheService(db).get_order(order_id, identity.tenant_id)
        if stage_id is not None:
            StageRegistry(db).get_stage(identity.tenant_id, stage_id)
        engine = ReconciliationEngine(db, order_system)
        if changes:
            item = engine.update_details(order_id, **changes)
            response.update(assigned_to=item.assigned_to, priority=item.priority, notes=item.notes)
        if stage_id is not None:
            moved = engine.move_stage(order_id, stage_id, actor)
            response.update(stage_id=moved.to_stage_id, changed=moved.changed, push=moved.push_outcome.value)
    return response


@router.post("/bulk-update")
def bulk_update(
    payload: BulkUpdateRequest,
    identity: RequestIdentity = Depends(get_identity),
    db: Session = Depends(get_db_session),
    order_system: OrderSystemClient | None = Depends(get_order_system),
) -> dict:
    actor = identity.require_actor()
    orders = OrderCacheService(db)
    engine = ReconciliationEngine(db, order_system)

    order_ids: list[int] = []
    rejected: list[dict] = []
    for order_id in payload.order_ids:
        try:
            orders.get_order(order_id, identity.tenant_id)
        except NotFoundError as exc:
            rejected.append({"order_id": order_id, "error": str(exc)})
            continue
        order_ids.append(order_id)

    changes = payload.model_dump(exclude_unset=True, exclude={"order_ids", "stage_id"})
    failures = list(rejected)
    succeeded = set(order_ids)
    if changes:
        details = engine.bulk_update_details(order_ids, **changes)
        failures.extend(details.failures)
    if payload.stage_id is not None:
        moves = engine.bulk_move(order_ids, payload.stage_id, actor)
        failures.extend(moves.failures)
    succeeded -= {failure["order_id"] for failure in failures}
    return {"updated": len(succeeded), "failed": len(set(payload.order_ids)) - len(succeeded), "failures": failures}


@router.get("/stats", response_model=WorkflowStats)
def get_stats(
    identity: RequestIdentity = Depends(get_identity),
    db: Session = Depends(get_db_session),
) -> WorkflowStats:
    return BoardQueryService(db).get_stats(identity.tenant_id)


@router.get("/overdue", response_model=list[BoardItem])
def get_overdue(
    hours: int = Query(default=24, ge=1, le=24 * 365),
    identity: RequestIdentity = Depends(get_identity),
    db: Session = Depends(get_db_session),
) -> list[BoardItem]:
    return BoardQueryService(db).get_overdue(identity.tenant_id, hours)


@router.post("/sync", status_code=status.HTTP_202_ACCEPTED)
def trigger_sync(
    days_back: int | None = Query(default=None, ge=1),
    identity: RequestIdentity = Depends(get_identity),
) -> dict:
    identity.require_actor()
    task = sync_tenant_orders.delay(identity.tenant_id, days_back)
    return {"task_id": task.id, "tenant_id": identity.tenant_id}
