"""Keeps work item stages and external order statuses consistent in both directions.

Inbound: an external status observed during import rewrites the local stage
(creating the stage and the work item on first sight) with the system actor.
Outbound: a user move commits locally, then pushes the target stage's mapped
status to the order system. A failed push never undoes the local move; the next
inbound pass reconciles whatever the order system still reports.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderflow.core.exceptions import ConfigurationError, NotFoundError, ValidationError
from orderflow.core.logging import LogContext, build_log_event
from orderflow.models import SYSTEM, Actor, CachedOrder, Priority, PushOutcome, ReconcileOutcome, Stage, WorkItem
from orderflow.models.base import utcnow
from orderflow.schemas.workflow import StatusCount, validation_message
from orderflow.services.base_service import BaseService
from orderflow.services.order_cache_service import OrderCacheService
from orderflow.services.stage_registry import StageRegistry
from orderflow.services.transition_ledger import TransitionLedger
from orderflow.services.woocommerce_client import OrderSystemClient

logger = logging.getLogger(__name__)

IMPORT_NOTE = "Imported from order sync"
EDITABLE_FIELDS = frozenset({"assigned_to", "priority", "notes"})


def sync_note(external_status: str) -> str:
    return f"Automated sync: external status is '{external_status}'"


@dataclass(frozen=True)
class MoveResult:
    order_id: int
    from_stage_id: int
    to_stage_id: int
    changed: bool
    push_outcome: PushOutcome
    pushed_status: str | None = None


@dataclass
class BulkReconcileResult:
    stages_created: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    failures: list[dict[str, Any]] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.created + self.updated + self.unchanged + self.failed

    def count(self, outcome: ReconcileOutcome) -> None:
        if outcome is ReconcileOutcome.CREATED:
            self.created += 1
        elif outcome is ReconcileOutcome.UPDATED:
            self.updated += 1
        else:
            self.unchanged += 1


@dataclass
class BulkMoveResult:
    succeeded: int = 0
    failed: int = 0
    results: list[Any] = field(default_factory=list)
    failures: list[dict[str, Any]] = field(default_factory=list)


class ReconciliationEngine(BaseService):
    def __init__(self, db: Session | None = None, order_system: OrderSystemClient | None = None) -> None:
        super().__init__(db)
        self.order_system = order_system
        self.stages = StageRegistry(self.db)
        self.ledger = TransitionLedger(self.db)
        self.orders = OrderCacheService(self.db)

    # Outbound

    def move_stage(self, order_id: int, new_stage_id: int, actor: Actor, note: str | None = None) -> MoveResult:
        """Move an order's work item to ``new_stage_id`` on behalf of ``actor``.

        The local change and its transition record commit together before any
        network call. The push is attempted whenever the target stage maps to an
        external status, even if the item was already there.
        """
        with self.transaction():
            item = self._get_work_item(order_id, lock=True)
            if item is None:
                raise NotFoundError(f"No work item exists for order {order_id}.")
            order = item.order
            target = self.db.get(Stage, new_stage_id)
            if target is None or target.tenant_id != order.tenant_id:
                raise NotFoundError(f"Stage {new_stage_id} not found for tenant {order.tenant_id}.")

            from_stage_id = item.stage_id
            changed = from_stage_id != target.id
            if changed:
                item.stage_id = target.id
                item.last_updated = utcnow()
                self.ledger.record(order.id, from_stage_id, target.id, actor, note)

        if changed:
            logger.info(
                "workflow.stage.moved",
                extra={
                    "event": "workflow.stage.moved",
                    "tenant_id": order.tenant_id,
                    "order_id": order.id,
                    "from_stage_id": from_stage_id,
                    "to_stage_id": target.id,
                    "actor_type": actor.actor_type.value,
                    "actor_user_id": actor.user_id,
                },
            )
        outcome = self._push_status(order, target)
        return MoveResult(
            order_id=order.id,
            from_stage_id=from_stage_id,
            to_stage_id=target.id,
            changed=changed,
            push_outcome=outcome,
            pushed_status=target.external_status if outcome is PushOutcome.PUSHED else None,
        )

    def bulk_move(
        self, order_ids: Sequence[int], stage_id: int, actor: Actor, note: str | None = None
    ) -> BulkMoveResult:
        result = BulkMoveResult()
        for order_id in order_ids:
            try:
                result.results.append(self.move_stage(order_id, stage_id, actor, note))
                result.succeeded += 1
            except Exception as exc:
                self._record_failure(result, "workflow.bulk_move.item_failed", order_id, exc)
        return result

    # Inbound

    def reconcile_from_external(self, order_id: int, tenant_id: int, external_status: str) -> ReconcileOutcome:
        """Bring the order's work item in line with the externally observed status."""
        with self.transaction():
            order = self.db.get(CachedOrder, order_id)
            if order is None or order.tenant_id != tenant_id:
                raise NotFoundError(f"Order {order_id} not found for tenant {tenant_id}.")
            stage, _ = self.stages.resolve_stage(tenant_id, external_status)
            outcome = self._apply_inbound(order, stage)

        if outcome is not ReconcileOutcome.UNCHANGED:
            logger.info(
                "workflow.reconciled",
                extra={
                    "event": "workflow.reconciled",
                    "tenant_id": tenant_id,
                    "order_id": order_id,
                    "external_status": stage.external_status,
                    "stage_id": stage.id,
                    "outcome": outcome.value,
                },
            )
        return outcome

    def bulk_reconcile(
        self, tenant_id: int, status_counts: Iterable[StatusCount | dict[str, Any]]
    ) -> BulkReconcileResult:
        """Reconcile every cached order of the tenant whose status was observed.

        Stages for all observed statuses are created in one pass first. Each
        order then reconciles in its own transaction, so one bad order is logged
        and counted without stopping the rest.
        """
        counts = self._parse_status_counts(status_counts)
        result = BulkReconcileResult()
        if not counts:
            return result

        try:
            _, result.stages_created = self.stages.ensure_stages(tenant_id, [item.status for item in counts])
        except Exception:
            self.rollback()
            raise

        targets = [(order.id, order.status) for order in self.orders.list_orders(tenant_id, [c.status for c in counts])]
        for order_id, status in targets:
            try:
                result.count(self.reconcile_from_external(order_id, tenant_id, status))
            except Exception as exc:
                self._record_failure(result, "workflow.reconcile.item_failed", order_id, exc, tenant_id=tenant_id)

        logger.info(
            "workflow.bulk_reconcile.completed",
            extra={
                "event": "workflow.bulk_reconcile.completed",
                "tenant_id": tenant_id,
                "stages_created": result.stages_created,
                "created": result.created,
                "updated": result.updated,
                "unchanged": result.unchanged,
                "failed": result.failed,
            },
        )
        return result

    # Local edits

    def enroll_order(self, order_id: int, actor: Actor = SYSTEM) -> WorkItem:
        """Put an order on the board at the tenant's first stage if it isn't there yet."""
        with self.transaction():
            order = self.orders.get_order(order_id)
            item = self._get_work_item(order_id, lock=True)
            if item is None:
                stage = self.stages.first_stage(order.tenant_id)
                if stage is None:
                    raise ConfigurationError(f"Tenant {order.tenant_id} has no workflow stages defined.")
                item = self._create_work_item(order, stage, actor, None)
                if item is None:
                    item = self._get_work_item(order_id, lock=True)
        return item

    def update_details(self, order_id: int, **changes: Any) -> WorkItem:
        """Update assignee, priority or notes. Only the keys passed are touched."""
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unsupported work item fields: {', '.join(sorted(unknown))}.")
        if changes.get("priority") is not None:
            try:
                changes["priority"] = int(Priority(changes["priority"]))
            except ValueError as exc:
                raise ValidationError(f"Invalid priority: {changes['priority']!r}.") from exc
        elif "priority" in changes:
            changes["priority"] = int(Priority.NORMAL)

        with self.transaction():
            item = self._get_work_item(order_id, lock=True)
            if item is None:
                raise NotFoundError(f"No work item exists for order {order_id}.")
            for name, value in changes.items():
                setattr(item, name, value)
            if changes:
                item.last_updated = utcnow()
        return item

    def bulk_update_details(self, order_ids: Sequence[int], **changes: Any) -> BulkMoveResult:
        result = BulkMoveResult()
        for order_id in order_ids:
            try:
                result.results.append(self.update_details(order_id, **changes))
                result.succeeded += 1
            except Exception as exc:
                self._record_failure(result, "workflow.bulk_update.item_failed", order_id, exc)
        return result

    # Internals

    def _apply_inbound(self, order: CachedOrder, stage: Stage) -> ReconcileOutcome:
        item = self._get_work_item(order.id, lock=True)
        if item is None:
            if self._create_work_item(order, stage, SYSTEM, IMPORT_NOTE) is not None:
                return ReconcileOutcome.CREATED
            item = self._get_work_item(order.id, lock=True)
        if item.stage_id == stage.id:
            return ReconcileOutcome.UNCHANGED

        from_stage_id = item.stage_id
        item.stage_id = stage.id
        item.last_updated = utcnow()
        self.ledger.record(order.id, from_stage_id, stage.id, SYSTEM, sync_note(stage.external_status))
        return ReconcileOutcome.UPDATED

    def _create_work_item(self, order: CachedOrder, stage: Stage, actor: Actor, note: str | None) -> WorkItem | None:
        """Insert the work item and its creation record; None if another writer won."""
        item = WorkItem(order_id=order.id, stage_id=stage.id, priority=int(Priority.NORMAL))
        try:
            with self.db.begin_nested():
                self.db.add(item)
        except IntegrityError:
            if self._get_work_item(order.id) is None:
                raise
            logger.info(
                "workflow.work_item.create_race_lost",
                extra={"event": "workflow.work_item.create_race_lost", "order_id": order.id},
            )
            return None
        self.ledger.record(order.id, None, stage.id, actor, note)
        return item

    def _get_work_item(self, order_id: int, lock: bool = False) -> WorkItem | None:
        stmt = select(WorkItem).where(WorkItem.order_id == order_id)
        if lock:
            stmt = stmt.with_for_update()
        return self.db.scalars(stmt).first()

    def _push_status(self, order: CachedOrder, stage: Stage) -> PushOutcome:
        context = LogContext.for_order(order)
        status = stage.external_status
        if not status:
            logger.info(
                "workflow.push.skipped_unmapped",
                extra=build_log_event("workflow.push.skipped_unmapped", context, stage_id=stage.id),
            )
            return PushOutcome.SKIPPED_UNMAPPED
        if self.order_system is None:
            logger.warning(
                "workflow.push.skipped_no_client",
                extra=build_log_event("workflow.push.skipped_no_client", context, stage_id=stage.id, status=status),
            )
            return PushOutcome.SKIPPED_NO_CLIENT

        try:
            self.order_system.push_status(order.tenant_id, order.external_order_id, status)
        except Exception as exc:
            logger.warning(
                "workflow.push.failed",
                extra=build_log_event(
                    "workflow.push.failed",
                    context,
                    stage_id=stage.id,
                    status=status,
                    status_code=getattr(exc, "status_code", None),
                    error=str(exc),
                    error_type=type(exc).__name__,
                ),
            )
            return PushOutcome.FAILED

        try:
            self.orders.mark_status(order.id, status)
        except Exception as exc:
            # The store already has the new status; the next sync refreshes the cache.
            self.rollback()
            logger.warning(
                "workflow.push.cache_update_failed",
                extra=build_log_event(
                    "workflow.push.cache_update_failed",
                    context,
                    status=status,
                    error=str(exc),
                    error_type=type(exc).__name__,
                ),
            )
        logger.info(
            "workflow.push.succeeded",
            extra=build_log_event("workflow.push.succeeded", context, stage_id=stage.id, status=status),
        )
        return PushOutcome.PUSHED

    def _record_failure(
        self, result: BulkReconcileResult | BulkMoveResult, event: str, order_id: int, exc: Exception, **fields: Any
    ) -> None:
        result.failed += 1
        result.failures.append({"order_id": order_id, "error": str(exc)})
        logger.error(
            event,
            extra={"event": event, "order_id": order_id, "error": str(exc), "error_type": type(exc).__name__, **fields},
        )

    @staticmethod
    def _parse_status_counts(status_counts: Iterable[StatusCount | dict[str, Any]]) -> list[StatusCount]:
        parsed = []
        for item in status_counts:
            if isinstance(item, StatusCount):
                parsed.append(item)
                continue
            try:
                parsed.append(StatusCount.model_validate(item))
            except PydanticValidationError as exc:
                raise ValidationError(validation_message(exc)) from exc
        return parsed
