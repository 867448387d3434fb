"""Stage registry: the ordered per-tenant list of pipeline stages."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError

from orderflow.core.exceptions import NotFoundError, ValidationError
from orderflow.models import DEFAULT_STAGE_COLOR, Stage
from orderflow.schemas.workflow import StageSpec, validation_message
from orderflow.services.base_service import BaseService

logger = logging.getLogger(__name__)

# Display defaults for the WooCommerce order status vocabulary.
KNOWN_STATUS_STAGES: dict[str, tuple[str, str]] = {
    "pending": ("Pending Payment", "#F59E0B"),
    "processing": ("Processing", "#3B82F6"),
    "on-hold": ("On Hold", "#F97316"),
    "completed": ("Completed", "#10B981"),
    "cancelled": ("Cancelled", "#6B7280"),
    "refunded": ("Refunded", "#8B5CF6"),
    "failed": ("Failed", "#EF4444"),
    "checkout-draft": ("Draft", "#9CA3AF"),
}


def normalize_status(status: str) -> str:
    normalized = (status or "").strip().lower()
    if not normalized:
        raise ValidationError("External status must not be blank.")
    return normalized


def stage_defaults_for_status(status: str) -> tuple[str, str]:
    """Display name and color for an external status.

    Unknown statuses are title-cased: ``ready-to-ship`` becomes "Ready To Ship".
    """
    if status in KNOWN_STATUS_STAGES:
        return KNOWN_STATUS_STAGES[status]
    words = status.replace("-", " ").replace("_", " ").split()
    return " ".join(word.capitalize() for word in words) or status, DEFAULT_STAGE_COLOR


class StageRegistry(BaseService):
    """Owns stage rows; creates stages for unseen external statuses on demand."""

    def list_stages(self, tenant_id: int) -> list[Stage]:
        stmt = select(Stage).where(Stage.tenant_id == tenant_id).order_by(Stage.position.asc(), Stage.id.asc())
        return list(self.db.scalars(stmt))

    def get_stage(self, tenant_id: int, stage_id: int) -> Stage:
        stage = self.db.get(Stage, stage_id)
        if stage is None or stage.tenant_id != tenant_id:
            raise NotFoundError(f"Stage {stage_id} not found for tenant {tenant_id}.")
        return stage

    def first_stage(self, tenant_id: int) -> Stage | None:
        stmt = (
            select(Stage)
            .where(Stage.tenant_id == tenant_id)
            .order_by(Stage.position.asc(), Stage.id.asc())
            .limit(1)
        )
        return self.db.scalars(stmt).first()

    def find_by_external_status(self, tenant_id: int, external_status: str) -> Stage | None:
        stmt = select(Stage).where(Stage.tenant_id == tenant_id, Stage.external_status == external_status)
        return self.db.scalars(stmt).first()

    def replace_stages(self, tenant_id: int, specs: Sequence[StageSpec | dict[str, Any]]) -> list[Stage]:
        """Replace the tenant's pipeline with ``specs`` in one transaction.

        Positions follow list order. A spec carrying the id of one of the tenant's
        current stages keeps that id. Work items pointing at stages that disappear
        are left as they are; reassigning them is the caller's job.
        """
        parsed = self._parse_specs(specs)
        existing_ids = set(self.db.scalars(select(Stage.id).where(Stage.tenant_id == tenant_id)))
        for spec in parsed:
            if spec.id is not None and spec.id not in existing_ids:
                raise ValidationError(f"Stage {spec.id} does not belong to tenant {tenant_id}.")

        rows = []
        for position, spec in enumerate(parsed):
            row = {
                "tenant_id": tenant_id,
                "name": spec.name,
                "color": spec.color or DEFAULT_STAGE_COLOR,
                "position": position,
                "external_status": spec.external_status,
                "is_hidden": spec.is_hidden,
            }
            if spec.id is not None:
                row["id"] = spec.id
            rows.append(row)

        with self.transaction():
            self.db.execute(
                delete(Stage).where(Stage.tenant_id == tenant_id).execution_options(synchronize_session=False)
            )
            for row in rows:
                self.db.execute(insert(Stage).values(**row))
        self.db.expire_all()

        logger.info(
            "workflow.stages.replaced",
            extra={"event": "workflow.stages.replaced", "tenant_id": tenant_id, "stage_count": len(rows)},
        )
        return self.list_stages(tenant_id)

    def set_visibility(self, tenant_id: int, stage_id: int, hidden: bool) -> Stage:
        stage = self.get_stage(tenant_id, stage_id)
        stage.is_hidden = bool(hidden)
        self.commit()
        return stage

    def ensure_stage_for_external_status(self, tenant_id: int, external_status: str) -> Stage:
        """Return the stage mapped to ``external_status``, creating it if unseen."""
        stage, _ = self.resolve_stage(tenant_id, external_status)
        self.commit()
        return stage

    def ensure_stages(self, tenant_id: int, statuses: Iterable[str]) -> tuple[list[Stage], int]:
        """Batch form used by bulk reconciliation. Returns (stages, created count)."""
        stages: list[Stage] = []
        created = 0
        seen: set[str] = set()
        for status in statuses:
            normalized = normalize_status(status)
            if normalized in seen:
                continue
            seen.add(normalized)
            stage, was_created = self.resolve_stage(tenant_id, normalized)
            stages.append(stage)
            created += int(was_created)
        self.commit()
        return stages, created

    def resolve_stage(self, tenant_id: int, external_status: str) -> tuple[Stage, bool]:
        """Find or insert the mapped stage inside the caller's transaction.

        The insert runs in a SAVEPOINT. If a concurrent writer created the same
        (tenant, status) row first, the unique constraint rejects ours and the
        winner's row is returned instead.
        """
        status = normalize_status(external_status)
        existing = self.find_by_external_status(tenant_id, status)
        if existing is not None:
            return existing, False

        name, color = stage_defaults_for_status(status)
        stage = Stage(
            tenant_id=tenant_id,
            name=name,
            color=color,
            position=self._next_position(tenant_id),
            external_status=status,
            is_hidden=False,
        )
        try:
            with self.db.begin_nested():
                self.db.add(stage)
        except IntegrityError:
            winner = self.find_by_external_status(tenant_id, status)
            if winner is None:
                raise
            logger.info(
                "workflow.stage.create_race_lost",
                extra={"event": "workflow.stage.create_race_lost", "tenant_id": tenant_id, "external_status": status},
            )
            return winner, False

        logger.info(
            "workflow.stage.created",
            extra={
                "event": "workflow.stage.created",
                "tenant_id": tenant_id,
                "stage_id": stage.id,
                "external_status": status,
                "stage_name": name,
            },
        )
        return stage, True

    def _next_position(self, tenant_id: int) -> int:
        current = self.db.scalar(select(func.max(Stage.position)).where(Stage.tenant_id == tenant_id))
        return 0 if current is None else int(current) + 1

    @staticmethod
    def _parse_specs(specs: Sequence[StageSpec | dict[str, Any]]) -> list[StageSpec]:
        if not specs:
            raise ValidationError("At least one stage is required.")
        parsed: list[StageSpec] = []
        for index, spec in enumerate(specs):
            if isinstance(spec, StageSpec):
                parsed.append(spec)
                continue
            try:
                parsed.append(StageSpec.model_validate(spec))
            except PydanticValidationError as exc:
                raise ValidationError(f"stages[{index}]: {validation_message(exc)}") from exc

        statuses = [spec.external_status for spec in parsed if spec.external_status]
        if len(statuses) != len(set(statuses)):
            raise ValidationError("Each external status may be mapped by at most one stage.")
        ids = [spec.id for spec in parsed if spec.id is not None]
        if len(ids) != len(set(ids)):
            raise ValidationError("Stage ids must be unique.")
        return parsed
