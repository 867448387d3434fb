"""Append-only ledger of work item stage changes."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import aliased

from orderflow.models import Actor, ActorType, Stage, TransitionRecord, User
from orderflow.models.base import ensure_utc
from orderflow.schemas.workflow import HistoryEntry
from orderflow.services.base_service import BaseService

logger = logging.getLogger(__name__)

SYSTEM_ACTOR_NAME = "System"


class TransitionLedger(BaseService):
    """Writes run inside the caller's transaction; this class never commits."""

    def record(
        self,
        order_id: int,
        from_stage_id: int | None,
        to_stage_id: int,
        actor: Actor,
        note: str | None = None,
    ) -> TransitionRecord:
        entry = TransitionRecord(
            order_id=order_id,
            from_stage_id=from_stage_id,
            to_stage_id=to_stage_id,
            actor_type=actor.actor_type,
            actor_user_id=actor.user_id,
            note=note,
        )
        self.db.add(entry)
        self.db.flush()
        logger.debug(
            "workflow.transition.recorded",
            extra={
                "event": "workflow.transition.recorded",
                "order_id": order_id,
                "from_stage_id": from_stage_id,
                "to_stage_id": to_stage_id,
                "actor_type": actor.actor_type.value,
            },
        )
        return entry

    def history(self, order_id: int) -> list[HistoryEntry]:
        """Transitions for one order, newest first, with display names resolved."""
        from_stage = aliased(Stage)
        to_stage = aliased(Stage)
        stmt = (
            select(TransitionRecord, from_stage.name, to_stage.name, User.full_name)
            .outerjoin(from_stage, from_stage.id == TransitionRecord.from_stage_id)
            .outerjoin(to_stage, to_stage.id == TransitionRecord.to_stage_id)
            .outerjoin(User, User.id == TransitionRecord.actor_user_id)
            .where(TransitionRecord.order_id == order_id)
            .order_by(TransitionRecord.created_at.desc(), TransitionRecord.id.desc())
        )
        entries = []
        for record, from_name, to_name, user_name in self.db.execute(stmt).all():
            entries.append(
                HistoryEntry(
                    id=record.id,
                    order_id=record.order_id,
                    from_stage_id=record.from_stage_id,
                    from_stage_name=from_name,
                    to_stage_id=record.to_stage_id,
                    to_stage_name=to_name,
                    actor_type=record.actor_type,
                    actor_user_id=record.actor_user_id,
                    actor_name=_actor_name(record, user_name),
                    note=record.note,
                    created_at=ensure_utc(record.created_at),
                )
            )
        return entries


def _actor_name(record: TransitionRecord, user_name: str | None) -> str:
    if ActorType(record.actor_type) is ActorType.SYSTEM:
        return SYSTEM_ACTOR_NAME
    return user_name or f"User {record.actor_user_id}"
