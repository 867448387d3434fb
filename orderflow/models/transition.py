"""Stage transition model module (append-only ledger)."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from orderflow.models.actor import Actor, actor_from_columns
from orderflow.models.base import Base, utcnow
from orderflow.models.enums import ActorType


class TransitionRecord(Base):
    __tablename__ = "stage_transitions"
    __table_args__ = (
        CheckConstraint(
            "(actor_type = 'system' AND actor_user_id IS NULL) "
            "OR (actor_type = 'human' AND actor_user_id IS NOT NULL)",
            name="ck_stage_transitions_actor",
        ),
        Index("idx_stage_transitions_order_created", "order_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("work_items.order_id", ondelete="RESTRICT"), nullable=False)
    # Plain ids: history outlives the stages it names.
    from_stage_id: Mapped[int | None] = mapped_column(Integer)
    to_stage_id: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_type: Mapped[ActorType] = mapped_column(
        Enum(ActorType, name="actor_type", values_callable=lambda members: [m.value for m in members]),
        nullable=False,
    )
    actor_user_id: Mapped[int | None] = mapped_column(Integer)
    note: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    # No updated_at: rows are never modified.

    @property
    def actor(self) -> Actor:
        return actor_from_columns(self.actor_type, self.actor_user_id)
