"""Work item model module: one order's position in the pipeline."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderflow.models.base import Base, utcnow
from orderflow.models.enums import Priority


class WorkItem(Base):
    __tablename__ = "work_items"
    __table_args__ = (
        Index("idx_work_items_stage", "stage_id"),
        Index("idx_work_items_assigned_to", "assigned_to"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("cached_orders.id", ondelete="RESTRICT"), unique=True, nullable=False
    )
    # No FK: a pipeline replace may drop the stage an item still points at.
    stage_id: Mapped[int] = mapped_column(Integer, nullable=False)
    assigned_to: Mapped[int | None] = mapped_column(Integer)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=int(Priority.NORMAL))
    notes: Mapped[str | None] = mapped_column(Text)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    order = relationship("CachedOrder", back_populates="work_item")
