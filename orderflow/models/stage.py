"""Workflow stage model module."""

from __future__ import annotations

from sqlalchemy import Boolean, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from orderflow.models.base import AuditMixin, Base, TenantScopedMixin

DEFAULT_STAGE_COLOR = "#4F46E5"


class Stage(Base, AuditMixin, TenantScopedMixin):
    __tablename__ = "workflow_stages"
    __table_args__ = (
        UniqueConstraint("tenant_id", "external_status", name="uq_workflow_stages_tenant_external_status"),
        Index("idx_workflow_stages_tenant_position", "tenant_id", "position"),
        # Stage ids are never reused after a pipeline replace.
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default=DEFAULT_STAGE_COLOR)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    external_status: Mapped[str | None] = mapped_column(String(50))
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Stage(id={self.id}, tenant_id={self.tenant_id}, name={self.name!r}, external_status={self.external_status!r})>"
