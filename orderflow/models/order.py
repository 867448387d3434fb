"""Cached external order model module."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderflow.models.base import AuditMixin, Base, TenantScopedMixin, utcnow


class CachedOrder(Base, AuditMixin, TenantScopedMixin):
    __tablename__ = "cached_orders"
    __table_args__ = (
        UniqueConstraint("tenant_id", "external_order_id", name="uq_cached_orders_tenant_external"),
        Index("idx_cached_orders_tenant_status", "tenant_id", "status"),
        Index("idx_cached_orders_tenant_created", "tenant_id", "date_created"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    external_order_id: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    date_created: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    date_modified: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False, default="Guest")
    total: Mapped[float | None] = mapped_column(Numeric(12, 2))
    raw_data: Mapped[dict | None] = mapped_column(JSON)
    # Serialized CustomizationRecord; kept as text so one bad row can't break a whole query.
    customization_details: Mapped[str | None] = mapped_column(Text)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    work_item = relationship("WorkItem", back_populates="order", uselist=False)
