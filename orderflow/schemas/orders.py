"""Normalized snapshot of an order as returned by the external order system."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, Field, field_validator


def _parse_timestamp(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class OrderSnapshot(BaseModel):
    external_id: int = Field(ge=1)
    status: str = Field(min_length=1, max_length=50)
    date_created: datetime
    date_modified: datetime | None = None
    customer_name: str = "Guest"
    total: Decimal | None = None
    line_items: list[dict[str, Any]] = Field(default_factory=list)
    raw: dict[str, Any] = Field(default_factory=dict)

    @field_validator("status")
    @classmethod
    def normalize_status(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("date_created", "date_modified", mode="before")
    @classmethod
    def coerce_utc(cls, value: Any) -> datetime | None:
        return _parse_timestamp(value)

    @classmethod
    def from_woocommerce(cls, payload: dict[str, Any]) -> "OrderSnapshot":
        """Build a snapshot from a ``wc/v3`` order payload.

        WooCommerce reports ``date_created_gmt`` without an offset; it is preferred
        over the store-local ``date_created`` when present.
        """
        billing = payload.get("billing") or {}
        customer_name = f"{billing.get('first_name') or ''} {billing.get('last_name') or ''}".strip()
        try:
            total = Decimal(str(payload["total"])) if payload.get("total") not in (None, "") else None
        except InvalidOperation:
            total = None
        return cls(
            external_id=payload["id"],
            status=payload.get("status") or "",
            date_created=payload.get("date_created_gmt") or payload.get("date_created"),
            date_modified=payload.get("date_modified_gmt") or payload.get("date_modified"),
            customer_name=customer_name or "Guest",
            total=total,
            line_items=list(payload.get("line_items") or []),
            raw=payload,
        )
