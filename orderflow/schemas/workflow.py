"""Workflow request/response schemas."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator, model_validator

from orderflow.core.exceptions import ValidationError
from orderflow.models.enums import ActorType, Priority
from orderflow.schemas.customization import CustomizationRecord


def validation_message(exc: PydanticValidationError) -> str:
    """Flatten pydantic errors into a single readable line."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


class StageSpec(BaseModel):
    id: int | None = Field(default=None, ge=1)
    name: str = Field(min_length=1, max_length=100)
    color: str | None = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    external_status: str | None = Field(default=None, max_length=50)
    is_hidden: bool = False

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("external_status", mode="before")
    @classmethod
    def normalize_external_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value


class StageView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    name: str
    color: str
    position: int
    external_status: str | None = None
    is_hidden: bool = False


class StatusCount(BaseModel):
    status: str = Field(min_length=1, max_length=50)
    count: int = Field(default=0, ge=0)

    @field_validator("status")
    @classmethod
    def normalize_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("status must not be blank")
        return normalized


class BoardFilters(BaseModel):
    """Conjunction of optional board predicates.

    Date bounds are inclusive and must be timezone-aware; use
    ``utc_day_range`` to turn calendar days into UTC bounds.
    """

    style: str | None = None
    font: str | None = None
    color: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None

    @field_validator("style", "font", "color")
    @classmethod
    def non_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("filter value must not be blank")
        return value

    @field_validator("date_from", "date_to")
    @classmethod
    def aware_utc(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("date bounds must be timezone-aware")
        return value.astimezone(timezone.utc)

    @model_validator(mode="after")
    def ordered_range(self) -> "BoardFilters":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self

    @classmethod
    def build(cls, data: "BoardFilters | dict[str, Any] | None") -> "BoardFilters":
        if data is None:
            return cls()
        if isinstance(data, cls):
            return data
        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(validation_message(exc)) from exc

    def attribute_filters(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in CustomizationRecord.FILTER_FIELDS if getattr(self, name) is not None}


class BoardItem(BaseModel):
    order_id: int
    external_order_id: int
    stage_id: int
    assigned_to: int | None = None
    priority: Priority = Priority.NORMAL
    notes: str | None = None
    last_updated: datetime
    time_in_stage_minutes: int
    status: str
    customer_name: str
    total: float | None = None
    date_created: datetime
    customization: CustomizationRecord | None = None
    summary: str | None = None


class BoardView(BaseModel):
    stages: list[StageView]
    items: list[BoardItem]
    total: int
    limit: int | None = None
    offset: int = 0


class FilterOptions(BaseModel):
    styles: list[str] = Field(default_factory=list)
    fonts: list[str] = Field(default_factory=list)
    colors: list[str] = Field(default_factory=list)


class HistoryEntry(BaseModel):
    id: int
    order_id: int
    from_stage_id: int | None = None
    from_stage_name: str | None = None
    to_stage_id: int
    to_stage_name: str | None = None
    actor_type: ActorType
    actor_user_id: int | None = None
    actor_name: str
    note: str | None = None
    created_at: datetime


class StageStats(BaseModel):
    stage_id: int
    stage_name: str
    total_orders: int = 0
    rush_orders: int = 0


class WorkflowStats(BaseModel):
    stages: list[StageStats]
    total_orders: int = 0
    unassigned_orders: int = 0


class StagesReplaceRequest(BaseModel):
    stages: list[StageSpec] = Field(min_length=1)


class StageVisibilityRequest(BaseModel):
    is_hidden: bool


class WorkItemUpdateRequest(BaseModel):
    stage_id: int | None = Field(default=None, ge=1)
    assigned_to: int | None = None
    priority: Priority | None = None
    notes: str | None = Field(default=None, max_length=10000)


class BulkUpdateRequest(BaseModel):
    order_ids: list[int] = Field(min_length=1)
    stage_id: int | None = Field(default=None, ge=1)
    assigned_to: int | None = None
    priority: Priority | None = None
