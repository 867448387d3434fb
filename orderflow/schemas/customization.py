"""Structured customization attributes derived from order line-item metadata."""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field


class CustomizationRecord(BaseModel):
    """Sparse set of extracted attributes; ``None`` means the field was not found.

    A record always has at least one attribute set. Orders without any are
    represented by the absence of a record, never by an empty one.
    """

    model_config = ConfigDict(frozen=True)

    FILTER_FIELDS: ClassVar[tuple[str, ...]] = ("style", "font", "color")
    ATTRIBUTE_FIELDS: ClassVar[tuple[str, ...]] = (
        "style",
        "font",
        "color",
        "name_colors",
        "name_count",
        "names_text",
        "theme",
        "size",
    )

    style: str | None = None
    font: str | None = None
    color: str | None = None
    name_colors: str | None = None
    name_count: int | None = Field(default=None, ge=0)
    names: tuple[str, ...] | None = None
    names_text: str | None = None
    theme: str | None = None
    size: str | None = None
    raw_meta: tuple[dict[str, Any], ...] = ()

    def has_attributes(self) -> bool:
        return any(getattr(self, name) is not None for name in self.ATTRIBUTE_FIELDS)

    def attributes(self) -> dict[str, Any]:
        """Extracted fields only, without the raw metadata."""
        data = self.model_dump(exclude={"raw_meta"}, exclude_none=True)
        if "names" in data:
            data["names"] = list(data["names"])
        return data
