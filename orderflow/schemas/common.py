"""Common schema module."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Pagination(BaseModel):
    """Offset window over an already filtered and ordered result list."""

    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)

    def apply(self, items: Sequence[T]) -> list[T]:
        return list(items[self.offset : self.offset + self.limit])
