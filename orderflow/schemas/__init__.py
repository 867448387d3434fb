"""Pydantic schema package for workflow contracts."""

from orderflow.schemas.common import Pagination
from orderflow.schemas.customization import CustomizationRecord
from orderflow.schemas.orders import OrderSnapshot
from orderflow.schemas.workflow import (
    BoardFilters,
    BoardItem,
    BoardView,
    BulkUpdateRequest,
    FilterOptions,
    HistoryEntry,
    StageSpec,
    StageStats,
    StagesReplaceRequest,
    StageView,
    StageVisibilityRequest,
    StatusCount,
    WorkflowStats,
    WorkItemUpdateRequest,
)

__all__ = [
    "BoardFilters",
    "BoardItem",
    "BoardView",
    "BulkUpdateRequest",
    "CustomizationRecord",
    "FilterOptions",
    "HistoryEntry",
    "OrderSnapshot",
    "Pagination",
    "StageSpec",
    "StageStats",
    "StagesReplaceRequest",
    "StageView",
    "StageVisibilityRequest",
    "StatusCount",
    "WorkflowStats",
    "WorkItemUpdateRequest",
]
