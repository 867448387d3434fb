"""Structured logging helpers shared by services and background tasks."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class LogContext:
    """Correlation fields attached to workflow, sync and task log events."""

    tenant_id: int | None = None
    order_id: int | None = None
    external_order_id: int | None = None
    run_id: str | None = None
    task_name: str | None = None
    trace_id: str | None = None

    @classmethod
    def for_order(cls, order: Any) -> "LogContext":
        return cls(tenant_id=order.tenant_id, order_id=order.id, external_order_id=order.external_order_id)

    def fields(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


def build_log_event(event: str, context: LogContext, **fields: Any) -> dict[str, Any]:
    """Build the ``extra=`` payload for a structured log call.

    Unset context fields are left out. Explicit ``fields`` win over context.
    """
    return {"event": event, **context.fields(), **fields}
