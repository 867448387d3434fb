"""Lifecycle hooks for queue task execution."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from orderflow.core.logging import LogContext, build_log_event


def _context(task_name: str, context: dict[str, Any]) -> LogContext:
    return LogContext(
        tenant_id=context.get("tenant_id"),
        run_id=context.get("run_id"),
        task_name=task_name,
        trace_id=context.get("trace_id"),
    )


def before_task(task_name: str, context: dict[str, Any]) -> dict[str, Any]:
    """Build pre-task log payload."""
    return build_log_event(
        "task.start",
        _context(task_name, context),
        started_at=datetime.now(timezone.utc).isoformat(),
    )


def after_task(task_name: str, context: dict[str, Any], status: str, **fields: Any) -> dict[str, Any]:
    """Build post-task log payload. ``status`` is ``succeeded`` or ``failed``."""
    event = "task.failed" if status == "failed" else "task.finish"
    return build_log_event(
        event,
        _context(task_name, context),
        status=status,
        finished_at=datetime.now(timezone.utc).isoformat(),
        **fields,
    )
