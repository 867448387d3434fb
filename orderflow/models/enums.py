"""Canonical enum values for the workflow schema."""

from __future__ import annotations

import enum


class ActorType(str, enum.Enum):
    HUMAN = "human"
    SYSTEM = "system"


class Priority(enum.IntEnum):
    NORMAL = 0
    HIGH = 1
    RUSH = 2


class PushOutcome(str, enum.Enum):
    PUSHED = "pushed"
    FAILED = "failed"
    SKIPPED_UNMAPPED = "skipped_unmapped"
    SKIPPED_NO_CLIENT = "skipped_no_client"


class ReconcileOutcome(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
