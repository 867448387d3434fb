"""SQLAlchemy model package for the tenant-aware workflow schema."""

from orderflow.models.actor import SYSTEM, Actor, HumanActor, SystemActor
from orderflow.models.base import Base
from orderflow.models.enums import ActorType, Priority, PushOutcome, ReconcileOutcome
from orderflow.models.order import CachedOrder
from orderflow.models.stage import DEFAULT_STAGE_COLOR, Stage
from orderflow.models.tenant import Tenant
from orderflow.models.transition import TransitionRecord
from orderflow.models.user import User
from orderflow.models.work_item import WorkItem

__all__ = [
    "Actor",
    "ActorType",
    "Base",
    "CachedOrder",
    "DEFAULT_STAGE_COLOR",
    "HumanActor",
    "Priority",
    "PushOutcome",
    "ReconcileOutcome",
    "Stage",
    "SYSTEM",
    "SystemActor",
    "Tenant",
    "TransitionRecord",
    "User",
    "WorkItem",
]
