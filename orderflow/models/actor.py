"""Actor attribution for stage transitions.

A transition is caused either by a person (``HumanActor``) or by automated
synchronization (``SystemActor``). The two never share an identifier space, so a
real user can't be mistaken for the sync job.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from orderflow.models.enums import ActorType


@dataclass(frozen=True)
class HumanActor:
    user_id: int

    @property
    def actor_type(self) -> ActorType:
        return ActorType.HUMAN


@dataclass(frozen=True)
class SystemActor:
    @property
    def actor_type(self) -> ActorType:
        return ActorType.SYSTEM

    @property
    def user_id(self) -> None:
        return None


Actor = Union[HumanActor, SystemActor]

SYSTEM = SystemActor()


def actor_from_columns(actor_type: ActorType | str, actor_user_id: int | None) -> Actor:
    """Rebuild an Actor from its stored columns."""
    if ActorType(actor_type) is ActorType.SYSTEM:
        return SYSTEM
    if actor_user_id is None:
        raise ValueError("human actor requires a user id")
    return HumanActor(user_id=int(actor_user_id))
