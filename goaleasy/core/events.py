"""
Events emitted by the goal store after each mutation.

The persistence task listens for STATE_CHANGED (and writes the slices it
names); the notification task listens for GOAL_CREATED and
MILESTONE_COMPLETED.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, FrozenSet, Optional

from goaleasy.core.models import AppState, Goal, Milestone

SLICE_USER = "user"
SLICE_GOALS = "goals"
SLICE_LANGUAGE = "language"

PERSISTED_SLICES = (SLICE_USER, SLICE_GOALS, SLICE_LANGUAGE)


class EventType(Enum):
    """Kinds of store event."""

    STATE_CHANGED = "state_changed"
    GOAL_CREATED = "goal_created"
    MILESTONE_COMPLETED = "milestone_completed"


@dataclass(frozen=True)
class StoreEvent:
    type: EventType
    state: AppState
    action: str
    slices: FrozenSet[str] = frozenset()
    goal: Optional[Goal] = None
    milestone: Optional[Milestone] = None


Listener = Callable[[StoreEvent], None]
