"""Goal tracking: re-exports the store and model from goaleasy.core.

Screens import from here so they depend on one stable surface rather than
on the core module layout.
"""

from goaleasy.core.goal_store import GoalStore
from goaleasy.core.models import (
    AppState,
    FilterType,
    Goal,
    GoalSize,
    Language,
    Milestone,
    MilestoneStatus,
    Task,
    User,
)

__all__ = [
    "AppState",
    "FilterType",
    "Goal",
    "GoalSize",
    "GoalStore",
    "Language",
    "Milestone",
    "MilestoneStatus",
    "Task",
    "User",
]
