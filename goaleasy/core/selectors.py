"""
Derived reads over the goal state.

Screens compute progress bars, countdowns and kanban columns from here
instead of storing them; nothing in this module mutates state.
"""

import math
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from goaleasy.core.models import (
    FilterType,
    Goal,
    Language,
    Milestone,
    MilestoneStatus,
    parse_iso,
    utcnow,
)

STATUS_COLORS = {
    MilestoneStatus.TODO: "#6B7280",
    MilestoneStatus.DOING: "#3B82F6",
    MilestoneStatus.DONE: "#00A86B",
}


def goal_progress(goal: Goal) -> float:
    """Percent of ``target`` reached (0 when the target is 0)."""
    if not goal.target:
        return 0.0
    return (goal.current / goal.target) * 100


def progress_bar_fraction(goal: Goal) -> float:
    return max(0.0, min(goal_progress(goal), 100.0)) / 100


def days_remaining(goal: Goal, now: Optional[datetime] = None) -> int:
    """Whole days until the target date, never negative."""
    now = parse_iso(now) if now is not None else utcnow()
    delta = parse_iso(goal.target_date) - now
    return max(0, math.ceil(delta / timedelta(days=1)))


def task_completion(goal: Goal) -> Tuple[int, int]:
    """(done, total) task counts."""
    return goal.done_count(), len(goal.tasks)


def milestone_columns(goal: Goal) -> Dict[MilestoneStatus, List[Milestone]]:
    """Milestones grouped into todo / doing / done columns, order preserved."""
    columns: Dict[MilestoneStatus, List[Milestone]] = {s: [] for s in MilestoneStatus}
    for milestone in goal.milestones:
        columns[milestone.status].append(milestone)
    return columns


def next_milestone_status(status: MilestoneStatus) -> MilestoneStatus:
    if status == MilestoneStatus.TODO:
        return MilestoneStatus.DOING
    return MilestoneStatus.DONE


def status_color(status: MilestoneStatus) -> str:
    return STATUS_COLORS[status]


def _local_midnight(day: date) -> datetime:
    # Offset resolved per date, so DST days are 23 or 25 hours long.
    return datetime.combine(day, time()).astimezone()


def _window(filter_type: FilterType, now: datetime) -> Optional[Tuple[datetime, datetime]]:
    """[start, end) of the local day / ISO week / month containing ``now``."""
    today = now.astimezone().date()
    if filter_type == FilterType.TODAY:
        start, end = today, today + timedelta(days=1)
    elif filter_type == FilterType.WEEK:
        start = today - timedelta(days=today.weekday())
        end = start + timedelta(days=7)
    elif filter_type == FilterType.MONTH:
        start = today.replace(day=1)
        if start.month == 12:
            end = start.replace(year=start.year + 1, month=1)
        else:
            end = start.replace(month=start.month + 1)
    else:
        return None
    return _local_midnight(start), _local_midnight(end)


def goals_for_filter(
    goals: Iterable[Goal],
    filter_type: FilterType,
    now: Optional[datetime] = None,
) -> List[Goal]:
    """Goals whose target date falls in the filter's window; ``all`` keeps every goal."""
    now = parse_iso(now) if now is not None else utcnow()
    window = _window(filter_type, now)
    if window is None:
        return list(goals)
    start, end = window
    return [g for g in goals if start <= parse_iso(g.target_date) < end]


def toggle_language(language: Language) -> Language:
    return Language.HI if language == Language.EN else Language.EN
