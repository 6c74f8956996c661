"""
Milestone planning.

Spreads a size-dependent number of milestones evenly between now and the
goal's target date (or a default 30-day window when there is none).
"""

import math
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Union

from goaleasy.core.models import GoalSize, Milestone, MilestoneStatus, parse_iso, to_iso, utcnow
from goaleasy.utils.ids import new_ids

MILESTONE_COUNTS = {
    GoalSize.SMALL: 3,
    GoalSize.MEDIUM: 5,
    GoalSize.BIG: 8,
}

DEFAULT_WINDOW_DAYS = 30


def milestone_count(size: Union[GoalSize, str]) -> int:
    """Number of milestones a goal of this size gets."""
    return MILESTONE_COUNTS[GoalSize.parse(size)]


def generate_milestones(
    title: str,
    size: Union[GoalSize, str],
    target_date: Optional[Union[str, datetime]] = None,
    now: Optional[datetime] = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
    id_source: Callable[[int], List[str]] = new_ids,
) -> List[Milestone]:
    """
    Build the milestone plan for a goal.

    Args:
        title: Goal title, used in every milestone title
        size: Goal size (decides the count: 3 / 5 / 8)
        target_date: End of the window; defaults to now + window_days
        now: Start of the window; defaults to the current UTC time
        window_days: Window length when there is no target date
        id_source: Returns ``count`` unique ids for the batch

    Returns:
        Milestones in date order, all ``todo``. The spacing is a whole
        number of days and may be 0 (or negative for a past target date),
        which yields repeated dates.
    """
    count = milestone_count(size)
    start = parse_iso(now) if now is not None else utcnow()
    end = parse_iso(target_date) if target_date else start + timedelta(days=window_days)

    days_diff = math.ceil((end - start) / timedelta(days=1))
    interval = days_diff // count

    ids = id_source(count)
    return [
        Milestone(
            id=ids[i],
            title=f"Milestone {i + 1}: {title}",
            date=to_iso(start + timedelta(days=interval * (i + 1))),
            status=MilestoneStatus.TODO,
        )
        for i in range(count)
    ]
