"""Tests for derived reads: progress, countdown, kanban columns and dashboard filters."""

import os
import sys
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

_root = Path(__file__).resolve().parents[2]
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

import pytest

from goaleasy.core.models import (
    FilterType,
    Goal,
    GoalSize,
    Language,
    Milestone,
    MilestoneStatus,
    Task,
    to_iso,
)
from goaleasy.core.selectors import (
    _window,
    days_remaining,
    goal_progress,
    goals_for_filter,
    milestone_columns,
    next_milestone_status,
    progress_bar_fraction,
    status_color,
    task_completion,
    toggle_language,
)

NOW = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)


def _goal(goal_id="g1", current=0, target=10000, due=None, tasks=None, milestones=None):
    return Goal(
        id=goal_id,
        title=f"Goal {goal_id}",
        size=GoalSize.MEDIUM,
        target_date=to_iso(due or NOW),
        created_at=to_iso(NOW),
        current=current,
        target=target,
        tasks=tasks or [],
        milestones=milestones or [],
    )


class TestProgress:

    def test_percent(self):
        assert goal_progress(_goal(current=2500)) == 25.0

    def test_zero_target(self):
        assert goal_progress(_goal(current=50, target=0)) == 0.0

    def test_bar_is_clamped(self):
        assert progress_bar_fraction(_goal(current=15000)) == 1.0
        assert progress_bar_fraction(_goal(current=-10)) == 0.0
        assert progress_bar_fraction(_goal(current=5000)) == 0.5

    def test_task_completion(self):
        tasks = [Task("1", "a", True), Task("2", "b", False), Task("3", "c", True)]
        assert task_completion(_goal(tasks=tasks)) == (2, 3)


class TestDaysRemaining:

    def test_whole_days(self):
        assert days_remaining(_goal(due=NOW + timedelta(days=30)), NOW) == 30

    def test_partial_day_rounds_up(self):
        assert days_remaining(_goal(due=NOW + timedelta(days=29, hours=2)), NOW) == 30

    def test_past_is_zero(self):
        assert days_remaining(_goal(due=NOW - timedelta(days=3)), NOW) == 0


class TestKanban:

    def test_columns_keep_order(self):
        ms = [
            Milestone("a", "A", to_iso(NOW), MilestoneStatus.DONE),
            Milestone("b", "B", to_iso(NOW), MilestoneStatus.TODO),
            Milestone("c", "C", to_iso(NOW), MilestoneStatus.DOING),
            Milestone("d", "D", to_iso(NOW), MilestoneStatus.TODO),
        ]
        columns = milestone_columns(_goal(milestones=ms))
        assert list(columns) == [MilestoneStatus.TODO, MilestoneStatus.DOING, MilestoneStatus.DONE]
        assert [m.id for m in columns[MilestoneStatus.TODO]] == ["b", "d"]
        assert [m.id for m in columns[MilestoneStatus.DOING]] == ["c"]
        assert [m.id for m in columns[MilestoneStatus.DONE]] == ["a"]

    def test_empty_columns_present(self):
        columns = milestone_columns(_goal())
        assert all(columns[s] == [] for s in MilestoneStatus)

    @pytest.mark.parametrize(
        "current,expected",
        [
            (MilestoneStatus.TODO, MilestoneStatus.DOING),
            (MilestoneStatus.DOING, MilestoneStatus.DONE),
            (MilestoneStatus.DONE, MilestoneStatus.DONE),
        ],
    )
    def test_next_status(self, current, expected):
        assert next_milestone_status(current) is expected

    def test_every_status_has_a_color(self):
        assert status_color(MilestoneStatus.DONE) == "#00A86B"
        assert len({status_color(s) for s in MilestoneStatus}) == 3


class TestFilters:

    def _goals(self):
        return [
            _goal("now", due=NOW),
            _goal("in2days", due=NOW + timedelta(days=2)),
            _goal("in40days", due=NOW + timedelta(days=40)),
        ]

    def test_all_keeps_everything(self):
        assert [g.id for g in goals_for_filter(self._goals(), FilterType.ALL, NOW)] == [
            "now", "in2days", "in40days",
        ]

    def test_today(self):
        ids = [g.id for g in goals_for_filter(self._goals(), FilterType.TODAY, NOW)]
        assert ids == ["now"]

    def test_week_and_month_exclude_far_goals(self):
        week = [g.id for g in goals_for_filter(self._goals(), FilterType.WEEK, NOW)]
        month = [g.id for g in goals_for_filter(self._goals(), FilterType.MONTH, NOW)]
        assert "now" in week and "in40days" not in week
        assert "now" in month and "in40days" not in month


@pytest.fixture
def new_york_tz():
    """Local zone with DST switches on 2026-03-08 and 2026-11-01."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset not available on this platform")
    old = os.environ.get("TZ")
    os.environ["TZ"] = "America/New_York"
    time.tzset()
    yield
    if old is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = old
    time.tzset()


class TestFilterWindowsAcrossDst:

    def test_spring_forward_day_is_23_hours(self, new_york_tz):
        now = datetime(2026, 3, 8, 15, 0, tzinfo=timezone.utc)
        start, end = _window(FilterType.TODAY, now)
        assert end - start == timedelta(hours=23)
        assert (start.astimezone().hour, end.astimezone().hour) == (0, 0)

    def test_week_boundaries_are_local_midnights(self, new_york_tz):
        now = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)
        start, end = _window(FilterType.WEEK, now)
        assert start.astimezone().isoformat() == "2026-03-09T00:00:00-04:00"
        assert end - start == timedelta(days=7)

        # Week of the switch: Monday 2026-03-02 EST to Monday 2026-03-09 EDT
        start, end = _window(FilterType.WEEK, datetime(2026, 3, 5, 15, 0, tzinfo=timezone.utc))
        assert end - start == timedelta(days=7, hours=-1)
        assert end.astimezone().hour == 0

    def test_month_with_fall_back(self, new_york_tz):
        now = datetime(2026, 11, 15, 15, 0, tzinfo=timezone.utc)
        start, end = _window(FilterType.MONTH, now)
        assert start.astimezone().isoformat() == "2026-11-01T00:00:00-04:00"
        assert end.astimezone().isoformat() == "2026-12-01T00:00:00-05:00"

    def test_today_uses_the_offset_in_force_at_midnight(self, new_york_tz):
        now = datetime(2026, 3, 8, 15, 0, tzinfo=timezone.utc)
        goals = [
            # 23:30 EST on the 7th
            _goal("yesterday", due=datetime(2026, 3, 8, 4, 30, tzinfo=timezone.utc)),
            # 00:30 EST on the 8th
            _goal("early", due=datetime(2026, 3, 8, 5, 30, tzinfo=timezone.utc)),
        ]
        assert [g.id for g in goals_for_filter(goals, FilterType.TODAY, now)] == ["early"]


class TestLanguage:

    def test_toggle(self):
        assert toggle_language(Language.EN) is Language.HI
        assert toggle_language(Language.HI) is Language.EN
