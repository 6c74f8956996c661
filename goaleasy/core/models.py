"""
Goal tracking data model.

Goals own their tasks and milestones; the single AppState owns the goals,
the user profile, the UI language and the dashboard filter. Every entity
serializes to the camelCase JSON shape stored under the ``user`` and
``goals`` keys.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class GoalSize(Enum):
    """How big a goal is; decides how many milestones it gets."""

    SMALL = "small"
    MEDIUM = "medium"
    BIG = "big"

    @classmethod
    def parse(cls, value: Union["GoalSize", str]) -> "GoalSize":
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text == "large":
            return cls.BIG
        return cls(text)


class MilestoneStatus(Enum):
    """Kanban column a milestone sits in."""

    TODO = "todo"
    DOING = "doing"
    DONE = "done"

    @classmethod
    def parse(cls, value: Union["MilestoneStatus", str]) -> "MilestoneStatus":
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text in ("in-progress", "in_progress"):
            return cls.DOING
        return cls(text)


class FilterType(Enum):
    """Dashboard time filter."""

    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"

    @classmethod
    def parse(cls, value: Union["FilterType", str]) -> "FilterType":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


class Language(Enum):
    """UI language."""

    EN = "en"
    HI = "hi"

    @classmethod
    def parse(cls, value: Union["Language", str]) -> "Language":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


# ── Timestamps ──────────────────────────────────────────────────────────


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Render as ``2026-10-18T08:00:00.000Z`` (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: Union[str, datetime]) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _normalize_timestamp(value: Any) -> str:
    """Canonical ISO form of a stored timestamp; ValueError when unparseable."""
    if not isinstance(value, (str, datetime)):
        raise ValueError(f"not a timestamp: {value!r}")
    return to_iso(parse_iso(value))


# ── Entities ────────────────────────────────────────────────────────────


@dataclass
class User:
    """Local user profile."""

    name: str = "User"
    avatar: str = "👨"
    streak: int = 0
    progress: float = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "avatar": self.avatar,
            "streak": self.streak,
            "progress": self.progress,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        if not isinstance(data, dict):
            raise TypeError(f"user must be an object, got {type(data).__name__}")
        default = cls()
        streak = int(data.get("streak", default.streak))
        if streak < 0:
            raise ValueError(f"streak must be >= 0, got {streak}")
        progress = float(data.get("progress", default.progress))
        if not 0 <= progress <= 100:
            raise ValueError(f"progress must be within 0..100, got {progress}")
        return cls(
            name=str(data.get("name", default.name)),
            avatar=str(data.get("avatar", default.avatar)),
            streak=streak,
            progress=progress,
        )


@dataclass
class Task:
    """A small actionable item on a goal."""

    id: str
    title: str
    done: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "done": self.done}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        return cls(id=str(data["id"]), title=str(data["title"]), done=bool(data.get("done", False)))


@dataclass
class Milestone:
    """A scheduled checkpoint within a goal's timeline."""

    id: str
    title: str
    date: str
    status: MilestoneStatus = MilestoneStatus.TODO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "date": self.date,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Milestone":
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            date=_normalize_timestamp(data["date"]),
            status=MilestoneStatus.parse(data.get("status", "todo")),
        )


@dataclass
class Goal:
    """Top-level user objective."""

    id: str
    title: str
    size: GoalSize
    target_date: str
    created_at: str
    current: float = 0
    target: float = 10000
    tasks: List[Task] = field(default_factory=list)
    milestones: List[Milestone] = field(default_factory=list)

    def find_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def find_milestone(self, milestone_id: str) -> Optional[Milestone]:
        for milestone in self.milestones:
            if milestone.id == milestone_id:
                return milestone
        return None

    def done_count(self) -> int:
        return sum(1 for t in self.tasks if t.done)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "size": self.size.value,
            "targetDate": self.target_date,
            "createdAt": self.created_at,
            "current": self.current,
            "target": self.target,
            "tasks": [t.to_dict() for t in self.tasks],
            "milestones": [m.to_dict() for m in self.milestones],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Goal":
        if not isinstance(data, dict):
            raise TypeError(f"goal must be an object, got {type(data).__name__}")
        created_at = _normalize_timestamp(data["createdAt"])
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            size=GoalSize.parse(data.get("size", "medium")),
            # Goals saved without a target date fall back to their creation time.
            target_date=_normalize_timestamp(data.get("targetDate") or created_at),
            created_at=created_at,
            current=data.get("current", 0),
            target=data.get("target", 10000),
            tasks=[Task.from_dict(t) for t in data.get("tasks", [])],
            milestones=[Milestone.from_dict(m) for m in data.get("milestones", [])],
        )


@dataclass
class AppState:
    """Process-wide state tree; the unit of persistence."""

    language: Language = Language.EN
    user: User = field(default_factory=User)
    goals: List[Goal] = field(default_factory=list)
    filter: FilterType = FilterType.WEEK

    def find_goal(self, goal_id: str) -> Optional[Goal]:
        for goal in self.goals:
            if goal.id == goal_id:
                return goal
        return None

    def copy(self) -> "AppState":
        return copy.deepcopy(self)
