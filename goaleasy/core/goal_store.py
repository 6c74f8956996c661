"""
Goal Store - the single owner of goal tracking state.

Holds the AppState tree (language, user, goals, filter) and exposes the
mutation operations the screens call. Each operation runs to completion
synchronously, then emits events so that persistence and notifications
happen as side effects outside the mutation.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

from goaleasy.core.events import (
    SLICE_GOALS,
    SLICE_LANGUAGE,
    SLICE_USER,
    EventType,
    Listener,
    StoreEvent,
)
from goaleasy.core.milestones import DEFAULT_WINDOW_DAYS, generate_milestones
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
    parse_iso,
    to_iso,
    utcnow,
)
from goaleasy.core.selectors import next_milestone_status
from goaleasy.utils.ids import new_id

logger = logging.getLogger(__name__)

DEFAULT_TARGET = 10000
SEED_TASKS = ("Start working on goal", "Make first progress")

# update_goal field name -> Goal attribute
_UPDATABLE_FIELDS = {
    "title": "title",
    "size": "size",
    "targetDate": "target_date",
    "target_date": "target_date",
    "createdAt": "created_at",
    "created_at": "created_at",
    "current": "current",
    "target": "target",
    "tasks": "tasks",
    "milestones": "milestones",
}


class GoalStore:
    """
    State container for goals, tasks, milestones and the user profile.

    Missing goal/task/milestone ids never raise: the operation is a no-op
    and a warning is logged, since the UI only references ids it rendered.
    """

    def __init__(
        self,
        state: Optional[AppState] = None,
        clock: Optional[Callable[[], datetime]] = None,
        action_logger: Any = None,
        default_target: float = DEFAULT_TARGET,
        seed_tasks: Iterable[str] = SEED_TASKS,
        window_days: int = DEFAULT_WINDOW_DAYS,
    ) -> None:
        self._state = state if state is not None else AppState()
        self._clock = clock or utcnow
        self._action_logger = action_logger
        self.default_target = default_target
        self.seed_tasks = tuple(seed_tasks)
        self.window_days = window_days
        self._listeners: List[Listener] = []

        logger.info("Goal store initialized (%d goals)", len(self._state.goals))

    @classmethod
    def from_adapter(cls, adapter: Any, **kwargs: Any) -> "GoalStore":
        """Build a store from the persisted ``user``/``goals``/``language`` keys."""
        from goaleasy.storage.persistence import load_app_state

        return cls(state=load_app_state(adapter), **kwargs)

    # ── Reads ────────────────────────────────────────────────────────

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def goals(self) -> List[Goal]:
        return self._state.goals

    @property
    def user(self) -> User:
        return self._state.user

    def get_goal(self, goal_id: str) -> Optional[Goal]:
        return self._state.find_goal(goal_id)

    def snapshot(self) -> AppState:
        """Deep copy of the state, safe to hand to code that must not alias it."""
        return self._state.copy()

    # ── Events ───────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(
                    "Listener %r failed on %s: %s", listener, event.type.value, e, exc_info=True
                )

    def _commit(
        self,
        action: str,
        slices: Set[str],
        parameters: Optional[Dict[str, Any]] = None,
        extra: Iterable[StoreEvent] = (),
    ) -> AppState:
        """Record a finished mutation and notify listeners."""
        if self._action_logger is not None:
            self._action_logger.log_action(action_type=action, parameters=parameters or {})
        self._emit(
            StoreEvent(
                type=EventType.STATE_CHANGED,
                state=self._state,
                action=action,
                slices=frozenset(slices),
            )
        )
        for event in extra:
            self._emit(event)
        return self._state

    def _noop(self, action: str, reason: str, **parameters: Any) -> AppState:
        logger.warning("%s ignored: %s (%s)", action, reason, parameters)
        if self._action_logger is not None:
            self._action_logger.log_action(action_type=action, parameters=parameters, result="noop")
        return self._state

    # ── Goals ────────────────────────────────────────────────────────

    def _fresh_goal_id(self) -> str:
        goal_id = new_id()
        while self._state.find_goal(goal_id) is not None:
            goal_id = new_id()
        return goal_id

    def add_goal(
        self,
        title: str,
        size: Union[GoalSize, str] = GoalSize.MEDIUM,
        target_date: Optional[Union[str, datetime]] = None,
    ) -> AppState:
        """
        Create a goal with seed tasks and a milestone plan, appended to ``goals``.

        Args:
            title: What the user wants to achieve; a blank title is ignored
            size: small / medium / big ("large" is accepted)
            target_date: Deadline; milestones spread over 30 days without one

        Returns:
            The updated state (unchanged for a blank title)

        Raises:
            ValueError: unknown size
        """
        size = GoalSize.parse(size)
        if not title or not str(title).strip():
            return self._noop("add_goal", "blank title", title=title)
        now = self._clock()

        goal = Goal(
            id=self._fresh_goal_id(),
            title=title,
            size=size,
            target_date=to_iso(parse_iso(target_date)) if target_date else to_iso(now),
            created_at=to_iso(now),
            current=0,
            target=self.default_target,
            tasks=[Task(id=str(i + 1), title=t, done=False) for i, t in enumerate(self.seed_tasks)],
            milestones=generate_milestones(
                title, size, target_date, now=now, window_days=self.window_days
            ),
        )
        self._state.goals.append(goal)
        logger.info(
            "Created goal: %s - %s (%s, %d milestones)",
            goal.id, goal.title, size.value, len(goal.milestones),
        )
        return self._commit(
            "add_goal",
            {SLICE_GOALS},
            {"goal_id": goal.id, "title": title, "size": size.value, "target_date": goal.target_date},
            extra=[
                StoreEvent(
                    type=EventType.GOAL_CREATED,
                    state=self._state,
                    action="add_goal",
                    goal=goal,
                )
            ],
        )

    def update_goal(
        self, goal_id: str, updates: Optional[Dict[str, Any]] = None, **fields: Any
    ) -> AppState:
        """Merge fields into a goal. The id never changes and milestones are not re-planned."""
        merged: Dict[str, Any] = dict(updates or {})
        merged.update(fields)

        goal = self._state.find_goal(goal_id)
        if goal is None:
            return self._noop("update_goal", "goal not found", goal_id=goal_id)

        applied = []
        for key, value in merged.items():
            attr = _UPDATABLE_FIELDS.get(key)
            if attr is None:
                logger.warning("update_goal: ignoring unknown field %r", key)
                continue
            setattr(goal, attr, self._coerce_goal_field(attr, value))
            applied.append(attr)

        if not applied:
            return self._state
        return self._commit("update_goal", {SLICE_GOALS}, {"goal_id": goal_id, "fields": applied})

    @staticmethod
    def _coerce_goal_field(attr: str, value: Any) -> Any:
        if attr == "size":
            return GoalSize.parse(value)
        if attr in ("target_date", "created_at"):
            return to_iso(parse_iso(value))
        if attr == "tasks":
            return [t if isinstance(t, Task) else Task.from_dict(t) for t in value]
        if attr == "milestones":
            return [m if isinstance(m, Milestone) else Milestone.from_dict(m) for m in value]
        return value

    def delete_goal(self, goal_id: str) -> AppState:
        goal = self._state.find_goal(goal_id)
        if goal is None:
            return self._noop("delete_goal", "goal not found", goal_id=goal_id)

        self._state.goals = [g for g in self._state.goals if g.id != goal_id]
        logger.info("Deleted goal: %s - %s", goal_id, goal.title)
        return self._commit("delete_goal", {SLICE_GOALS}, {"goal_id": goal_id})

    # ── Tasks ────────────────────────────────────────────────────────

    def add_task(self, goal_id: str, title: str) -> AppState:
        goal = self._state.find_goal(goal_id)
        if goal is None:
            return self._noop("add_task", "goal not found", goal_id=goal_id)

        task_id = new_id()
        while goal.find_task(task_id) is not None:
            task_id = new_id()
        goal.tasks.append(Task(id=task_id, title=title, done=False))
        logger.info("Added task %s to goal %s", task_id, goal_id)
        return self._commit("add_task", {SLICE_GOALS}, {"goal_id": goal_id, "task_id": task_id})

    def toggle_task(self, goal_id: str, task_id: str) -> AppState:
        """
        Flip a task's done flag.

        Completing a task bumps ``user.streak`` by one. Un-completing never
        lowers it.
        """
        goal = self._state.find_goal(goal_id)
        if goal is None:
            return self._noop("toggle_task", "goal not found", goal_id=goal_id, task_id=task_id)
        task = goal.find_task(task_id)
        if task is None:
            return self._noop("toggle_task", "task not found", goal_id=goal_id, task_id=task_id)

        task.done = not task.done
        slices = {SLICE_GOALS}
        if task.done:
            self._state.user.streak += 1
            slices.add(SLICE_USER)
            logger.info("Task %s done; streak now %d", task_id, self._state.user.streak)
        return self._commit(
            "toggle_task", slices, {"goal_id": goal_id, "task_id": task_id, "done": task.done}
        )

    # ── Milestones ───────────────────────────────────────────────────

    def move_milestone(
        self,
        goal_id: str,
        milestone_id: str,
        new_status: Union[MilestoneStatus, str],
    ) -> AppState:
        """
        Move a milestone to any status; the todo/doing/done order is not enforced.

        A completion notification event fires only on the transition into
        ``done``, so repeating ``done`` is a no-op.
        """
        status = MilestoneStatus.parse(new_status)
        goal = self._state.find_goal(goal_id)
        if goal is None:
            return self._noop("move_milestone", "goal not found", goal_id=goal_id)
        milestone = goal.find_milestone(milestone_id)
        if milestone is None:
            return self._noop(
                "move_milestone", "milestone not found", goal_id=goal_id, milestone_id=milestone_id
            )
        if milestone.status == status:
            return self._state

        previous = milestone.status
        milestone.status = status
        logger.info(
            "Milestone %s: %s -> %s", milestone_id, previous.value, status.value
        )
        extra = []
        if status == MilestoneStatus.DONE:
            extra.append(
                StoreEvent(
                    type=EventType.MILESTONE_COMPLETED,
                    state=self._state,
                    action="move_milestone",
                    goal=goal,
                    milestone=milestone,
                )
            )
        return self._commit(
            "move_milestone",
            {SLICE_GOALS},
            {"goal_id": goal_id, "milestone_id": milestone_id, "status": status.value},
            extra=extra,
        )

    def advance_milestone(self, goal_id: str, milestone_id: str) -> AppState:
        """Move todo -> doing and doing -> done (the goal screen's action button)."""
        goal = self._state.find_goal(goal_id)
        milestone = goal.find_milestone(milestone_id) if goal is not None else None
        if milestone is None:
            return self._noop(
                "advance_milestone", "milestone not found", goal_id=goal_id, milestone_id=milestone_id
            )
        return self.move_milestone(goal_id, milestone_id, next_milestone_status(milestone.status))

    # ── Direct replacements ──────────────────────────────────────────

    def set_language(self, language: Union[Language, str]) -> AppState:
        self._state.language = Language.parse(language)
        return self._commit("set_language", {SLICE_LANGUAGE}, {"language": self._state.language.value})

    def set_user(self, user: Union[User, Dict[str, Any]]) -> AppState:
        """Replace the profile. Raises ValueError for a negative streak or progress outside 0..100."""
        self._state.user = User.from_dict(user.to_dict() if isinstance(user, User) else user)
        return self._commit("set_user", {SLICE_USER}, {"name": self._state.user.name})

    def set_goals(self, goals: Iterable[Union[Goal, Dict[str, Any]]]) -> AppState:
        self._state.goals = [g if isinstance(g, Goal) else Goal.from_dict(g) for g in goals]
        return self._commit("set_goals", {SLICE_GOALS}, {"count": len(self._state.goals)})

    def set_filter(self, filter_type: Union[FilterType, str]) -> AppState:
        """Change the dashboard filter. Not persisted."""
        self._state.filter = FilterType.parse(filter_type)
        return self._commit("set_filter", set(), {"filter": self._state.filter.value})
