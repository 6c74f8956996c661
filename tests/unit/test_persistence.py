"""
Tests for loading and saving goal state.

Validates:
- Round trip through a store (load returns what was saved)
- Missing or malformed keys fall back to defaults independently
- The worker writes only the slices a mutation touched
- Bursts coalesce to one write per key with the latest value
- A failing store never corrupts the in-memory state
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

_root = Path(__file__).resolve().parents[2]
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from goaleasy.core.goal_store import GoalStore
from goaleasy.core.models import AppState, Language, User
from goaleasy.storage.kv_store import FileStore, MemoryStore
from goaleasy.storage.persistence import (
    PersistenceWorker,
    encode_slice,
    load_app_state,
    save_app_state,
)

NOW = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)


class CountingStore(MemoryStore):
    """MemoryStore that records every save call."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.saves = []

    def save(self, key, value):
        self.saves.append(key)
        return super().save(key, value)


class FailingStore(MemoryStore):
    def save(self, key, value):
        return False


class RaisingStore(MemoryStore):
    def load(self, key):
        raise RuntimeError("disk on fire")

    def save(self, key, value):
        raise RuntimeError("disk on fire")


def _populated_store():
    store = GoalStore(clock=lambda: NOW)
    store.add_goal("Save ₹10,000", "medium")
    store.toggle_task(store.goals[0].id, "1")
    store.set_language("hi")
    return store


class TestLoadSave:

    def test_round_trip(self):
        store = _populated_store()
        adapter = MemoryStore()
        assert save_app_state(adapter, store.state) is True

        loaded = load_app_state(adapter)
        assert loaded.user == store.user
        assert [g.to_dict() for g in loaded.goals] == [g.to_dict() for g in store.goals]
        assert loaded.language is Language.HI

    def test_round_trip_through_files(self, tmp_path):
        store = _populated_store()
        save_app_state(FileStore(tmp_path), store.state)
        loaded = load_app_state(FileStore(tmp_path))
        assert loaded.goals[0].title == "Save ₹10,000"
        assert loaded.user.streak == 1

    def test_language_stored_raw(self):
        state = AppState(language=Language.HI)
        assert encode_slice(state, "language") == "hi"

    def test_empty_store_gives_defaults(self):
        state = load_app_state(MemoryStore())
        assert state.user == User()
        assert state.goals == []
        assert state.language is Language.EN

    def test_malformed_goals_only_resets_goals(self):
        adapter = MemoryStore(
            {
                "user": json.dumps({"name": "Asha", "avatar": "👩", "streak": 3, "progress": 0}),
                "goals": "{not json",
                "language": "hi",
            }
        )
        state = load_app_state(adapter)
        assert state.goals == []
        assert state.user.name == "Asha"
        assert state.user.streak == 3
        assert state.language is Language.HI

    def test_wrong_shapes_fall_back(self):
        adapter = MemoryStore(
            {"user": "[1, 2]", "goals": '{"id": "1"}', "language": "fr"}
        )
        state = load_app_state(adapter)
        assert state.user == User()
        assert state.goals == []
        assert state.language is Language.EN

    def test_unparseable_goal_dates_fall_back(self):
        goal = _populated_store().goals[0].to_dict()
        goal["targetDate"] = "next friday"
        adapter = MemoryStore({"goals": json.dumps([goal]), "language": "hi"})
        state = load_app_state(adapter)
        assert state.goals == []
        assert state.language is Language.HI

    def test_unparseable_milestone_date_falls_back(self):
        goal = _populated_store().goals[0].to_dict()
        goal["milestones"][2]["date"] = "soon"
        state = load_app_state(MemoryStore({"goals": json.dumps([goal])}))
        assert state.goals == []

    def test_progress_out_of_range_falls_back(self):
        adapter = MemoryStore({"user": json.dumps({"name": "Asha", "streak": 2, "progress": 180})})
        assert load_app_state(adapter).user == User()

    def test_json_quoted_language_accepted(self):
        state = load_app_state(MemoryStore({"language": '"hi"'}))
        assert state.language is Language.HI

    def test_duplicate_goal_ids_dropped(self):
        store = _populated_store()
        goal = store.goals[0].to_dict()
        state = load_app_state(MemoryStore({"goals": json.dumps([goal, goal])}))
        assert len(state.goals) == 1

    def test_raising_store_gives_defaults(self):
        state = load_app_state(RaisingStore())
        assert state.goals == []
        assert state.language is Language.EN


class TestPersistenceWorker:

    def test_writes_touched_slices_only(self):
        adapter = CountingStore()
        store = GoalStore(clock=lambda: NOW)
        worker = PersistenceWorker(adapter, threaded=False)
        worker.attach(store)

        store.add_goal("Goal")
        assert adapter.saves == ["goals"]

        store.toggle_task(store.goals[0].id, "1")
        assert sorted(adapter.saves[1:]) == ["goals", "user"]

        store.set_language("hi")
        assert adapter.saves[-1] == "language"
        assert adapter.load("language") == "hi"

    def test_filter_change_not_written(self):
        adapter = CountingStore()
        store = GoalStore(clock=lambda: NOW)
        PersistenceWorker(adapter, threaded=False).attach(store)
        store.set_filter("all")
        assert adapter.saves == []

    def test_burst_coalesces_to_latest(self):
        adapter = CountingStore()
        store = GoalStore(clock=lambda: NOW)
        worker = PersistenceWorker(adapter)
        worker.attach(store)

        for i in range(5):
            store.add_goal(f"Goal {i}")
        assert adapter.saves == []

        assert worker.flush() is True
        assert adapter.saves == ["goals"]
        saved = json.loads(adapter.load("goals"))
        assert [g["title"] for g in saved] == [f"Goal {i}" for i in range(5)]

    def test_blob_reflects_state_at_mutation_time(self):
        adapter = MemoryStore()
        store = GoalStore(clock=lambda: NOW)
        worker = PersistenceWorker(adapter)
        worker.attach(store)
        store.add_goal("Goal")
        worker.detach(store)
        store.add_goal("Not persisted")
        worker.flush()
        assert [g["title"] for g in json.loads(adapter.load("goals"))] == ["Goal"]

    def test_threaded_flush_and_stop(self):
        adapter = MemoryStore()
        store = GoalStore(clock=lambda: NOW)
        worker = PersistenceWorker(adapter)
        worker.attach(store)
        worker.start()
        try:
            assert worker.running
            store.add_goal("Threaded")
            store.set_language("hi")
            assert worker.flush(timeout=5.0) is True
            assert adapter.load("language") == "hi"
            assert json.loads(adapter.load("goals"))[0]["title"] == "Threaded"
        finally:
            worker.stop()
        assert not worker.running
        assert worker.failures == 0

    def test_stop_writes_pending(self):
        adapter = MemoryStore()
        store = GoalStore(clock=lambda: NOW)
        worker = PersistenceWorker(adapter)
        worker.attach(store)
        store.add_goal("Pending")
        worker.stop()
        assert json.loads(adapter.load("goals"))[0]["title"] == "Pending"

    def test_failed_writes_keep_memory_state(self):
        store = GoalStore(clock=lambda: NOW)
        worker = PersistenceWorker(FailingStore(), threaded=False)
        worker.attach(store)
        store.add_goal("Goal")
        assert worker.failures == 1
        assert worker.writes == 0
        assert store.goals[0].title == "Goal"

    def test_raising_store_is_contained(self):
        store = GoalStore(clock=lambda: NOW)
        worker = PersistenceWorker(RaisingStore(), threaded=False)
        worker.attach(store)
        store.toggle_task("missing", "1")
        store.add_goal("Goal")
        assert worker.failures == 1
        assert len(store.goals) == 1
