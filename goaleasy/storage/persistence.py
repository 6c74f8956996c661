"""
Loading and saving the goal state through a key-value store.

State is read once at startup (three independent keys, each falling back
to its default). After that, a PersistenceWorker listens to the goal
store and writes the slices each mutation touched, on a background
thread, coalescing bursts so only the latest value of a key is written.
"""

import json
import logging
import threading
from typing import Any, Callable, Dict, Iterable, Optional

from goaleasy.core.events import (
    PERSISTED_SLICES,
    SLICE_GOALS,
    SLICE_LANGUAGE,
    SLICE_USER,
    EventType,
    StoreEvent,
)
from goaleasy.core.models import AppState, Goal, Language, User
from goaleasy.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


# ── Encoding ────────────────────────────────────────────────────────────


def encode_slice(state: AppState, key: str) -> str:
    """Serialize one persisted slice: JSON for user/goals, raw string for language."""
    if key == SLICE_USER:
        return json.dumps(state.user.to_dict(), ensure_ascii=False)
    if key == SLICE_GOALS:
        return json.dumps([g.to_dict() for g in state.goals], ensure_ascii=False)
    if key == SLICE_LANGUAGE:
        return state.language.value
    raise ValueError(f"Not a persisted slice: {key!r}")


def _decode_user(raw: str) -> User:
    return User.from_dict(json.loads(raw))


def _decode_goals(raw: str) -> list:
    data = json.loads(raw)
    if not isinstance(data, list):
        raise TypeError(f"goals must be an array, got {type(data).__name__}")
    goals = []
    seen = set()
    for item in data:
        goal = Goal.from_dict(item)
        if goal.id in seen:
            logger.warning("Dropping duplicate goal id %s from stored goals", goal.id)
            continue
        seen.add(goal.id)
        goals.append(goal)
    return goals


def _decode_language(raw: str) -> Language:
    text = raw.strip()
    if text.startswith('"'):
        text = json.loads(text)
    return Language.parse(text)


# ── Loading ─────────────────────────────────────────────────────────────


def _read(adapter: KeyValueStore, key: str, decode: Callable[[str], Any]) -> Optional[Any]:
    """Read and decode one key; None when absent, unreadable or malformed."""
    try:
        raw = adapter.load(key)
    except Exception as e:
        logger.error("Error loading %r: %s", key, e)
        return None
    if raw is None:
        logger.info("No stored %r, using default", key)
        return None
    try:
        return decode(raw)
    except (ValueError, TypeError, KeyError, AttributeError) as e:
        logger.warning("Stored %r is malformed, using default: %s", key, e)
        return None


def load_app_state(adapter: KeyValueStore) -> AppState:
    """Build the AppState from ``user``, ``goals`` and ``language``."""
    state = AppState()

    user = _read(adapter, SLICE_USER, _decode_user)
    if user is not None:
        state.user = user
    goals = _read(adapter, SLICE_GOALS, _decode_goals)
    if goals is not None:
        state.goals = goals
    language = _read(adapter, SLICE_LANGUAGE, _decode_language)
    if language is not None:
        state.language = language

    logger.info(
        "Loaded state: %d goals, language=%s, streak=%d",
        len(state.goals), state.language.value, state.user.streak,
    )
    return state


def save_app_state(
    adapter: KeyValueStore,
    state: AppState,
    keys: Iterable[str] = PERSISTED_SLICES,
) -> bool:
    """Write slices synchronously. True only if every write succeeded."""
    ok = True
    for key in keys:
        if not adapter.save(key, encode_slice(state, key)):
            logger.warning("Failed to save %r", key)
            ok = False
    return ok


# ── Background writer ───────────────────────────────────────────────────


class PersistenceWorker:
    """
    Writes state slices after each store mutation.

    Blobs are encoded on the mutating thread (so they reflect the state at
    that moment) and handed to a single writer thread. Pending blobs are
    kept per key; a newer blob replaces an unwritten older one, so a burst
    of mutations costs one write per key.
    """

    def __init__(self, adapter: KeyValueStore, threaded: bool = True) -> None:
        self.adapter = adapter
        self.threaded = threaded
        self.writes = 0
        self.failures = 0

        self._pending: Dict[str, str] = {}
        self._busy = False
        self._stopping = False
        self._cond = threading.Condition()
        self._thread: Optional[threading.Thread] = None

    # ── Wiring ───────────────────────────────────────────────────────

    def attach(self, store: Any) -> None:
        store.subscribe(self.on_event)

    def detach(self, store: Any) -> None:
        store.unsubscribe(self.on_event)

    def on_event(self, event: StoreEvent) -> None:
        if event.type != EventType.STATE_CHANGED:
            return
        keys = [k for k in PERSISTED_SLICES if k in event.slices]
        if not keys:
            return
        self.submit({k: encode_slice(event.state, k) for k in keys})

    def submit(self, batch: Dict[str, str]) -> None:
        """Queue blobs for writing (inline when not threaded)."""
        if not self.threaded:
            self._write(batch)
            return
        with self._cond:
            self._pending.update(batch)
            self._cond.notify_all()

    # ── Lifecycle ────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if not self.threaded:
            return
        if self.running:
            logger.warning("Persistence worker already running")
            return
        with self._cond:
            self._stopping = False
        self._thread = threading.Thread(
            target=self._run, name="goaleasy-persistence", daemon=True
        )
        self._thread.start()
        logger.info("Persistence worker started")

    def flush(self, timeout: float = 5.0) -> bool:
        """Wait until everything submitted so far is written."""
        if not self.running:
            self._drain_inline()
            return True
        with self._cond:
            return self._cond.wait_for(lambda: not self._pending and not self._busy, timeout)

    def stop(self, timeout: float = 5.0) -> None:
        """Write what is pending and stop the writer thread."""
        with self._cond:
            self._stopping = True
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Persistence worker did not stop within %.1fs", timeout)
            self._thread = None
        self._drain_inline()
        logger.info(
            "Persistence worker stopped (%d writes, %d failures)", self.writes, self.failures
        )

    # ── Internals ────────────────────────────────────────────────────

    def _run(self) -> None:
        while True:
            with self._cond:
                while not self._pending and not self._stopping:
                    self._cond.wait()
                if not self._pending:
                    return
                batch = self._pending
                self._pending = {}
                self._busy = True
            try:
                self._write(batch)
            finally:
                with self._cond:
                    self._busy = False
                    self._cond.notify_all()

    def _drain_inline(self) -> None:
        with self._cond:
            batch = self._pending
            self._pending = {}
        if batch:
            self._write(batch)

    def _write(self, batch: Dict[str, str]) -> None:
        for key, blob in batch.items():
            try:
                ok = self.adapter.save(key, blob)
            except Exception as e:
                logger.error("Error saving %r: %s", key, e, exc_info=True)
                ok = False
            if ok:
                self.writes += 1
                logger.debug("Saved %r (%d bytes)", key, len(blob))
            else:
                self.failures += 1
                logger.warning("Could not persist %r; in-memory state kept", key)
