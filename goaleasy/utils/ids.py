"""
Id generation for goals, tasks and milestones.

Ids are millisecond timestamps rendered as strings. The generator never
hands out the same value twice within a process, so rapid successive
creations (or a batch of milestones) stay unique.
"""

import threading
import time
from typing import List, Optional


class IdGenerator:
    """Monotonic millisecond id source."""

    def __init__(self) -> None:
        self._last = 0
        self._lock = threading.Lock()

    def reserve(self, count: int = 1, now_ms: Optional[int] = None) -> int:
        """Reserve ``count`` consecutive ids and return the first one."""
        if count < 1:
            raise ValueError("count must be >= 1")
        ms = now_ms if now_ms is not None else time.time_ns() // 1_000_000
        with self._lock:
            base = max(ms, self._last + 1)
            self._last = base + count - 1
        return base

    def next_id(self) -> str:
        return str(self.reserve(1))

    def batch(self, count: int) -> List[str]:
        base = self.reserve(count)
        return [str(base + i) for i in range(count)]


_default = IdGenerator()


def new_id() -> str:
    """Return a fresh process-unique id."""
    return _default.next_id()


def new_ids(count: int) -> List[str]:
    """Return ``count`` consecutive fresh ids (base + index)."""
    return _default.batch(count)
