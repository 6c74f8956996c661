"""
Key-value persistence for GoalEasy.

The store keeps three independently keyed string blobs (``user``,
``goals``, ``language``). Backends never raise on I/O problems: ``load``
returns None and the writers return False, after logging the error.
"""

import logging
import os
import re
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def _check_key(key: str) -> str:
    if not key or not _KEY_PATTERN.match(key) or key.startswith("."):
        raise ValueError(f"Invalid storage key: {key!r}")
    return key


class KeyValueStore(ABC):
    """String-to-string durable store."""

    @abstractmethod
    def load(self, key: str) -> Optional[str]:
        """Return the stored value, or None when absent or unreadable."""

    @abstractmethod
    def save(self, key: str, value: str) -> bool:
        """Store ``value`` under ``key``; False on failure."""

    @abstractmethod
    def remove(self, key: str) -> bool:
        """Delete ``key`` (absent keys count as removed); False on failure."""

    @abstractmethod
    def clear_all(self) -> bool:
        """Delete every key; False on failure."""

    def close(self) -> None:
        pass


class MemoryStore(KeyValueStore):
    """In-process store, for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def load(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(_check_key(key))

    def save(self, key: str, value: str) -> bool:
        with self._lock:
            self._data[_check_key(key)] = value
        return True

    def remove(self, key: str) -> bool:
        with self._lock:
            self._data.pop(_check_key(key), None)
        return True

    def clear_all(self) -> bool:
        with self._lock:
            self._data.clear()
        return True

    def keys(self) -> Iterator[str]:
        with self._lock:
            return iter(sorted(self._data))


class FileStore(KeyValueStore):
    """One ``<key>.dat`` file per key under a directory; writes are atomic."""

    SUFFIX = ".dat"

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.info("File store at %s", self.directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_check_key(key)}{self.SUFFIX}"

    def load(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read %s: %s", path, e)
            return None

    def save(self, key: str, value: str) -> bool:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(value)
            tmp.replace(path)
            return True
        except OSError as e:
            logger.warning("Could not save %s: %s", path, e)
            # Clean up temp file on failure
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                pass
            return False

    def remove(self, key: str) -> bool:
        try:
            self._path(key).unlink(missing_ok=True)
            return True
        except OSError as e:
            logger.warning("Could not remove key %s: %s", key, e)
            return False

    def clear_all(self) -> bool:
        ok = True
        for path in self.directory.glob(f"*{self.SUFFIX}"):
            try:
                path.unlink()
            except OSError as e:
                logger.warning("Could not remove %s: %s", path, e)
                ok = False
        return ok


class SQLiteStore(KeyValueStore):
    """Key-value table in a SQLite file; every call opens its own connection."""

    # Backoff between write attempts while another connection holds the lock
    RETRY_DELAY = 0.05
    MAX_RETRY_DELAY = 1.0

    def __init__(self, db_path: str, write_retries: int = 2) -> None:
        self.db_path = str(db_path)
        self.write_retries = max(0, int(write_retries))
        self._init_db()
        logger.info("SQLite store initialized (db=%s)", self.db_path)

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=5.0)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_db(self) -> None:
        parent = os.path.dirname(self.db_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with closing(self._conn()) as conn, conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT
                )
                """
            )

    def _write_once(self, sql: str, params: tuple) -> None:
        with closing(self._conn()) as conn, conn:
            conn.execute(sql, params)

    def _write(self, sql: str, params: tuple) -> None:
        """Run one write, retrying with exponential backoff on OperationalError."""
        delay = self.RETRY_DELAY
        for attempt in range(self.write_retries + 1):
            try:
                self._write_once(sql, params)
                return
            except sqlite3.OperationalError as e:
                if attempt == self.write_retries:
                    raise
                logger.warning(
                    "SQLite write attempt %d failed: %s. Retrying in %.2fs...",
                    attempt + 1, e, delay,
                )
                time.sleep(delay)
                delay = min(delay * 2, self.MAX_RETRY_DELAY)

    def load(self, key: str) -> Optional[str]:
        _check_key(key)
        try:
            with closing(self._conn()) as conn:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            logger.warning("Could not read key %s: %s", key, e)
            return None
        return row[0] if row else None

    def save(self, key: str, value: str) -> bool:
        _check_key(key)
        now = datetime.now(timezone.utc).isoformat()
        try:
            self._write(
                """
                INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                               updated_at = excluded.updated_at
                """,
                (key, value, now),
            )
            return True
        except sqlite3.Error as e:
            logger.warning("Could not save key %s: %s", key, e)
            return False

    def remove(self, key: str) -> bool:
        _check_key(key)
        try:
            self._write("DELETE FROM kv WHERE key = ?", (key,))
            return True
        except sqlite3.Error as e:
            logger.warning("Could not remove key %s: %s", key, e)
            return False

    def clear_all(self) -> bool:
        try:
            self._write("DELETE FROM kv", ())
            return True
        except sqlite3.Error as e:
            logger.warning("Could not clear store: %s", e)
            return False


def open_store(backend: str, path: str, write_retries: int = 2) -> KeyValueStore:
    """Create the configured backend: ``file``, ``sqlite`` or ``memory``."""
    backend = backend.lower()
    if backend == "file":
        return FileStore(Path(path))
    if backend == "sqlite":
        if os.path.isdir(path) or not os.path.splitext(path)[1]:
            path = os.path.join(path, "goaleasy.db")
        return SQLiteStore(path, write_retries=write_retries)
    if backend == "memory":
        return MemoryStore()
    raise ValueError(f"Unknown storage backend: {backend!r}")
