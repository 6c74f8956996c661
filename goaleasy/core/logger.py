"""
Structured logging for GoalEasy: JSONL mutation logs and separate error logs.
Auto-rotates by date. Fields per record: timestamp, action_type, parameters,
result, plus any extra keyword passed by the caller.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional

from goaleasy.utils.paths import base_path


def _utc_stamp(fmt: str) -> str:
    return datetime.now(timezone.utc).strftime(fmt)


class ActionLogger:
    """Append-only JSONL action log and separate error log."""

    def __init__(self, base_dir: Optional[str] = None, capture_errors: bool = True) -> None:
        self.base_dir = base_dir or base_path()
        self._logs_dir = os.path.join(self.base_dir, "logs")
        self._actions_dir = os.path.join(self._logs_dir, "actions")
        self._errors_dir = os.path.join(self._logs_dir, "errors")
        self._ensure_dirs()
        self._current_date: Optional[str] = None
        self._current_action_file: Optional[Any] = None
        self._error_handler: Optional[logging.FileHandler] = None
        if capture_errors:
            self._setup_error_logger()

    def _ensure_dirs(self) -> None:
        """Create logs/actions and logs/errors if they do not exist."""
        try:
            os.makedirs(self._actions_dir, exist_ok=True)
            os.makedirs(self._errors_dir, exist_ok=True)
        except OSError as e:
            logging.error("Failed to create log directories: %s", e)
            raise

    def _setup_error_logger(self) -> None:
        """Attach a WARNING+ handler writing logs/errors/YYYY-MM-DD.log to the root logger."""
        try:
            today = _utc_stamp("%Y-%m-%d")
            error_file = os.path.join(self._errors_dir, f"{today}.log")
            self._error_handler = logging.FileHandler(error_file, encoding="utf-8")
            self._error_handler.setLevel(logging.WARNING)
            fmt = logging.Formatter(
                "%(asctime)s %(levelname)s [%(name)s] %(message)s"
            )
            self._error_handler.setFormatter(fmt)
            logging.getLogger().addHandler(self._error_handler)
        except OSError as e:
            logging.error("Failed to set up error log file: %s", e)

    def _action_file(self) -> Any:
        """Return open file for today's action log (JSONL). Rotates by date."""
        today = _utc_stamp("%Y-%m-%d")
        if self._current_date != today:
            if self._current_action_file is not None:
                try:
                    self._current_action_file.close()
                except OSError:
                    pass
                self._current_action_file = None
            self._current_date = today
        if self._current_action_file is None:
            path = os.path.join(self._actions_dir, f"{today}.jsonl")
            self._current_action_file = open(path, "a", encoding="utf-8")
        return self._current_action_file

    def log_action(
        self,
        *,
        action_type: str,
        parameters: Optional[dict] = None,
        result: str = "success",
        error: Optional[str] = None,
        **extra: Any,
    ) -> None:
        """Append one JSONL record to logs/actions/YYYY-MM-DD.jsonl."""
        entry = {
            "timestamp": _utc_stamp("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "action_type": action_type,
            "parameters": parameters if parameters is not None else {},
            "result": result,
            "error": error,
        }
        entry.update(extra)
        # Remove None values for cleaner JSON
        entry = {k: v for k, v in entry.items() if v is not None}
        try:
            f = self._action_file()
            f.write(json.dumps(entry, default=str, ensure_ascii=False) + "\n")
            f.flush()
        except OSError as e:
            logging.error("Failed to write action log: %s", e)

    def close(self) -> None:
        """Close action log file and remove error file handler."""
        if self._current_action_file is not None:
            try:
                self._current_action_file.close()
            except OSError:
                pass
            self._current_action_file = None
        self._current_date = None
        if self._error_handler is not None:
            logging.getLogger().removeHandler(self._error_handler)
            self._error_handler.close()
            self._error_handler = None
