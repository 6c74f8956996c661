"""
Centralised configuration loader for GoalEasy.

Loads values from config/goaleasy.yaml once, then exposes them through
simple accessor functions so that no module needs to hard-code magic
numbers or duplicate YAML-loading logic.

Usage:
    from goaleasy.utils.config import get_storage_config, get_goal_defaults

Single source of truth: if you need a default, channel id, or path,
add it to goaleasy.yaml and expose it here.
"""

import logging
import os
from typing import Any, Dict, Optional

import yaml

from goaleasy.utils.paths import base_path

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Internal cache
# ---------------------------------------------------------------------------
_config_cache: Optional[Dict[str, Any]] = None

CONFIG_FILENAME = "goaleasy.yaml"


def _load_yaml(filename: str) -> Dict[str, Any]:
    """Load a YAML file from config/ and return as dict (empty on failure)."""
    path = os.path.join(base_path(), "config", filename)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.debug("Could not load %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: top level is not a mapping", path)
        return {}
    return data


def _config() -> Dict[str, Any]:
    """Return cached goaleasy.yaml contents."""
    global _config_cache
    if _config_cache is None:
        _config_cache = _load_yaml(CONFIG_FILENAME)
    return _config_cache


def reload() -> None:
    """Force re-read of the config file (useful after editing YAML)."""
    global _config_cache
    _config_cache = None


def _section(name: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
    section = _config().get(name, {}) or {}
    merged = dict(defaults)
    merged.update({k: v for k, v in section.items() if v is not None})
    return merged


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

# Defaults keep the app usable even if the YAML section is missing.
_STORAGE_DEFAULTS: Dict[str, Any] = {
    "backend": "file",
    "path": "data/state",
    "write_retries": 2,
}


def get_storage_config() -> Dict[str, Any]:
    """Return the ``storage`` section with defaults.

    ``GOALEASY_STORAGE_BACKEND`` overrides ``backend``; a relative ``path``
    is resolved against the project root.
    """
    merged = _section("storage", _STORAGE_DEFAULTS)
    env_backend = os.environ.get("GOALEASY_STORAGE_BACKEND")
    if env_backend:
        merged["backend"] = env_backend
    merged["backend"] = str(merged["backend"]).lower()
    path = str(merged["path"])
    if not os.path.isabs(path):
        path = os.path.join(base_path(), path)
    merged["path"] = path
    merged["write_retries"] = int(merged["write_retries"])
    return merged


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

_NOTIFICATION_DEFAULTS: Dict[str, Any] = {
    "enabled": True,
    "channel_id": "goaleasy-channel",
    "channel_name": "GoalEasy Notifications",
    "importance": "high",
    "reminder_hour": 8,
    "reminder_minute": 0,
}


def get_notification_config() -> Dict[str, Any]:
    """Return the ``notifications`` section with defaults."""
    merged = _section("notifications", _NOTIFICATION_DEFAULTS)
    merged["enabled"] = bool(merged["enabled"])
    merged["reminder_hour"] = int(merged["reminder_hour"])
    merged["reminder_minute"] = int(merged["reminder_minute"])
    return merged


# ---------------------------------------------------------------------------
# Goal defaults
# ---------------------------------------------------------------------------

_GOAL_DEFAULTS: Dict[str, Any] = {
    "default_target": 10000,
    "default_window_days": 30,
    "seed_tasks": ["Start working on goal", "Make first progress"],
}


def get_goal_defaults() -> Dict[str, Any]:
    """Return the ``goals`` section with defaults."""
    merged = _section("goals", _GOAL_DEFAULTS)
    merged["default_target"] = int(merged["default_target"])
    merged["default_window_days"] = int(merged["default_window_days"])
    merged["seed_tasks"] = [str(t) for t in merged["seed_tasks"]]
    return merged


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

_LOGGING_DEFAULTS: Dict[str, Any] = {
    "level": "INFO",
    "action_log": True,
}


def get_logging_config() -> Dict[str, Any]:
    """Return the ``logging`` section with defaults."""
    merged = _section("logging", _LOGGING_DEFAULTS)
    merged["level"] = str(merged["level"]).upper()
    merged["action_log"] = bool(merged["action_log"])
    return merged
