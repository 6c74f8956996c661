"""
Where GoalEasy keeps its files.

The project root holds ``config/goaleasy.yaml``; relative storage paths
from the config and the ``logs/`` folder both hang off it. Tests and
deployments move the root by setting ``GOALEASY_ROOT``.
"""

import os
from pathlib import Path
from typing import Optional

_cached_root: Optional[str] = None

# How far up from this package to look for a config/ folder
_SEARCH_DEPTH = 6


def _find_root() -> str:
    env = os.environ.get("GOALEASY_ROOT")
    if env:
        return os.path.normpath(env)

    here = Path(__file__).resolve().parent
    for candidate in [here, *here.parents][:_SEARCH_DEPTH]:
        if (candidate / "config").is_dir():
            return str(candidate)
    return os.getcwd()


def base_path() -> str:
    """Project root: ``GOALEASY_ROOT``, else the nearest parent with ``config/``, else cwd.

    Resolved once and cached until :func:`reset_cache`.
    """
    global _cached_root
    if _cached_root is None:
        _cached_root = _find_root()
    return _cached_root


def base_path_as_path() -> Path:
    return Path(base_path())


def reset_cache() -> None:
    """Re-resolve the root on the next call (after ``GOALEASY_ROOT`` changes)."""
    global _cached_root
    _cached_root = None


def logs_dir() -> str:
    """``<root>/logs``, created on first use."""
    path = os.path.join(base_path(), "logs")
    os.makedirs(path, exist_ok=True)
    return path
