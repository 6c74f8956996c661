#!/usr/bin/env python3
"""
GoalEasy Reset
==============
Clears the persisted goal state (user profile, goals, language) from the
configured storage backend, and optionally the logs. Configuration and
source code are left alone.

Usage:
    python scripts/reset.py               # interactive confirmation
    python scripts/reset.py --yes         # skip confirmation (for automation)
    python scripts/reset.py --yes --logs  # also clear logs/
"""

import argparse
import sys
from pathlib import Path

# ── Paths ────────────────────────────────────────────────────────────────
SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from goaleasy.storage.kv_store import open_store  # noqa: E402
from goaleasy.utils.config import get_storage_config  # noqa: E402
from goaleasy.utils.paths import logs_dir  # noqa: E402

# Track files that couldn't be cleared (locked by running process, etc.)
_skipped: list = []


def _banner(msg: str) -> None:
    print(f"  {'✓':>3}  {msg}")


def _safe_delete(path: Path) -> bool:
    """Try to delete a file; if locked, truncate it instead."""
    try:
        path.unlink()
        return True
    except OSError:
        try:
            path.write_text("", encoding="utf-8")
            return True
        except OSError:
            _skipped.append(str(path))
            return False


# ── Clear functions ──────────────────────────────────────────────────────

def clear_logs() -> int:
    """Delete all log files and subdirectories under the project's logs/."""
    count = 0
    logs = Path(logs_dir())
    for item in sorted(logs.rglob("*"), reverse=True):
        if item.is_file():
            if _safe_delete(item):
                count += 1
        elif item.is_dir() and item != logs:
            try:
                item.rmdir()
            except OSError:
                pass
    _banner(f"Logs cleared ({count} files)")
    return count


def clear_state() -> bool:
    """Remove every key from the configured store."""
    storage = get_storage_config()
    store = open_store(storage["backend"], storage["path"], write_retries=storage["write_retries"])
    try:
        ok = store.clear_all()
    finally:
        store.close()
    if ok:
        _banner(f"Goal state cleared ({storage['backend']}: {storage['path']})")
    else:
        _skipped.append(storage["path"])
    return ok


def main() -> None:
    parser = argparse.ArgumentParser(description="GoalEasy Reset")
    parser.add_argument("--yes", "-y", action="store_true",
                        help="Skip confirmation prompt")
    parser.add_argument("--logs", action="store_true",
                        help="Also delete logs/")
    args = parser.parse_args()

    print()
    print("  This will clear the stored profile, goals and language.")
    if args.logs:
        print("  Logs under logs/ will be deleted too.")
    print()

    if not args.yes:
        answer = input("  Proceed with reset? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            print("  Aborted.")
            sys.exit(0)

    clear_state()
    if args.logs:
        clear_logs()

    if _skipped:
        print()
        print(f"  ⚠  {len(_skipped)} item(s) could not be cleared:")
        for s in _skipped[:10]:
            print(f"      {s}")
        print("      Tip: stop GoalEasy first, then re-run this script.")
        sys.exit(1)
    print()


if __name__ == "__main__":
    main()
