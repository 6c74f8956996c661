"""
GoalEasy Service - wires the goal store to its side effects.

Builds the key-value store, loads persisted state into a GoalStore,
attaches the persistence writer and the notification task, and shuts
everything down in order. The app shell gets the store from start()
and passes it to its screens.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from goaleasy.goals import GoalStore
from goaleasy.core.logger import ActionLogger
from goaleasy.notifications.reminders import NotificationTask, ensure_channel
from goaleasy.notifications.scheduler import LocalNotificationScheduler
from goaleasy.storage.kv_store import KeyValueStore, open_store
from goaleasy.storage.persistence import PersistenceWorker
from goaleasy.utils import config
from goaleasy.utils.paths import base_path_as_path, logs_dir

logger = logging.getLogger(__name__)


class GoalEasyService:
    """
    Owns the store and its collaborators for one app session.

    Usable as a context manager: the block gets the started store and the
    pending writes are flushed on exit.
    """

    def __init__(self, adapter: Optional[KeyValueStore] = None, scheduler: Any = None) -> None:
        self.running = False
        self.adapter = adapter
        self.scheduler = scheduler
        self.store: Optional[GoalStore] = None
        self.persistence: Optional[PersistenceWorker] = None
        self.notifications: Optional[NotificationTask] = None
        self.action_logger: Optional[ActionLogger] = None
        self._stop_event = threading.Event()
        logger.info("GoalEasy service initialized")

    def __enter__(self) -> GoalStore:
        return self.start()

    def __exit__(self, *exc: Any) -> None:
        self.stop()

    def start(self) -> GoalStore:
        """Load state and attach side effects. Returns the live store."""
        if self.running and self.store is not None:
            return self.store

        self._load_env()
        config.reload()

        if self.adapter is None:
            storage = config.get_storage_config()
            self.adapter = open_store(
                storage["backend"], storage["path"], write_retries=storage["write_retries"]
            )
            logger.info("Storage backend: %s (%s)", storage["backend"], storage["path"])

        if config.get_logging_config()["action_log"]:
            self.action_logger = ActionLogger()

        goals = config.get_goal_defaults()
        self.store = GoalStore.from_adapter(
            self.adapter,
            action_logger=self.action_logger,
            default_target=goals["default_target"],
            seed_tasks=goals["seed_tasks"],
            window_days=goals["default_window_days"],
        )

        self.persistence = PersistenceWorker(self.adapter)
        self.persistence.attach(self.store)
        self.persistence.start()

        notify = config.get_notification_config()
        if notify["enabled"]:
            if self.scheduler is None:
                self.scheduler = LocalNotificationScheduler()
            ensure_channel(
                self.scheduler,
                notify["channel_id"],
                notify["channel_name"],
                notify["importance"],
            )
            self.notifications = NotificationTask(
                self.scheduler,
                channel_id=notify["channel_id"],
                reminder_hour=notify["reminder_hour"],
                reminder_minute=notify["reminder_minute"],
            )
            self.notifications.attach(self.store)
        else:
            logger.info("Notifications disabled by config")

        self.running = True
        self._stop_event.clear()
        logger.info("GoalEasy service started (%d goals)", len(self.store.goals))
        return self.store

    def run_forever(self) -> None:
        """Start and block until stop() or Ctrl+C."""
        self.start()
        logger.info("Press Ctrl+C to stop")
        try:
            while not self._stop_event.wait(timeout=1.0):
                pass
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received")
        finally:
            self.stop()

    def _load_env(self) -> None:
        """Load .env from project root."""
        env_path = base_path_as_path() / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            logger.info("Loaded .env")

    def stop(self) -> None:
        """Flush pending writes and release resources."""
        if not self.running:
            return
        self.running = False
        self._stop_event.set()

        if self.store is not None:
            if self.notifications is not None:
                self.notifications.detach(self.store)
            if self.persistence is not None:
                self.persistence.detach(self.store)

        if self.persistence is not None:
            logger.info("Flushing goal state...")
            try:
                self.persistence.stop()
            except Exception as e:
                logger.error("Persistence shutdown failed: %s", e)
        if self.scheduler is not None and hasattr(self.scheduler, "shutdown"):
            try:
                self.scheduler.shutdown()
            except Exception as e:
                logger.error("Scheduler shutdown failed: %s", e)
        if self.adapter is not None:
            try:
                self.adapter.close()
            except Exception as e:
                logger.error("Could not close store: %s", e)
        if self.action_logger is not None:
            self.action_logger.close()
            self.action_logger = None

        logger.info("GoalEasy service stopped")


def main() -> None:
    """Main entry point."""
    log_file = Path(logs_dir()) / "goaleasy_service.log"
    level = getattr(logging, config.get_logging_config()["level"], logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )
    logger.info("Project root: %s", os.path.normpath(str(base_path_as_path())))

    service = GoalEasyService()
    service.run_forever()


if __name__ == "__main__":
    main()
