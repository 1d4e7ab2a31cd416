"""
Glue between the in-memory store and its repository.

Load and flush failures are logged and swallowed: the process keeps serving
from memory, and the next flush tries again. Saved data that cannot be read
is backed up before anything is written over it; if even that fails, saving
stays disabled until restart.
"""
import logging
import time

from fruitmerge.monitoring import record_custom_metric
from fruitmerge.repository import SnapshotRepository
from fruitmerge.store import GameStore

logger = logging.getLogger(__name__)


class PersistenceManager:
    def __init__(self, store: GameStore, repository: SnapshotRepository,
                 payments_keep: int = 1000, activity_keep: int = 100):
        self.store = store
        self.repository = repository
        self.payments_keep = payments_keep
        self.activity_keep = activity_keep
        self.last_saved_at = None
        # Set when unreadable saved data could not be moved aside
        self.read_only = False

    def load(self) -> bool:
        """Restore the store from the repository; False if nothing was loaded."""
        try:
            data = self.repository.load()
        except Exception as e:
            logger.error(f"Failed to load saved data: {e}", exc_info=True)
            self._set_aside_unreadable()
            return False
        if not data:
            logger.info("No saved data found, starting with an empty store")
            return False

        try:
            self.store.restore(data)
        except Exception as e:
            logger.error(f"Saved data could not be restored: {e}", exc_info=True)
            self.store.reset()
            self._set_aside_unreadable()
            return False

        logger.info(
            f"Loaded data: {len(self.store.users)} users, "
            f"{len(self.store.payments)} payments, week {self.store.current_week}"
        )
        return True

    def flush(self, reason: str = "periodic") -> bool:
        """Write the current snapshot; returns False if the write failed."""
        if self.read_only:
            logger.error(f"Not saving ({reason}): saved data is unreadable and could not be backed up")
            return False
        try:
            snapshot = self.store.snapshot(self.payments_keep, self.activity_keep)
            self.repository.save(snapshot)
        except Exception as e:
            logger.error(f"Failed to save data ({reason}): {e}", exc_info=True)
            return False

        self.last_saved_at = time.time()
        record_custom_metric("Storage/Flushes")
        logger.debug(f"Data saved ({reason})")
        return True

    def _set_aside_unreadable(self):
        """Move unreadable saved data out of the way so the next flush cannot overwrite it."""
        try:
            backup = self.repository.quarantine()
        except Exception as e:
            logger.error(f"Could not back up unreadable saved data, saving disabled: {e}", exc_info=True)
            self.read_only = True
            return
        logger.warning(f"Unreadable saved data backed up to {backup}")
