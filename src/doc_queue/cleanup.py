"""
Cleanup sweeper for stale queue records.
"""

import logging
import threading
from datetime import timedelta

from .models import CleanupResult
from .record_store import RecordStore

logger = logging.getLogger(__name__)


class CleanupSweeper:
    """Deletes records older than the configured age, one sweep at a time."""

    def __init__(self, store: RecordStore, max_age: timedelta):
        self.store = store
        self.max_age = max_age
        self._running = threading.Lock()

    @property
    def running(self) -> bool:
        return self._running.locked()

    def run(self) -> CleanupResult:
        """
        Remove stale records regardless of status.

        Returns:
            Number removed, or a skipped result if a sweep is already running
        """
        if not self._running.acquire(blocking=False):
            logger.warning("Cleanup already running; skipping")
            return CleanupResult.skipped_run()

        try:
            removed = self.store.delete_stale(self.max_age)
        finally:
            self._running.release()

        logger.info(f"Cleanup removed {removed} stale records")
        return CleanupResult(removed=removed)
