"""
Queue engine: the public entry point for producers and schedulers.

Producers call ``enqueue``; an external scheduler calls ``process_next_batch``
and ``cleanup`` on its own timetable. Each engine instance allows one batch
and one cleanup in flight at a time. Those guards are local to the instance;
across instances only the conditional claim in the record store prevents a
record from being processed twice.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .batch_processor import BatchProcessor
from .cleanup import CleanupSweeper
from .config import QueueConfig
from .errors import ConfigurationError
from .models import BatchResult, CleanupResult
from .record_store import RecordStore
from .retry import RetryAccountant
from .storage import StorageAdapter, create_storage_adapter

logger = logging.getLogger(__name__)


class QueueEngine:
    """Facade composing the record store, batch processor and cleanup sweeper."""

    def __init__(self, config: QueueConfig, adapter: Optional[StorageAdapter] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize queue engine.

        Args:
            config: Queue configuration
            adapter: Storage adapter; created from ``config.storage`` if omitted
            clock: Callable returning the current aware UTC time

        Raises:
            ConfigurationError: If the configuration cannot drive an engine
        """
        if config.on_process is None:
            raise ConfigurationError("on_process callback is required")
        if config.on_failure is None:
            raise ConfigurationError("on_failure callback is required")

        self.config = config
        self.adapter = adapter or create_storage_adapter(config.storage, config.collection_name)
        self.store = RecordStore(self.adapter, clock=clock)
        self.processor = BatchProcessor(
            store=self.store,
            accountant=RetryAccountant(config.retry_limit),
            batch_size=config.batch_size,
            on_process=config.on_process,
            on_failure=config.on_failure
        )
        self.sweeper = CleanupSweeper(self.store, config.max_record_age_delta)

        logger.info(
            f"Initialized QueueEngine for '{config.collection_name}' "
            f"(batch_size={config.batch_size}, retry_limit={config.retry_limit})"
        )

    @classmethod
    def from_file(cls, path: Optional[str] = None) -> 'QueueEngine':
        """Build an engine from a configuration file."""
        return cls(QueueConfig.from_file(path))

    def enqueue(self, data: Any) -> Any:
        """
        Add a record to the queue.

        Returns:
            Identifier of the new record

        Raises:
            StorageError: If the write fails
        """
        return self.store.enqueue(data)

    def process_next_batch(self) -> BatchResult:
        """Process one batch unless one is already in flight on this engine."""
        return self.processor.run()

    def cleanup(self) -> CleanupResult:
        """Delete stale records unless a sweep is already in flight on this engine."""
        return self.sweeper.run()

    def stats(self) -> Dict[str, int]:
        """Record counts per status."""
        return self.store.count_by_status()

    def close(self) -> None:
        self.adapter.close()

    def __enter__(self) -> 'QueueEngine':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
