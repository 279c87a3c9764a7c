"""
Persistent work queue on top of a document store.

Producers enqueue records without waiting for them to be handled; a
background engine later claims them in batches, retries failures up to a
limit and sweeps out records that have grown too old.

Key Features:
- Oldest-first batch claiming with a conditional update per record
- Per-record retry accounting with a terminal failure callback
- Single-flight batch processing and cleanup per engine instance
- MongoDB and in-memory storage backends
"""

from .config import QueueConfig
from .engine import QueueEngine
from .errors import (
    QueueError, StorageError, ProcessingError, NotificationError, ConfigurationError
)
from .models import Record, RecordStatus, Outcome, BatchResult, CleanupResult

__version__ = '0.1.0'

__all__ = [
    'QueueEngine', 'QueueConfig',
    'Record', 'RecordStatus', 'Outcome', 'BatchResult', 'CleanupResult',
    'QueueError', 'StorageError', 'ProcessingError', 'NotificationError', 'ConfigurationError'
]
