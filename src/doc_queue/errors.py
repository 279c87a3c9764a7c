"""
Exception hierarchy for the document queue.
"""

from typing import Any, Optional


class QueueError(Exception):
    """Base class for all queue errors."""
    pass


class StorageError(QueueError):
    """The underlying document store rejected a read or write."""
    pass


class ConfigurationError(QueueError):
    """Invalid queue configuration, detected before any processing starts."""
    pass


class ProcessingError(QueueError):
    """The processing callback failed for a single record."""

    def __init__(self, record_id: Any, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Processing failed for record {record_id}: {message}")
        self.record_id = record_id
        self.cause = cause


class NotificationError(QueueError):
    """The failure-notification callback itself failed."""

    def __init__(self, record_id: Any, cause: BaseException):
        super().__init__(f"Failure notification for record {record_id} raised: {cause}")
        self.record_id = record_id
        self.cause = cause
