"""
Data model for queued records and run results.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class RecordStatus(str, Enum):
    """Processing status of a queued record."""
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    FAILED_PERMANENT = "failed_permanent"


class Outcome(str, Enum):
    """Result applied to a claimed record after one processing attempt."""
    SUCCESS = "success"
    RETRY = "retry"
    TERMINAL_FAILURE = "terminal-failure"


OUTCOME_STATUS = {
    Outcome.SUCCESS: RecordStatus.DONE,
    Outcome.RETRY: RecordStatus.PENDING,
    Outcome.TERMINAL_FAILURE: RecordStatus.FAILED_PERMANENT,
}


@dataclass
class Record:
    """A unit of work stored in the queue collection."""
    id: Any
    data: Any
    status: RecordStatus = RecordStatus.PENDING
    attempts: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_error: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> 'Record':
        """Build a record from a stored document."""
        return cls(
            id=doc['_id'],
            data=doc.get('data'),
            status=RecordStatus(doc['status']),
            attempts=doc.get('attempts', 0),
            created_at=doc.get('created_at'),
            updated_at=doc.get('updated_at'),
            last_error=doc.get('last_error')
        )

    def to_document(self) -> Dict[str, Any]:
        """Convert to the stored document shape (without ``_id`` if unset)."""
        doc = {
            'data': self.data,
            'status': self.status.value,
            'attempts': self.attempts,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'last_error': self.last_error
        }
        if self.id is not None:
            doc['_id'] = self.id
        return doc

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'id': str(self.id) if self.id is not None else None,
            'data': self.data,
            'status': self.status.value,
            'attempts': self.attempts,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'last_error': self.last_error
        }


@dataclass
class BatchResult:
    """Aggregate counts for one batch run."""
    skipped: bool = False
    claimed: int = 0
    done: int = 0
    retried: int = 0
    failed: int = 0
    notification_errors: int = 0
    lost: int = 0

    @classmethod
    def skipped_run(cls) -> 'BatchResult':
        return cls(skipped=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': 'skipped' if self.skipped else 'completed',
            'claimed': self.claimed,
            'done': self.done,
            'retried': self.retried,
            'failed': self.failed,
            'notification_errors': self.notification_errors,
            'lost': self.lost
        }


@dataclass
class CleanupResult:
    """Outcome of one cleanup sweep."""
    skipped: bool = False
    removed: int = 0

    @classmethod
    def skipped_run(cls) -> 'CleanupResult':
        return cls(skipped=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': 'skipped' if self.skipped else 'completed',
            'removed': self.removed
        }
