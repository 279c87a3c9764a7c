"""
Record store: maps queue operations onto storage adapter calls.

The store owns the persisted record shape and is the only writer of
``status``, ``attempts`` and ``updated_at``. Every state change is a
conditional update keyed on the status the record is expected to be in, so
the store never relies on a transaction or an external lock.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from .models import Record, RecordStatus, Outcome, OUTCOME_STATUS
from .storage.base import StorageAdapter, ASCENDING

logger = logging.getLogger(__name__)

CLAIM_ORDER = [('created_at', ASCENDING), ('_id', ASCENDING)]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecordStore:
    """Queue record persistence with compare-and-swap state transitions."""

    def __init__(self, adapter: StorageAdapter, clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize record store.

        Args:
            adapter: Storage adapter for the queue collection
            clock: Callable returning the current aware UTC time
        """
        self.adapter = adapter
        self.clock = clock or utc_now

    def enqueue(self, data: Any) -> Any:
        """
        Insert a new pending record.

        Args:
            data: Arbitrary payload, stored as-is

        Returns:
            Identifier of the new record

        Raises:
            StorageError: If the write is rejected
        """
        now = self.clock()
        record = Record(id=None, data=data, created_at=now, updated_at=now)
        record_id = self.adapter.insert(record.to_document())
        logger.debug(f"Enqueued record {record_id}")
        return record_id

    def claim_batch(self, limit: int) -> List[Record]:
        """
        Claim up to ``limit`` pending records, oldest first.

        Each candidate is claimed with an update conditional on it still being
        pending, so a record taken by a concurrent claimer in between the read
        and the write is skipped rather than claimed twice. Candidates lost this
        way are replaced by re-querying until the limit is met or no pending
        records remain.

        Args:
            limit: Maximum number of records to claim

        Returns:
            Claimed records, in claim order, with ``attempts`` incremented
        """
        claimed: List[Record] = []

        while len(claimed) < limit:
            candidates = self.adapter.find_many(
                {'status': RecordStatus.PENDING.value},
                sort=CLAIM_ORDER,
                limit=limit - len(claimed)
            )
            if not candidates:
                break

            for doc in candidates:
                now = self.clock()
                matched = self.adapter.update_one(
                    {'_id': doc['_id'], 'status': RecordStatus.PENDING.value},
                    {
                        '$set': {'status': RecordStatus.PROCESSING.value, 'updated_at': now},
                        '$inc': {'attempts': 1}
                    }
                )
                if not matched:
                    logger.debug(f"Record {doc['_id']} was claimed elsewhere")
                    continue

                record = Record.from_document(doc)
                record.status = RecordStatus.PROCESSING
                record.attempts += 1
                record.updated_at = now
                claimed.append(record)
                logger.debug(f"Claimed record {record.id} (attempt {record.attempts})")

        return claimed

    def mark_outcome(self, record_id: Any, outcome: Outcome, error: Optional[str] = None) -> bool:
        """
        Apply the outcome of a processing attempt to a claimed record.

        Args:
            record_id: Record identifier
            outcome: success, retry or terminal-failure
            error: Error description stored for failed outcomes

        Returns:
            True if the record was still in processing and has been updated
        """
        outcome = Outcome(outcome)
        changes: Dict[str, Any] = {
            'status': OUTCOME_STATUS[outcome].value,
            'updated_at': self.clock()
        }
        if outcome != Outcome.SUCCESS:
            changes['last_error'] = error

        matched = self.adapter.update_one(
            {'_id': record_id, 'status': RecordStatus.PROCESSING.value},
            {'$set': changes}
        )
        if not matched:
            logger.warning(f"Record {record_id} was not in processing; outcome {outcome.value} not applied")
            return False
        return True

    def delete_stale(self, max_age: timedelta) -> int:
        """
        Delete every record created more than ``max_age`` ago, whatever its status.

        Returns:
            Number of records removed
        """
        cutoff = self.clock() - max_age
        removed = self.adapter.delete_many({'created_at': {'$lt': cutoff}})
        logger.debug(f"Deleted {removed} records created before {cutoff.isoformat()}")
        return removed

    def get(self, record_id: Any) -> Optional[Record]:
        """Get a single record by identifier."""
        docs = self.adapter.find_many({'_id': record_id}, limit=1)
        return Record.from_document(docs[0]) if docs else None

    def count_by_status(self) -> Dict[str, int]:
        """Count records in each status."""
        counts = {status.value: self.adapter.count({'status': status.value}) for status in RecordStatus}
        counts['total'] = self.adapter.count()
        return counts
