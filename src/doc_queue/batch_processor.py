"""
Batch processor: claims a batch of pending records and runs the processing
callback over them one at a time.
"""

import logging
import threading
from typing import Any, Callable, Optional

from .errors import ProcessingError, NotificationError
from .models import Record, RecordStatus, Outcome, BatchResult
from .record_store import RecordStore
from .retry import RetryAccountant, RetryDecision

logger = logging.getLogger(__name__)

ProcessCallback = Callable[[Record], Any]
FailureCallback = Callable[[Record], Any]


class BatchProcessor:
    """
    Runs one batch at a time per instance.

    Records are processed serially in claim order. A failing record never
    aborts the batch; only a storage error does, leaving outcomes already
    applied in place.
    """

    def __init__(self, store: RecordStore, accountant: RetryAccountant, batch_size: int,
                 on_process: ProcessCallback, on_failure: FailureCallback):
        """
        Initialize batch processor.

        Args:
            store: Record store
            accountant: Retry accountant holding the retry limit
            batch_size: Maximum records claimed per batch
            on_process: Called once per claimed record; returning False or
                raising marks the attempt as failed
            on_failure: Called once for each record that fails permanently
        """
        self.store = store
        self.accountant = accountant
        self.batch_size = batch_size
        self.on_process = on_process
        self.on_failure = on_failure
        self._running = threading.Lock()

    @property
    def running(self) -> bool:
        return self._running.locked()

    def run(self) -> BatchResult:
        """
        Claim and process one batch.

        Returns:
            Aggregate counts, or a skipped result if a batch is already running

        Raises:
            StorageError: If the store fails; remaining records are not processed
        """
        if not self._running.acquire(blocking=False):
            logger.warning("Batch already running; skipping")
            return BatchResult.skipped_run()

        try:
            return self._run_batch()
        finally:
            self._running.release()

    def _run_batch(self) -> BatchResult:
        result = BatchResult()
        records = self.store.claim_batch(self.batch_size)
        result.claimed = len(records)

        for record in records:
            self._process_record(record, result)

        logger.info(
            f"Batch complete: claimed={result.claimed} done={result.done} "
            f"retried={result.retried} failed={result.failed}"
        )
        return result

    def _process_record(self, record: Record, result: BatchResult) -> None:
        error = self._attempt(record)

        if error is None:
            if self.store.mark_outcome(record.id, Outcome.SUCCESS):
                result.done += 1
                logger.debug(f"Record {record.id} done")
            else:
                result.lost += 1
            return

        if self.accountant.decide(record.attempts) == RetryDecision.RETRY:
            if self.store.mark_outcome(record.id, Outcome.RETRY, str(error)):
                result.retried += 1
                logger.warning(f"Record {record.id} failed attempt {record.attempts}; will retry: {error.cause or error}")
            else:
                result.lost += 1
            return

        if not self.store.mark_outcome(record.id, Outcome.TERMINAL_FAILURE, str(error)):
            result.lost += 1
            return

        result.failed += 1
        logger.error(f"Record {record.id} failed permanently after {record.attempts} attempts")

        record.status = RecordStatus.FAILED_PERMANENT
        record.last_error = str(error)
        notification_error = self._notify(record)
        if notification_error is not None:
            result.notification_errors += 1
            logger.error(str(notification_error))

    def _attempt(self, record: Record) -> Optional[ProcessingError]:
        """Run the processing callback, folding exceptions and False into one failure."""
        try:
            outcome = self.on_process(record)
        except Exception as e:
            return ProcessingError(record.id, str(e) or type(e).__name__, cause=e)

        if outcome is False:
            return ProcessingError(record.id, "processing function reported failure")
        return None

    def _notify(self, record: Record) -> Optional[NotificationError]:
        """Call the failure callback once; its result is ignored."""
        try:
            self.on_failure(record)
        except Exception as e:
            return NotificationError(record.id, e)
        return None
