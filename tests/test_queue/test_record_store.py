"""
Tests for the record store.
"""

import json
import threading
from datetime import timedelta

import pytest

from doc_queue.errors import StorageError
from doc_queue.models import Outcome, RecordStatus
from doc_queue.record_store import RecordStore
from doc_queue.storage.memory import MemoryStorageAdapter

from conftest import FakeClock, FlakyAdapter, enqueue_spaced


class BarrierAdapter(MemoryStorageAdapter):
    """Holds each thread's first query at a barrier so claimers see the same candidates."""

    def __init__(self, parties):
        super().__init__()
        self.barrier = threading.Barrier(parties)
        self.local = threading.local()

    def find_many(self, filter, sort=None, limit=0):
        docs = super().find_many(filter, sort=sort, limit=limit)
        if self.barrier is not None and not getattr(self.local, 'waited', False):
            self.local.waited = True
            self.barrier.wait()
        return docs


class StealingAdapter(MemoryStorageAdapter):
    """Claims the first candidate behind the store's back, simulating another instance."""

    def __init__(self):
        super().__init__()
        self.stolen = None

    def find_many(self, filter, sort=None, limit=0):
        docs = super().find_many(filter, sort=sort, limit=limit)
        if self.stolen is None and docs:
            self.stolen = docs[0]['_id']
            super().update_one({'_id': self.stolen}, {'$set': {'status': 'processing'}})
        return docs


@pytest.mark.unit
class TestRecordStore:

    def test_enqueue_creates_pending_record(self, store, clock):
        record_id = store.enqueue({'email': 'a@example.com'})
        record = store.get(record_id)

        assert record.data == {'email': 'a@example.com'}
        assert record.status == RecordStatus.PENDING
        assert record.attempts == 0
        assert record.created_at == clock.now
        assert record.updated_at == clock.now

    def test_enqueue_ids_are_unique(self, store):
        ids = [store.enqueue(i) for i in range(50)]
        assert len(set(ids)) == 50

    def test_enqueue_surfaces_storage_error(self, clock):
        store = RecordStore(FlakyAdapter(fail_on_insert=True), clock=clock)
        with pytest.raises(StorageError):
            store.enqueue({'x': 1})

    def test_enqueue_rejects_unstorable_payload(self, store):
        with pytest.raises(StorageError):
            store.enqueue({1: 'x'})
        assert store.count_by_status()[RecordStatus.PENDING.value] == 0

    def test_record_to_dict_is_json_safe(self, store, clock):
        record_id = store.enqueue({'email': 'a@example.com'})

        data = store.get(record_id).to_dict()

        assert data == {
            'id': str(record_id),
            'data': {'email': 'a@example.com'},
            'status': 'pending',
            'attempts': 0,
            'created_at': clock.now.isoformat(),
            'updated_at': clock.now.isoformat(),
            'last_error': None
        }
        assert json.loads(json.dumps(data)) == data

    def test_claim_batch_takes_oldest_first(self, store, clock):
        ids = enqueue_spaced(store, clock, ['a', 'b', 'c', 'd', 'e'])

        claimed = store.claim_batch(2)

        assert [r.id for r in claimed] == ids[:2]
        assert all(r.status == RecordStatus.PROCESSING for r in claimed)
        assert all(r.attempts == 1 for r in claimed)
        assert [store.get(i).status for i in ids[2:]] == [RecordStatus.PENDING] * 3

    def test_claim_batch_orders_same_timestamp_by_insertion(self, store):
        ids = [store.enqueue(n) for n in range(4)]
        assert [r.id for r in store.claim_batch(4)] == ids

    def test_claim_batch_persists_transition(self, store, clock):
        record_id = store.enqueue('x')
        clock.advance(minutes=1)

        store.claim_batch(1)
        record = store.get(record_id)

        assert record.status == RecordStatus.PROCESSING
        assert record.attempts == 1
        assert record.updated_at == clock.now
        assert record.created_at == clock.now - timedelta(minutes=1)

    def test_claim_batch_empty_queue(self, store):
        assert store.claim_batch(5) == []

    def test_claim_batch_skips_terminal_and_processing(self, store, clock):
        ids = enqueue_spaced(store, clock, ['a', 'b', 'c'])
        store.claim_batch(2)
        store.mark_outcome(ids[0], Outcome.SUCCESS)

        claimed = store.claim_batch(5)

        assert [r.id for r in claimed] == [ids[2]]

    def test_claim_batch_replaces_candidates_lost_to_another_claimer(self, clock):
        adapter = StealingAdapter()
        store = RecordStore(adapter, clock=clock)
        ids = enqueue_spaced(store, clock, ['a', 'b', 'c', 'd'])

        claimed = store.claim_batch(2)

        assert adapter.stolen == ids[0]
        assert [r.id for r in claimed] == [ids[1], ids[2]]
        assert store.get(ids[0]).attempts == 0

    def test_concurrent_claims_are_exclusive(self, clock):
        adapter = BarrierAdapter(parties=2)
        store_a = RecordStore(adapter, clock=clock)
        store_b = RecordStore(adapter, clock=clock)
        enqueue_spaced(store_a, clock, list(range(20)))
        results = {}

        def claim(name, store):
            results[name] = store.claim_batch(5)

        threads = [
            threading.Thread(target=claim, args=('a', store_a)),
            threading.Thread(target=claim, args=('b', store_b)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        adapter.barrier = None

        ids_a = {r.id for r in results['a']}
        ids_b = {r.id for r in results['b']}
        assert len(ids_a) == 5
        assert len(ids_b) == 5
        assert ids_a.isdisjoint(ids_b)
        assert all(store_a.get(i).attempts == 1 for i in ids_a | ids_b)

    @pytest.mark.parametrize("outcome,status", [
        (Outcome.SUCCESS, RecordStatus.DONE),
        (Outcome.RETRY, RecordStatus.PENDING),
        (Outcome.TERMINAL_FAILURE, RecordStatus.FAILED_PERMANENT),
    ])
    def test_mark_outcome_transitions(self, store, clock, outcome, status):
        record_id = store.enqueue('x')
        store.claim_batch(1)
        clock.advance(seconds=30)

        assert store.mark_outcome(record_id, outcome, error="boom") is True

        record = store.get(record_id)
        assert record.status == status
        assert record.updated_at == clock.now
        assert record.attempts == 1

    def test_mark_outcome_records_error_for_failures(self, store):
        record_id = store.enqueue('x')
        store.claim_batch(1)
        store.mark_outcome(record_id, Outcome.RETRY, error="timeout")

        assert store.get(record_id).last_error == "timeout"

    def test_mark_outcome_accepts_outcome_value(self, store):
        record_id = store.enqueue('x')
        store.claim_batch(1)

        assert store.mark_outcome(record_id, 'terminal-failure') is True
        assert store.get(record_id).status == RecordStatus.FAILED_PERMANENT

    def test_mark_outcome_requires_processing(self, store):
        record_id = store.enqueue('x')

        assert store.mark_outcome(record_id, Outcome.SUCCESS) is False
        assert store.get(record_id).status == RecordStatus.PENDING

    def test_terminal_records_stay_terminal(self, store):
        record_id = store.enqueue('x')
        store.claim_batch(1)
        store.mark_outcome(record_id, Outcome.SUCCESS)

        assert store.mark_outcome(record_id, Outcome.RETRY) is False
        assert store.claim_batch(1) == []
        assert store.get(record_id).status == RecordStatus.DONE

    def test_delete_stale_ignores_status(self, store, clock):
        old_done = store.enqueue('old-done')
        old_pending = store.enqueue('old-pending')
        store.claim_batch(1)
        store.mark_outcome(old_done, Outcome.SUCCESS)
        clock.advance(hours=2)
        young_pending = store.enqueue('young-pending')
        clock.advance(minutes=30)

        removed = store.delete_stale(timedelta(hours=1))

        assert removed == 2
        assert store.get(old_done) is None
        assert store.get(old_pending) is None
        assert store.get(young_pending).status == RecordStatus.PENDING

    def test_delete_stale_is_strictly_older(self, store, clock):
        record_id = store.enqueue('x')
        clock.advance(hours=1)

        assert store.delete_stale(timedelta(hours=1)) == 0
        assert store.get(record_id) is not None

    def test_count_by_status(self, store, clock):
        ids = enqueue_spaced(store, clock, ['a', 'b', 'c', 'd'])
        store.claim_batch(3)
        store.mark_outcome(ids[0], Outcome.SUCCESS)
        store.mark_outcome(ids[1], Outcome.TERMINAL_FAILURE)

        assert store.count_by_status() == {
            'pending': 1,
            'processing': 1,
            'done': 1,
            'failed_permanent': 1,
            'total': 4
        }

    def test_get_missing_record(self, store):
        assert store.get('missing') is None
