"""
Tests for the interval-driven queue worker.
"""

import time

import pytest

from doc_queue import QueueEngine
from doc_queue.errors import StorageError
from doc_queue.storage.memory import MemoryStorageAdapter
from doc_queue.worker import QueueWorker


def wait_for(predicate, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.mark.unit
class TestQueueWorker:

    def test_worker_processes_until_stopped(self, make_config):
        engine = QueueEngine(make_config(batch_size=2), adapter=MemoryStorageAdapter())
        for n in range(5):
            engine.enqueue(n)

        worker = QueueWorker(engine, process_interval=0.01, cleanup_interval=0.01)
        worker.start()
        try:
            assert wait_for(lambda: engine.stats()['done'] == 5)
        finally:
            worker.stop()

        assert not worker.running
        assert worker.stats['records_done'] == 5
        assert worker.stats['batches_run'] >= 3
        assert worker.stats['end_time'] is not None

    def test_tick_errors_do_not_stop_worker(self, make_config):
        engine = QueueEngine(make_config(), adapter=MemoryStorageAdapter())
        calls = []

        def failing_batch():
            calls.append(1)
            raise StorageError("store unavailable")

        engine.process_next_batch = failing_batch
        worker = QueueWorker(engine, process_interval=0.01, cleanup_interval=None)
        worker.start()
        try:
            assert wait_for(lambda: len(calls) >= 3)
        finally:
            worker.stop()

        assert worker.stats['tick_errors'] >= 3
        assert worker.stats['records_removed'] == 0

    def test_start_twice_does_not_spawn_more_threads(self, make_config):
        engine = QueueEngine(make_config(), adapter=MemoryStorageAdapter())
        worker = QueueWorker(engine, process_interval=0.01, cleanup_interval=0.01)

        worker.start()
        try:
            worker.start()
            assert len(worker._threads) == 2
        finally:
            worker.stop()

        assert not worker.running
        worker.start()
        try:
            assert len(worker._threads) == 2
        finally:
            worker.stop()
