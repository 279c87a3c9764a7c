"""
Shared fixtures for queue tests.
"""

import os
import sys
import threading
from datetime import datetime, timedelta, timezone

import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from doc_queue.config import QueueConfig
from doc_queue.errors import StorageError
from doc_queue.record_store import RecordStore
from doc_queue.storage.memory import MemoryStorageAdapter


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.lock = threading.Lock()

    def __call__(self):
        with self.lock:
            return self.now

    def advance(self, **kwargs):
        with self.lock:
            self.now += timedelta(**kwargs)


class FlakyAdapter(MemoryStorageAdapter):
    """Memory adapter that fails ``update_one`` from a given call onwards."""

    def __init__(self, fail_on_update=None, fail_on_insert=False):
        super().__init__()
        self.fail_on_update = fail_on_update
        self.fail_on_insert = fail_on_insert
        self.update_calls = 0

    def insert(self, doc):
        if self.fail_on_insert:
            raise StorageError("insert rejected")
        return super().insert(doc)

    def update_one(self, filter, update):
        self.update_calls += 1
        if self.fail_on_update is not None and self.update_calls >= self.fail_on_update:
            raise StorageError("update rejected")
        return super().update_one(filter, update)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def adapter():
    return MemoryStorageAdapter()


@pytest.fixture
def store(adapter, clock):
    return RecordStore(adapter, clock=clock)


@pytest.fixture
def make_config():
    """Build a QueueConfig with recording callbacks unless overridden."""
    def _make(**overrides):
        options = {
            'collection_name': 'test_queue',
            'batch_size': 3,
            'retry_limit': 1,
            'max_record_age': 60 * 60 * 1000,
            'on_process': lambda record: True,
            'on_failure': lambda record: None,
            'storage': {'backend': 'memory'},
        }
        options.update(overrides)
        return QueueConfig(**options)
    return _make


def enqueue_spaced(store, clock, payloads, seconds=1):
    """Enqueue payloads with strictly increasing creation times."""
    ids = []
    for payload in payloads:
        ids.append(store.enqueue(payload))
        clock.advance(seconds=seconds)
    return ids
