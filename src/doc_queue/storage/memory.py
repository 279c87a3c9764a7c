"""
In-process storage adapter.

Keeps documents in a dictionary guarded by a lock. Every operation runs under
the lock, which gives ``update_one`` the same atomic match-and-write behaviour
as a MongoDB single-document update.
"""

import copy
import logging
import threading
from typing import Any, Dict, List, Optional

import bson
from bson import ObjectId
from bson.errors import InvalidDocument

from .base import StorageAdapter, SortSpec
from ..errors import StorageError

logger = logging.getLogger(__name__)

_COMPARATORS = {
    '$lt': lambda value, operand: value is not None and value < operand,
    '$lte': lambda value, operand: value is not None and value <= operand,
    '$gt': lambda value, operand: value is not None and value > operand,
    '$gte': lambda value, operand: value is not None and value >= operand,
    '$ne': lambda value, operand: value != operand,
    '$in': lambda value, operand: value in operand,
}


def _matches(doc: Dict[str, Any], filter: Dict[str, Any]) -> bool:
    for key, condition in filter.items():
        value = doc.get(key)
        if isinstance(condition, dict) and condition and all(k.startswith('$') for k in condition):
            for op, operand in condition.items():
                comparator = _COMPARATORS.get(op)
                if comparator is None:
                    raise StorageError(f"Unsupported query operator: {op}")
                if not comparator(value, operand):
                    return False
        elif value != condition:
            return False
    return True


def _checked_copy(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Copy a document, rejecting anything MongoDB could not store."""
    try:
        bson.encode(doc)
        return copy.deepcopy(doc)
    except (InvalidDocument, TypeError, copy.Error) as e:
        raise StorageError(f"Document cannot be stored: {e}") from e


class MemoryStorageAdapter(StorageAdapter):
    """Dictionary-backed adapter honouring the adapter filter subset."""

    def __init__(self):
        self._docs: Dict[Any, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def insert(self, doc: Dict[str, Any]) -> Any:
        doc = _checked_copy(doc)
        doc_id = doc.setdefault('_id', ObjectId())
        with self._lock:
            if doc_id in self._docs:
                raise StorageError(f"Duplicate key: {doc_id}")
            self._docs[doc_id] = doc
        return doc_id

    def find_many(self, filter: Dict[str, Any], sort: Optional[SortSpec] = None,
                  limit: int = 0) -> List[Dict[str, Any]]:
        with self._lock:
            results = [copy.deepcopy(doc) for doc in self._docs.values() if _matches(doc, filter)]

        # Stable sorts applied last key first give a multi-key ordering
        for key, direction in reversed(list(sort or [])):
            results.sort(key=lambda d: d.get(key), reverse=direction < 0)

        if limit:
            results = results[:limit]
        return results

    def update_one(self, filter: Dict[str, Any], update: Dict[str, Any]) -> int:
        update = _checked_copy(update)
        with self._lock:
            for doc in self._docs.values():
                if _matches(doc, filter):
                    self._apply(doc, update)
                    return 1
        return 0

    def delete_many(self, filter: Dict[str, Any]) -> int:
        with self._lock:
            doomed = [doc_id for doc_id, doc in self._docs.items() if _matches(doc, filter)]
            for doc_id in doomed:
                del self._docs[doc_id]
        return len(doomed)

    def count(self, filter: Optional[Dict[str, Any]] = None) -> int:
        with self._lock:
            return sum(1 for doc in self._docs.values() if _matches(doc, filter or {}))

    @staticmethod
    def _apply(doc: Dict[str, Any], update: Dict[str, Any]) -> None:
        for op, fields in update.items():
            if op == '$set':
                for key, value in fields.items():
                    doc[key] = copy.deepcopy(value)
            elif op == '$inc':
                for key, amount in fields.items():
                    doc[key] = doc.get(key, 0) + amount
            else:
                raise StorageError(f"Unsupported update operator: {op}")
