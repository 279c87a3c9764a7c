"""
Abstract storage adapter used by the record store.

Adapters expose a deliberately narrow surface over a document collection.
Filters and updates use the MongoDB query dialect, restricted to equality,
comparison (``$lt``, ``$lte``, ``$gt``, ``$gte``, ``$in``) and field-set
(``$set``, ``$inc``) semantics so that any backend can honour them.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

SortSpec = Sequence[Tuple[str, int]]

ASCENDING = 1
DESCENDING = -1


class StorageAdapter(ABC):
    """Narrow document-store interface with no business logic."""

    @abstractmethod
    def insert(self, doc: Dict[str, Any]) -> Any:
        """
        Insert a document.

        Args:
            doc: Document to insert. An ``_id`` is assigned if missing.

        Returns:
            The identifier of the inserted document
        """
        pass

    @abstractmethod
    def find_many(self, filter: Dict[str, Any], sort: Optional[SortSpec] = None,
                  limit: int = 0) -> List[Dict[str, Any]]:
        """
        Find documents matching a filter.

        Args:
            filter: Query filter
            sort: Optional list of (field, direction) pairs
            limit: Maximum number of documents (0 means no limit)

        Returns:
            Matching documents
        """
        pass

    @abstractmethod
    def update_one(self, filter: Dict[str, Any], update: Dict[str, Any]) -> int:
        """
        Atomically apply an update to the first document matching a filter.

        The match and the write happen as one operation, so a filter on an
        expected field value behaves as a compare-and-swap.

        Returns:
            Number of documents matched (0 or 1)
        """
        pass

    @abstractmethod
    def delete_many(self, filter: Dict[str, Any]) -> int:
        """Delete all matching documents and return how many were removed."""
        pass

    @abstractmethod
    def count(self, filter: Optional[Dict[str, Any]] = None) -> int:
        """Count documents matching a filter."""
        pass

    def close(self) -> None:
        """Release any resources held by the adapter."""
        pass
