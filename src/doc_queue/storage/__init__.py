"""
Storage adapters for the document queue.
"""

import logging
from typing import Any, Dict, Optional

from .base import StorageAdapter, ASCENDING, DESCENDING
from .memory import MemoryStorageAdapter
from .mongodb import MongoDBStorageAdapter, connect
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


def create_storage_adapter(storage_config: Optional[Dict[str, Any]],
                           collection_name: str) -> StorageAdapter:
    """
    Create a storage adapter from the ``storage`` configuration section.

    Args:
        storage_config: Storage section; ``backend`` selects the implementation
        collection_name: Queue collection name

    Returns:
        Storage adapter instance
    """
    storage_config = dict(storage_config or {})
    backend = storage_config.pop('backend', 'mongodb')

    if backend == 'mongodb':
        return connect(storage_config, collection_name)
    if backend == 'memory':
        logger.info("Using in-memory queue storage")
        return MemoryStorageAdapter()

    raise ConfigurationError(f"Unsupported storage backend: {backend}")


__all__ = [
    'StorageAdapter', 'MemoryStorageAdapter', 'MongoDBStorageAdapter',
    'create_storage_adapter', 'connect', 'ASCENDING', 'DESCENDING'
]
