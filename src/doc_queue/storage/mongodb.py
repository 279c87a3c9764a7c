"""
MongoDB storage adapter.

Wraps a pymongo ``Collection``. Connection management stays with pymongo;
``connect`` only builds a client from connection parameters the same way the
rest of the code base does and hands back a ready adapter.
"""

import logging
from typing import Any, Dict, List, Optional

import pymongo
from bson.errors import InvalidDocument
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from .base import StorageAdapter, SortSpec
from ..errors import StorageError

logger = logging.getLogger(__name__)


class MongoDBStorageAdapter(StorageAdapter):
    """Storage adapter over a single MongoDB collection."""

    def __init__(self, collection: Collection, client: Optional[MongoClient] = None):
        """
        Initialize the adapter.

        Args:
            collection: Configured collection handle
            client: Owning client, closed by ``close()`` when given
        """
        self.collection = collection
        self.client = client

    def insert(self, doc: Dict[str, Any]) -> Any:
        try:
            return self.collection.insert_one(doc).inserted_id
        except (PyMongoError, InvalidDocument) as e:
            logger.error(f"Error inserting into {self.collection.name}: {str(e)}")
            raise StorageError(f"Insert failed: {e}") from e

    def find_many(self, filter: Dict[str, Any], sort: Optional[SortSpec] = None,
                  limit: int = 0) -> List[Dict[str, Any]]:
        try:
            cursor = self.collection.find(filter)
            if sort:
                cursor = cursor.sort(list(sort))
            if limit:
                cursor = cursor.limit(limit)
            return list(cursor)
        except (PyMongoError, InvalidDocument) as e:
            logger.error(f"Error querying {self.collection.name}: {str(e)}")
            raise StorageError(f"Find failed: {e}") from e

    def update_one(self, filter: Dict[str, Any], update: Dict[str, Any]) -> int:
        try:
            return self.collection.update_one(filter, update).matched_count
        except (PyMongoError, InvalidDocument) as e:
            logger.error(f"Error updating {self.collection.name}: {str(e)}")
            raise StorageError(f"Update failed: {e}") from e

    def delete_many(self, filter: Dict[str, Any]) -> int:
        try:
            return self.collection.delete_many(filter).deleted_count
        except (PyMongoError, InvalidDocument) as e:
            logger.error(f"Error deleting from {self.collection.name}: {str(e)}")
            raise StorageError(f"Delete failed: {e}") from e

    def count(self, filter: Optional[Dict[str, Any]] = None) -> int:
        try:
            return self.collection.count_documents(filter or {})
        except (PyMongoError, InvalidDocument) as e:
            logger.error(f"Error counting {self.collection.name}: {str(e)}")
            raise StorageError(f"Count failed: {e}") from e

    def ensure_indexes(self) -> None:
        """Create the indexes used by batch claiming and cleanup."""
        try:
            self.collection.create_index([("status", pymongo.ASCENDING), ("created_at", pymongo.ASCENDING)])
            self.collection.create_index("created_at")
        except PyMongoError as e:
            raise StorageError(f"Index creation failed: {e}") from e

    def close(self) -> None:
        """Close the owning client, if this adapter created it."""
        if self.client:
            self.client.close()
            self.client = None


def build_connection_string(conn_params: Dict[str, Any]) -> str:
    """Build a MongoDB connection string from connection parameters."""
    host = conn_params.get('host', 'localhost')
    port = conn_params.get('port', 27017)
    username = conn_params.get('username')
    password = conn_params.get('password')
    db_name = conn_params.get('db_name', 'doc-queue')

    connection_string = "mongodb://"
    if username and password:
        connection_string += f"{username}:{password}@"
    connection_string += f"{host}:{port}/{db_name}"

    options = conn_params.get('options', {})
    if options:
        option_str = "&".join(f"{k}={v}" for k, v in options.items())
        connection_string += f"?{option_str}"

    return connection_string


def connect(conn_params: Dict[str, Any], collection_name: str) -> MongoDBStorageAdapter:
    """
    Connect to MongoDB and return an adapter for one collection.

    Args:
        conn_params: host, port, username, password, db_name, options
        collection_name: Queue collection name

    Returns:
        Adapter owning the new client

    Raises:
        StorageError: If the server cannot be reached, rejects the credentials
            or the queue indexes cannot be created
    """
    host = conn_params.get('host', 'localhost')
    port = conn_params.get('port', 27017)
    db_name = conn_params.get('db_name', 'doc-queue')

    try:
        client = MongoClient(build_connection_string(conn_params), tz_aware=True)
    except PyMongoError as e:
        raise StorageError(f"Invalid MongoDB connection parameters: {e}") from e

    try:
        client.admin.command('ping')
    except PyMongoError as e:
        logger.error(f"Error connecting to MongoDB: {str(e)}")
        client.close()
        raise StorageError(f"Could not connect to MongoDB at {host}:{port}") from e
    logger.info(f"Connected to MongoDB at {host}:{port}")

    adapter = MongoDBStorageAdapter(client[db_name][collection_name], client=client)
    try:
        adapter.ensure_indexes()
    except StorageError:
        client.close()
        raise
    return adapter
