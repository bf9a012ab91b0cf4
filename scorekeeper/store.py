"""
Document store adapter.

Containers are collections in a MongoDB-API database (Azure Cosmos DB's
MongoDB API in production, mongomock in tests). Documents keep their own
`id`; the collection `_id` mirrors it and never leaves this module.
"""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pymongo import MongoClient
from pymongo.errors import DuplicateKeyError

from .config import Settings
from .errors import AppError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContainerSpec:
    name: str
    partition_field: str


CONTAINERS: Dict[str, ContainerSpec] = {
    spec.name: spec
    for spec in (
        ContainerSpec("games", "id"),
        ContainerSpec("rosters", "id"),
        ContainerSpec("attendance", "id"),
        ContainerSpec("goals", "gameId"),
        ContainerSpec("penalties", "gameId"),
        ContainerSpec("ot-shootout", "gameId"),
        ContainerSpec("shots-on-goal", "gameId"),
    )
}


class StoreError(AppError):
    status_code = 500
    code = "STORE_ERROR"


class ItemNotFound(StoreError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, container: str, id: str):
        super().__init__(f"Item '{id}' not found in {container}")
        self.container = container
        self.id = id


class ItemConflict(StoreError):
    status_code = 409
    code = "CONFLICT"

    def __init__(self, container: str, id: str):
        super().__init__(f"Item '{id}' already exists in {container}")
        self.container = container
        self.id = id


@dataclass
class QuerySpec:
    filter: Dict[str, Any] = field(default_factory=dict)
    sort: List[Tuple[str, int]] = field(default_factory=list)
    limit: int = 0
    projection: Optional[Dict[str, Any]] = None


def _strip(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    return doc


class DocumentStore:
    def __init__(self, client: MongoClient, database_name: str):
        self.client = client
        self.database_name = database_name
        self.db = client[database_name]

    @classmethod
    def from_settings(cls, settings: Settings) -> "DocumentStore":
        settings.require_database()
        client = MongoClient(
            settings.cosmos_db_uri,
            username=settings.database_account,
            password=settings.cosmos_db_key,
            tls=True,
            retryWrites=False,
            serverSelectionTimeoutMS=5000,
        )
        logger.info(
            f"Document store configured for database '{settings.cosmos_db_database_name}'"
        )
        return cls(client, settings.cosmos_db_database_name)

    def container(self, name: str) -> ContainerSpec:
        spec = CONTAINERS.get(name)
        if spec is None:
            raise ValueError(f"Unknown container: {name}")
        return spec

    def _collection(self, name: str):
        return self.db[self.container(name).name]

    def _id_filter(self, name: str, id: str, partition_key: Optional[str]) -> Dict[str, Any]:
        spec = self.container(name)
        flt: Dict[str, Any] = {"_id": id}
        if partition_key is not None and spec.partition_field != "id":
            flt[spec.partition_field] = partition_key
        return flt

    @staticmethod
    def _prepare(item: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(item)
        doc.setdefault("id", str(uuid.uuid4()))
        if not doc["id"]:
            doc["id"] = str(uuid.uuid4())
        doc["_id"] = doc["id"]
        doc["_ts"] = int(time.time())
        return doc

    def create(self, container: str, item: Dict[str, Any]) -> Dict[str, Any]:
        collection = self._collection(container)
        doc = self._prepare(item)
        try:
            collection.insert_one(doc)
        except DuplicateKeyError:
            raise ItemConflict(container, doc["id"])
        return _strip(doc)

    def replace(
        self,
        container: str,
        id: str,
        item: Dict[str, Any],
        partition_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        collection = self._collection(container)
        doc = self._prepare({**item, "id": id})
        result = collection.replace_one(self._id_filter(container, id, partition_key), doc)
        if result.matched_count == 0:
            raise ItemNotFound(container, id)
        return _strip(doc)

    def upsert(self, container: str, item: Dict[str, Any]) -> Dict[str, Any]:
        collection = self._collection(container)
        doc = self._prepare(item)
        collection.replace_one({"_id": doc["_id"]}, doc, upsert=True)
        return _strip(doc)

    def delete(self, container: str, id: str, partition_key: Optional[str] = None) -> None:
        collection = self._collection(container)
        result = collection.delete_one(self._id_filter(container, id, partition_key))
        if result.deleted_count == 0:
            raise ItemNotFound(container, id)

    def read(self, container: str, id: str, partition_key: Optional[str] = None) -> Dict[str, Any]:
        collection = self._collection(container)
        doc = collection.find_one(self._id_filter(container, id, partition_key), {"_id": 0})
        if doc is None:
            raise ItemNotFound(container, id)
        return doc

    def query(self, container: str, spec: Optional[QuerySpec] = None) -> List[Dict[str, Any]]:
        spec = spec or QuerySpec()
        collection = self._collection(container)
        projection = dict(spec.projection) if spec.projection else {}
        projection["_id"] = 0
        cursor = collection.find(spec.filter, projection)
        if spec.sort:
            cursor = cursor.sort(spec.sort)
        if spec.limit:
            cursor = cursor.limit(spec.limit)
        return [_strip(doc) for doc in cursor]

    def ping(self) -> bool:
        """Cheapest round trip: fetch at most one game id."""
        self._collection("games").find_one({}, {"_id": 1})
        return True
