"""
MongoDB document store built on motor.

Each leaf collection name (``records``, ``versions``, ``prescriptions``,
``logs``, ``auditLog``, ``clinics``) maps to one MongoDB collection. A
document's ``_id`` is its full path, and ``_parent`` holds the collection
path so queries stay scoped to a single clinic and parent document.
"""

import logging
import re
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

import certifi
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from ...application.ports.document_store import (
    DOCUMENT_ID,
    DocumentSnapshot,
    DocumentStore,
    OrderBy,
    QueryFilter,
    Subscription,
    resolve_server_timestamps,
)
from ...core.config import DatabaseSettings
from ...domain.errors import NotFoundError, StoreFailureError
from .clock import MonotonicClock

logger = logging.getLogger(__name__)

_PARENT = "_parent"
_DOC_ID = "_doc_id"

_OPERATORS = {
    "!=": "$ne",
    "in": "$in",
    "<": "$lt",
    "<=": "$lte",
    ">": "$gt",
    ">=": "$gte",
}


def _split_path(collection: str) -> Tuple[str, str]:
    """Return (parent path, leaf collection name)."""
    parent, _, leaf = collection.rpartition("/")
    return parent, leaf


def _full_id(collection: str, doc_id: str) -> str:
    return f"{collection}/{doc_id}"


def _to_mongo_field(field_name: str) -> str:
    return _DOC_ID if field_name == DOCUMENT_ID else field_name


def _build_filter(collection: str, filters: Optional[Sequence[QueryFilter]]) -> Dict[str, Any]:
    mongo_filter: Dict[str, Any] = {_PARENT: collection}
    for query_filter in filters or ():
        name = _to_mongo_field(query_filter.field)
        if query_filter.op == "==":
            condition: Any = query_filter.value
        else:
            condition = {_OPERATORS[query_filter.op]: query_filter.value}
        existing = mongo_filter.get(name)
        if isinstance(existing, dict) and isinstance(condition, dict):
            existing.update(condition)
        else:
            mongo_filter[name] = condition
    return mongo_filter


def _to_snapshot(document: Dict[str, Any]) -> DocumentSnapshot:
    doc_id = document.pop(_DOC_ID)
    document.pop("_id", None)
    document.pop(_PARENT, None)
    return DocumentSnapshot(id=doc_id, data=document)


class MongoSubscription(Subscription):
    """Change-stream backed live query; re-queries after every change."""

    def __init__(
        self,
        store: "MongoDocumentStore",
        collection: str,
        filters: Optional[Sequence[QueryFilter]],
        order_by: Optional[Sequence[OrderBy]],
        limit: Optional[int],
    ) -> None:
        self._store = store
        self._collection = collection
        self._filters = filters
        self._order_by = order_by
        self._limit = limit
        self._stream = None
        self._closed = False

    def _pipeline(self) -> List[Dict[str, Any]]:
        prefix = re.escape(self._collection + "/")
        return [{"$match": {"documentKey._id": {"$regex": f"^{prefix}[^/]+$"}}}]

    async def __anext__(self) -> List[DocumentSnapshot]:
        if self._closed:
            raise StopAsyncIteration
        try:
            if self._stream is None:
                # watch() is lazy; try_next() opens the server cursor before the
                # initial read so no change is missed. A change it returns is
                # already covered by that read.
                self._stream = self._store._mongo_collection(self._collection).watch(
                    self._pipeline()
                )
                await self._stream.try_next()
            else:
                await self._stream.next()
                if self._closed:
                    raise StopAsyncIteration
        except PyMongoError as e:
            raise StoreFailureError("subscribe", self._collection, e) from e
        return await self._store.query(
            self._collection, self._filters, self._order_by, self._limit
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._stream is not None:
            await self._stream.close()
            self._stream = None


class MongoDocumentStore(DocumentStore):
    """DocumentStore implementation over an AsyncIOMotorClient."""

    def __init__(self, client: AsyncIOMotorClient, db_name: str) -> None:
        self._client = client
        self._db = client[db_name]
        self._clock = MonotonicClock(resolution=timedelta(milliseconds=1))

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "MongoDocumentStore":
        mongo_uri = settings.uri
        # Enable TLS only for Atlas SRV URIs
        if mongo_uri.startswith("mongodb+srv://"):
            client = AsyncIOMotorClient(
                mongo_uri,
                serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
                tls=True,
                tlsCAFile=certifi.where(),
                tlsAllowInvalidCertificates=False,
                tz_aware=True,
            )
        else:
            client = AsyncIOMotorClient(
                mongo_uri,
                serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
                tz_aware=True,
            )
        return cls(client, settings.db_name)

    def _mongo_collection(self, collection: str) -> AsyncIOMotorCollection:
        _, leaf = _split_path(collection)
        return self._db[leaf]

    async def ensure_indexes(self) -> None:
        """Create the scoping and ordering indexes used by the core's queries."""
        try:
            for leaf in ("records", "versions", "prescriptions", "logs", "auditLog", "clinics"):
                await self._db[leaf].create_index([(_PARENT, ASCENDING), (_DOC_ID, ASCENDING)])
            await self._db["versions"].create_index(
                [(_PARENT, ASCENDING), ("version", DESCENDING), ("saved_at", DESCENDING)]
            )
            await self._db["records"].create_index([(_PARENT, ASCENDING), ("patient_id", ASCENDING)])
            await self._db["prescriptions"].create_index(
                [(_PARENT, ASCENDING), ("status", ASCENDING), ("expires_at", ASCENDING)]
            )
            await self._db["prescriptions"].create_index("validation_code")
            await self._db["auditLog"].create_index([(_PARENT, ASCENDING), ("timestamp", DESCENDING)])
        except PyMongoError as e:
            raise StoreFailureError("create_index", self._db.name, e) from e
        logger.info("Document store indexes ensured")

    def _prepare(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        document = resolve_server_timestamps(data, self._clock.now())
        document["_id"] = _full_id(collection, doc_id)
        document[_DOC_ID] = doc_id
        document[_PARENT] = collection
        return document

    async def get(self, collection: str, doc_id: str) -> Optional[DocumentSnapshot]:
        try:
            document = await self._mongo_collection(collection).find_one(
                {"_id": _full_id(collection, doc_id)}
            )
        except PyMongoError as e:
            raise StoreFailureError("get", collection, e) from e
        return _to_snapshot(document) if document else None

    async def put(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        document = self._prepare(collection, doc_id, data)
        try:
            await self._mongo_collection(collection).replace_one(
                {"_id": document["_id"]}, document, upsert=True
            )
        except PyMongoError as e:
            raise StoreFailureError("put", collection, e) from e

    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        fields = resolve_server_timestamps(data, self._clock.now())
        try:
            result = await self._mongo_collection(collection).update_one(
                {"_id": _full_id(collection, doc_id)}, {"$set": fields}
            )
        except PyMongoError as e:
            raise StoreFailureError("update", collection, e) from e
        if result.matched_count == 0:
            raise NotFoundError(
                f"Document '{doc_id}' not found in '{collection}'",
                {"collection": collection, "doc_id": doc_id},
            )

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            await self._mongo_collection(collection).delete_one(
                {"_id": _full_id(collection, doc_id)}
            )
        except PyMongoError as e:
            raise StoreFailureError("delete", collection, e) from e

    async def query(
        self,
        collection: str,
        filters: Optional[Sequence[QueryFilter]] = None,
        order_by: Optional[Sequence[OrderBy]] = None,
        limit: Optional[int] = None,
    ) -> List[DocumentSnapshot]:
        cursor = self._mongo_collection(collection).find(_build_filter(collection, filters))
        if order_by:
            cursor = cursor.sort(
                [
                    (_to_mongo_field(o.field), DESCENDING if o.descending else ASCENDING)
                    for o in order_by
                ]
            )
        if limit is not None:
            cursor = cursor.limit(limit)
        try:
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            raise StoreFailureError("query", collection, e) from e
        return [_to_snapshot(document) for document in documents]

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = str(ObjectId())
        document = self._prepare(collection, doc_id, data)
        try:
            await self._mongo_collection(collection).insert_one(document)
        except PyMongoError as e:
            raise StoreFailureError("add", collection, e) from e
        return doc_id

    def subscribe(
        self,
        collection: str,
        filters: Optional[Sequence[QueryFilter]] = None,
        order_by: Optional[Sequence[OrderBy]] = None,
        limit: Optional[int] = None,
    ) -> Subscription:
        return MongoSubscription(self, collection, filters, order_by, limit)

    async def close(self) -> None:
        self._client.close()
        logger.info("MongoDB client closed")
