"""
Process-local document store.

Backs the test suite and local development. Writes notify live
subscriptions on the written collection through asyncio queues.
"""

import asyncio
import copy
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from bson import ObjectId

from ...application.ports.document_store import (
    DOCUMENT_ID,
    DocumentSnapshot,
    DocumentStore,
    OrderBy,
    QueryFilter,
    Subscription,
    resolve_server_timestamps,
)
from ...domain.errors import NotFoundError
from .clock import MonotonicClock

logger = logging.getLogger(__name__)


def _field_value(doc_id: str, data: Dict[str, Any], field_name: str) -> Any:
    if field_name == DOCUMENT_ID:
        return doc_id
    return data.get(field_name)


def _matches(doc_id: str, data: Dict[str, Any], query_filter: QueryFilter) -> bool:
    if query_filter.field != DOCUMENT_ID and query_filter.field not in data:
        return False
    value = _field_value(doc_id, data, query_filter.field)
    op = query_filter.op
    if op == "==":
        return value == query_filter.value
    if op == "!=":
        return value != query_filter.value
    if op == "in":
        return value in query_filter.value
    if value is None:
        return False
    try:
        if op == "<":
            return value < query_filter.value
        if op == "<=":
            return value <= query_filter.value
        if op == ">":
            return value > query_filter.value
        if op == ">=":
            return value >= query_filter.value
    except TypeError:
        return False
    return False


class InMemorySubscription(Subscription):
    def __init__(
        self,
        store: "InMemoryDocumentStore",
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
        self._changes: "asyncio.Queue[None]" = asyncio.Queue()
        self._started = False
        self._closed = False
        store._register(collection, self)

    def notify(self) -> None:
        self._changes.put_nowait(None)

    async def __anext__(self) -> List[DocumentSnapshot]:
        if self._closed:
            raise StopAsyncIteration
        if self._started:
            await self._changes.get()
            # Coalesce bursts of writes into a single re-query
            while not self._changes.empty():
                self._changes.get_nowait()
            if self._closed:
                raise StopAsyncIteration
        self._started = True
        return await self._store.query(
            self._collection, self._filters, self._order_by, self._limit
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._store._unregister(self._collection, self)
        self._changes.put_nowait(None)


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed store keyed by collection path and document id."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._subscriptions: Dict[str, Set[InMemorySubscription]] = {}
        self._clock = MonotonicClock(source=clock)

    # Subscription registry

    def _register(self, collection: str, subscription: InMemorySubscription) -> None:
        self._subscriptions.setdefault(collection, set()).add(subscription)

    def _unregister(self, collection: str, subscription: InMemorySubscription) -> None:
        listeners = self._subscriptions.get(collection)
        if listeners is None:
            return
        listeners.discard(subscription)
        if not listeners:
            del self._subscriptions[collection]

    def listener_count(self, collection: str) -> int:
        return len(self._subscriptions.get(collection, ()))

    def _notify(self, collection: str) -> None:
        for subscription in list(self._subscriptions.get(collection, ())):
            subscription.notify()

    # DocumentStore

    async def get(self, collection: str, doc_id: str) -> Optional[DocumentSnapshot]:
        data = self._collections.get(collection, {}).get(doc_id)
        if data is None:
            return None
        return DocumentSnapshot(id=doc_id, data=copy.deepcopy(data))

    async def put(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        resolved = resolve_server_timestamps(copy.deepcopy(data), self._clock.now())
        self._collections.setdefault(collection, {})[doc_id] = resolved
        self._notify(collection)

    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        existing = self._collections.get(collection, {}).get(doc_id)
        if existing is None:
            raise NotFoundError(
                f"Document '{doc_id}' not found in '{collection}'",
                {"collection": collection, "doc_id": doc_id},
            )
        existing.update(resolve_server_timestamps(copy.deepcopy(data), self._clock.now()))
        self._notify(collection)

    async def delete(self, collection: str, doc_id: str) -> None:
        documents = self._collections.get(collection, {})
        if documents.pop(doc_id, None) is not None:
            self._notify(collection)

    async def query(
        self,
        collection: str,
        filters: Optional[Sequence[QueryFilter]] = None,
        order_by: Optional[Sequence[OrderBy]] = None,
        limit: Optional[int] = None,
    ) -> List[DocumentSnapshot]:
        results = [
            DocumentSnapshot(id=doc_id, data=copy.deepcopy(data))
            for doc_id, data in self._collections.get(collection, {}).items()
            if all(_matches(doc_id, data, f) for f in (filters or ()))
        ]
        # Stable sorts applied from the least significant key
        for ordering in reversed(list(order_by or ())):
            results.sort(
                key=lambda snap, name=ordering.field: (
                    _field_value(snap.id, snap.data, name) is not None,
                    _field_value(snap.id, snap.data, name),
                ),
                reverse=ordering.descending,
            )
        if limit is not None:
            results = results[:limit]
        return results

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = str(ObjectId())
        await self.put(collection, doc_id, data)
        return doc_id

    def subscribe(
        self,
        collection: str,
        filters: Optional[Sequence[QueryFilter]] = None,
        order_by: Optional[Sequence[OrderBy]] = None,
        limit: Optional[int] = None,
    ) -> Subscription:
        return InMemorySubscription(self, collection, filters, order_by, limit)

    async def close(self) -> None:
        for collection in list(self._subscriptions):
            for subscription in list(self._subscriptions.get(collection, ())):
                await subscription.close()
        logger.debug("In-memory document store closed")
