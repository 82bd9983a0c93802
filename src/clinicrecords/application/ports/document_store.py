"""
Document store interface the core persists through.

Collections are addressed by slash-separated paths such as
``clinics/{clinic_id}/records`` or
``clinics/{clinic_id}/records/{record_id}/versions``. Implementations must
resolve ``SERVER_TIMESTAMP`` values with their own monotonic clock at write
time and raise ``StoreFailureError`` when the backend rejects an operation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence


class _ServerTimestamp:
    """Sentinel replaced by the store's clock when a document is written."""

    _instance = None

    def __new__(cls) -> "_ServerTimestamp":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"

    def __deepcopy__(self, memo: Dict[int, Any]) -> "_ServerTimestamp":
        return self


SERVER_TIMESTAMP = _ServerTimestamp()

# Pseudo-field addressing the document id in filters and orderings
DOCUMENT_ID = "__id__"

FILTER_OPERATORS = ("==", "!=", "in", "<", "<=", ">", ">=")


@dataclass(frozen=True)
class QueryFilter:
    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in FILTER_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")


@dataclass(frozen=True)
class OrderBy:
    field: str
    descending: bool = False


@dataclass
class DocumentSnapshot:
    """A document id with a copy of its stored fields."""

    id: str
    data: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


def _resolve(value: Any, now: datetime) -> Any:
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, dict):
        return {key: _resolve(item, now) for key, item in value.items()}
    if isinstance(value, list):
        return [_resolve(item, now) for item in value]
    return value


def resolve_server_timestamps(data: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """Return a copy of ``data`` with every sentinel replaced by ``now``."""
    return _resolve(data, now)


class Subscription:
    """Live query: an async iterator of full result sets.

    The first item is the current result set; every later item is the
    re-queried result after a change to the watched collection. ``close()``
    detaches the registration so the store stops pushing.
    """

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> List[DocumentSnapshot]:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError


class DocumentStore:
    """Store interface for path-addressed documents."""

    async def get(self, collection: str, doc_id: str) -> Optional[DocumentSnapshot]:
        """Read one document, or None if it does not exist."""
        raise NotImplementedError

    async def put(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Create or fully replace a document."""
        raise NotImplementedError

    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Merge fields into an existing document; raises NotFoundError if absent."""
        raise NotImplementedError

    async def delete(self, collection: str, doc_id: str) -> None:
        raise NotImplementedError

    async def query(
        self,
        collection: str,
        filters: Optional[Sequence[QueryFilter]] = None,
        order_by: Optional[Sequence[OrderBy]] = None,
        limit: Optional[int] = None,
    ) -> List[DocumentSnapshot]:
        raise NotImplementedError

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Append a document with a generated id and return that id."""
        raise NotImplementedError

    def subscribe(
        self,
        collection: str,
        filters: Optional[Sequence[QueryFilter]] = None,
        order_by: Optional[Sequence[OrderBy]] = None,
        limit: Optional[int] = None,
    ) -> Subscription:
        raise NotImplementedError

    async def close(self) -> None:
        """Release backend resources."""
        return None
