"""
Application ports package.
"""

from .document_store import (
    DOCUMENT_ID,
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    OrderBy,
    QueryFilter,
    Subscription,
)

__all__ = [
    "DOCUMENT_ID",
    "SERVER_TIMESTAMP",
    "DocumentSnapshot",
    "DocumentStore",
    "OrderBy",
    "QueryFilter",
    "Subscription",
]
