"""
Document store adapters.
"""

from .factory import build_document_store
from .memory_store import InMemoryDocumentStore

__all__ = ["build_document_store", "InMemoryDocumentStore"]
