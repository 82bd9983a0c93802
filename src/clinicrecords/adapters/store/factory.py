"""Build the configured document store backend."""

import logging

from ...application.ports.document_store import DocumentStore
from ...core.config import Settings
from ...core.exceptions import ConfigurationError
from .memory_store import InMemoryDocumentStore

logger = logging.getLogger(__name__)


def build_document_store(settings: Settings) -> DocumentStore:
    backend = settings.store.backend
    if backend == "mongo":
        if not settings.database.uri:
            raise ConfigurationError(
                "MONGO_URI must be set when STORE_BACKEND=mongo",
                {"backend": backend},
            )
        from .mongo_store import MongoDocumentStore

        logger.info("Using MongoDB document store (db=%s)", settings.database.db_name)
        return MongoDocumentStore.from_settings(settings.database)

    if settings.is_production:
        logger.warning("In-memory document store selected in production; data is not persisted")
    else:
        logger.info("Using in-memory document store")
    return InMemoryDocumentStore()
