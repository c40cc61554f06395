"""Flat-file document storage."""

from careerdesk.storage.cache import CollectionCache
from careerdesk.storage.document_store import (
    CorruptCollectionError,
    DocumentStore,
    DuplicateDocumentError,
    StorageError,
)

__all__ = [
    "CollectionCache",
    "CorruptCollectionError",
    "DocumentStore",
    "DuplicateDocumentError",
    "StorageError",
]
