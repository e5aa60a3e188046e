"""Services package."""

from every_rand.services.storage import (
    BatchError,
    BatchOperation,
    ConnectionError,
    DocumentStore,
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    NotFoundError,
    StorageError,
)

__all__ = [
    "BatchError",
    "BatchOperation",
    "ConnectionError",
    "DocumentStore",
    "DuplicateError",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
    "NotFoundError",
    "StorageError",
]
