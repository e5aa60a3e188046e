"""
Storage Services Package

Provides the abstract document store interface and its implementations.
Google Sheets is the durable backend; the in-memory store serves tests and
local runs.
"""

from every_rand.services.storage.interface import (
    BatchError,
    BatchOperation,
    BatchOperationType,
    ConnectionError,
    DocumentStore,
    DuplicateError,
    NotFoundError,
    Record,
    StorageError,
)
from every_rand.services.storage.memory import InMemoryDocumentStore
from every_rand.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
)

__all__ = [
    # Interface
    "BatchOperation",
    "BatchOperationType",
    "DocumentStore",
    "Record",
    # Exceptions
    "BatchError",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
]
