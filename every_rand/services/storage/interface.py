"""
Abstract Document Store Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for another document database later
2. Use in-memory storage for testing
3. Keep the ledger decoupled from storage implementation

Records are schemaless key/value documents grouped into collections.
The store does no validation of its own: callers validate before writing.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


Record = dict[str, Any]


class BatchOperationType(str, Enum):
    """Operations allowed inside an atomic batch."""
    INSERT = "insert"
    UPDATE = "update"


class BatchOperation(BaseModel):
    """
    One write inside an atomic batch.

    Inserts may leave id empty to let the store assign one.
    Updates must name the record they change.
    """

    op: BatchOperationType
    collection: str = Field(..., min_length=1)
    id: Optional[str] = None
    fields: Record = Field(default_factory=dict)

    @model_validator(mode='after')
    def require_id_for_update(self) -> 'BatchOperation':
        if self.op == BatchOperationType.UPDATE and not self.id:
            raise ValueError("Update operations need a record id")
        return self

    @classmethod
    def insert(cls, collection: str, fields: Record) -> 'BatchOperation':
        return cls(op=BatchOperationType.INSERT, collection=collection, fields=fields)

    @classmethod
    def update(cls, collection: str, record_id: str, fields: Record) -> 'BatchOperation':
        return cls(
            op=BatchOperationType.UPDATE,
            collection=collection,
            id=record_id,
            fields=fields,
        )


class DocumentStore(ABC):
    """
    Abstract interface for document storage operations.

    Any storage implementation (Google Sheets, in-memory, ...)
    must implement these methods.
    """

    @abstractmethod
    async def query(
        self,
        collection: str,
        where: Optional[Record] = None,
        order_by: Optional[str] = None,
    ) -> list[Record]:
        """
        Fetch records from a collection.

        Args:
            collection: Collection name
            where: Equality filters ({field: value}); all must match
            order_by: Field to sort ascending by (stable)

        Returns:
            Matching records, each including its "id"

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def insert(self, collection: str, fields: Record) -> str:
        """
        Insert a new record.

        Returns:
            The ID assigned by the store

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update(self, collection: str, record_id: str, fields: Record) -> None:
        """
        Merge fields into an existing record.

        Raises:
            NotFoundError: If the record doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, record_id: str) -> bool:
        """
        Delete a record by ID.

        Returns:
            True if a record was deleted, False if it did not exist

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def atomic_batch(self, operations: list[BatchOperation]) -> list[str]:
        """
        Apply several writes as one unit: either all of them or none.

        Returns:
            Record IDs in the same order as the operations

        Raises:
            BatchError: If any operation is invalid (nothing is applied)
            StorageError: If the write fails (nothing is applied)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Record not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a record whose ID already exists."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class BatchError(StorageError):
    """An atomic batch was rejected; none of its writes were applied."""
    pass
