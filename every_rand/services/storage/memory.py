"""
In-Memory Document Store

Used by the test suite and by the "memory" storage backend for local runs.
Data lives only as long as the process.

Batches are applied to a copy of the data and swapped in only when every
operation succeeded, so a rejected batch leaves nothing behind.
"""

import asyncio
import copy
from typing import Optional
from uuid import uuid4

from every_rand.services.storage.interface import (
    BatchError,
    BatchOperation,
    BatchOperationType,
    DocumentStore,
    DuplicateError,
    NotFoundError,
    Record,
)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed implementation of the document store."""

    def __init__(self):
        # collection -> record id -> fields (insertion ordered)
        self._collections: dict[str, dict[str, Record]] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _new_id() -> str:
        return uuid4().hex

    @staticmethod
    def _matches(fields: Record, where: Optional[Record]) -> bool:
        if not where:
            return True
        return all(fields.get(key) == value for key, value in where.items())

    async def query(
        self,
        collection: str,
        where: Optional[Record] = None,
        order_by: Optional[str] = None,
    ) -> list[Record]:
        async with self._lock:
            records = [
                {"id": record_id, **copy.deepcopy(fields)}
                for record_id, fields in self._collections.get(collection, {}).items()
                if self._matches(fields, where)
            ]

        if order_by:
            # Records missing the field sort first, like an empty string
            records.sort(key=lambda record: str(record.get(order_by, "")))
        return records

    async def insert(self, collection: str, fields: Record) -> str:
        async with self._lock:
            record_id = self._new_id()
            self._collections.setdefault(collection, {})[record_id] = copy.deepcopy(fields)
            return record_id

    async def update(self, collection: str, record_id: str, fields: Record) -> None:
        async with self._lock:
            records = self._collections.get(collection, {})
            if record_id not in records:
                raise NotFoundError(f"Record not found: {collection}/{record_id}")
            records[record_id].update(copy.deepcopy(fields))

    async def delete(self, collection: str, record_id: str) -> bool:
        async with self._lock:
            records = self._collections.get(collection, {})
            return records.pop(record_id, None) is not None

    async def atomic_batch(self, operations: list[BatchOperation]) -> list[str]:
        async with self._lock:
            staged = copy.deepcopy(self._collections)
            ids = []

            for operation in operations:
                records = staged.setdefault(operation.collection, {})
                if operation.op == BatchOperationType.INSERT:
                    record_id = operation.id or self._new_id()
                    if record_id in records:
                        raise BatchError(
                            f"Batch rejected: {operation.collection}/{record_id} already exists"
                        )
                    records[record_id] = copy.deepcopy(operation.fields)
                else:
                    record_id = operation.id
                    if record_id not in records:
                        raise BatchError(
                            f"Batch rejected: {operation.collection}/{record_id} not found"
                        )
                    records[record_id].update(copy.deepcopy(operation.fields))
                ids.append(record_id)

            self._collections = staged
            return ids

    async def put(self, collection: str, record_id: str, fields: Record) -> None:
        """
        Store a record under a caller-chosen ID.

        Used to prepare fixtures; raises DuplicateError if the ID is taken.
        """
        async with self._lock:
            records = self._collections.setdefault(collection, {})
            if record_id in records:
                raise DuplicateError(f"Record already exists: {collection}/{record_id}")
            records[record_id] = copy.deepcopy(fields)

    def count(self, collection: str) -> int:
        """Number of records in a collection."""
        return len(self._collections.get(collection, {}))
