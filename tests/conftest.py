"""Shared fixtures: in-memory store, a controllable session provider, ledgers."""

from typing import Optional

import pytest

from every_rand.auth.interface import ListenerRegistry, SessionProviderInterface
from every_rand.ledger import BudgetLedger
from every_rand.models import Session
from every_rand.services.storage import InMemoryDocumentStore, StorageError


class FakeSessionProvider(SessionProviderInterface):
    """Session provider whose identity the test sets directly."""

    def __init__(self, owner_id: Optional[str] = "owner-1"):
        self._listeners = ListenerRegistry()
        self._session = Session(owner_id=owner_id, email=f"{owner_id}@example.com") if owner_id else None

    def current_session(self) -> Optional[Session]:
        return self._session

    def subscribe(self, listener):
        return self._listeners.add(listener)

    def sign_out(self) -> None:
        self._session = None
        self._listeners.notify(None)

    def switch_to(self, owner_id: str, notify: bool = True) -> None:
        self._session = Session(owner_id=owner_id, email=f"{owner_id}@example.com")
        if notify:
            self._listeners.notify(self._session)


class FlakyDocumentStore(InMemoryDocumentStore):
    """In-memory store that can be told to fail specific operations."""

    def __init__(self):
        super().__init__()
        self.fail_updates = False
        self.fail_deletes = False
        self.fail_inserts = False
        self.fail_batches = False
        self.fail_queries = False
        self.update_calls: list[tuple[str, dict]] = []

    async def query(self, collection, where=None, order_by=None):
        if self.fail_queries:
            raise StorageError("network down")
        return await super().query(collection, where, order_by)

    async def insert(self, collection, fields):
        if self.fail_inserts:
            raise StorageError("network down")
        return await super().insert(collection, fields)

    async def update(self, collection, record_id, fields):
        self.update_calls.append((record_id, dict(fields)))
        if self.fail_updates:
            raise StorageError("network down")
        await super().update(collection, record_id, fields)

    async def delete(self, collection, record_id):
        if self.fail_deletes:
            raise StorageError("network down")
        return await super().delete(collection, record_id)

    async def atomic_batch(self, operations):
        if self.fail_batches:
            raise StorageError("quota exceeded")
        return await super().atomic_batch(operations)


@pytest.fixture
def store():
    return FlakyDocumentStore()


@pytest.fixture
def provider():
    return FakeSessionProvider("owner-1")


@pytest.fixture
def failures():
    return []


@pytest.fixture
def ledger(store, provider, failures):
    ledger = BudgetLedger(store, provider, on_write_failed=failures.append)
    yield ledger
    ledger.close()
