"""Tests for the email/password session provider."""

import pytest

from every_rand.auth import (
    AccountSessionProvider,
    AuthError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    WeakPasswordError,
)
from every_rand.ledger import BudgetLedger
from every_rand.services.storage import InMemoryDocumentStore, StorageError


class UnreachableStore(InMemoryDocumentStore):
    async def query(self, collection, where=None, order_by=None):
        raise StorageError("network down")


@pytest.fixture
def accounts_store():
    return InMemoryDocumentStore()


@pytest.fixture
def auth(accounts_store):
    return AccountSessionProvider(accounts_store)


class TestSignUp:
    """Tests for registering accounts."""

    @pytest.mark.asyncio
    async def test_sign_up_starts_session(self, auth, accounts_store):
        session = await auth.sign_up("Thandi@Example.com ", "secret1")

        assert auth.current_session() == session
        assert session.email == "thandi@example.com"
        records = await accounts_store.query("accounts")
        assert records[0]["id"] == session.owner_id
        assert records[0]["passwordHash"] != "secret1"

    @pytest.mark.asyncio
    async def test_short_password(self, auth):
        with pytest.raises(WeakPasswordError, match="at least 6 characters"):
            await auth.sign_up("thandi@example.com", "12345")
        assert auth.current_session() is None

    @pytest.mark.asyncio
    async def test_configurable_minimum(self, accounts_store):
        auth = AccountSessionProvider(accounts_store, min_password_length=10)
        with pytest.raises(WeakPasswordError, match="at least 10"):
            await auth.sign_up("thandi@example.com", "secret1")

    @pytest.mark.asyncio
    async def test_invalid_email(self, auth):
        with pytest.raises(InvalidCredentialsError):
            await auth.sign_up("not-an-email", "secret1")

    @pytest.mark.asyncio
    async def test_duplicate_email(self, auth):
        await auth.sign_up("thandi@example.com", "secret1")
        auth.sign_out()

        with pytest.raises(EmailAlreadyRegisteredError, match="already registered"):
            await auth.sign_up("THANDI@example.com", "another1")


class TestSignIn:
    """Tests for signing in and out."""

    @pytest.mark.asyncio
    async def test_sign_in(self, auth):
        registered = await auth.sign_up("thandi@example.com", "secret1")
        auth.sign_out()

        session = await auth.sign_in("thandi@example.com", "secret1")

        assert session.owner_id == registered.owner_id

    @pytest.mark.asyncio
    async def test_wrong_password(self, auth):
        await auth.sign_up("thandi@example.com", "secret1")
        auth.sign_out()

        with pytest.raises(InvalidCredentialsError, match="Incorrect email or password"):
            await auth.sign_in("thandi@example.com", "wrong-password")
        assert auth.current_session() is None

    @pytest.mark.asyncio
    async def test_unknown_email(self, auth):
        with pytest.raises(InvalidCredentialsError):
            await auth.sign_in("nobody@example.com", "secret1")

    @pytest.mark.asyncio
    async def test_store_unreachable(self):
        auth = AccountSessionProvider(UnreachableStore())
        with pytest.raises(AuthError, match="internet connection"):
            await auth.sign_in("thandi@example.com", "secret1")

    @pytest.mark.asyncio
    async def test_malformed_account_record(self, auth, accounts_store):
        """A damaged account row reports a friendly error instead of crashing."""
        await accounts_store.put("accounts", "acc-1", {"email": "thandi@example.com"})

        with pytest.raises(AuthError, match="internet connection"):
            await auth.sign_in("thandi@example.com", "secret1")
        with pytest.raises(AuthError):
            await auth.sign_up("thandi@example.com", "secret1")
        assert auth.current_session() is None

    @pytest.mark.asyncio
    async def test_listeners_see_every_change(self, auth):
        seen = []
        unsubscribe = auth.subscribe(seen.append)

        session = await auth.sign_up("thandi@example.com", "secret1")
        auth.sign_out()
        auth.sign_out()
        unsubscribe()
        await auth.sign_in("thandi@example.com", "secret1")

        assert seen == [session, None]

    @pytest.mark.asyncio
    async def test_accounts_have_separate_ledgers(self, accounts_store):
        auth = AccountSessionProvider(accounts_store)
        ledger = BudgetLedger(accounts_store, auth)

        await auth.sign_up("first@example.com", "secret1")
        first_items = await ledger.load()
        ledger.update_field(first_items[1].id, "plannedAmount", "1")
        await ledger.flush()

        await auth.sign_up("second@example.com", "secret2")
        assert ledger.items == []
        second_items = await ledger.load()

        assert {i.id for i in first_items}.isdisjoint({i.id for i in second_items})
        assert second_items[1].planned_amount == 8500
        ledger.close()
