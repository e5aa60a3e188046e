"""
Email/Password Session Provider

Accounts live in the document store's "accounts" collection; passwords are
stored only as argon2 hashes. Errors carry the message shown to the user.
"""

from typing import Optional

import structlog
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError
from pydantic import ValidationError

from every_rand.auth.interface import (
    ListenerRegistry,
    SessionListener,
    SessionProviderInterface,
    Unsubscribe,
)
from every_rand.models.account import Account, Session, normalise_email
from every_rand.models.budget import utc_now
from every_rand.services.storage import DocumentStore, StorageError


ACCOUNTS_COLLECTION = "accounts"

_hasher = PasswordHasher()

logger = structlog.get_logger(__name__)


class AuthError(Exception):
    """Base exception for sign-in and sign-up failures."""

    default_message = "An unknown error occurred. Check your internet connection."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class WeakPasswordError(AuthError):
    """Password shorter than the configured minimum."""

    def __init__(self, min_length: int):
        self.min_length = min_length
        super().__init__(f"Password must be at least {min_length} characters long.")


class InvalidCredentialsError(AuthError):
    """Unknown email or wrong password."""

    default_message = "Incorrect email or password. Please check your details."


class EmailAlreadyRegisteredError(AuthError):
    """Sign-up with an email that already has an account."""

    default_message = "This email address is already registered. Try logging in."


class AccountSessionProvider(SessionProviderInterface):
    """
    Session provider backed by accounts in the document store.

    Holds at most one session: this object represents one interactive user.
    """

    def __init__(
        self,
        store: DocumentStore,
        min_password_length: int = 6,
        collection: str = ACCOUNTS_COLLECTION,
    ):
        self._store = store
        self._min_password_length = min_password_length
        self._collection = collection
        self._session: Optional[Session] = None
        self._listeners = ListenerRegistry()

    def current_session(self) -> Optional[Session]:
        return self._session

    def subscribe(self, listener: SessionListener) -> Unsubscribe:
        return self._listeners.add(listener)

    def _check_password(self, password: str) -> None:
        if len(password) < self._min_password_length:
            raise WeakPasswordError(self._min_password_length)

    async def _find_account(self, email: str) -> Optional[Account]:
        try:
            records = await self._store.query(
                self._collection,
                where={"email": email},
            )
        except StorageError as e:
            logger.error("account_lookup_failed", error=str(e))
            raise AuthError() from e
        if not records:
            return None
        try:
            return Account.from_document(records[0])
        except ValidationError as e:
            logger.error(
                "malformed_account",
                account_id=records[0].get("id"),
                error_count=e.error_count(),
            )
            raise AuthError() from e

    def _start_session(self, account: Account) -> Session:
        self._session = Session(owner_id=account.id, email=account.email)
        self._listeners.notify(self._session)
        return self._session

    async def sign_up(self, email: str, password: str) -> Session:
        """
        Register a new account and sign it in.

        Raises:
            WeakPasswordError: Password too short
            EmailAlreadyRegisteredError: Email already has an account
            AuthError: Storage unreachable
        """
        self._check_password(password)
        email = normalise_email(email)
        if "@" not in email:
            raise InvalidCredentialsError("Please enter a valid email address.")

        if await self._find_account(email) is not None:
            logger.info("sign_up_rejected", email=email, reason="already_registered")
            raise EmailAlreadyRegisteredError()

        password_hash = _hasher.hash(password)
        created_at = utc_now()
        try:
            account_id = await self._store.insert(
                self._collection,
                {
                    "email": email,
                    "passwordHash": password_hash,
                    "createdAt": created_at.isoformat(),
                },
            )
        except StorageError as e:
            logger.error("sign_up_failed", email=email, error=str(e))
            raise AuthError() from e

        account = Account(
            id=account_id,
            email=email,
            password_hash=password_hash,
            created_at=created_at,
        )
        logger.info("user_signed_up", owner_id=account.id)
        return self._start_session(account)

    async def sign_in(self, email: str, password: str) -> Session:
        """
        Verify credentials and start a session.

        Raises:
            WeakPasswordError: Password too short
            InvalidCredentialsError: Unknown email or wrong password
            AuthError: Storage unreachable
        """
        self._check_password(password)
        email = normalise_email(email)

        account = await self._find_account(email)
        if account is None:
            logger.info("sign_in_rejected", reason="unknown_email")
            raise InvalidCredentialsError()

        try:
            _hasher.verify(account.password_hash, password)
        except (VerifyMismatchError, InvalidHash, VerificationError):
            logger.info("sign_in_rejected", owner_id=account.id, reason="bad_password")
            raise InvalidCredentialsError()

        logger.info("user_signed_in", owner_id=account.id)
        return self._start_session(account)

    def sign_out(self) -> None:
        if self._session is None:
            return
        logger.info("user_signed_out", owner_id=self._session.owner_id)
        self._session = None
        self._listeners.notify(None)
