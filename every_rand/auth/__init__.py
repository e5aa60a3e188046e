"""Authentication and session package."""

from every_rand.auth.interface import (
    ListenerRegistry,
    SessionListener,
    SessionProviderInterface,
    Unsubscribe,
)
from every_rand.auth.provider import (
    AccountSessionProvider,
    AuthError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    WeakPasswordError,
)

__all__ = [
    "AccountSessionProvider",
    "AuthError",
    "EmailAlreadyRegisteredError",
    "InvalidCredentialsError",
    "ListenerRegistry",
    "SessionListener",
    "SessionProviderInterface",
    "Unsubscribe",
    "WeakPasswordError",
]
