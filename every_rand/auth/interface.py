"""
Abstract Session Provider Interface

The ledger never reads session state from a global. It receives a provider,
subscribes once for session changes, and unsubscribes when it is closed.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from every_rand.models.account import Session


SessionListener = Callable[[Optional[Session]], None]
Unsubscribe = Callable[[], None]


class SessionProviderInterface(ABC):
    """Source of the signed-in identity."""

    @abstractmethod
    def current_session(self) -> Optional[Session]:
        """The active session, or None when signed out."""
        pass

    @abstractmethod
    def subscribe(self, listener: SessionListener) -> Unsubscribe:
        """
        Register a listener called with the new session on every change.

        Returns:
            A callable that removes the listener
        """
        pass

    @abstractmethod
    def sign_out(self) -> None:
        """End the active session and notify listeners with None."""
        pass


class ListenerRegistry:
    """Listener bookkeeping shared by provider implementations."""

    def __init__(self):
        self._listeners: list[SessionListener] = []

    def add(self, listener: SessionListener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, session: Optional[Session]) -> None:
        for listener in list(self._listeners):
            listener(session)

    def __len__(self) -> int:
        return len(self._listeners)
