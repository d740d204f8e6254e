"""
Authentication & Session State.

Provides an injectable ``SessionManager`` that fronts a ``SessionStore``
and exposes the read accessors the rest of the console uses (route guards,
the transport's bearer header, the navbar username).

Usage::

    from access_console.auth import SessionManager
    from access_console.session_store import InMemorySessionStore

    session = SessionManager(InMemorySessionStore())
    session.establish(AuthenticatedSession(...))
    session.is_authenticated   # True
    session.get_username()
"""

from __future__ import annotations

from typing import Optional

from access_console.models.auth_models import AuthenticatedSession
from access_console.models.enums import UserType
from access_console.session_store import SessionStore


class SessionManager:
    """Injectable holder for the authenticated session.

    Every accessor reads one snapshot from the store, so two fields read
    through a single ``current()`` call always belong to the same session.
    Pass a single ``SessionManager`` through the composition root so every
    component shares the same state.
    """

    def __init__(self, store: SessionStore) -> None:
        self._store: SessionStore = store

    def current(self) -> Optional[AuthenticatedSession]:
        """Return the stored session, or ``None`` when unauthenticated."""
        return self._store.get()

    def establish(self, session: AuthenticatedSession) -> None:
        """Persist *session* as one atomic write.

        Raises:
            SessionStoreError: If the store could not persist it.
        """
        self._store.set(session)

    def clear(self) -> None:
        """Remove all five session fields, ending the session."""
        self._store.clear()

    @property
    def is_authenticated(self) -> bool:
        """``True`` when a complete session is stored."""
        return self._store.get() is not None

    @property
    def access_token(self) -> Optional[str]:
        """Return the current access token, or ``None`` if not set."""
        current = self._store.get()
        return current.access_token if current else None

    @property
    def refresh_token(self) -> Optional[str]:
        """Return the refresh token used for logout and token refresh."""
        current = self._store.get()
        return current.refresh_token if current else None

    def get_user_type(self) -> Optional[UserType]:
        current = self._store.get()
        return current.user_type if current else None

    def get_username(self) -> Optional[str]:
        current = self._store.get()
        return current.username if current else None

    def get_user_id(self) -> Optional[str]:
        current = self._store.get()
        return current.user_id if current else None
