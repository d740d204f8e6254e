"""
Domain exceptions for the authentication subsystem.

``AuthError`` is the single tagged failure raised by the gateway layer.
``AuthService`` converts it into a result model so the UI never inspects
raw exceptions.
"""

from __future__ import annotations

from access_console.models.enums import AuthErrorKind


class AuthError(Exception):
    """A failure classified into the ``AuthErrorKind`` taxonomy.

    Attributes
    ----------
    kind:
        The taxonomy entry the failure was mapped to.
    message:
        Human-readable text to display inline on the form.
    """

    def __init__(self, kind: AuthErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind: AuthErrorKind = kind
        self.message: str = message

    def __repr__(self) -> str:
        return f"AuthError(kind={self.kind.value!r}, message={self.message!r})"


class AuthenticationError(RuntimeError):
    """Raised when a guarded function is called without an active session."""


class SessionStoreError(RuntimeError):
    """Raised when the session store cannot persist a session."""
