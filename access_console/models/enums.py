"""
Shared Enumerations for the authentication models.

StrEnum values compare equal to their string equivalents, so a role read
back from storage as ``"administrator"`` matches ``UserType.ADMINISTRATOR``.
"""

from __future__ import annotations
from enum import StrEnum


class UserType(StrEnum):
    """Authentication audience selected on the login screen.

    These literal values travel in the ``user_type`` field of every auth
    request; the backend rejects anything else.
    """

    ADMINISTRATOR = "administrator"
    REGISTRATION_OFFICER = "registration_officer"


class AuthErrorKind(StrEnum):
    """Closed set of failure categories surfaced to the login screens.

    Each server-side kind has its own recovery story: retry login
    (``INVALID_CREDENTIALS``), contact an administrator
    (``ACCOUNT_LOCKED``), wait (``TOO_MANY_ATTEMPTS``) or fix the input
    (``VALIDATION_ERROR``).  ``LOCAL_VALIDATION_ERROR`` never reaches the
    network layer.
    """

    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_LOCKED = "account_locked"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    VALIDATION_ERROR = "validation_error"
    REQUEST_ERROR = "request_error"
    NETWORK_ERROR = "network_error"
    UNEXPECTED_ERROR = "unexpected_error"
    LOCAL_VALIDATION_ERROR = "local_validation_error"
    SESSION_EXPIRED = "session_expired"


class LoginStage(StrEnum):
    """Stages of the OTP-gated login state machine."""

    ANONYMOUS = "ANONYMOUS"
    CREDENTIALS_SUBMITTED = "CREDENTIALS_SUBMITTED"
    VERIFIED = "VERIFIED"
