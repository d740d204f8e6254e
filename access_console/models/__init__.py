"""
Data Models Package.

Re-exports the auth models for short imports:
    from access_console.models import AuthenticatedSession, UserType, AuthErrorKind
"""

from __future__ import annotations

from access_console.models.auth_models import (
    AuthenticatedSession,
    AuthResult,
    Credentials,
    LoginChallenge,
    LoginChallengeResult,
    ResendReceipt,
    ResendResult,
    TokenPair,
    ValidationResult,
)
from access_console.models.enums import AuthErrorKind, LoginStage, UserType

__all__ = [
    "AuthErrorKind",
    "AuthResult",
    "AuthenticatedSession",
    "Credentials",
    "LoginChallenge",
    "LoginChallengeResult",
    "LoginStage",
    "ResendReceipt",
    "ResendResult",
    "TokenPair",
    "UserType",
    "ValidationResult",
]
