"""
Authentication Pipeline Models.

Pydantic models for the request/response contracts between the auth
gateway, ``AuthService`` and the login screens.

Wire models (``LoginChallenge``, ``AuthenticatedSession``,
``ResendReceipt``, ``TokenPair``) are validated straight from backend JSON;
result models (``LoginChallengeResult``, ``AuthResult``, ``ResendResult``)
are what the UI layer receives.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from access_console.models.enums import AuthErrorKind, UserType


# ---------------------------------------------------------------------------
# Form input
# ---------------------------------------------------------------------------

class Credentials(BaseModel):
    """Credential record held only while the login form is being submitted.

    Emptiness is checked by ``AuthService`` so that it surfaces as a
    ``LOCAL_VALIDATION_ERROR`` result rather than a pydantic exception.
    """

    username: str
    password: str
    user_type: UserType


# ---------------------------------------------------------------------------
# Wire payloads
# ---------------------------------------------------------------------------

class LoginChallenge(BaseModel):
    """Reply to ``POST /login``: the OTP challenge for this login attempt."""

    session_id: str = Field(min_length=1)
    message: str = ""


class AuthenticatedSession(BaseModel):
    """The five persisted fields of an authenticated session.

    All five are required and non-empty; a store either holds a complete
    ``AuthenticatedSession`` or nothing.
    """

    access_token: str = Field(min_length=1)
    refresh_token: str = Field(min_length=1)
    user_type: UserType
    user_id: str = Field(min_length=1)
    username: str = Field(min_length=1)

    model_config = {"frozen": True}

    @field_validator("user_id", mode="before")
    @classmethod
    def coerce_user_id(cls, value: object) -> object:
        """Backends commonly return numeric primary keys; keep them as text."""
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @classmethod
    def from_verify_payload(cls, payload: dict[str, object]) -> "AuthenticatedSession":
        """Build a session from the ``POST /verify-otp`` reply body.

        The backend names the tokens ``access`` / ``refresh``.

        Raises
        ------
        pydantic.ValidationError
            If any of the five fields is missing or invalid.
        """
        return cls(
            access_token=payload.get("access"),
            refresh_token=payload.get("refresh"),
            user_type=payload.get("user_type"),
            user_id=payload.get("user_id"),
            username=payload.get("username"),
        )

    def with_tokens(self, tokens: "TokenPair") -> "AuthenticatedSession":
        """Return a copy carrying a refreshed token pair."""
        return self.model_copy(
            update={"access_token": tokens.access, "refresh_token": tokens.refresh},
        )


class ResendReceipt(BaseModel):
    """Reply to ``POST /resend-otp``.

    ``session_id`` is present only when the server rotated the identifier.
    """

    message: str = ""
    session_id: Optional[str] = None


class TokenPair(BaseModel):
    """Reply to ``POST /refresh``."""

    access: str = Field(min_length=1)
    refresh: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationResult(BaseModel):
    """Result of a single client-side field validation check."""

    is_valid: bool
    error_message: Optional[str] = None


# ---------------------------------------------------------------------------
# Results returned to the UI
# ---------------------------------------------------------------------------

class LoginChallengeResult(BaseModel):
    """Outcome of credential submission.

    Attributes
    ----------
    success:
        ``True`` when the backend accepted the credentials and issued an
        OTP challenge.  This is never proof of authentication.
    error_code:
        Taxonomy entry on failure.
    error_message:
        Human-readable error description.
    session_id:
        Identifier to pass to verify and resend.
    message:
        Informational text from the backend (e.g. "OTP sent").
    """

    success: bool
    error_code: Optional[AuthErrorKind] = None
    error_message: Optional[str] = None
    session_id: Optional[str] = None
    message: Optional[str] = None


class AuthResult(BaseModel):
    """Outcome of OTP verification or token refresh.

    Identity fields are populated on success only.  Tokens are never
    exposed here; read them from ``SessionManager``.
    """

    success: bool
    error_code: Optional[AuthErrorKind] = None
    error_message: Optional[str] = None
    user_id: Optional[str] = None
    username: Optional[str] = None
    user_type: Optional[UserType] = None


class ResendResult(BaseModel):
    """Outcome of an OTP resend.

    ``session_id`` is the identifier the caller must use from now on: the
    rotated one when the server sent one, otherwise the one passed in.
    """

    success: bool
    error_code: Optional[AuthErrorKind] = None
    error_message: Optional[str] = None
    message: Optional[str] = None
    session_id: Optional[str] = None
