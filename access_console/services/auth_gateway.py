"""
Authentication Gateway.

Thin, side-effect-free wrapper over the auth endpoints.  Each method sends
one request, validates the reply into a model and returns it; nothing is
persisted here.  Every failure, whether transport-level or a malformed
success payload, is raised as an ``AuthError`` produced by the error
translator.

Endpoints (relative to the transport base URL)::

    POST login       {username, password, user_type}   -> {session_id, message}
    POST verify-otp  {session_id, otp_code, user_type} -> {access, refresh, user_type, user_id, username}
    POST resend-otp  {session_id, user_type}           -> {message, session_id}
    POST logout      {refresh}                         -> (no body required)
    POST refresh     {refresh}                         -> {access, refresh}
"""

from __future__ import annotations

from typing import Callable, TypeVar

from pydantic import ValidationError

from access_console.logger import StructuredLogger
from access_console.models.auth_models import (
    AuthenticatedSession,
    Credentials,
    LoginChallenge,
    ResendReceipt,
    TokenPair,
)
from access_console.models.enums import UserType
from access_console.services.error_translator import translate_failure
from access_console.transport import Transport, TransportFailure, TransportResponse

T = TypeVar("T")

LOGIN_PATH: str = "login"
VERIFY_OTP_PATH: str = "verify-otp"
RESEND_OTP_PATH: str = "resend-otp"
LOGOUT_PATH: str = "logout"
REFRESH_PATH: str = "refresh"


class AuthGateway:
    """Issues auth requests and parses their replies.

    Parameters
    ----------
    transport:
        Request/response channel to the backend.
    logger:
        Structured logger.
    """

    def __init__(self, transport: Transport, logger: StructuredLogger) -> None:
        self._transport: Transport = transport
        self._logger: StructuredLogger = logger

    def submit_credentials(self, credentials: Credentials) -> LoginChallenge:
        """Send username/password; return the OTP challenge."""
        reply = self._post(LOGIN_PATH, credentials.model_dump(mode="json"))
        return self._parse(LOGIN_PATH, reply, lambda body: LoginChallenge.model_validate(body))

    def verify_otp(
        self,
        session_id: str,
        user_type: UserType,
        otp_code: str,
    ) -> AuthenticatedSession:
        """Exchange an OTP for tokens; return the session without storing it."""
        reply = self._post(
            VERIFY_OTP_PATH,
            {"session_id": session_id, "otp_code": otp_code, "user_type": user_type.value},
        )
        return self._parse(VERIFY_OTP_PATH, reply, AuthenticatedSession.from_verify_payload)

    def resend_otp(self, session_id: str, user_type: UserType) -> ResendReceipt:
        """Ask the backend to issue a fresh OTP for *session_id*."""
        reply = self._post(
            RESEND_OTP_PATH,
            {"session_id": session_id, "user_type": user_type.value},
        )
        return self._parse(RESEND_OTP_PATH, reply, lambda body: ResendReceipt.model_validate(body))

    def revoke_refresh_token(self, refresh_token: str) -> None:
        """Invalidate *refresh_token* server-side.  The reply body is ignored."""
        self._post(LOGOUT_PATH, {"refresh": refresh_token})

    def refresh_tokens(self, refresh_token: str) -> TokenPair:
        """Exchange *refresh_token* for a new access/refresh pair."""
        reply = self._post(REFRESH_PATH, {"refresh": refresh_token})
        return self._parse(REFRESH_PATH, reply, lambda body: TokenPair.model_validate(body))

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _post(self, path: str, payload: dict[str, object]) -> TransportResponse:
        try:
            return self._transport.post(path, payload)
        except TransportFailure as exc:
            error = translate_failure(exc)
            self._logger.info(
                "POST %s failed: %s", path, error.kind.value,
                extra={"event": "AUTH_REQUEST_FAILED", "path": path},
            )
            raise error from exc

    def _parse(
        self,
        path: str,
        reply: TransportResponse,
        build: Callable[[dict[str, object]], T],
    ) -> T:
        body = reply.body if reply.body is not None else {}
        try:
            if not isinstance(body, dict):
                raise TypeError(f"expected a JSON object, got {type(body).__name__}")
            return build(body)
        except (ValidationError, TypeError) as exc:
            self._logger.warning(
                "Malformed reply from %s: %s", path, exc,
                extra={"event": "AUTH_MALFORMED_REPLY", "path": path},
            )
            raise translate_failure(
                TransportFailure(f"Malformed response from {path}.", response=reply),
            ) from exc
