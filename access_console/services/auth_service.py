"""
Authentication Service.

Single orchestrator for the login lifecycle of the console: credential
submission, OTP verification, OTP resend, logout and token refresh.

Sits between the login screens and the gateway / session store so that
the screens stay thin form handlers.  Every public method returns a typed
result model; the UI never inspects raw exceptions.

Verification is an explicit two-step contract: the gateway call returns an
``AuthenticatedSession`` without side effects, then this service persists
it through ``SessionManager.establish`` as one atomic write.
"""

from __future__ import annotations

from typing import Optional, Union

from access_console.auth import SessionManager
from access_console.exceptions import AuthError, SessionStoreError
from access_console.logger import StructuredLogger
from access_console.models.auth_models import (
    AuthResult,
    Credentials,
    LoginChallengeResult,
    ResendResult,
    ValidationResult,
)
from access_console.models.enums import AuthErrorKind, UserType
from access_console.services.auth_gateway import AuthGateway


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

OTP_LENGTH: int = 6

_EMPTY_FIELDS_MESSAGE: str = "Please fill in all fields."
_BAD_OTP_MESSAGE: str = f"OTP must be {OTP_LENGTH} digits"
_NO_SESSION_ID_MESSAGE: str = "Your login attempt has expired. Please sign in again."
_BAD_USER_TYPE_MESSAGE: str = "Unknown user type."
_STORE_FAILED_MESSAGE: str = "Could not save your session. Please try again."
_SESSION_EXPIRED_MESSAGE: str = "Your session has expired. Please sign in again."

_ASCII_DIGITS: frozenset[str] = frozenset("0123456789")


def sanitize_otp_input(raw: str) -> str:
    """Keep only ASCII digits from *raw*, capped at ``OTP_LENGTH``.

    Applied at the point of entry so the OTP field never holds anything
    but digits.  ``str.isdigit`` is not used because it accepts
    non-ASCII digits such as ``"٣"``.
    """
    return "".join(ch for ch in raw if ch in _ASCII_DIGITS)[:OTP_LENGTH]


class AuthService:
    """Centralised authentication service.

    Parameters
    ----------
    gateway:
        Network-side auth calls.
    session:
        Injectable session holder; the only place tokens are written.
    logger:
        Structured JSON logger for audit-grade logging.
    """

    def __init__(
        self,
        gateway: AuthGateway,
        session: SessionManager,
        logger: StructuredLogger,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._gateway: AuthGateway = gateway
        self._session: SessionManager = session

    # ==================================================================
    # Validation helpers
    # ==================================================================

    @staticmethod
    def validate_credentials(username: str, password: str) -> ValidationResult:
        """Both fields must be non-blank."""
        if not username or not username.strip() or not password or not password.strip():
            return ValidationResult(is_valid=False, error_message=_EMPTY_FIELDS_MESSAGE)
        return ValidationResult(is_valid=True)

    @staticmethod
    def validate_otp_code(otp_code: str) -> ValidationResult:
        """The code must be exactly ``OTP_LENGTH`` ASCII digits."""
        if len(otp_code) != OTP_LENGTH or not set(otp_code) <= _ASCII_DIGITS:
            return ValidationResult(is_valid=False, error_message=_BAD_OTP_MESSAGE)
        return ValidationResult(is_valid=True)

    @staticmethod
    def _coerce_user_type(user_type: Union[UserType, str]) -> Optional[UserType]:
        try:
            return UserType(user_type)
        except ValueError:
            return None

    # ==================================================================
    # Credential submission
    # ==================================================================

    def submit_credentials(
        self,
        username: str,
        password: str,
        user_type: Union[UserType, str],
    ) -> LoginChallengeResult:
        """Submit username/password and obtain an OTP challenge.

        Nothing is persisted: a session identifier alone is never proof of
        authentication.

        Returns
        -------
        LoginChallengeResult
            ``session_id`` and the backend message on success, or a
            structured error.
        """
        check = self.validate_credentials(username, password)
        if not check.is_valid:
            return LoginChallengeResult(
                success=False,
                error_code=AuthErrorKind.LOCAL_VALIDATION_ERROR,
                error_message=check.error_message,
            )
        audience = self._coerce_user_type(user_type)
        if audience is None:
            return LoginChallengeResult(
                success=False,
                error_code=AuthErrorKind.LOCAL_VALIDATION_ERROR,
                error_message=_BAD_USER_TYPE_MESSAGE,
            )

        credentials = Credentials(username=username, password=password, user_type=audience)
        try:
            challenge = self._gateway.submit_credentials(credentials)
        except AuthError as exc:
            self._logger.warning(
                "Credential submission rejected for %s: %s", username, exc.kind.value,
                extra={"event": "LOGIN_FAILED", "error_code": exc.kind.value},
            )
            return LoginChallengeResult(
                success=False, error_code=exc.kind, error_message=exc.message,
            )

        self._logger.info(
            "OTP challenge issued for %s (%s).", username, audience.value,
            extra={"event": "LOGIN_CHALLENGE", "user_type": audience.value},
        )
        return LoginChallengeResult(
            success=True,
            session_id=challenge.session_id,
            message=challenge.message,
        )

    # ==================================================================
    # OTP verification
    # ==================================================================

    def verify_otp(
        self,
        session_id: str,
        user_type: Union[UserType, str],
        otp_code: str,
    ) -> AuthResult:
        """Verify *otp_code* for *session_id* and persist the issued session.

        The session is stored only after a fully valid reply, as one
        write.  A code that was already consumed fails server-side and
        comes back as an error result like any other failure.
        """
        check = self.validate_otp_code(otp_code)
        if not check.is_valid:
            return AuthResult(
                success=False,
                error_code=AuthErrorKind.LOCAL_VALIDATION_ERROR,
                error_message=check.error_message,
            )
        local_error = self._check_challenge(session_id, user_type)
        if local_error is not None:
            return AuthResult(
                success=False,
                error_code=AuthErrorKind.LOCAL_VALIDATION_ERROR,
                error_message=local_error,
            )
        audience = UserType(user_type)

        try:
            identity = self._gateway.verify_otp(session_id, audience, otp_code)
        except AuthError as exc:
            self._logger.warning(
                "OTP verification failed: %s", exc.kind.value,
                extra={"event": "OTP_FAILED", "error_code": exc.kind.value},
            )
            return AuthResult(success=False, error_code=exc.kind, error_message=exc.message)

        try:
            self._session.establish(identity)
        except SessionStoreError as exc:
            self._logger.error(
                "Verified session for %s could not be stored: %s", identity.username, exc,
                extra={"event": "SESSION_STORE_FAILED"},
            )
            return AuthResult(
                success=False,
                error_code=AuthErrorKind.UNEXPECTED_ERROR,
                error_message=_STORE_FAILED_MESSAGE,
            )

        self._logger.info(
            "User authenticated: %s (role: %s)", identity.username, identity.user_type.value,
            extra={
                "event": "OTP_VERIFIED",
                "user_id": identity.user_id,
                "user_type": identity.user_type.value,
            },
        )
        return AuthResult(
            success=True,
            user_id=identity.user_id,
            username=identity.username,
            user_type=identity.user_type,
        )

    # ==================================================================
    # Resend
    # ==================================================================

    def resend_otp(
        self,
        session_id: str,
        user_type: Union[UserType, str],
    ) -> ResendResult:
        """Request a fresh OTP for *session_id*.

        Concurrent calls are not deduplicated here; see ``LoginFlow`` for
        the in-flight latch.  The returned ``session_id`` is the one to
        use from now on.
        """
        local_error = self._check_challenge(session_id, user_type)
        if local_error is not None:
            return ResendResult(
                success=False,
                error_code=AuthErrorKind.LOCAL_VALIDATION_ERROR,
                error_message=local_error,
            )

        try:
            receipt = self._gateway.resend_otp(session_id, UserType(user_type))
        except AuthError as exc:
            self._logger.warning(
                "OTP resend failed: %s", exc.kind.value,
                extra={"event": "OTP_RESEND_FAILED", "error_code": exc.kind.value},
            )
            return ResendResult(success=False, error_code=exc.kind, error_message=exc.message)

        rotated = bool(receipt.session_id) and receipt.session_id != session_id
        self._logger.info(
            "OTP resent%s.", " (session identifier rotated)" if rotated else "",
            extra={"event": "OTP_RESENT", "rotated": rotated},
        )
        return ResendResult(
            success=True,
            message=receipt.message,
            session_id=receipt.session_id or session_id,
        )

    # ==================================================================
    # Logout
    # ==================================================================

    def logout(self) -> None:
        """Best-effort server-side revocation, then unconditional local cleanup.

        A failed revocation (offline, 5xx, timeout) is logged and never
        raised: the user can always end their local session.
        """
        current = self._session.current()
        username = current.username if current else "unknown"

        try:
            if current is not None:
                self._gateway.revoke_refresh_token(current.refresh_token)
        except AuthError as exc:
            self._logger.warning(
                "Server-side logout failed for %s (%s); clearing local session anyway.",
                username, exc.kind.value,
            )
        except Exception as exc:
            self._logger.warning(
                "Server-side logout raised for %s: %s", username, exc,
            )
        finally:
            self._session.clear()

        self._logger.info(
            "User logged out: %s", username,
            extra={"event": "LOGOUT", "username": username},
        )

    # ==================================================================
    # Token refresh
    # ==================================================================

    def refresh_session_token(self) -> AuthResult:
        """Exchange the stored refresh token for a new token pair.

        Returns
        -------
        AuthResult
            ``success=True`` when there is no session or the refresh
            succeeded.  A network failure keeps the session and returns
            ``NETWORK_ERROR`` so the caller can retry later.  Any other
            failure clears the session and returns ``SESSION_EXPIRED``.
        """
        current = self._session.current()
        if current is None:
            return AuthResult(success=True)

        try:
            tokens = self._gateway.refresh_tokens(current.refresh_token)
        except AuthError as exc:
            if exc.kind is AuthErrorKind.NETWORK_ERROR:
                self._logger.debug("Network error during token refresh; will retry.")
                return AuthResult(
                    success=False, error_code=exc.kind, error_message=exc.message,
                )
            self._logger.warning(
                "Token refresh rejected (%s). Clearing session.", exc.kind.value,
                extra={"event": "SESSION_EXPIRED"},
            )
            self._session.clear()
            return AuthResult(
                success=False,
                error_code=AuthErrorKind.SESSION_EXPIRED,
                error_message=_SESSION_EXPIRED_MESSAGE,
            )

        refreshed = current.with_tokens(tokens)
        try:
            self._session.establish(refreshed)
        except SessionStoreError as exc:
            self._logger.error("Refreshed session could not be stored: %s", exc)
            return AuthResult(
                success=False,
                error_code=AuthErrorKind.UNEXPECTED_ERROR,
                error_message=_STORE_FAILED_MESSAGE,
            )

        self._logger.info("Session token refreshed.", extra={"event": "TOKEN_REFRESHED"})
        return AuthResult(
            success=True,
            user_id=refreshed.user_id,
            username=refreshed.username,
            user_type=refreshed.user_type,
        )

    # ==================================================================
    # Private helpers
    # ==================================================================

    def _check_challenge(
        self,
        session_id: str,
        user_type: Union[UserType, str],
    ) -> Optional[str]:
        """Return a local error message when the challenge context is unusable."""
        if not session_id:
            return _NO_SESSION_ID_MESSAGE
        if self._coerce_user_type(user_type) is None:
            return _BAD_USER_TYPE_MESSAGE
        return None
