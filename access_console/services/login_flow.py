"""
OTP-gated Login Flow.

``LoginFlow`` is the state a login screen owns while a user signs in::

    ANONYMOUS --submit--> CREDENTIALS_SUBMITTED(session_id) --verify--> VERIFIED
                               |   ^
                               +---+ resend (same or rotated session_id)

Logout (or cancel) returns to ``ANONYMOUS`` from any stage.  There is no
transition from ``ANONYMOUS`` to ``VERIFIED``: credential submission alone
never authenticates.

The session identifier is mutable state of the flow.  Whenever a resend
returns a rotated identifier it replaces the current one, and every later
verify or resend uses it.  Each submit, verify, cancel or logout starts a
new challenge generation; a resend reply belonging to an earlier
generation is ignored.

Screens usually run these calls on a worker thread, so stage changes are
made under a lock and a second resend while one is outstanding is refused
locally instead of being sent.
"""

from __future__ import annotations

import threading
from typing import Optional

from access_console.auth import SessionManager
from access_console.logger import StructuredLogger
from access_console.models.auth_models import AuthResult, LoginChallengeResult, ResendResult
from access_console.models.enums import AuthErrorKind, LoginStage, UserType
from access_console.services.auth_service import AuthService, sanitize_otp_input

_RESEND_IN_FLIGHT_MESSAGE: str = "A new code is already being sent."
_NOT_AWAITING_OTP_MESSAGE: str = "Please sign in with your username and password first."
_ALREADY_SIGNED_IN_MESSAGE: str = "You are already signed in."


class LoginFlow:
    """Drives one login screen through the OTP-gated state machine.

    Parameters
    ----------
    auth_service:
        The service performing the actual auth calls.
    session:
        Shared session holder; decides the starting stage.
    user_type:
        Audience of this screen (administrator or registration officer).
    logger:
        Structured logger.
    """

    def __init__(
        self,
        auth_service: AuthService,
        session: SessionManager,
        user_type: UserType,
        logger: StructuredLogger,
    ) -> None:
        self._auth: AuthService = auth_service
        self._session: SessionManager = session
        self._user_type: UserType = user_type
        self._logger: StructuredLogger = logger

        self._lock: threading.Lock = threading.Lock()
        self._session_id: Optional[str] = None
        self._resend_in_flight: bool = False
        self._challenge_generation: int = 0
        self._stage: LoginStage = (
            LoginStage.VERIFIED if session.is_authenticated else LoginStage.ANONYMOUS
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def stage(self) -> LoginStage:
        with self._lock:
            return self._stage

    @property
    def session_id(self) -> Optional[str]:
        """The identifier the next verify/resend will use."""
        with self._lock:
            return self._session_id

    @property
    def user_type(self) -> UserType:
        return self._user_type

    @property
    def is_resend_in_flight(self) -> bool:
        """``True`` while a resend request is outstanding (disable the control)."""
        with self._lock:
            return self._resend_in_flight

    @staticmethod
    def enter_otp(raw: str) -> str:
        """Filter keyboard/paste input for the OTP field."""
        return sanitize_otp_input(raw)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def submit_credentials(self, username: str, password: str) -> LoginChallengeResult:
        """Submit the login form.  Re-submitting restarts the challenge."""
        if self.stage is LoginStage.VERIFIED:
            return LoginChallengeResult(
                success=False,
                error_code=AuthErrorKind.LOCAL_VALIDATION_ERROR,
                error_message=_ALREADY_SIGNED_IN_MESSAGE,
            )

        result = self._auth.submit_credentials(username, password, self._user_type)
        if result.success:
            with self._lock:
                self._session_id = result.session_id
                self._stage = LoginStage.CREDENTIALS_SUBMITTED
                self._challenge_generation += 1
        return result

    def verify(self, otp_code: str) -> AuthResult:
        """Verify *otp_code* against the current session identifier."""
        with self._lock:
            stage, session_id = self._stage, self._session_id
        if stage is not LoginStage.CREDENTIALS_SUBMITTED or session_id is None:
            return AuthResult(
                success=False,
                error_code=AuthErrorKind.LOCAL_VALIDATION_ERROR,
                error_message=_NOT_AWAITING_OTP_MESSAGE,
            )

        result = self._auth.verify_otp(session_id, self._user_type, otp_code)
        if result.success:
            with self._lock:
                self._stage = LoginStage.VERIFIED
                self._session_id = None
                self._challenge_generation += 1
        return result

    def resend(self) -> ResendResult:
        """Request a new OTP, adopting any rotated session identifier.

        Refused locally while another resend from this flow is outstanding.
        """
        with self._lock:
            if self._stage is not LoginStage.CREDENTIALS_SUBMITTED or self._session_id is None:
                return ResendResult(
                    success=False,
                    error_code=AuthErrorKind.LOCAL_VALIDATION_ERROR,
                    error_message=_NOT_AWAITING_OTP_MESSAGE,
                )
            if self._resend_in_flight:
                return ResendResult(
                    success=False,
                    error_code=AuthErrorKind.LOCAL_VALIDATION_ERROR,
                    error_message=_RESEND_IN_FLIGHT_MESSAGE,
                )
            self._resend_in_flight = True
            session_id = self._session_id
            generation = self._challenge_generation

        try:
            result = self._auth.resend_otp(session_id, self._user_type)
        finally:
            with self._lock:
                self._resend_in_flight = False

        if result.success and result.session_id:
            with self._lock:
                # Only the challenge the request was sent for may be rotated.
                if self._challenge_generation == generation:
                    self._session_id = result.session_id
        return result

    def cancel(self) -> None:
        """Abandon the current challenge (the screen's "back" action)."""
        with self._lock:
            if self._stage is LoginStage.CREDENTIALS_SUBMITTED:
                self._stage = LoginStage.ANONYMOUS
                self._session_id = None
                self._challenge_generation += 1

    def logout(self) -> None:
        """End the session from any stage."""
        self._auth.logout()
        with self._lock:
            self._stage = LoginStage.ANONYMOUS
            self._session_id = None
            self._challenge_generation += 1
        self._logger.debug("Login flow reset to %s.", LoginStage.ANONYMOUS.value)
