"""Tests for services/auth_service.py -- the login lifecycle against a fake transport.

Covers:
- local validation short-circuits before any request
- credential submission returns a challenge and persists nothing
- OTP verification persists all five session fields in one write
- resend returns the identifier to use next
- logout clears the session even when the server call fails
- token refresh keeps or clears the session depending on the failure
"""

import pytest

from access_console.auth import SessionManager
from access_console.exceptions import SessionStoreError
from access_console.models.enums import AuthErrorKind, UserType
from access_console.services.auth_service import AuthService, sanitize_otp_input
from access_console.transport import TransportResponse
from conftest import make_session, verify_payload


class RecordingStore:
    """Session store that records writes and can be told to fail."""

    def __init__(self, fail_on_set=False):
        self.fail_on_set = fail_on_set
        self.writes = []
        self.session = None

    def get(self):
        return self.session

    def set(self, session):
        if self.fail_on_set:
            raise SessionStoreError("disk full")
        self.writes.append(session)
        self.session = session

    def clear(self):
        self.session = None


# ---------------------------------------------------------------------------
# TestOtpInput
# ---------------------------------------------------------------------------


class TestOtpInput:
    def test_non_digits_are_discarded(self):
        assert sanitize_otp_input("12a3-4 5") == "12345"

    def test_capped_at_six(self):
        assert sanitize_otp_input("12345678") == "123456"

    def test_non_ascii_digits_are_discarded(self):
        assert sanitize_otp_input("١٢٣123") == "123"

    @pytest.mark.parametrize("code", ["", "12345", "1234567", "12345a", "１２３４５６", " 12345"])
    def test_invalid_codes(self, code):
        assert not AuthService.validate_otp_code(code).is_valid

    def test_valid_code(self):
        assert AuthService.validate_otp_code("004211").is_valid


# ---------------------------------------------------------------------------
# TestSubmitCredentials
# ---------------------------------------------------------------------------


class TestSubmitCredentials:
    @pytest.mark.parametrize("username, password", [("", "pw"), ("alice", ""), ("  ", "pw"), ("", "")])
    def test_empty_fields_never_hit_the_network(self, auth_service, transport, username, password):
        result = auth_service.submit_credentials(username, password, UserType.ADMINISTRATOR)
        assert not result.success
        assert result.error_code is AuthErrorKind.LOCAL_VALIDATION_ERROR
        assert result.error_message == "Please fill in all fields."
        assert transport.calls == []

    def test_unknown_user_type_is_rejected_locally(self, auth_service, transport):
        result = auth_service.submit_credentials("alice", "pw", "superuser")
        assert result.error_code is AuthErrorKind.LOCAL_VALIDATION_ERROR
        assert transport.calls == []

    def test_success_returns_challenge_and_persists_nothing(self, auth_service, transport, session):
        transport.reply("login", body={"session_id": "sess-1", "message": "OTP sent"})

        result = auth_service.submit_credentials("alice", "pw", "registration_officer")

        assert result.success
        assert result.session_id == "sess-1"
        assert result.message == "OTP sent"
        assert transport.calls_to("login") == [
            {"username": "alice", "password": "pw", "user_type": "registration_officer"},
        ]
        assert not session.is_authenticated

    def test_server_rejection_is_translated(self, auth_service, transport):
        transport.reply("login", status=401, body={"detail": "bad creds"})
        result = auth_service.submit_credentials("alice", "wrong", UserType.ADMINISTRATOR)
        assert not result.success
        assert result.error_code is AuthErrorKind.INVALID_CREDENTIALS
        assert result.error_message == "bad creds"

    def test_network_failure(self, auth_service, transport):
        transport.fail("login")
        result = auth_service.submit_credentials("alice", "pw", UserType.ADMINISTRATOR)
        assert result.error_code is AuthErrorKind.NETWORK_ERROR

    def test_missing_session_id_is_unexpected(self, auth_service, transport):
        transport.reply("login", body={"message": "OTP sent"})
        result = auth_service.submit_credentials("alice", "pw", UserType.ADMINISTRATOR)
        assert result.error_code is AuthErrorKind.UNEXPECTED_ERROR


# ---------------------------------------------------------------------------
# TestVerifyOtp
# ---------------------------------------------------------------------------


class TestVerifyOtp:
    @pytest.mark.parametrize("code", ["12345", "abcdef", "1234567", ""])
    def test_malformed_code_never_hits_the_network(self, auth_service, transport, code):
        result = auth_service.verify_otp("sess-1", UserType.ADMINISTRATOR, code)
        assert result.error_code is AuthErrorKind.LOCAL_VALIDATION_ERROR
        assert result.error_message == "OTP must be 6 digits"
        assert transport.calls == []

    def test_missing_session_id_never_hits_the_network(self, auth_service, transport):
        result = auth_service.verify_otp("", UserType.ADMINISTRATOR, "123456")
        assert result.error_code is AuthErrorKind.LOCAL_VALIDATION_ERROR
        assert transport.calls == []

    def test_success_persists_all_five_fields(self, auth_service, transport, session):
        transport.reply("verify-otp", body=verify_payload())

        result = auth_service.verify_otp("sess-1", UserType.ADMINISTRATOR, "123456")

        assert result.success
        assert (result.user_id, result.username, result.user_type) == ("42", "alice", UserType.ADMINISTRATOR)
        assert transport.calls_to("verify-otp") == [
            {"session_id": "sess-1", "otp_code": "123456", "user_type": "administrator"},
        ]
        assert session.is_authenticated
        assert session.access_token == "access-token-1"
        assert session.refresh_token == "refresh-token-1"
        assert session.get_user_type() == "administrator"
        assert session.get_user_id() == "42"
        assert session.get_username() == "alice"

    def test_persisted_exactly_once_as_one_write(self, transport, gateway, logger):
        store = RecordingStore()
        service = AuthService(gateway=gateway, session=SessionManager(store), logger=logger)
        transport.reply("verify-otp", body=verify_payload())

        service.verify_otp("sess-1", UserType.ADMINISTRATOR, "123456")

        assert len(store.writes) == 1
        assert store.writes[0] == make_session()

    def test_numeric_user_id_is_kept_as_text(self, auth_service, transport, session):
        transport.reply("verify-otp", body=verify_payload(user_id=7))
        auth_service.verify_otp("sess-1", UserType.ADMINISTRATOR, "123456")
        assert session.get_user_id() == "7"

    def test_incomplete_payload_persists_nothing(self, auth_service, transport, session):
        body = verify_payload()
        del body["refresh"]
        transport.reply("verify-otp", body=body)

        result = auth_service.verify_otp("sess-1", UserType.ADMINISTRATOR, "123456")

        assert result.error_code is AuthErrorKind.UNEXPECTED_ERROR
        assert not session.is_authenticated

    def test_reused_code_is_an_error_not_success(self, auth_service, transport, session):
        transport.reply("verify-otp", body=verify_payload())
        transport.reply("verify-otp", status=400, body={"detail": "OTP already used"})

        assert auth_service.verify_otp("sess-1", UserType.ADMINISTRATOR, "123456").success
        second = auth_service.verify_otp("sess-1", UserType.ADMINISTRATOR, "123456")

        assert not second.success
        assert second.error_code is AuthErrorKind.VALIDATION_ERROR
        assert second.error_message == "OTP already used"

    def test_failure_leaves_store_untouched(self, auth_service, transport, session):
        transport.reply("verify-otp", status=401, body={"detail": "Invalid OTP"})
        result = auth_service.verify_otp("sess-1", UserType.ADMINISTRATOR, "000000")
        assert result.error_code is AuthErrorKind.INVALID_CREDENTIALS
        assert session.current() is None

    def test_store_failure_is_reported(self, transport, gateway, logger):
        store = RecordingStore(fail_on_set=True)
        service = AuthService(gateway=gateway, session=SessionManager(store), logger=logger)
        transport.reply("verify-otp", body=verify_payload())

        result = service.verify_otp("sess-1", UserType.ADMINISTRATOR, "123456")

        assert not result.success
        assert result.error_code is AuthErrorKind.UNEXPECTED_ERROR
        assert store.session is None


# ---------------------------------------------------------------------------
# TestResendOtp
# ---------------------------------------------------------------------------


class TestResendOtp:
    def test_rotated_identifier_is_returned(self, auth_service, transport):
        transport.reply("resend-otp", body={"message": "New OTP sent", "session_id": "sess-2"})
        result = auth_service.resend_otp("sess-1", UserType.ADMINISTRATOR)
        assert result.success
        assert result.session_id == "sess-2"
        assert result.message == "New OTP sent"
        assert transport.calls_to("resend-otp") == [
            {"session_id": "sess-1", "user_type": "administrator"},
        ]

    def test_identifier_is_kept_when_not_rotated(self, auth_service, transport):
        transport.reply("resend-otp", body={"message": "New OTP sent"})
        assert auth_service.resend_otp("sess-1", UserType.ADMINISTRATOR).session_id == "sess-1"

    def test_rate_limited(self, auth_service, transport):
        transport.reply("resend-otp", status=429, body={})
        result = auth_service.resend_otp("sess-1", UserType.ADMINISTRATOR)
        assert result.error_code is AuthErrorKind.TOO_MANY_ATTEMPTS
        assert result.error_message == "Too many attempts. Please try again later."

    def test_resend_persists_nothing(self, auth_service, transport, session):
        transport.reply("resend-otp", body={"message": "ok", "session_id": "sess-2"})
        auth_service.resend_otp("sess-1", UserType.ADMINISTRATOR)
        assert not session.is_authenticated

    def test_stale_identifier_fails_at_verify(self, auth_service, transport):
        transport.reply("resend-otp", body={"message": "ok", "session_id": "sess-2"})
        transport.reply("verify-otp", status=400, body={"detail": "Invalid session"})

        auth_service.resend_otp("sess-1", UserType.ADMINISTRATOR)
        result = auth_service.verify_otp("sess-1", UserType.ADMINISTRATOR, "123456")

        assert result.error_code is AuthErrorKind.VALIDATION_ERROR
        assert transport.calls_to("verify-otp")[0]["session_id"] == "sess-1"


# ---------------------------------------------------------------------------
# TestLogout
# ---------------------------------------------------------------------------


class TestLogout:
    def test_revokes_refresh_token_and_clears(self, auth_service, transport, store, session):
        store.set(make_session())
        transport.reply("logout", status=205)

        auth_service.logout()

        assert transport.calls_to("logout") == [{"refresh": "refresh-token-1"}]
        assert session.current() is None
        assert session.access_token is None
        assert session.get_username() is None

    @pytest.mark.parametrize("status", [400, 401, 500])
    def test_server_failure_still_clears(self, auth_service, transport, store, session, status):
        store.set(make_session())
        transport.reply("logout", status=status, body={"detail": "nope"})

        auth_service.logout()

        assert not session.is_authenticated

    def test_network_failure_still_clears(self, auth_service, transport, store, session):
        store.set(make_session())
        transport.fail("logout", message="timeout")

        auth_service.logout()

        assert not session.is_authenticated

    def test_unexpected_exception_still_clears(self, auth_service, store, session, monkeypatch):
        store.set(make_session())

        def explode(refresh_token):
            raise RuntimeError("bug in transport")

        monkeypatch.setattr(auth_service._gateway, "revoke_refresh_token", explode)
        auth_service.logout()

        assert not session.is_authenticated

    def test_without_session_makes_no_request(self, auth_service, transport, session):
        auth_service.logout()
        assert transport.calls == []
        assert not session.is_authenticated


# ---------------------------------------------------------------------------
# TestRefreshSessionToken
# ---------------------------------------------------------------------------


class TestRefreshSessionToken:
    def test_no_session_is_a_noop(self, auth_service, transport):
        assert auth_service.refresh_session_token().success
        assert transport.calls == []

    def test_success_replaces_tokens_and_keeps_identity(self, auth_service, transport, store, session):
        store.set(make_session())
        transport.reply("refresh", body={"access": "access-2", "refresh": "refresh-2"})

        result = auth_service.refresh_session_token()

        assert result.success
        assert transport.calls_to("refresh") == [{"refresh": "refresh-token-1"}]
        assert session.current() == make_session(access_token="access-2", refresh_token="refresh-2")

    def test_rejected_refresh_clears_session(self, auth_service, transport, store, session):
        store.set(make_session())
        transport.reply("refresh", status=401, body={"detail": "Token is blacklisted"})

        result = auth_service.refresh_session_token()

        assert result.error_code is AuthErrorKind.SESSION_EXPIRED
        assert not session.is_authenticated

    def test_network_failure_keeps_session(self, auth_service, transport, store, session):
        store.set(make_session())
        transport.fail("refresh")

        result = auth_service.refresh_session_token()

        assert result.error_code is AuthErrorKind.NETWORK_ERROR
        assert session.current() == make_session()


def test_transport_response_success_range():
    assert TransportResponse(status=204).is_success
    assert not TransportResponse(status=302).is_success
    assert not TransportResponse(status=None).is_success
