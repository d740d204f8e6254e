"""Tests for services/auth_gateway.py -- request payloads and reply parsing."""

import pytest

from access_console.exceptions import AuthError
from access_console.models.auth_models import Credentials
from access_console.models.enums import AuthErrorKind, UserType
from conftest import verify_payload


class TestPayloads:
    def test_login_payload_field_names(self, gateway, transport):
        transport.reply("login", body={"session_id": "s1", "message": "OTP sent"})
        challenge = gateway.submit_credentials(
            Credentials(username="alice", password="pw", user_type=UserType.ADMINISTRATOR),
        )
        assert challenge.session_id == "s1"
        assert transport.calls == [
            ("login", {"username": "alice", "password": "pw", "user_type": "administrator"}),
        ]

    def test_verify_maps_token_names(self, gateway, transport):
        transport.reply("verify-otp", body=verify_payload())
        identity = gateway.verify_otp("s1", UserType.ADMINISTRATOR, "123456")
        assert identity.access_token == "access-token-1"
        assert identity.refresh_token == "refresh-token-1"

    def test_refresh_and_logout_send_refresh_field(self, gateway, transport):
        transport.reply("refresh", body={"access": "a2", "refresh": "r2"})
        transport.reply("logout", status=205)

        pair = gateway.refresh_tokens("r1")
        gateway.revoke_refresh_token("r2")

        assert (pair.access, pair.refresh) == ("a2", "r2")
        assert transport.calls == [("refresh", {"refresh": "r1"}), ("logout", {"refresh": "r2"})]

    def test_resend_without_rotation(self, gateway, transport):
        transport.reply("resend-otp", body={"message": "sent"})
        receipt = gateway.resend_otp("s1", UserType.REGISTRATION_OFFICER)
        assert receipt.session_id is None
        assert transport.calls_to("resend-otp") == [
            {"session_id": "s1", "user_type": "registration_officer"},
        ]


class TestMalformedReplies:
    @pytest.mark.parametrize(
        "body",
        [
            None,
            [],
            "ok",
            {"access": "a"},
            verify_payload(user_type="superuser"),
            verify_payload(username=""),
        ],
    )
    def test_verify_reply_is_unexpected(self, gateway, transport, body):
        transport.reply("verify-otp", body=body)
        with pytest.raises(AuthError) as info:
            gateway.verify_otp("s1", UserType.ADMINISTRATOR, "123456")
        assert info.value.kind is AuthErrorKind.UNEXPECTED_ERROR

    def test_refresh_reply_missing_token(self, gateway, transport):
        transport.reply("refresh", body={"access": "a2"})
        with pytest.raises(AuthError) as info:
            gateway.refresh_tokens("r1")
        assert info.value.kind is AuthErrorKind.UNEXPECTED_ERROR

    def test_transport_failure_is_translated(self, gateway, transport):
        transport.fail("login")
        with pytest.raises(AuthError) as info:
            gateway.submit_credentials(
                Credentials(username="a", password="b", user_type=UserType.ADMINISTRATOR),
            )
        assert info.value.kind is AuthErrorKind.NETWORK_ERROR
