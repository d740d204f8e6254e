"""
tests/conftest.py -- Shared fixtures for the auth lifecycle tests.

This module provides:
  - FakeTransport: scripted stand-in for RequestsTransport that records
    every request and replays queued replies or failures per path
  - session / store fixtures backed by InMemorySessionStore
  - auth_service / login_flow fixtures wired to the fake transport

LOG_FILE is blanked before any access_console import so that loggers
created during tests never open a rotating log file in the working dir.
"""

from __future__ import annotations

import os

os.environ.setdefault("LOG_FILE", "")

from collections import defaultdict, deque
from typing import Optional, Union

import pytest

from access_console.auth import SessionManager
from access_console.logger import StructuredLogger
from access_console.models.auth_models import AuthenticatedSession
from access_console.models.enums import UserType
from access_console.services.auth_gateway import AuthGateway
from access_console.services.auth_service import AuthService
from access_console.services.login_flow import LoginFlow
from access_console.session_store import InMemorySessionStore
from access_console.transport import TransportFailure, TransportResponse

Outcome = Union[TransportResponse, TransportFailure]


class FakeTransport:
    """Records POSTs and replays scripted outcomes per path.

    ``reply(path, status, body)`` queues a response; ``fail(path, ...)``
    queues a failure.  Non-2xx statuses queued via ``reply`` are raised as
    ``TransportFailure`` exactly like the real transport does.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, object]]] = []
        self._outcomes: dict[str, deque[Outcome]] = defaultdict(deque)

    def reply(self, path: str, status: int = 200, body: object = None) -> "FakeTransport":
        self._outcomes[path].append(TransportResponse(status=status, body=body))
        return self

    def fail(
        self,
        path: str,
        message: str = "connection refused",
        response: Optional[TransportResponse] = None,
    ) -> "FakeTransport":
        self._outcomes[path].append(TransportFailure(message, response=response))
        return self

    def calls_to(self, path: str) -> list[dict[str, object]]:
        return [payload for called, payload in self.calls if called == path]

    def post(self, path: str, payload: dict[str, object]) -> TransportResponse:
        self.calls.append((path, payload))
        if not self._outcomes[path]:
            raise AssertionError(f"unexpected request to {path!r}")
        outcome = self._outcomes[path].popleft()
        if isinstance(outcome, TransportFailure):
            raise outcome
        if not outcome.is_success:
            raise TransportFailure(
                f"Request failed with status code {outcome.status}", response=outcome,
            )
        return outcome


def verify_payload(**overrides: object) -> dict[str, object]:
    """A complete ``POST /verify-otp`` reply body."""
    body: dict[str, object] = {
        "access": "access-token-1",
        "refresh": "refresh-token-1",
        "user_type": "administrator",
        "user_id": "42",
        "username": "alice",
    }
    body.update(overrides)
    return body


def make_session(**overrides: object) -> AuthenticatedSession:
    fields: dict[str, object] = {
        "access_token": "access-token-1",
        "refresh_token": "refresh-token-1",
        "user_type": UserType.ADMINISTRATOR,
        "user_id": "42",
        "username": "alice",
    }
    fields.update(overrides)
    return AuthenticatedSession(**fields)


@pytest.fixture
def logger() -> StructuredLogger:
    return StructuredLogger(name="tests", log_file="")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def session(store: InMemorySessionStore) -> SessionManager:
    return SessionManager(store)


@pytest.fixture
def gateway(transport: FakeTransport, logger: StructuredLogger) -> AuthGateway:
    return AuthGateway(transport=transport, logger=logger)


@pytest.fixture
def auth_service(
    gateway: AuthGateway,
    session: SessionManager,
    logger: StructuredLogger,
) -> AuthService:
    return AuthService(gateway=gateway, session=session, logger=logger)


@pytest.fixture
def login_flow(
    auth_service: AuthService,
    session: SessionManager,
    logger: StructuredLogger,
) -> LoginFlow:
    return LoginFlow(
        auth_service=auth_service,
        session=session,
        user_type=UserType.ADMINISTRATOR,
        logger=logger,
    )
