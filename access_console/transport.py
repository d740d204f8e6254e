"""
HTTP Transport for the authentication endpoints.

``RequestsTransport`` is the only component that touches the network.  It
returns a ``TransportResponse`` for 2xx replies and raises
``TransportFailure`` for everything else, carrying either the response
that came back or ``None`` when nothing did (connection refused, DNS
failure, timeout).  Classifying the failure is the error translator's
job, not this module's.

Usage::

    transport = RequestsTransport(
        base_url=config.auth_base_url,
        timeout=config.REQUEST_TIMEOUT_S,
        logger=StructuredLogger(name="transport"),
        token_provider=lambda: session.access_token,
    )
    reply = transport.post("login", {"username": "...", ...})
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import requests

from access_console.jwt_auth import is_token_expired
from access_console.logger import StructuredLogger

TokenProvider = Callable[[], Optional[str]]


@dataclass(frozen=True)
class TransportResponse:
    """Status code and decoded JSON body of an HTTP reply.

    ``body`` is ``None`` when the reply had no body or was not JSON.
    ``status`` is ``None`` only for responses that never carried one.
    """

    status: Optional[int]
    body: object = None

    @property
    def is_success(self) -> bool:
        return self.status is not None and 200 <= self.status < 300


class TransportFailure(Exception):
    """A request that did not produce a usable successful reply.

    Attributes
    ----------
    response:
        The reply that came back, or ``None`` when no response was
        received at all.
    message:
        Description of the low-level failure.
    """

    def __init__(self, message: str, response: Optional[TransportResponse] = None) -> None:
        super().__init__(message)
        self.message: str = message
        self.response: Optional[TransportResponse] = response


class Transport(Protocol):
    """Request/response channel to the backend."""

    def post(self, path: str, payload: dict[str, object]) -> TransportResponse: ...  # noqa: E704


class RequestsTransport:
    """``requests``-backed JSON transport.

    Parameters
    ----------
    base_url:
        Absolute prefix for every path (e.g. ``https://host/auth``).
    timeout:
        Per-request timeout in seconds.  Expiry surfaces as "no response".
    logger:
        Structured logger; request fields are logged at debug level with
        credentials, codes and tokens masked.
    token_provider:
        Optional callable returning the current access token.  The token
        is attached as a bearer header only while it is unexpired.
    session:
        Optional pre-built ``requests.Session`` (tests, connection reuse).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float,
        logger: StructuredLogger,
        token_provider: Optional[TokenProvider] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url: str = base_url.rstrip("/")
        self._timeout: float = timeout
        self._logger: StructuredLogger = logger
        self._token_provider: Optional[TokenProvider] = token_provider

        self._session: requests.Session = session or requests.Session()
        # Known backend, a handful of hops is plenty.
        self._session.max_redirects = 3
        self._session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def post(self, path: str, payload: dict[str, object]) -> TransportResponse:
        """POST *payload* as JSON to ``{base_url}/{path}``.

        Raises
        ------
        TransportFailure
            With ``response=None`` on connection errors and timeouts, or
            with the decoded reply on any non-2xx status.
        """
        url = f"{self._base_url}/{path.strip('/')}"
        headers: dict[str, str] = {}
        if self._token_provider is not None:
            token = self._token_provider()
            if token and not is_token_expired(token):
                headers["Authorization"] = f"Bearer {token}"

        # Secret fields are masked by the JSON formatter.
        self._logger.debug(
            "POST %s", url, extra={**payload, "authorization": headers.get("Authorization", "")},
        )

        try:
            resp = self._session.post(
                url, json=payload, headers=headers, timeout=self._timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            self._logger.warning(
                "No response from %s: %s", url, exc,
                extra={"event": "TRANSPORT_NO_RESPONSE"},
            )
            raise TransportFailure(str(exc)) from exc
        except requests.RequestException as exc:
            # Request never left the client (bad URL, too many redirects).
            self._logger.warning("Request to %s failed: %s", url, exc)
            raise TransportFailure(
                str(exc), response=TransportResponse(status=None),
            ) from exc

        reply = TransportResponse(status=resp.status_code, body=self._decode(resp))
        self._logger.debug("POST %s -> %d", url, resp.status_code)

        if not reply.is_success:
            raise TransportFailure(
                f"Request failed with status code {resp.status_code}",
                response=reply,
            )
        return reply

    def close(self) -> None:
        """Release pooled connections."""
        self._session.close()

    @staticmethod
    def _decode(resp: requests.Response) -> object:
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return None
