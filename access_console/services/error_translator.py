"""
Transport Failure Translator.

Maps a ``TransportFailure`` onto exactly one ``AuthErrorKind`` using an
ordered table of rules.  The table is evaluated top to bottom and the first
matching rule wins, so precedence is the tuple order of
``TRANSLATION_RULES`` and each rule can be tested on its own.

Precedence:

1. no response received                -> NETWORK_ERROR
2. 401                                 -> INVALID_CREDENTIALS
3. 403                                 -> ACCOUNT_LOCKED
4. 429                                 -> TOO_MANY_ATTEMPTS
5. 400                                 -> VALIDATION_ERROR
6. any other error status              -> REQUEST_ERROR
7. no status, or a malformed 2xx reply -> UNEXPECTED_ERROR
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from access_console.exceptions import AuthError
from access_console.models.enums import AuthErrorKind
from access_console.transport import TransportFailure

__all__ = [
    "NETWORK_ERROR_MESSAGE",
    "TRANSLATION_RULES",
    "TranslationRule",
    "translate_failure",
]


NETWORK_ERROR_MESSAGE: str = "Network error. Please check your connection."
INVALID_CREDENTIALS_MESSAGE: str = "Invalid credentials."
ACCOUNT_LOCKED_MESSAGE: str = "Account is locked."
TOO_MANY_ATTEMPTS_MESSAGE: str = "Too many attempts. Please try again later."
VALIDATION_ERROR_MESSAGE: str = "Validation error occurred."
REQUEST_ERROR_MESSAGE: str = "An error occurred during the request."
UNEXPECTED_ERROR_MESSAGE: str = "An unexpected error occurred."

# Field lists consulted, in order, when a 400 reply has no ``detail``.
_VALIDATION_FIELDS: tuple[str, ...] = ("username", "email", "non_field_errors")


@dataclass(frozen=True)
class TranslationRule:
    """One row of the translation table.

    Attributes
    ----------
    name:
        Short label used in logs and tests.
    kind:
        Error kind produced when the rule matches.
    matches:
        Predicate over the failure.
    message:
        Builds the user-facing message for a matching failure.
    """

    name: str
    kind: AuthErrorKind
    matches: Callable[[TransportFailure], bool]
    message: Callable[[TransportFailure], str]


# ---------------------------------------------------------------------------
# Body helpers
# ---------------------------------------------------------------------------

def _status(failure: TransportFailure) -> Optional[int]:
    return failure.response.status if failure.response is not None else None


def _body(failure: TransportFailure) -> dict[str, object]:
    if failure.response is None or not isinstance(failure.response.body, dict):
        return {}
    return failure.response.body


def _text(value: object) -> Optional[str]:
    """Return *value* as a message if it is a non-empty string or list of them."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, list) and value and isinstance(value[0], str):
        return value[0] or None
    return None


def _detail(failure: TransportFailure) -> Optional[str]:
    return _text(_body(failure).get("detail"))


def _validation_message(failure: TransportFailure) -> str:
    detail = _detail(failure)
    if detail:
        return detail
    body = _body(failure)
    for field in _VALIDATION_FIELDS:
        message = _text(body.get(field))
        if message:
            return message
    return VALIDATION_ERROR_MESSAGE


def _status_is(code: int) -> Callable[[TransportFailure], bool]:
    def predicate(failure: TransportFailure) -> bool:
        return _status(failure) == code

    return predicate


def _detail_or(default: str) -> Callable[[TransportFailure], str]:
    def build(failure: TransportFailure) -> str:
        return _detail(failure) or default

    return build


def _is_error_status(failure: TransportFailure) -> bool:
    response = failure.response
    return response is not None and response.status is not None and not response.is_success


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------

TRANSLATION_RULES: tuple[TranslationRule, ...] = (
    TranslationRule(
        name="no_response",
        kind=AuthErrorKind.NETWORK_ERROR,
        matches=lambda failure: failure.response is None,
        message=lambda failure: NETWORK_ERROR_MESSAGE,
    ),
    TranslationRule(
        name="unauthorized",
        kind=AuthErrorKind.INVALID_CREDENTIALS,
        matches=_status_is(401),
        message=_detail_or(INVALID_CREDENTIALS_MESSAGE),
    ),
    TranslationRule(
        name="forbidden",
        kind=AuthErrorKind.ACCOUNT_LOCKED,
        matches=_status_is(403),
        message=_detail_or(ACCOUNT_LOCKED_MESSAGE),
    ),
    TranslationRule(
        name="rate_limited",
        kind=AuthErrorKind.TOO_MANY_ATTEMPTS,
        matches=_status_is(429),
        message=_detail_or(TOO_MANY_ATTEMPTS_MESSAGE),
    ),
    TranslationRule(
        name="bad_request",
        kind=AuthErrorKind.VALIDATION_ERROR,
        matches=_status_is(400),
        message=_validation_message,
    ),
    TranslationRule(
        name="other_status",
        kind=AuthErrorKind.REQUEST_ERROR,
        matches=_is_error_status,
        message=_detail_or(REQUEST_ERROR_MESSAGE),
    ),
    TranslationRule(
        name="malformed",
        kind=AuthErrorKind.UNEXPECTED_ERROR,
        matches=lambda failure: True,
        message=lambda failure: failure.message or UNEXPECTED_ERROR_MESSAGE,
    ),
)


def translate_failure(
    failure: TransportFailure,
    rules: tuple[TranslationRule, ...] = TRANSLATION_RULES,
) -> AuthError:
    """Return the ``AuthError`` for *failure* according to *rules*.

    The last rule of the default table matches everything, so a result is
    always produced.
    """
    for rule in rules:
        if rule.matches(failure):
            return AuthError(rule.kind, rule.message(failure))
    return AuthError(
        AuthErrorKind.UNEXPECTED_ERROR,
        failure.message or UNEXPECTED_ERROR_MESSAGE,
    )
