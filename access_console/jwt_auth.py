"""
Authentication Guard and Token Helpers.

Provides a factory that produces a decorator for gating callables behind
an authenticated session, plus the access-token freshness check used by
the transport before attaching a bearer header.

Usage::

    from access_console.auth import SessionManager
    from access_console.jwt_auth import require_auth

    session = SessionManager(store)
    auth_guard = require_auth(session)

    @auth_guard
    def open_dashboard() -> str:
        return "only reachable when logged in"
"""

from __future__ import annotations

import time
from functools import wraps
from typing import TYPE_CHECKING, Callable, Optional, ParamSpec, TypeVar

from jose import JWTError, jwt

from access_console.exceptions import AuthenticationError

if TYPE_CHECKING:
    from access_console.auth import SessionManager

P = ParamSpec("P")
R = TypeVar("R")


def is_token_expired(token: Optional[str], now: Optional[float] = None) -> bool:
    """Return ``True`` when *token* is missing, undecodable or past ``exp``.

    The signature is not verified; only the backend can do that.  This
    check exists so that a stale token is never sent as a bearer header.
    """
    if not token:
        return True
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return True
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return True
    current = time.time() if now is None else now
    return exp < current


def require_auth(session: "SessionManager") -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Return a decorator that enforces authentication via *session*.

    The returned decorator checks ``session.is_authenticated`` before
    every call to the wrapped function.  If no session is stored, an
    :class:`AuthenticationError` is raised.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            if not session.is_authenticated:
                raise AuthenticationError(
                    "Authentication required. Please log in before "
                    "performing this action."
                )
            return func(*args, **kwargs)

        return wrapper

    return decorator
