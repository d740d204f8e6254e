"""
Authentication Services Package.

The ``create_services()`` factory wires the transport, gateway and auth
service together, returning a typed dict that the entry point and the
login screens consume without knowing the internal dependency graph.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from access_console.auth import SessionManager
from access_console.config import AppConfig
from access_console.logger import get_logger
from access_console.services.auth_gateway import AuthGateway
from access_console.services.auth_service import AuthService
from access_console.transport import RequestsTransport, Transport


class ServiceContainer(TypedDict):
    """Typed container for the wired services."""

    transport: Transport
    auth_gateway: AuthGateway
    auth_service: AuthService


def create_services(
    config: AppConfig,
    session: SessionManager,
    transport: Optional[Transport] = None,
) -> ServiceContainer:
    """
    Wire the auth stack together.

    Args:
        config: Application configuration (base URL, timeout).
        session: The process-wide session holder.
        transport: Optional pre-built transport (tests inject a fake).

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    if transport is None:
        transport = RequestsTransport(
            base_url=config.auth_base_url,
            timeout=config.REQUEST_TIMEOUT_S,
            logger=get_logger("transport"),
            token_provider=lambda: session.access_token,
        )

    auth_gateway = AuthGateway(transport=transport, logger=get_logger("auth_gateway"))
    auth_service = AuthService(
        gateway=auth_gateway,
        session=session,
        logger=get_logger("auth"),
    )

    return ServiceContainer(
        transport=transport,
        auth_gateway=auth_gateway,
        auth_service=auth_service,
    )
