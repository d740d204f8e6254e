"""
Smart Access Console Entry Point.

Bootstraps the dependency graph via constructor injection, initialises the
local SQLite schema, and runs the OTP-gated sign-in at the terminal.
Every subsystem is wired here; there are no module-level globals.

Usage::

    python main.py                         # administrator sign-in
    python main.py registration_officer    # registration officer sign-in
"""

from __future__ import annotations

import argparse
import atexit
import getpass
import sys
from pathlib import Path

from access_console.auth import SessionManager
from access_console.config import get_config
from access_console.database import DatabaseManager
from access_console.logger import StructuredLogger, get_logger
from access_console.models.enums import LoginStage, UserType
from access_console.schema import initialize_schema
from access_console.services import create_services
from access_console.services.login_flow import LoginFlow
from access_console.session_store import EncryptedSessionStore

_RESEND_COMMAND: str = "r"
_CANCEL_COMMAND: str = "q"


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sign in to the Smart Access console.")
    parser.add_argument(
        "user_type",
        nargs="?",
        default=UserType.ADMINISTRATOR.value,
        choices=[member.value for member in UserType],
    )
    return parser.parse_args(argv)


def _sign_in(flow: LoginFlow) -> bool:
    """Prompt through credentials and OTP.  Returns ``True`` once verified."""
    while flow.stage is LoginStage.ANONYMOUS:
        username = input("Username: ")
        password = getpass.getpass("Password: ")
        challenge = flow.submit_credentials(username, password)
        if not challenge.success:
            print(challenge.error_message)
            continue
        if challenge.message:
            print(challenge.message)

    while flow.stage is LoginStage.CREDENTIALS_SUBMITTED:
        raw = input(
            f"One-time code ('{_RESEND_COMMAND}' to resend, '{_CANCEL_COMMAND}' to cancel): "
        ).strip()
        if raw.lower() == _CANCEL_COMMAND:
            flow.cancel()
            return False
        if raw.lower() == _RESEND_COMMAND:
            receipt = flow.resend()
            print(receipt.message if receipt.success else receipt.error_message)
            continue
        result = flow.verify(flow.enter_otp(raw))
        if not result.success:
            print(result.error_message)

    return flow.stage is LoginStage.VERIFIED


def main(argv: list[str]) -> None:
    """Application entry point: wire dependencies and run the sign-in."""
    args = _parse_args(argv)
    logger: StructuredLogger = get_logger("main")
    logger.info("Starting Smart Access console...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Local database + schema (encrypted session storage)
    # ------------------------------------------------------------------
    db = DatabaseManager(
        sqlite_path=Path(config.SESSION_DB_PATH),
        logger=StructuredLogger(name="database"),
    )
    # close() is idempotent; the finally below is the primary path.
    atexit.register(db.close)
    initialize_schema(db.sqlite, StructuredLogger(name="schema"))

    # ------------------------------------------------------------------
    # 3. Session store + manager
    # ------------------------------------------------------------------
    store = EncryptedSessionStore(
        db=db,
        logger=StructuredLogger(name="session_store"),
        max_age_days=config.SESSION_MAX_AGE_DAYS,
    )
    session = SessionManager(store)

    # ------------------------------------------------------------------
    # 4. Services
    # ------------------------------------------------------------------
    services = create_services(config=config, session=session)
    auth_service = services["auth_service"]

    try:
        if session.is_authenticated:
            refreshed = auth_service.refresh_session_token()
            if not refreshed.success:
                print(refreshed.error_message)

        flow = LoginFlow(
            auth_service=auth_service,
            session=session,
            user_type=UserType(args.user_type),
            logger=get_logger("login_flow"),
        )

        if flow.stage is LoginStage.VERIFIED or _sign_in(flow):
            print(f"Signed in as {session.get_username()} ({session.get_user_type()}).")
            if input("Log out now? [y/N] ").strip().lower() == "y":
                flow.logout()
                print("Signed out.")
    finally:
        db.close()
        logger.info("Smart Access console shut down.")


if __name__ == "__main__":
    try:
        main(sys.argv[1:])
    except (KeyboardInterrupt, EOFError):
        pass
