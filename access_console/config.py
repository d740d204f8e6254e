"""
Application Configuration.

Pydantic Settings model for the Smart Access console.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Backend API ---
    API_BASE_URL: str = "http://127.0.0.1:8000"
    AUTH_PATH: str = "/auth"
    REQUEST_TIMEOUT_S: float = 10.0

    # --- Local session persistence ---
    SESSION_DB_PATH: str = "access_console.db"
    SESSION_MAX_AGE_DAYS: int = 7

    # --- Logging ---
    LOG_FILE: str = "access_console.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_insecure_env(self) -> "AppConfig":
        """Emit startup warnings for configuration that silently degrades.

        Tokens and passwords travel in request bodies, so a plain-HTTP base
        URL outside localhost is worth flagging at boot.
        """
        _log = logging.getLogger("access_console.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; configuration loaded from "
                "environment variables or defaults."
            )

        base = self.API_BASE_URL.lower()
        if base.startswith("http://") and not (
            base.startswith("http://127.0.0.1") or base.startswith("http://localhost")
        ):
            _log.warning(
                "API_BASE_URL uses plain HTTP (%s); credentials and tokens "
                "will be sent unencrypted.",
                self.API_BASE_URL,
            )

        return self

    @property
    def auth_base_url(self) -> str:
        """Absolute URL prefix for the authentication endpoints."""
        return self.API_BASE_URL.rstrip("/") + "/" + self.AUTH_PATH.strip("/")


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    On first call, creates an ``AppConfig`` instance (reading from ``.env``).
    Subsequent calls return the same instance.  Uses a check-lock-check
    pattern to avoid the lock overhead on the fast path while remaining
    thread-safe during first initialisation.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
