"""
Session Stores.

A session store holds the authenticated session as one value: either a
complete ``AuthenticatedSession`` or nothing.  Every ``set`` and ``clear``
replaces the whole value under a lock, so a concurrent reader sees either
the old session or the new one and never a mix of fields.

Two implementations satisfy the ``SessionStore`` protocol:

- ``InMemorySessionStore``: process-local; used by tests and by callers
  that do not want anything written to disk.
- ``EncryptedSessionStore``: persists the session to the local SQLite
  ``auth_session`` table as a single AES-256-GCM encrypted row.

Security model (encrypted store)
--------------------------------
- The key is derived at runtime from machine identity (hostname + OS
  username) via PBKDF2-HMAC-SHA256 with a per-machine random salt.  The
  key is **never** persisted.
- AES-GCM gives confidentiality and integrity; a tampered row fails
  verification and reads as "no session".
- Rows older than ``max_age_days`` read as "no session".
"""

from __future__ import annotations

import getpass
import json
import os
import socket
import stat
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Protocol

from Crypto.Cipher import AES
from Crypto.Hash import SHA256
from Crypto.Protocol.KDF import PBKDF2
from pydantic import ValidationError

from access_console.database import DatabaseManager
from access_console.exceptions import SessionStoreError
from access_console.logger import StructuredLogger
from access_console.models.auth_models import AuthenticatedSession


class SessionStore(Protocol):
    """Injectable get/set/clear store for the authenticated session."""

    def get(self) -> Optional[AuthenticatedSession]: ...  # noqa: E704

    def set(self, session: AuthenticatedSession) -> None: ...  # noqa: E704

    def clear(self) -> None: ...  # noqa: E704


class InMemorySessionStore:
    """Process-local session store."""

    def __init__(self, session: Optional[AuthenticatedSession] = None) -> None:
        self._lock: threading.RLock = threading.RLock()
        self._session: Optional[AuthenticatedSession] = session

    def get(self) -> Optional[AuthenticatedSession]:
        with self._lock:
            return self._session

    def set(self, session: AuthenticatedSession) -> None:
        with self._lock:
            self._session = session

    def clear(self) -> None:
        with self._lock:
            self._session = None


class EncryptedSessionStore:
    """Persists the authenticated session in SQLite, encrypted at rest.

    The decrypted session is mirrored in memory after the first read so
    that accessors (route guards, the bearer header) do not hit SQLite
    and PBKDF2 on every call.  ``clear`` drops the in-memory copy before
    touching disk: even if the delete fails, this process no longer
    reports an authenticated session.

    Parameters
    ----------
    db:
        An initialised ``DatabaseManager``; ``initialize_schema`` must
        have run against it.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    max_age_days:
        Maximum age of a persisted session before it reads as absent.
    salt_path:
        Location of the per-machine salt file.
    kdf_iterations:
        PBKDF2 iteration count for key derivation.
    """

    _DEFAULT_KDF_ITERATIONS: int = 600_000
    _KEY_LENGTH: int = 32  # 256 bits
    _SALT_LENGTH: int = 32

    def __init__(
        self,
        db: DatabaseManager,
        logger: StructuredLogger,
        max_age_days: int = 7,
        salt_path: Optional[Path] = None,
        kdf_iterations: int = _DEFAULT_KDF_ITERATIONS,
    ) -> None:
        self._db: DatabaseManager = db
        self._logger: StructuredLogger = logger
        self._max_age_days: int = max_age_days
        self._salt_path: Path = salt_path or Path.home() / ".access_console_session_salt"
        self._kdf_iterations: int = kdf_iterations

        self._lock: threading.RLock = threading.RLock()
        self._key: Optional[bytes] = None
        self._loaded: bool = False
        self._session: Optional[AuthenticatedSession] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self) -> Optional[AuthenticatedSession]:
        """Return the stored session, or ``None`` when unauthenticated."""
        with self._lock:
            if not self._loaded:
                self._session = self._read_row()
                self._loaded = True
            return self._session

    def set(self, session: AuthenticatedSession) -> None:
        """Encrypt and persist *session*, replacing any previous one.

        Raises
        ------
        SessionStoreError
            If encryption or the database write failed.  The previously
            stored session (if any) is left untouched.
        """
        payload: dict[str, str] = {
            **session.model_dump(mode="json"),
            "stored_at": datetime.now(tz=timezone.utc).isoformat(),
        }
        plaintext: bytes = json.dumps(payload, ensure_ascii=False).encode("utf-8")

        with self._lock:
            try:
                cipher = AES.new(self._derive_key(), AES.MODE_GCM)
                ciphertext, tag = cipher.encrypt_and_digest(plaintext)
                nonce: bytes = cipher.nonce
            except (OSError, ValueError) as exc:
                self._logger.warning("Failed to encrypt session payload: %s", exc)
                raise SessionStoreError("Could not encrypt the session.") from exc

            try:
                with self._db.transaction() as conn:
                    conn.execute(
                        """
                        INSERT INTO auth_session (id, encrypted_payload, nonce, tag)
                        VALUES (1, ?, ?, ?)
                        ON CONFLICT(id) DO UPDATE SET
                            encrypted_payload = excluded.encrypted_payload,
                            nonce             = excluded.nonce,
                            tag               = excluded.tag,
                            created_at        = CURRENT_TIMESTAMP
                        """,
                        (ciphertext, nonce, tag),
                    )
            except Exception as exc:
                self._logger.warning("Failed to write session to database: %s", exc)
                raise SessionStoreError("Could not persist the session.") from exc

            self._session = session
            self._loaded = True
            self._logger.info("Session stored for user %s.", session.username)

    def clear(self) -> None:
        """Forget the session in memory and delete the persisted row.

        Safe to call when nothing is stored.  If the row cannot be deleted,
        the salt file is discarded instead so the leftover ciphertext can
        never be decrypted again.
        """
        with self._lock:
            self._session = None
            self._loaded = True
            try:
                with self._db.transaction() as conn:
                    conn.execute("DELETE FROM auth_session WHERE id = 1")
                self._logger.info("Stored session cleared.")
            except Exception as exc:
                self._logger.error("Failed to delete stored session: %s", exc)
                self._discard_key()

    def _discard_key(self) -> None:
        """Drop the derived key and its salt; the next ``set`` makes a new salt."""
        self._key = None
        try:
            self._salt_path.unlink(missing_ok=True)
            self._logger.warning(
                "Session salt discarded; the undeleted session row is now unreadable.",
            )
        except OSError as exc:
            self._logger.error("Failed to discard session salt %s: %s", self._salt_path, exc)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _read_row(self) -> Optional[AuthenticatedSession]:
        try:
            row = self._db.sqlite.execute(
                "SELECT encrypted_payload, nonce, tag FROM auth_session WHERE id = 1",
            ).fetchone()
        except Exception as exc:
            self._logger.warning("Failed to read stored session: %s", exc)
            return None

        if row is None:
            self._logger.debug("No stored session found.")
            return None

        try:
            cipher = AES.new(self._derive_key(), AES.MODE_GCM, nonce=row["nonce"])
            plaintext: bytes = cipher.decrypt_and_verify(row["encrypted_payload"], row["tag"])
        except (ValueError, KeyError, OSError) as exc:
            self._logger.warning(
                "Decryption of stored session failed (corrupted data or "
                "machine identity changed): %s",
                exc,
            )
            return None

        try:
            data: dict[str, str] = json.loads(plaintext.decode("utf-8"))
            stored_at: datetime = datetime.fromisoformat(data.pop("stored_at"))
            session = AuthenticatedSession(**data)
        except (json.JSONDecodeError, KeyError, ValueError, TypeError, ValidationError) as exc:
            self._logger.warning("Stored session payload is malformed: %s", exc)
            return None

        if datetime.now(tz=timezone.utc) > stored_at + timedelta(days=self._max_age_days):
            self._logger.info(
                "Stored session for %s has expired (stored at %s, max age %d days).",
                session.username,
                stored_at.isoformat(),
                self._max_age_days,
            )
            return None

        self._logger.info("Loaded stored session for user %s.", session.username)
        return session

    def _derive_key(self) -> bytes:
        """Derive (once) the 256-bit AES key from machine identity.

        Raises
        ------
        OSError
            If the per-machine salt file cannot be created or read.
        """
        if self._key is None:
            password: str = f"{socket.gethostname()}:{getpass.getuser()}"
            self._key = PBKDF2(
                password=password,
                salt=self._get_or_create_salt(),
                dkLen=self._KEY_LENGTH,
                count=self._kdf_iterations,
                hmac_hash_module=SHA256,
            )
        return self._key

    def _get_or_create_salt(self) -> bytes:
        """Return the per-machine random salt, creating it on first run."""
        if self._salt_path.exists():
            data: bytes = self._salt_path.read_bytes()
            if len(data) == self._SALT_LENGTH:
                return data
            self._logger.warning(
                "Salt file has unexpected length (%d); regenerating.", len(data),
            )
        salt: bytes = os.urandom(self._SALT_LENGTH)
        self._salt_path.parent.mkdir(parents=True, exist_ok=True)
        self._salt_path.write_bytes(salt)
        self._salt_path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 0o600
        self._logger.info("Per-machine session salt created at %s.", self._salt_path)
        return salt
