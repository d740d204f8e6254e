"""
Local Database Layer.

Owns the single SQLite connection used by the console for local state.
The only table of interest is ``auth_session`` (see ``schema.py``), which
holds the encrypted authenticated session.

This module only manages the raw connection and its write lock; it
contains no query logic.

Usage (dependency injection at app startup)::

    from access_console.database import DatabaseManager
    from access_console.logger import StructuredLogger

    db = DatabaseManager(
        sqlite_path=Path(config.SESSION_DB_PATH),
        logger=StructuredLogger(name="database"),
    )
    # Inject `db` into the session store.
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Union

from access_console.logger import StructuredLogger


class DatabaseManager:
    """Manages the connection to the local SQLite database.

    Fully configured at construction time via dependency injection.

    Parameters
    ----------
    sqlite_path:
        Filesystem path for the SQLite database file, or ``":memory:"``.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        sqlite_path: Union[Path, str],
        logger: StructuredLogger,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._write_lock: threading.RLock = threading.RLock()
        self._closed: bool = False
        self._sqlite_conn: sqlite3.Connection = self._connect_sqlite(sqlite_path)

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Return the initialised SQLite connection."""
        return self._sqlite_conn

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Hold the write lock for one unit of work and commit it.

        On exception the transaction is rolled back and the error
        re-raised, so a failed write never leaves partial state.
        """
        with self._write_lock:
            try:
                yield self._sqlite_conn
                self._sqlite_conn.commit()
            except Exception:
                self._sqlite_conn.rollback()
                self._logger.error(
                    "SQLite transaction rolled back due to exception.", exc_info=True,
                )
                raise

    def close(self) -> None:
        """Close the local SQLite connection.

        Safe to call multiple times; subsequent calls are no-ops.
        """
        with self._write_lock:
            if self._closed:
                return
            try:
                self._sqlite_conn.close()
                self._logger.info("SQLite connection closed.")
            except sqlite3.ProgrammingError:
                pass
            self._closed = True

    def _connect_sqlite(self, path: Union[Path, str]) -> sqlite3.Connection:
        """Open (or create) a SQLite database with defensive error handling.

        Raises
        ------
        PermissionError
            If the OS denies access to the database file or its directory.
        """
        try:
            conn = sqlite3.connect(str(path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            if str(path) != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL;")
            self._logger.info("SQLite database opened at %s", path)
            return conn
        except PermissionError as exc:
            msg = (
                f"Cannot open the local database at '{path}'. "
                "The file or its directory may be read-only or locked by "
                "another process.  Please check file permissions and try again."
            )
            self._logger.error(msg)
            raise PermissionError(msg) from exc
