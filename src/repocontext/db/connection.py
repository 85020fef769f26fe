"""SQLite connection layer with sqlite-vec extension."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import sqlite_vec

from repocontext.errors import ConfigurationError, StoreError

logger = logging.getLogger(__name__)


class Database:
    """Shared SQLite database handle with an explicit open/close lifecycle.

    One instance is constructed at startup and passed to every store. The
    connection is shared across the asyncio worker threads that run store
    calls, so every store serialises its access through ``lock``.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Store the database path. Call open() to open the connection.

        Args:
            db_path: Path to the SQLite database file (created if missing),
                or ``":memory:"``.
        """
        self.db_path = Path(db_path) if str(db_path) != ":memory:" else None
        self._raw_path = str(db_path)
        self._conn: sqlite3.Connection | None = None
        self.lock = threading.RLock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def conn(self) -> sqlite3.Connection:
        """The open connection. Raises ConfigurationError before open()."""
        if self._conn is None:
            raise ConfigurationError("Database is not open — call Database.open() first.")
        return self._conn

    def open(self) -> sqlite3.Connection:
        """Open a connection, load sqlite-vec, apply the schema and return it.

        Idempotent: returns the existing connection when already open.
        """
        if self._conn is not None:
            return self._conn

        from repocontext.db.migrations import run_migrations

        if self.db_path is not None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(self._raw_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        run_migrations(conn)

        self._conn = conn
        logger.debug("Database opened at %s", self._raw_path)
        return conn

    def close(self) -> None:
        """Close the connection. Safe to call when already closed."""
        with self.lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("Database closed at %s", self._raw_path)

    def __enter__(self) -> Database:
        """Open the database and return the handle (context manager support)."""
        self.open()
        return self

    def __exit__(self, *args: object) -> None:
        """Close the connection when leaving the context manager."""
        self.close()


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Re-raise sqlite3 errors raised inside the block as StoreError."""
    try:
        yield
    except sqlite3.Error as exc:
        raise StoreError(f"Failed to {action}: {exc}") from exc
