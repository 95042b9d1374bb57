"""SQLite store base class: connection lifecycle and WAL setup.

Subclasses provide a ``_SCHEMA`` and their own queries::

    class MyStore(SQLiteStore):
        _SCHEMA = '''
            CREATE TABLE IF NOT EXISTS items (id INTEGER PRIMARY KEY);
        '''

    with MyStore("/tmp/my.db") as store:
        ...
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Self

import structlog

logger = structlog.get_logger()


class SQLiteStore:
    """Base class for SQLite-backed stores.

    Opens the connection in WAL mode, applies ``_SCHEMA`` and supports the
    ``with`` statement.  ``db_path=None`` gives an in-memory database.
    """

    _SCHEMA: str = ""

    def __init__(
        self,
        db_path: Path | str | None = None,
        *,
        check_same_thread: bool = False,
    ) -> None:
        path = str(db_path) if db_path else ":memory:"
        self._db_path = path
        self._conn = sqlite3.connect(path, check_same_thread=check_same_thread)

        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        if self._SCHEMA:
            self._conn.executescript(self._SCHEMA)
            self._conn.commit()

        logger.info(
            f"{type(self).__name__.lower()}_opened",
            db=path,
        )

    @property
    def db_path(self) -> str:
        return self._db_path

    # ── Context manager ────────────────────────────────────────────

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ── Lifecycle ──────────────────────────────────────────────────

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
