from __future__ import annotations

import contextlib
import logging
import sqlite3
import threading
from collections.abc import Iterator

from quotesync.core.errors import PersistenceError, PersistenceReadError
from quotesync.domain.ports import BlobStorePort
from quotesync.domain.time_utils import now_iso
from quotesync.infrastructure.sqlite_uow import transaction

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS blobs (
    key TEXT PRIMARY KEY,
    value BLOB NOT NULL,
    updated_at TEXT NOT NULL
)
"""


class SQLiteBlobStore(BlobStorePort):
    """Named blobs in a single SQLite table; ``atomic()`` groups several saves."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._lock = threading.RLock()
        self.ensure_schema()

    def ensure_schema(self) -> None:
        with self._lock:
            try:
                with transaction(self._connection):
                    self._connection.execute(SCHEMA_SQL)
            except sqlite3.Error as exc:
                raise PersistenceError("Could not create the blobs table.") from exc

    def load(self, key: str) -> bytes | None:
        with self._lock:
            try:
                cursor = self._connection.execute("SELECT value FROM blobs WHERE key = ?", (key,))
                row = cursor.fetchone()
            except sqlite3.Error as exc:
                raise PersistenceReadError(f"Could not read '{key}'.") from exc
        if row is None:
            return None
        value = row[0]
        return value.encode("utf-8") if isinstance(value, str) else bytes(value)

    def save(self, key: str, data: bytes) -> None:
        with self._lock:
            try:
                with transaction(self._connection):
                    self._connection.execute(
                        """
                        INSERT INTO blobs (key, value, updated_at)
                        VALUES (?, ?, ?)
                        ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                        """,
                        (key, sqlite3.Binary(data), now_iso()),
                    )
            except sqlite3.Error as exc:
                raise PersistenceError(f"Could not write '{key}'.") from exc
        logger.debug("Blob saved", extra={"extra": {"key": key, "bytes": len(data)}})

    @contextlib.contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            try:
                with transaction(self._connection):
                    yield
            except sqlite3.Error as exc:
                raise PersistenceError("Could not commit the write batch.") from exc
