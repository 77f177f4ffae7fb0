"""
SQLite Series Backend Implementation.

Features:
- WAL mode for concurrent reads
- Whole-document upsert (atomic per write)
- Byte quota enforcement mapped to CapacityError
- Automatic schema migrations
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

from yield_history.adapters.store.sqlite.migrations import _apply_schema_migrations
from yield_history.adapters.store.sqlite.schema import SCHEMA_SQL, UPSERT_SQL
from yield_history.config.settings import StorageSettings
from yield_history.domain.errors import CapacityError, StorageError
from yield_history.observability.logging import get_logger
from yield_history.ports.store import SeriesBackendPort

logger = get_logger(__name__)


def _is_disk_full(exc: sqlite3.Error) -> bool:
    code = getattr(exc, "sqlite_errorcode", None)
    if code is not None:
        return code == sqlite3.SQLITE_FULL
    return "full" in str(exc).lower()


class SQLiteSeriesBackend(SeriesBackendPort):
    """
    SQLite-backed key/value row holding the serialized cache document.

    Only one key is ever written (settings.storage_key).
    """

    def __init__(self, settings: StorageSettings):
        self.settings = settings
        self.db_path = Path(settings.path)
        self.storage_key = settings.storage_key
        self.quota_bytes = settings.quota_bytes
        self._conn: aiosqlite.Connection | None = None
        self._initialized = False

    async def initialize(self) -> None:
        """Open the database and create the schema."""
        if self._initialized:
            return

        logger.info(f"Initializing SQLite series backend: {self.db_path}")

        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(str(self.db_path))

        # Enable WAL mode for better concurrency
        if self.settings.wal_mode:
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._conn.execute("PRAGMA synchronous=NORMAL")

        await self._conn.execute("PRAGMA busy_timeout=5000")

        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()
        await self._apply_schema_migrations()

        self._initialized = True
        logger.info(f"SQLite series backend ready (key={self.storage_key}, quota={self.quota_bytes} bytes)")

    async def close(self) -> None:
        """Close database connection."""
        if not self._initialized:
            return

        if self._conn:
            await self._conn.close()
            self._conn = None

        self._initialized = False
        logger.info("SQLite series backend closed")

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StorageError("SQLite series backend is not initialized")
        return self._conn

    async def load(self) -> str | None:
        conn = self._require_conn()
        cursor = await conn.execute("SELECT value FROM kv_store WHERE key = ?", (self.storage_key,))
        row = await cursor.fetchone()
        return row[0] if row else None

    async def save(self, payload: str) -> None:
        conn = self._require_conn()
        size = len(payload.encode("utf-8"))

        if self.quota_bytes and size > self.quota_bytes:
            raise CapacityError(
                f"Payload of {size} bytes exceeds quota of {self.quota_bytes} bytes",
                payload_bytes=size,
                quota_bytes=self.quota_bytes,
            )

        try:
            await conn.execute(
                UPSERT_SQL,
                (self.storage_key, payload, datetime.now(UTC).isoformat(), size),
            )
            await conn.commit()
        except sqlite3.OperationalError as e:
            await conn.rollback()
            if _is_disk_full(e):
                raise CapacityError(
                    f"SQLite reported a full database: {e}",
                    payload_bytes=size,
                    quota_bytes=self.quota_bytes or None,
                ) from e
            raise StorageError(f"SQLite write failed: {e}") from e

    async def clear(self) -> None:
        conn = self._require_conn()
        await conn.execute("DELETE FROM kv_store WHERE key = ?", (self.storage_key,))
        await conn.commit()

    async def stored_bytes(self) -> int:
        """Size of the stored document as recorded at write time."""
        conn = self._require_conn()
        cursor = await conn.execute("SELECT payload_bytes FROM kv_store WHERE key = ?", (self.storage_key,))
        row = await cursor.fetchone()
        return int(row[0] or 0) if row else 0

    _apply_schema_migrations = _apply_schema_migrations
