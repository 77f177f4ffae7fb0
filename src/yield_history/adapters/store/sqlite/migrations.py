"""
SQLite schema versioning.
"""

from __future__ import annotations

from yield_history.adapters.store.sqlite.schema import SCHEMA_VERSION
from yield_history.observability.logging import get_logger

logger = get_logger(__name__)


async def _apply_schema_migrations(self) -> None:
    """Record the schema version; future additive migrations go here."""
    if not self._conn:
        return

    cursor = await self._conn.execute("SELECT version FROM schema_meta LIMIT 1")
    row = await cursor.fetchone()
    if row is None:
        logger.info(f"Stamping new database with schema version {SCHEMA_VERSION}")
        await self._conn.execute("INSERT INTO schema_meta (version) VALUES (?)", (SCHEMA_VERSION,))
    elif row[0] < SCHEMA_VERSION:
        await self._conn.execute("UPDATE schema_meta SET version = ?", (SCHEMA_VERSION,))
    await self._conn.commit()
