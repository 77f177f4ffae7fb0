"""
SQLite schema for the series document.
"""

from __future__ import annotations

SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- One row per well-known storage key; the value is the serialized cache map
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    payload_bytes INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS schema_meta (
    version INTEGER NOT NULL
);
"""

UPSERT_SQL = """
INSERT INTO kv_store (key, value, updated_at, payload_bytes)
VALUES (?, ?, ?, ?)
ON CONFLICT(key) DO UPDATE SET
    value = excluded.value,
    updated_at = excluded.updated_at,
    payload_bytes = excluded.payload_bytes
"""
