"""
SQLite series backend package (facade).
"""

from __future__ import annotations

from yield_history.adapters.store.sqlite.store import SQLiteSeriesBackend

__all__ = ["SQLiteSeriesBackend"]
