"""Series backend adapters."""

from yield_history.adapters.store.memory import InMemorySeriesBackend
from yield_history.adapters.store.sqlite import SQLiteSeriesBackend

__all__ = ["InMemorySeriesBackend", "SQLiteSeriesBackend"]
