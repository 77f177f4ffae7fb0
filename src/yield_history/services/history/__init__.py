"""Historical series cache: store, fetcher, batch pipeline and metrics memo."""

from yield_history.services.history.batch import BatchFetchPipeline, summarize
from yield_history.services.history.cancel import CancelToken
from yield_history.services.history.eviction import EvictionManager
from yield_history.services.history.fetcher import HistoryFetcher
from yield_history.services.history.metrics_cache import MetricsCache
from yield_history.services.history.mirror import InMemoryMirror
from yield_history.services.history.service import HistoryCache, build_history_cache
from yield_history.services.history.store import HistoryStore

__all__ = [
    "BatchFetchPipeline",
    "CancelToken",
    "EvictionManager",
    "HistoryCache",
    "HistoryFetcher",
    "HistoryStore",
    "InMemoryMirror",
    "MetricsCache",
    "build_history_cache",
    "summarize",
]
