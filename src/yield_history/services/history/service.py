"""
Wiring for the history cache.

Builds the backend, mirror, eviction manager, store, fetcher, metrics memo
and batch pipeline from Settings and hands them out as one container.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from yield_history.adapters.store.memory import InMemorySeriesBackend
from yield_history.adapters.store.sqlite import SQLiteSeriesBackend
from yield_history.config.settings import Settings
from yield_history.observability.logging import get_logger
from yield_history.ports.store import SeriesBackendPort
from yield_history.services.history.batch import BatchFetchPipeline
from yield_history.services.history.eviction import EvictionManager
from yield_history.services.history.fetcher import HistoryFetcher
from yield_history.services.history.metrics_cache import MetricsCache
from yield_history.services.history.mirror import InMemoryMirror
from yield_history.services.history.store import HistoryStore

logger = get_logger(__name__)


@dataclass
class HistoryCache:
    """All collaborators of one history cache instance."""

    settings: Settings
    backend: SeriesBackendPort
    store: HistoryStore
    fetcher: HistoryFetcher
    pipeline: BatchFetchPipeline
    metrics: MetricsCache

    async def start(self) -> None:
        await self.backend.initialize()
        await self.fetcher.open()

    async def close(self) -> None:
        await self.fetcher.close()
        await self.backend.close()

    async def __aenter__(self) -> HistoryCache:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def create_backend(settings: Settings) -> SeriesBackendPort:
    if settings.storage.backend == "memory":
        return InMemorySeriesBackend(quota_bytes=settings.storage.quota_bytes)
    return SQLiteSeriesBackend(settings.storage)


def build_history_cache(
    settings: Settings,
    backend: SeriesBackendPort | None = None,
    *,
    clock: Callable[[], datetime] | None = None,
    monotonic: Callable[[], float] = time.monotonic,
) -> HistoryCache:
    """
    Assemble a HistoryCache. Call `start()` (or use `async with`) before use.

    Args:
        settings: Loaded settings
        backend: Override the configured backend (tests pass an in-memory one)
        clock: Wall clock used for freshness and windows
        monotonic: Clock for the in-memory mirror TTL
    """
    history = settings.history
    backend = backend or create_backend(settings)

    store = HistoryStore(
        backend,
        mirror=InMemoryMirror(ttl_seconds=history.mirror_ttl_seconds, clock=monotonic),
        eviction=EvictionManager(batch_size=history.eviction_batch_size),
        ttl_seconds=history.ttl_seconds,
        window_days=history.window_days,
        clock=clock or (lambda: datetime.now(UTC)),
    )
    fetcher = HistoryFetcher(
        store,
        base_url=history.api_base_url,
        timeout_seconds=history.request_timeout_seconds,
    )
    pipeline = BatchFetchPipeline(fetcher, store, delay_seconds=history.batch_delay_seconds)
    metrics = MetricsCache(
        store,
        min_points=history.min_points,
        window_days=history.window_days,
        tvl_window_days=history.tvl_window_days,
    )

    logger.debug(
        f"History cache built (backend={type(backend).__name__}, ttl={history.ttl_hours}h, "
        f"window={history.window_days}d)"
    )
    return HistoryCache(
        settings=settings,
        backend=backend,
        store=store,
        fetcher=fetcher,
        pipeline=pipeline,
        metrics=metrics,
    )
