"""
Memoized derived metrics.

Computes Metrics from the stored series on demand and keeps the result
until the store reports a change for that pool. "Not enough data" (None)
is memoized the same way as a real result.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from yield_history.domain.metrics import MIN_POINTS, TVL_WINDOW_DAYS, WINDOW_DAYS, calculate_metrics
from yield_history.domain.models import DataPoint, Metrics
from yield_history.observability.logging import LOG_TAG_CACHE, get_logger
from yield_history.services.history.store import HistoryStore

logger = get_logger(__name__)

Calculator = Callable[[Sequence[DataPoint]], Metrics | None]


class MetricsCache:
    """
    Per-pool memo of calculate_metrics, invalidated by store writes.

    A result computed while a write or invalidation happened is returned to
    its caller but not memoized.
    """

    def __init__(
        self,
        store: HistoryStore,
        calculator: Calculator | None = None,
        *,
        min_points: int = MIN_POINTS,
        window_days: int = WINDOW_DAYS,
        tvl_window_days: int = TVL_WINDOW_DAYS,
    ):
        self.store = store
        self.min_points = min_points
        self.window_days = window_days
        self.tvl_window_days = tvl_window_days
        self._calculator = calculator or self._calculate
        self._memo: dict[str, Metrics | None] = {}
        self._generation = 0

        # Statistics
        self.hits = 0
        self.misses = 0

        store.add_listener(self._on_store_change)

    @property
    def generation(self) -> int:
        return self._generation

    def _calculate(self, points: Sequence[DataPoint]) -> Metrics | None:
        return calculate_metrics(
            points,
            now=self.store.now(),
            min_points=self.min_points,
            window_days=self.window_days,
            tvl_window_days=self.tvl_window_days,
        )

    def _on_store_change(self, pool_ids: list[str] | None) -> None:
        if pool_ids is None:
            self.invalidate_all()
            return
        for pool_id in pool_ids:
            self._memo.pop(pool_id, None)
        self._generation += 1

    async def get(self, pool_id: str) -> Metrics | None:
        """Metrics for a pool, or None when it has no record or too few points."""
        if pool_id in self._memo:
            self.hits += 1
            return self._memo[pool_id]

        self.misses += 1
        generation = self._generation
        record = await self.store.get(pool_id)
        result = self._calculator(record.points) if record is not None else None

        if generation == self._generation:
            self._memo[pool_id] = result
        else:
            logger.debug(f"{LOG_TAG_CACHE} Not memoizing {pool_id}: store changed during read")
        return result

    async def get_all(self) -> dict[str, Metrics]:
        """Metrics for every stored pool that has enough data."""
        results: dict[str, Metrics] = {}
        for pool_id in await self.store.pool_ids():
            metrics = await self.get(pool_id)
            if metrics is not None:
                results[pool_id] = metrics
        return results

    def invalidate(self, pool_id: str) -> int:
        self._memo.pop(pool_id, None)
        self._generation += 1
        return self._generation

    def invalidate_all(self) -> int:
        count = len(self._memo)
        self._memo.clear()
        self._generation += 1
        logger.debug(f"{LOG_TAG_CACHE} Metrics memo cleared ({count} entries)")
        return self._generation

    def get_stats(self) -> dict[str, int]:
        return {
            "entries": len(self._memo),
            "hits": self.hits,
            "misses": self.misses,
            "generation": self._generation,
        }
