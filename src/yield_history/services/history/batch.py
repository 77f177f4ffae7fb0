"""
Batch history pipeline.

Walks a list of pools strictly one at a time with a fixed pause between
requests, reporting progress per pool. A failing pool is recorded and
skipped; only cancellation ends a run early.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence

from yield_history.domain.errors import DomainError
from yield_history.domain.models import BatchSummary, DataPoint, FetchProgress, FetchStatus
from yield_history.observability.logging import LOG_TAG_FETCH, get_logger
from yield_history.services.history.cancel import CancelToken
from yield_history.services.history.fetcher import HistoryFetcher
from yield_history.services.history.store import HistoryStore

logger = get_logger(__name__)

ProgressCallback = Callable[[FetchProgress], None]

DEFAULT_DELAY_SECONDS = 1.5


class BatchFetchPipeline:
    """
    Sequential, rate-limited, cancellable fetch over many pools.

    `is_running` mirrors the UI convention of one active run at a time; it is
    informational and does not block a second run.
    """

    def __init__(
        self,
        fetcher: HistoryFetcher,
        store: HistoryStore,
        *,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
    ):
        self.fetcher = fetcher
        self.store = store
        self.delay_seconds = delay_seconds
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def fetch_many(
        self,
        pool_ids: Sequence[str],
        on_progress: ProgressCallback | None = None,
        force_refresh: bool = False,
        cancel_token: CancelToken | None = None,
    ) -> dict[str, list[DataPoint]]:
        """
        Populate the store for every pool, in order.

        Args:
            pool_ids: Pools to process
            on_progress: Called exactly once per processed pool, after it settles
                and before the inter-request delay
            force_refresh: Ignore fresh stored series
            cancel_token: Checked before each pool; also aborts a pending delay

        Returns:
            pool_id -> points for every pool processed before cancellation.
            Failed pools map to an empty list.
        """
        token = cancel_token or CancelToken()
        total = len(pool_ids)
        results: dict[str, list[DataPoint]] = {}

        logger.info(
            f"{LOG_TAG_FETCH} Batch start: {total} pools "
            f"(force_refresh={force_refresh}, delay={self.delay_seconds:.2f}s)"
        )

        self._running = True
        try:
            for index, pool_id in enumerate(pool_ids):
                if token.cancelled:
                    logger.info(f"{LOG_TAG_FETCH} Batch cancelled after {index}/{total} pools")
                    break

                status, points = await self._fetch_item(pool_id, force_refresh)
                results[pool_id] = points

                if on_progress is not None:
                    on_progress(FetchProgress(current=index + 1, total=total, pool_id=pool_id, status=status))

                is_last = index == total - 1
                if not is_last and not token.cancelled:
                    await token.sleep(self.delay_seconds)
        finally:
            self._running = False

        logger.info(f"{LOG_TAG_FETCH} Batch done: {len(results)}/{total} pools processed")
        return results

    async def _fetch_item(self, pool_id: str, force_refresh: bool) -> tuple[FetchStatus, list[DataPoint]]:
        try:
            if not force_refresh:
                record = await self.store.get(pool_id)
                if record is not None and record.is_fresh(self.store.now(), self.store.ttl_seconds):
                    return FetchStatus.CACHED, list(record.points)

            points = await self.fetcher.fetch_one(pool_id)
            await self.store.put(pool_id, points)
            return FetchStatus.FETCHING, points

        except DomainError as e:
            logger.warning(f"Failed to fetch {pool_id}: {e.to_dict()}")
            return FetchStatus.ERROR, []


def summarize(events: Iterable[FetchProgress]) -> BatchSummary:
    """Tally progress events into a success/failure summary."""
    summary = BatchSummary()
    for event in events:
        if event.status == FetchStatus.CACHED:
            summary.cached += 1
        elif event.status == FetchStatus.FETCHING:
            summary.fetched += 1
        else:
            summary.failed += 1
            summary.failed_ids.append(event.pool_id)
    return summary
