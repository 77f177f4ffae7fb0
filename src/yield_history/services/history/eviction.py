"""
Quota-pressure eviction.

Only ever entered from a store write that failed with CapacityError.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from yield_history.domain.errors import CapacityError
from yield_history.domain.models import SeriesRecord
from yield_history.observability.logging import LOG_TAG_EVICT, get_logger

logger = get_logger(__name__)

Writer = Callable[[dict[str, SeriesRecord]], Awaitable[None]]


class EvictionManager:
    """
    Frees room by dropping the oldest series, then retries the write.

    Policy:
    1. Drop the `batch_size` oldest records (by fetched_at) and retry.
    2. Still full: drop the older half of what remains (rounded up) and retry once.
    3. Still full: give up and raise CapacityError.

    The record being written is never a candidate.
    """

    def __init__(self, batch_size: int = 10):
        self.batch_size = batch_size

        # Statistics
        self.total_recoveries = 0
        self.total_failures = 0
        self.total_evicted = 0

    async def recover(
        self,
        records: dict[str, SeriesRecord],
        protected_id: str,
        write: Writer,
    ) -> list[str]:
        """
        Evict from `records` in place until `write(records)` succeeds.

        Args:
            records: Working copy of the document about to be written (mutated)
            protected_id: Pool being written; never evicted
            write: Coroutine persisting the whole document

        Returns:
            Evicted pool ids, oldest first.

        Raises:
            CapacityError: Both eviction passes failed to make the write fit.
        """
        candidates = sorted(
            (record for pool_id, record in records.items() if pool_id != protected_id),
            key=lambda record: record.fetched_at,
        )
        evicted: list[str] = []

        first_pass = candidates[: self.batch_size]
        remaining = candidates[self.batch_size :]
        second_pass = remaining[: (len(remaining) + 1) // 2]

        for attempt, victims in enumerate((first_pass, second_pass), start=1):
            for record in victims:
                records.pop(record.pool_id, None)
                evicted.append(record.pool_id)

            try:
                await write(records)
            except CapacityError as e:
                logger.warning(
                    f"{LOG_TAG_EVICT} Write for {protected_id} still over quota after pass {attempt} "
                    f"({len(evicted)} evicted so far): {e}"
                )
                last_error = e
                continue

            self.total_recoveries += 1
            self.total_evicted += len(evicted)
            logger.info(
                f"{LOG_TAG_EVICT} Recovered write for {protected_id} on pass {attempt}: "
                f"evicted {len(evicted)} series ({len(records)} kept)"
            )
            return evicted

        self.total_failures += 1
        raise CapacityError(
            f"Storage quota exceeded for {protected_id} after evicting {len(evicted)} series",
            pool_id=protected_id,
            payload_bytes=last_error.payload_bytes,
            quota_bytes=last_error.quota_bytes,
            details={"evicted": evicted},
        ) from last_error

    def get_stats(self) -> dict[str, int]:
        return {
            "batch_size": self.batch_size,
            "total_recoveries": self.total_recoveries,
            "total_failures": self.total_failures,
            "total_evicted": self.total_evicted,
        }
