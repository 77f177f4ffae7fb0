"""
Persistent store for per-pool yield history.

Wraps a SeriesBackendPort holding one serialized document and adds the
cache semantics on top: trailing-window trimming, TTL pruning, quota
eviction and change notification.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime, timedelta

from yield_history.domain.errors import CapacityError
from yield_history.domain.models import (
    CacheStats,
    DataPoint,
    SeriesRecord,
    WriteOutcome,
    WriteResult,
)
from yield_history.observability.logging import LOG_TAG_CACHE, get_logger
from yield_history.ports.store import SeriesBackendPort
from yield_history.services.history.codec import decode_records, encode_records
from yield_history.services.history.eviction import EvictionManager
from yield_history.services.history.mirror import InMemoryMirror

logger = get_logger(__name__)

# Listener receives the pool ids whose record changed, or None for "everything"
ChangeListener = Callable[[list[str] | None], None]
Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class HistoryStore:
    """
    Durable pool_id -> SeriesRecord map.

    Writes replace whole records (last write wins, no merging). Every
    mutation bumps `generation`, invalidates the mirror and notifies
    listeners before returning.
    """

    def __init__(
        self,
        backend: SeriesBackendPort,
        *,
        mirror: InMemoryMirror | None = None,
        eviction: EvictionManager | None = None,
        ttl_seconds: float = 24 * 3600,
        window_days: int = 90,
        clock: Clock = _utc_now,
    ):
        self.backend = backend
        self.mirror = mirror or InMemoryMirror()
        self.eviction = eviction or EvictionManager()
        self.ttl_seconds = ttl_seconds
        self.window_days = window_days
        self._clock = clock
        self._listeners: list[ChangeListener] = []
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def now(self) -> datetime:
        return self._clock()

    # =========================================================================
    # Reads
    # =========================================================================

    async def _load(self) -> dict[str, SeriesRecord]:
        return decode_records(await self.backend.load())

    async def _records(self) -> dict[str, SeriesRecord]:
        return await self.mirror.read(self._load)

    async def get(self, pool_id: str) -> SeriesRecord | None:
        records = await self._records()
        return records.get(pool_id)

    async def pool_ids(self) -> list[str]:
        return list(await self._records())

    async def is_fresh(self, pool_id: str) -> bool:
        """True when a record exists and is younger than the TTL."""
        record = await self.get(pool_id)
        return record is not None and record.is_fresh(self.now(), self.ttl_seconds)

    async def missing_or_stale(self, pool_ids: Iterable[str]) -> list[str]:
        """Pool ids (in the given order) that have no record or a stale one."""
        records = await self._records()
        now = self.now()
        result = []
        for pool_id in pool_ids:
            record = records.get(pool_id)
            if record is None or not record.is_fresh(now, self.ttl_seconds):
                result.append(pool_id)
        return result

    async def cache_age(self, pool_id: str) -> str:
        """Human-readable age of a record, e.g. '3h 12m ago'."""
        record = await self.get(pool_id)
        if record is None:
            return "Not fetched"

        age = max(0, int(record.age_seconds(self.now())))
        hours, rest = divmod(age, 3600)
        minutes = rest // 60
        if hours > 0:
            return f"{hours}h {minutes}m ago"
        return f"{minutes}m ago"

    async def stats(self) -> CacheStats:
        records = await self._records()
        now = self.now()
        valid = sum(1 for record in records.values() if record.is_fresh(now, self.ttl_seconds))
        return CacheStats(total=len(records), valid=valid, pool_ids=list(records))

    # =========================================================================
    # Writes
    # =========================================================================

    def _trim(self, pool_id: str, points: Sequence[DataPoint], now: datetime) -> tuple[DataPoint, ...]:
        window_start = now - timedelta(days=self.window_days)
        dated: list[tuple[datetime, DataPoint]] = []
        for point in points:
            try:
                at = point.at
            except ValueError:
                logger.warning(f"{LOG_TAG_CACHE} Dropping point of {pool_id} with bad timestamp {point.timestamp!r}")
                continue
            if at >= window_start:
                dated.append((at, point))
        dated.sort(key=lambda item: item[0])
        return tuple(point for _, point in dated)

    async def _write(self, records: dict[str, SeriesRecord]) -> None:
        await self.backend.save(encode_records(records))

    async def put(self, pool_id: str, points: Sequence[DataPoint]) -> WriteResult:
        """
        Replace the record for pool_id with the trailing window of points.

        Other stale records are pruned in the same write. On CapacityError the
        eviction manager frees space and retries; if that fails too the error
        propagates and the stored document is unchanged.
        """
        now = self.now()
        records = dict(await self._load())

        records[pool_id] = SeriesRecord(
            pool_id=pool_id,
            points=self._trim(pool_id, points, now),
            fetched_at=now,
        )

        pruned = [
            other_id
            for other_id, record in records.items()
            if other_id != pool_id and not record.is_fresh(now, self.ttl_seconds)
        ]
        for other_id in pruned:
            del records[other_id]

        outcome = WriteOutcome.WRITTEN
        evicted: list[str] = []
        try:
            await self._write(records)
        except CapacityError as e:
            logger.warning(f"{LOG_TAG_CACHE} Quota exceeded writing {pool_id} ({len(records)} series): {e}")
            evicted = await self.eviction.recover(records, pool_id, self._write)
            outcome = WriteOutcome.RECOVERED

        changed = [pool_id, *pruned, *evicted]
        generation = self._mutated(changed)

        logger.debug(
            f"{LOG_TAG_CACHE} Stored {pool_id}: {len(records[pool_id].points)} points "
            f"(pruned={len(pruned)}, evicted={len(evicted)}, generation={generation})"
        )
        return WriteResult(
            generation=generation,
            outcome=outcome,
            evicted=tuple(evicted),
            pruned=tuple(pruned),
        )

    async def clear(self) -> int:
        """Remove every record. Returns the new generation."""
        await self.backend.clear()
        generation = self._mutated(None)
        logger.info(f"{LOG_TAG_CACHE} Series cache cleared (generation={generation})")
        return generation

    def _mutated(self, pool_ids: list[str] | None) -> int:
        self._generation += 1
        self.mirror.invalidate()
        for listener in self._listeners:
            listener(pool_ids)
        return self._generation
