"""
Unit tests for HistoryStore: window trimming, TTL pruning, generations,
listeners and the read helpers.
"""

from datetime import UTC, datetime, timedelta

import pytest

from yield_history.domain.errors import CapacityError
from yield_history.domain.models import DataPoint, WriteOutcome


class TestPut:
    @pytest.mark.asyncio
    async def test_round_trip_keeps_points_within_window(self, store, points):
        series = points(10)

        await store.put("pool-a", series)
        record = await store.get("pool-a")

        assert record is not None
        assert list(record.points) == series

    @pytest.mark.asyncio
    async def test_trims_to_trailing_window_and_sorts(self, store, points, clock):
        """
        GIVEN: a series out of order with one point 100 days old
        WHEN: it is stored
        THEN: the old point is gone and the rest are ascending
        """
        series = points(10)
        stale = DataPoint(
            timestamp=(clock.now - timedelta(days=100)).strftime("%Y-%m-%dT%H:%M:%S.000Z"),
            tvl_usd=1.0,
            apy=1.0,
        )

        await store.put("pool-a", [*reversed(series), stale])
        record = await store.get("pool-a")

        assert len(record.points) == 10
        assert [p.timestamp for p in record.points] == [p.timestamp for p in series]

    @pytest.mark.asyncio
    async def test_stamps_fetched_at_with_clock(self, store, points, clock):
        await store.put("pool-a", points(7))

        record = await store.get("pool-a")

        assert record.fetched_at == clock.now

    @pytest.mark.asyncio
    async def test_replaces_previous_record(self, store, points):
        await store.put("pool-a", points(10))
        await store.put("pool-a", points(7, apy=3.0))

        record = await store.get("pool-a")

        assert len(record.points) == 7
        assert record.points[0].apy == 3.0

    @pytest.mark.asyncio
    async def test_prunes_other_stale_records(self, store, points, clock):
        await store.put("pool-a", points(7))
        clock.advance(hours=25)

        result = await store.put("pool-b", points(7, end=clock.now))

        assert result.pruned == ("pool-a",)
        assert await store.get("pool-a") is None
        assert await store.get("pool-b") is not None

    @pytest.mark.asyncio
    async def test_record_exactly_at_ttl_is_pruned(self, store, points, clock):
        await store.put("pool-a", points(7))
        clock.advance(hours=24)

        await store.put("pool-b", points(7, end=clock.now))

        assert await store.get("pool-a") is None

    @pytest.mark.asyncio
    async def test_keeps_fresh_records(self, store, points, clock):
        await store.put("pool-a", points(7))
        clock.advance(hours=1)

        result = await store.put("pool-b", points(7))

        assert result.pruned == ()
        assert result.outcome == WriteOutcome.WRITTEN
        assert sorted(await store.pool_ids()) == ["pool-a", "pool-b"]

    @pytest.mark.asyncio
    async def test_failed_write_leaves_store_unchanged(self, store, backend, points):
        """
        GIVEN: a stored record and a backend that rejects every write
        WHEN: a new series is written for the same pool
        THEN: CapacityError propagates and the old record is still served
        """
        await store.put("pool-a", points(10))
        generation = store.generation
        backend.fail_saves = 3

        with pytest.raises(CapacityError):
            await store.put("pool-a", points(7, apy=3.0))

        record = await store.get("pool-a")
        assert len(record.points) == 10
        assert store.generation == generation

    @pytest.mark.asyncio
    async def test_point_with_bad_timestamp_is_dropped(self, store, points):
        bad = DataPoint(timestamp="1700000000", tvl_usd=1.0, apy=1.0)

        await store.put("pool-a", [*points(3), bad])
        record = await store.get("pool-a")

        assert len(record.points) == 3
        assert bad not in record.points


class TestGenerationsAndListeners:
    @pytest.mark.asyncio
    async def test_generation_increases_on_every_mutation(self, store, points):
        first = await store.put("pool-a", points(7))
        second = await store.put("pool-b", points(7))
        cleared = await store.clear()

        assert (first.generation, second.generation, cleared) == (1, 2, 3)
        assert store.generation == 3

    @pytest.mark.asyncio
    async def test_listeners_receive_changed_ids(self, store, points):
        calls = []
        store.add_listener(calls.append)

        await store.put("pool-a", points(7))
        await store.clear()

        assert calls == [["pool-a"], None]

    @pytest.mark.asyncio
    async def test_clear_removes_everything(self, store, points):
        await store.put("pool-a", points(7))
        await store.put("pool-b", points(7))

        await store.clear()

        assert await store.pool_ids() == []
        assert await store.get("pool-a") is None


class TestReadHelpers:
    @pytest.mark.asyncio
    async def test_is_fresh(self, store, points, clock):
        await store.put("pool-a", points(7))

        assert await store.is_fresh("pool-a") is True
        assert await store.is_fresh("pool-b") is False

        clock.advance(hours=24)
        assert await store.is_fresh("pool-a") is False

    @pytest.mark.asyncio
    async def test_missing_or_stale_preserves_order(self, store, points, clock):
        await store.put("pool-a", points(7))
        clock.advance(hours=23)
        await store.put("pool-c", points(7))
        clock.advance(hours=2)

        result = await store.missing_or_stale(["pool-c", "pool-b", "pool-a"])

        assert result == ["pool-b", "pool-a"]

    @pytest.mark.asyncio
    async def test_cache_age(self, store, points, clock):
        assert await store.cache_age("pool-a") == "Not fetched"

        await store.put("pool-a", points(7))
        clock.advance(minutes=5)
        assert await store.cache_age("pool-a") == "5m ago"

        clock.advance(hours=3, minutes=7)
        assert await store.cache_age("pool-a") == "3h 12m ago"

    @pytest.mark.asyncio
    async def test_stats(self, store, points, clock):
        await store.put("pool-a", points(7))
        clock.advance(hours=23)
        await store.put("pool-b", points(7))
        clock.advance(hours=2)

        stats = await store.stats()

        assert stats.total == 2
        assert stats.valid == 1
        assert sorted(stats.pool_ids) == ["pool-a", "pool-b"]

    @pytest.mark.asyncio
    async def test_unreadable_document_reads_as_empty(self, store, backend):
        await backend.save("{not json")

        assert await store.get("pool-a") is None
        assert await store.pool_ids() == []

    @pytest.mark.asyncio
    async def test_document_survives_new_store_instance(self, store, backend, points, clock):
        from yield_history.services.history.store import HistoryStore

        await store.put("pool-a", points(7))

        reopened = HistoryStore(backend, clock=clock)
        record = await reopened.get("pool-a")

        assert record.fetched_at == clock.now
        assert record.fetched_at.tzinfo is not None
        assert record.fetched_at == datetime(2024, 6, 1, 12, 0, tzinfo=UTC)
