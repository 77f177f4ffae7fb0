"""
Shared fixtures for yield_history tests.

Time is always injected: `clock` is a settable wall clock starting at
FIXED_NOW, and stores are built with a zero-TTL mirror so every read
goes to the backend unless a test says otherwise.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from yield_history.adapters.store.memory import InMemorySeriesBackend
from yield_history.domain.errors import CapacityError
from yield_history.domain.models import DataPoint
from yield_history.services.history.eviction import EvictionManager
from yield_history.services.history.mirror import InMemoryMirror
from yield_history.services.history.store import HistoryStore

FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=UTC)
TTL_SECONDS = 24 * 3600


def iso(at: datetime) -> str:
    """Format like the chart API: 2024-06-01T12:00:00.000Z"""
    return at.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def make_points(
    count: int,
    *,
    end: datetime = FIXED_NOW,
    apy: float = 10.0,
    apy_base: float | None = 8.0,
    tvl_usd: float = 1_000_000.0,
) -> list[DataPoint]:
    """`count` daily points, the last one at `end`."""
    return [
        DataPoint(
            timestamp=iso(end - timedelta(days=count - 1 - i)),
            tvl_usd=tvl_usd,
            apy=apy,
            apy_base=apy_base,
        )
        for i in range(count)
    ]


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FlakyBackend(InMemorySeriesBackend):
    """In-memory backend that rejects the next `fail_saves` writes as over quota."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_saves = 0

    async def save(self, payload: str) -> None:
        if self.fail_saves > 0:
            self.fail_saves -= 1
            self.rejected_saves += 1
            raise CapacityError("Storage quota exceeded")
        await super().save(payload)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> FlakyBackend:
    return FlakyBackend()


@pytest.fixture
def store(backend: FlakyBackend, clock: FakeClock) -> HistoryStore:
    return HistoryStore(
        backend,
        mirror=InMemoryMirror(ttl_seconds=0),
        eviction=EvictionManager(batch_size=10),
        ttl_seconds=TTL_SECONDS,
        window_days=90,
        clock=clock,
    )


@pytest.fixture
def points():
    """Factory: points(count, **overrides) -> daily DataPoints ending at FIXED_NOW."""
    return make_points
