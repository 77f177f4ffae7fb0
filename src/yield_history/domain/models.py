"""
Canonical Domain Models.

Pool series and derived metrics use plain floats: the chart API publishes
floats and every derived value is rounded for display anyway.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

# =============================================================================
# ENUMS
# =============================================================================


class FetchStatus(str, Enum):
    """Outcome of one pool inside a batch run."""

    CACHED = "cached"
    FETCHING = "fetching"
    ERROR = "error"


class WriteOutcome(str, Enum):
    """How a store write reached disk."""

    WRITTEN = "written"  # First attempt succeeded
    RECOVERED = "recovered"  # Succeeded after quota eviction


# =============================================================================
# SERIES
# =============================================================================


def parse_timestamp(value: str) -> datetime:
    """Parse an API timestamp (ISO 8601, usually with a trailing Z) as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass(frozen=True)
class DataPoint:
    """One daily sample of a pool's yield history."""

    timestamp: str
    tvl_usd: float
    apy: float
    apy_base: float | None = None
    apy_reward: float | None = None

    @property
    def at(self) -> datetime:
        return parse_timestamp(self.timestamp)

    @property
    def base_or_total_apy(self) -> float:
        """Base APY when the pool reports one, total APY otherwise."""
        return self.apy_base if self.apy_base is not None else self.apy

    def to_dict(self) -> dict[str, object]:
        return {
            "timestamp": self.timestamp,
            "tvlUsd": self.tvl_usd,
            "apy": self.apy,
            "apyBase": self.apy_base,
            "apyReward": self.apy_reward,
        }


@dataclass(frozen=True)
class SeriesRecord:
    """Stored history for one pool."""

    pool_id: str
    points: tuple[DataPoint, ...]
    fetched_at: datetime

    def age_seconds(self, now: datetime) -> float:
        return (now - self.fetched_at).total_seconds()

    def is_fresh(self, now: datetime, ttl_seconds: float) -> bool:
        return self.age_seconds(now) < ttl_seconds


# =============================================================================
# DERIVED VALUES
# =============================================================================


@dataclass(frozen=True)
class Metrics:
    """Risk/return statistics derived from a pool series. Never persisted."""

    base90: float
    volatility: float
    organic_pct: int
    tvl_change_30d: float
    risk_adjusted_yield: float
    data_points: int
    oldest_date: str


@dataclass(frozen=True)
class FetchProgress:
    """Progress event emitted once per pool by the batch pipeline."""

    current: int  # 1-based
    total: int
    pool_id: str
    status: FetchStatus


@dataclass(frozen=True)
class WriteResult:
    """Result of a store write."""

    generation: int
    outcome: WriteOutcome = WriteOutcome.WRITTEN
    evicted: tuple[str, ...] = ()
    pruned: tuple[str, ...] = ()

    @property
    def recovered(self) -> bool:
        return self.outcome == WriteOutcome.RECOVERED


@dataclass(frozen=True)
class CacheStats:
    """Summary of what the store currently holds."""

    total: int
    valid: int
    pool_ids: list[str] = field(default_factory=list)


@dataclass
class BatchSummary:
    """Tally of a batch run's progress events."""

    fetched: int = 0
    cached: int = 0
    failed: int = 0
    failed_ids: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.fetched + self.cached + self.failed

    @property
    def succeeded(self) -> int:
        return self.fetched + self.cached
