"""
Derived pool metrics.

Pure functions: a pool's daily series in, risk/return statistics out.
No I/O, no caching; see services.history.metrics_cache for memoization.
"""

from __future__ import annotations

import math
import statistics
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import Literal

from yield_history.domain.models import DataPoint, Metrics
from yield_history.utils.decimals import round_half_up

# =============================================================================
# Constants
# =============================================================================

MIN_POINTS = 7
WINDOW_DAYS = 90
TVL_WINDOW_DAYS = 30

# Risk-adjusted yield weights
VOLATILITY_WEIGHT = 0.1
VOLATILITY_KNEE = 3.0  # std-dev above which the penalty turns convex
VOLATILITY_EXPONENT = 1.5
INCENTIVE_WEIGHT = 0.5

TREND_STABLE_BAND = 0.1

Trend = Literal["up", "down", "stable"]


def calculate_metrics(
    points: Sequence[DataPoint],
    now: datetime | None = None,
    *,
    min_points: int = MIN_POINTS,
    window_days: int = WINDOW_DAYS,
    tvl_window_days: int = TVL_WINDOW_DAYS,
) -> Metrics | None:
    """
    Derive Base90, volatility, organic share, TVL change and risk-adjusted yield.

    Args:
        points: Full stored series, chronological ascending
        now: Reference instant for the trailing windows (default: current UTC time)
        min_points: Minimum points required overall and inside the window
        window_days: Trailing window for Base90, volatility and organic share
        tvl_window_days: Trailing window for the TVL change baseline

    Returns:
        Metrics, or None when fewer than `min_points` points exist overall or
        within the trailing window.
    """
    if not points or len(points) < min_points:
        return None

    now = now or datetime.now(UTC)
    window_start = now - timedelta(days=window_days)
    tvl_window_start = now - timedelta(days=tvl_window_days)

    recent = [p for p in points if p.at >= window_start]
    if len(recent) < min_points:
        return None

    values = [p.base_or_total_apy for p in recent]
    base90 = statistics.fmean(values)
    # Population std-dev (divisor n, not n-1)
    volatility = statistics.pstdev(values, mu=base90)

    organic_ratios = [p.base_or_total_apy / p.apy * 100 for p in recent if p.apy > 0]
    organic_pct = statistics.fmean(organic_ratios) if organic_ratios else 100.0

    current_tvl = points[-1].tvl_usd
    recent_tvl = [p for p in points if p.at >= tvl_window_start]
    baseline_tvl = recent_tvl[0].tvl_usd if recent_tvl else current_tvl
    if baseline_tvl == 0:
        tvl_change = 0.0
    else:
        tvl_change = (current_tvl - baseline_tvl) / baseline_tvl * 100

    vol_penalty = volatility * VOLATILITY_WEIGHT + math.pow(
        max(0.0, volatility - VOLATILITY_KNEE), VOLATILITY_EXPONENT
    )
    incentive_risk = base90 * (1 - organic_pct / 100) * INCENTIVE_WEIGHT
    risk_adjusted = base90 - vol_penalty - incentive_risk

    return Metrics(
        base90=round_half_up(base90, 2),
        volatility=round_half_up(volatility, 2),
        organic_pct=int(round_half_up(organic_pct)),
        tvl_change_30d=round_half_up(tvl_change, 1),
        risk_adjusted_yield=round_half_up(risk_adjusted, 2),
        data_points=len(points),
        oldest_date=points[0].timestamp.split("T")[0],
    )


def apy_trend(current_apy_base: float | None, base90: float | None) -> Trend | None:
    """Compare today's base APY against the 90-day average."""
    if current_apy_base is None or base90 is None:
        return None
    diff = current_apy_base - base90
    if abs(diff) < TREND_STABLE_BAND:
        return "stable"
    return "up" if diff > 0 else "down"
