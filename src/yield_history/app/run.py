"""
Entry points for CLI commands.

Each command loads settings, sets up logging, opens the history cache and
runs one operation against it.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

# Load .env file BEFORE importing settings
from dotenv import load_dotenv

for env_path in [
    Path.cwd() / ".env",  # Current working directory
    Path(__file__).parent.parent.parent.parent / ".env",  # Project root
]:
    if env_path.exists():
        load_dotenv(env_path)
        break
else:
    load_dotenv()  # Fallback: search default locations

from rich import box  # noqa: E402
from rich.console import Console  # noqa: E402
from rich.table import Table  # noqa: E402

from yield_history.config.settings import Settings, get_settings  # noqa: E402
from yield_history.domain.metrics import apy_trend  # noqa: E402
from yield_history.domain.models import FetchProgress, FetchStatus, Metrics  # noqa: E402
from yield_history.observability.logging import LOG_TAG_FETCH, get_logger, setup_logging  # noqa: E402
from yield_history.services.history import CancelToken, HistoryCache, build_history_cache, summarize  # noqa: E402

console = Console()


def _load(env: str) -> tuple[Settings, int]:
    settings = get_settings(env)
    setup_logging(settings)
    logger = get_logger(__name__)

    errors = settings.validate_config()
    for error in errors:
        logger.error(f"Config error: {error}")
    return settings, 2 if errors else 0


def _install_cancel_handlers(token: CancelToken, logger) -> Callable[[], None]:
    """Route SIGINT/SIGTERM to the cancel token. Returns a callable that undoes it."""
    signals = (signal.SIGTERM, signal.SIGINT)

    if sys.platform == "win32":
        # Windows: signal.signal runs in the main thread only; do not log here
        def win_handler(signum: int, frame) -> None:
            token.cancel()

        previous = {sig: signal.getsignal(sig) for sig in signals}
        for sig in signals:
            signal.signal(sig, win_handler)

        def restore_win() -> None:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

        return restore_win

    loop = asyncio.get_running_loop()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info(f"Received signal {sig.name}, cancelling batch after the current pool...")
        token.cancel()

    for sig in signals:
        loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))

    def restore() -> None:
        for sig in signals:
            loop.remove_signal_handler(sig)

    return restore


async def run_fetch(
    pool_ids: Sequence[str],
    env: str = "development",
    *,
    force_refresh: bool = False,
    delay_seconds: float | None = None,
    cache: HistoryCache | None = None,
) -> int:
    """
    Fetch history for the given pools, one at a time.

    Returns:
        Exit code: 0 = every pool succeeded, 1 = at least one failed,
        2 = configuration error, 130 = cancelled.
    """
    settings, code = _load(env)
    if code:
        return code
    logger = get_logger(__name__)

    cache = cache or build_history_cache(settings)
    if delay_seconds is not None:
        cache.pipeline.delay_seconds = delay_seconds

    token = CancelToken()
    events: list[FetchProgress] = []

    def on_progress(progress: FetchProgress) -> None:
        events.append(progress)
        position = f"[{progress.current}/{progress.total}]"
        if progress.status == FetchStatus.ERROR:
            logger.warning(f"{position} {progress.pool_id}: failed")
        else:
            logger.info(f"{LOG_TAG_FETCH} {position} {progress.pool_id}: {progress.status.value}")

    restore_signals = _install_cancel_handlers(token, logger)
    try:
        async with cache:
            await cache.pipeline.fetch_many(
                list(pool_ids),
                on_progress=on_progress,
                force_refresh=force_refresh,
                cancel_token=token,
            )
    finally:
        restore_signals()

    summary = summarize(events)
    logger.info(
        f"Fetch summary: {summary.succeeded} succeeded "
        f"({summary.fetched} fetched, {summary.cached} cached), {summary.failed} failed"
    )
    if summary.failed_ids:
        logger.warning(f"Failed pools: {', '.join(summary.failed_ids)}")

    if token.cancelled:
        logger.info(f"Batch cancelled: {summary.total}/{len(pool_ids)} pools processed")
        return 130
    return 1 if summary.failed else 0


def _metrics_table(rows: list[tuple[str, Metrics | None, str, float | None]]) -> Table:
    t = Table(box=box.MINIMAL_DOUBLE_HEAD, expand=True)
    t.add_column("Pool", style="bold")
    t.add_column("Base90", justify="right")
    t.add_column("Vol", justify="right")
    t.add_column("Organic", justify="right")
    t.add_column("TVL 30d", justify="right")
    t.add_column("Risk-adj", justify="right")
    t.add_column("Trend")
    t.add_column("Points", justify="right")
    t.add_column("Since")
    t.add_column("Age", style="dim")

    for pool_id, metrics, age, latest_apy in rows:
        if metrics is None:
            t.add_row(pool_id, "-", "-", "-", "-", "-", "-", "-", "-", age)
            continue
        tvl_style = "green" if metrics.tvl_change_30d >= 0 else "red"
        t.add_row(
            pool_id,
            f"{metrics.base90:.2f}%",
            f"{metrics.volatility:.2f}",
            f"{metrics.organic_pct}%",
            f"[{tvl_style}]{metrics.tvl_change_30d:+.1f}%[/{tvl_style}]",
            f"{metrics.risk_adjusted_yield:.2f}%",
            apy_trend(latest_apy, metrics.base90) or "-",
            str(metrics.data_points),
            metrics.oldest_date,
            age,
        )
    return t


async def run_metrics(
    pool_ids: Sequence[str] = (),
    env: str = "development",
    *,
    cache: HistoryCache | None = None,
) -> int:
    """Print derived metrics for the given pools (all stored pools by default)."""
    settings, code = _load(env)
    if code:
        return code

    cache = cache or build_history_cache(settings)
    async with cache:
        ids = list(pool_ids) or await cache.store.pool_ids()
        rows = []
        for pool_id in ids:
            record = await cache.store.get(pool_id)
            latest_apy = record.points[-1].apy_base if record and record.points else None
            rows.append(
                (
                    pool_id,
                    await cache.metrics.get(pool_id),
                    await cache.store.cache_age(pool_id),
                    latest_apy,
                )
            )

    if not rows:
        console.print("No stored series. Run `yield-history fetch <pool-id>` first.")
        return 0

    console.print(_metrics_table(rows))
    return 0


async def run_stats(env: str = "development", *, cache: HistoryCache | None = None) -> int:
    """Print cache statistics and the age of every stored series."""
    settings, code = _load(env)
    if code:
        return code

    cache = cache or build_history_cache(settings)
    async with cache:
        stats = await cache.store.stats()
        ages = [(pool_id, await cache.store.cache_age(pool_id)) for pool_id in stats.pool_ids]
        used_bytes = await cache.backend.stored_bytes()

    t = Table(box=box.MINIMAL_DOUBLE_HEAD, title=f"{stats.valid}/{stats.total} series fresh")
    t.add_column("Pool", style="bold")
    t.add_column("Fetched")
    for pool_id, age in ages:
        t.add_row(pool_id, age)
    console.print(t)

    quota = settings.storage.quota_bytes
    usage = f"{used_bytes:,} bytes stored"
    if quota:
        usage += f" ({used_bytes / quota * 100:.1f}% of {quota:,} byte quota)"
    console.print(usage)
    return 0


async def run_clear(env: str = "development", *, cache: HistoryCache | None = None) -> int:
    """Drop every stored series."""
    settings, code = _load(env)
    if code:
        return code
    logger = get_logger(__name__)

    cache = cache or build_history_cache(settings)
    async with cache:
        generation = await cache.store.clear()

    logger.info(f"History cache cleared (generation={generation})")
    return 0
