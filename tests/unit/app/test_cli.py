"""
Tests for the CLI entry point and command runners.

Runners get Settings with file logging off and an in-memory backend, and
HTTP is replaced by a mocked fetch_one.
"""

import asyncio
import logging
import signal
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from rich.console import Console

from yield_history.__main__ import main
from yield_history.adapters.store.memory import InMemorySeriesBackend
from yield_history.app import run
from yield_history.config.settings import HistorySettings, LoggingSettings, Settings, StorageSettings
from yield_history.domain.errors import NetworkError
from yield_history.services.history import build_history_cache


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """setup_logging replaces root handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def settings(monkeypatch):
    settings = Settings(
        history=HistorySettings(batch_delay_seconds=0),
        storage=StorageSettings(backend="memory"),
        logging=LoggingSettings(file_enabled=False),
    )
    monkeypatch.setattr(run, "get_settings", lambda env=None: settings)
    return settings


@pytest.fixture
def cache(settings, clock, points):
    cache = build_history_cache(settings, backend=InMemorySeriesBackend(), clock=clock)
    cache.fetcher.fetch_one = AsyncMock(return_value=points(10))
    return cache


class TestMain:
    def test_dispatches_fetch(self):
        with patch("yield_history.app.run.run_fetch", new=AsyncMock(return_value=0)) as run_fetch:
            code = main(["fetch", "pool-a", "pool-b", "--force", "--delay", "0.5"])

        assert code == 0
        run_fetch.assert_awaited_once_with(
            ["pool-a", "pool-b"],
            env="development",
            force_refresh=True,
            delay_seconds=0.5,
        )

    def test_dispatches_stats_with_env(self):
        with patch("yield_history.app.run.run_stats", new=AsyncMock(return_value=0)) as run_stats:
            code = main(["--env", "production", "stats"])

        assert code == 0
        run_stats.assert_awaited_once_with(env="production")

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            main([])

    def test_runner_exception_becomes_exit_code_1(self):
        with patch("yield_history.app.run.run_clear", new=AsyncMock(side_effect=RuntimeError("boom"))):
            assert main(["clear"]) == 1


class TestRunners:
    @pytest.mark.asyncio
    async def test_fetch_then_metrics(self, cache):
        assert await run.run_fetch(["pool-a", "pool-b"], cache=cache) == 0
        assert sorted(await cache.store.pool_ids()) == ["pool-a", "pool-b"]

        assert await run.run_metrics(cache=cache) == 0
        assert set(await cache.metrics.get_all()) == {"pool-a", "pool-b"}

    @pytest.mark.asyncio
    async def test_fetch_reports_failures(self, cache, points):
        async def fetch_one(pool_id):
            if pool_id == "pool-b":
                raise NetworkError("down", pool_id=pool_id)
            return points(10)

        cache.fetcher.fetch_one = AsyncMock(side_effect=fetch_one)

        assert await run.run_fetch(["pool-a", "pool-b"], cache=cache) == 1

    @pytest.mark.asyncio
    async def test_delay_override(self, cache):
        await run.run_fetch(["pool-a"], delay_seconds=0.25, cache=cache)

        assert cache.pipeline.delay_seconds == 0.25

    @pytest.mark.asyncio
    async def test_stats_and_clear(self, cache):
        await run.run_fetch(["pool-a"], cache=cache)

        assert await run.run_stats(cache=cache) == 0
        assert await run.run_clear(cache=cache) == 0
        assert await cache.store.pool_ids() == []

    @pytest.mark.asyncio
    async def test_invalid_config_returns_2(self, settings, cache):
        settings.history.tvl_window_days = 365

        assert await run.run_fetch(["pool-a"], cache=cache) == 2
        cache.fetcher.fetch_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stats_reports_stored_bytes(self, cache, monkeypatch):
        console = Console(record=True, width=200)
        monkeypatch.setattr(run, "console", console)
        await run.run_fetch(["pool-a"], cache=cache)

        assert await run.run_stats(cache=cache) == 0

        output = console.export_text()
        used = await cache.backend.stored_bytes()
        assert used > 0
        assert "1/1 series fresh" in output
        assert f"{used:,} bytes stored" in output


class TestCancelHandlers:
    @pytest.mark.asyncio
    async def test_windows_handlers_are_restored_after_fetch(self, cache, monkeypatch):
        """
        GIVEN: the Windows code path, which installs handlers with signal.signal
        WHEN: a fetch runs to completion
        THEN: SIGINT and SIGTERM are back to the handlers they had before
        """
        monkeypatch.setattr(run, "sys", SimpleNamespace(platform="win32"))
        before = (signal.getsignal(signal.SIGINT), signal.getsignal(signal.SIGTERM))

        assert await run.run_fetch(["pool-a"], cache=cache) == 0

        assert (signal.getsignal(signal.SIGINT), signal.getsignal(signal.SIGTERM)) == before

    @pytest.mark.asyncio
    async def test_windows_handler_cancels_during_fetch(self, cache, monkeypatch, points):
        monkeypatch.setattr(run, "sys", SimpleNamespace(platform="win32"))

        async def fetch_one(pool_id):
            signal.getsignal(signal.SIGINT)(signal.SIGINT, None)
            return points(10)

        cache.fetcher.fetch_one = AsyncMock(side_effect=fetch_one)

        assert await run.run_fetch(["pool-a", "pool-b"], cache=cache) == 130

    @pytest.mark.asyncio
    async def test_loop_handlers_are_removed_after_fetch(self, cache):
        await run.run_fetch(["pool-a"], cache=cache)

        loop = asyncio.get_running_loop()
        assert loop.remove_signal_handler(signal.SIGINT) is False
        assert loop.remove_signal_handler(signal.SIGTERM) is False
