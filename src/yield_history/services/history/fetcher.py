"""
Chart API fetcher.

Fetches one pool's daily history from the yields API
(`GET {base_url}/chart/{pool_id}`) and serves it from the store while fresh.

No retries: a failed request raises and the caller decides what to do.
"""

from __future__ import annotations

from typing import Any

import aiohttp

from yield_history.domain.errors import HttpError, NetworkError
from yield_history.domain.models import DataPoint
from yield_history.observability.logging import LOG_TAG_FETCH, get_logger
from yield_history.services.history.codec import points_from_list
from yield_history.services.history.store import HistoryStore

# =============================================================================
# Constants
# =============================================================================

DEFAULT_BASE_URL = "https://yields.llama.fi"
API_TIMEOUT_SECONDS = 30

# Connection Pooling
SESSION_POOL_LIMIT = 10
SESSION_KEEPALIVE_SECONDS = 30

logger = get_logger(__name__)


def _normalize_base_url(base_url: str) -> str:
    base = (base_url or "").strip().rstrip("/")
    return base or DEFAULT_BASE_URL


class HistoryFetcher:
    """
    Single-pool fetch plus fetch-with-cache.

    Use as an async context manager to share one pooled session across many
    requests; without one, each request opens a short-lived session. A session
    passed in by the caller is used as-is and never closed here.
    """

    def __init__(
        self,
        store: HistoryStore,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = API_TIMEOUT_SECONDS,
        session: aiohttp.ClientSession | None = None,
    ):
        self.store = store
        self.base_url = _normalize_base_url(base_url)
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = False

        # Statistics
        self.total_requests = 0
        self.total_errors = 0
        self.total_cache_hits = 0

    async def __aenter__(self) -> HistoryFetcher:
        await self.open()
        return self

    async def open(self) -> None:
        """Create the pooled session unless one was supplied."""
        if self._session is None:
            connector = aiohttp.TCPConnector(
                limit=SESSION_POOL_LIMIT,
                keepalive_timeout=SESSION_KEEPALIVE_SECONDS,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            )
            self._owns_session = True

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        if self._owns_session:
            self._session = None
            self._owns_session = False

    def chart_url(self, pool_id: str) -> str:
        return f"{self.base_url}/chart/{pool_id}"

    async def _request(self, session: aiohttp.ClientSession, pool_id: str) -> Any:
        url = self.chart_url(pool_id)
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)) as resp:
            if not 200 <= resp.status < 300:
                raise HttpError(f"HTTP {resp.status} for {url}", status=resp.status, pool_id=pool_id)
            try:
                return await resp.json(content_type=None)
            except ValueError as e:
                raise HttpError(
                    f"Unreadable chart response for {pool_id}: {e}",
                    status=resp.status,
                    pool_id=pool_id,
                ) from e

    async def fetch_one(self, pool_id: str) -> list[DataPoint]:
        """
        Fetch the full chart history for a pool, bypassing the store.

        Raises:
            HttpError: Non-2xx status or a body that is not a chart document
            NetworkError: Connection failure or timeout
        """
        self.total_requests += 1
        logger.info(f"{LOG_TAG_FETCH} Fetching history for {pool_id}")

        try:
            if self._session is not None:
                payload = await self._request(self._session, pool_id)
            else:
                async with aiohttp.ClientSession() as fallback_session:
                    payload = await self._request(fallback_session, pool_id)
        except HttpError:
            self.total_errors += 1
            raise
        except aiohttp.ClientError as e:
            self.total_errors += 1
            raise NetworkError(f"Request for {pool_id} failed: {e}", pool_id=pool_id) from e
        except TimeoutError as e:
            self.total_errors += 1
            raise NetworkError(
                f"Request for {pool_id} timed out after {self.timeout_seconds}s", pool_id=pool_id
            ) from e

        if not isinstance(payload, dict):
            self.total_errors += 1
            raise HttpError(
                f"Chart response for {pool_id} is {type(payload).__name__}, expected an object",
                status=200,
                pool_id=pool_id,
            )

        points = points_from_list(payload.get("data") or [])
        logger.info(f"{LOG_TAG_FETCH} Fetched {len(points)} points for {pool_id}")
        return points

    async def fetch_with_cache(self, pool_id: str, force_refresh: bool = False) -> list[DataPoint]:
        """
        Serve a fresh stored series, otherwise fetch and store it.

        Fetch errors propagate; the previously stored record is left untouched.
        """
        if not force_refresh:
            record = await self.store.get(pool_id)
            if record is not None and record.is_fresh(self.store.now(), self.store.ttl_seconds):
                self.total_cache_hits += 1
                return list(record.points)

        points = await self.fetch_one(pool_id)
        await self.store.put(pool_id, points)
        return points

    def get_stats(self) -> dict[str, object]:
        return {
            "base_url": self.base_url,
            "total_requests": self.total_requests,
            "total_errors": self.total_errors,
            "total_cache_hits": self.total_cache_hits,
        }
