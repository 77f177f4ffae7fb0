"""
Short-lived in-memory mirror of the decoded cache document.

Several reads in the same UI tick share one decode instead of
deserializing the whole document each time.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from yield_history.domain.models import SeriesRecord

Loader = Callable[[], Awaitable[dict[str, SeriesRecord]]]


class InMemoryMirror:
    """
    Read-through cache with a short TTL.

    invalidate() is synchronous; the next read after it always reloads.
    A read already in flight when invalidate() runs returns what it loaded
    but does not repopulate the mirror.
    """

    def __init__(
        self,
        ttl_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot: dict[str, SeriesRecord] | None = None
        self._loaded_at: float = 0.0
        self._epoch = 0

        # Statistics
        self.hits = 0
        self.misses = 0

    def _is_valid(self) -> bool:
        return self._snapshot is not None and (self._clock() - self._loaded_at) < self.ttl_seconds

    async def read(self, loader: Loader) -> dict[str, SeriesRecord]:
        """Return the mirrored snapshot, reloading through loader when expired."""
        if self._is_valid():
            self.hits += 1
            return self._snapshot  # type: ignore[return-value]

        self.misses += 1
        epoch = self._epoch
        snapshot = await loader()
        # Loaded across an invalidate(): serve it, do not keep it
        if epoch == self._epoch:
            self._snapshot = snapshot
            self._loaded_at = self._clock()
        return snapshot

    def invalidate(self) -> None:
        self._epoch += 1
        self._snapshot = None
        self._loaded_at = 0.0

    def get_stats(self) -> dict[str, object]:
        return {
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
            "cached": self._is_valid(),
        }
