"""
In-memory series backend.

Used for tests and for `storage.backend: memory` (nothing survives restart).
"""

from __future__ import annotations

from yield_history.domain.errors import CapacityError
from yield_history.ports.store import SeriesBackendPort


class InMemorySeriesBackend(SeriesBackendPort):
    """Holds the serialized document in a string, with an optional byte quota."""

    def __init__(self, quota_bytes: int = 0):
        self.quota_bytes = quota_bytes
        self._payload: str | None = None

        # Statistics
        self.load_count = 0
        self.save_count = 0
        self.rejected_saves = 0

    async def initialize(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def load(self) -> str | None:
        self.load_count += 1
        return self._payload

    async def save(self, payload: str) -> None:
        size = len(payload.encode("utf-8"))
        if self.quota_bytes and size > self.quota_bytes:
            self.rejected_saves += 1
            raise CapacityError(
                f"Payload of {size} bytes exceeds quota of {self.quota_bytes} bytes",
                payload_bytes=size,
                quota_bytes=self.quota_bytes,
            )
        self.save_count += 1
        self._payload = payload

    async def clear(self) -> None:
        self._payload = None

    async def stored_bytes(self) -> int:
        return len(self._payload.encode("utf-8")) if self._payload is not None else 0
