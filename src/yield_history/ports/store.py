"""
Series Backend Port: Abstract interface for durable cache storage.

The whole cache is one serialized document under a single well-known key,
so a backend only has to load, save and drop that document.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class SeriesBackendPort(ABC):
    """
    Abstract interface for the durable series document.

    Implementations can be in-memory, SQLite, or any other storage.
    """

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the backend (create tables, etc)."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close connections and cleanup."""
        ...

    # =========================================================================
    # Document access
    # =========================================================================

    @abstractmethod
    async def load(self) -> str | None:
        """Return the stored document, or None if nothing was saved yet."""
        ...

    @abstractmethod
    async def save(self, payload: str) -> None:
        """
        Replace the stored document atomically.

        Raises:
            CapacityError: payload does not fit the storage quota. The
                previously stored document must be left intact.
        """
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Remove the stored document."""
        ...

    @abstractmethod
    async def stored_bytes(self) -> int:
        """UTF-8 size of the stored document (0 when nothing is stored)."""
        ...
