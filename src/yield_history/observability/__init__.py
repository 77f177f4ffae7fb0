"""Observability: logging."""

from yield_history.observability.logging import (
    LOG_TAG_CACHE,
    LOG_TAG_EVICT,
    LOG_TAG_FETCH,
    get_logger,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "LOG_TAG_FETCH",
    "LOG_TAG_CACHE",
    "LOG_TAG_EVICT",
]
