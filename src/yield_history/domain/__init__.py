"""
Domain Layer: Core entities, errors, and pure metric rules.

This layer has NO external dependencies (no HTTP types, no DB types).
All types here are canonical and used throughout the application.
"""

from yield_history.domain.errors import (
    CapacityError,
    DomainError,
    FetchError,
    HttpError,
    NetworkError,
    StorageError,
)
from yield_history.domain.metrics import apy_trend, calculate_metrics
from yield_history.domain.models import (
    BatchSummary,
    CacheStats,
    DataPoint,
    FetchProgress,
    FetchStatus,
    Metrics,
    SeriesRecord,
    WriteOutcome,
    WriteResult,
)

__all__ = [
    # Enums
    "FetchStatus",
    "WriteOutcome",
    # Models
    "DataPoint",
    "SeriesRecord",
    "Metrics",
    "FetchProgress",
    "WriteResult",
    "CacheStats",
    "BatchSummary",
    # Rules
    "calculate_metrics",
    "apy_trend",
    # Errors
    "DomainError",
    "FetchError",
    "NetworkError",
    "HttpError",
    "StorageError",
    "CapacityError",
]
