"""
Domain Error Taxonomy.

All domain-specific exceptions with clear categorization.
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """
    Base class for all domain errors.

    Includes structured error info for logging and debugging.
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(
        self,
        message: str,
        *,
        pool_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.pool_id = pool_id
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for logging."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "pool_id": self.pool_id,
            "details": self.details,
        }


# =============================================================================
# Fetch Errors
# =============================================================================


class FetchError(DomainError):
    """Base class for remote chart API failures."""

    error_code = "FETCH_ERROR"


class NetworkError(FetchError):
    """Transport failure (connection refused, DNS, timeout)."""

    error_code = "NETWORK_ERROR"


class HttpError(FetchError):
    """Chart API answered with a non-success status or an unreadable body."""

    error_code = "HTTP_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status: int,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.status = status
        self.details["status"] = status


# =============================================================================
# Storage Errors
# =============================================================================


class StorageError(DomainError):
    """Error from the persistent series backend."""

    error_code = "STORAGE_ERROR"


class CapacityError(StorageError):
    """Write exceeds the storage quota."""

    error_code = "CAPACITY_EXCEEDED"

    def __init__(
        self,
        message: str,
        *,
        payload_bytes: int | None = None,
        quota_bytes: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.payload_bytes = payload_bytes
        self.quota_bytes = quota_bytes
        if payload_bytes is not None:
            self.details["payload_bytes"] = payload_bytes
        if quota_bytes is not None:
            self.details["quota_bytes"] = quota_bytes
