"""
Ports: Abstract interfaces for external dependencies.

This follows the Ports & Adapters (Hexagonal) architecture pattern.
Services depend only on these interfaces, not on concrete implementations.
"""

from yield_history.ports.store import SeriesBackendPort

__all__ = ["SeriesBackendPort"]
