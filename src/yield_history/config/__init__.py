"""Configuration loading."""

from yield_history.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
