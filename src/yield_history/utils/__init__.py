"""Shared utility helpers."""

from yield_history.utils.decimals import round_half_up, safe_float

__all__ = ["round_half_up", "safe_float"]
