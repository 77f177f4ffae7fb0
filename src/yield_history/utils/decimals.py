"""
Numeric helpers.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any, default: float | None = 0.0) -> float | None:
    """Safely convert a value to float.

    Returns default for None, NaN, Infinity, and invalid values.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round to `digits` places with halves going toward +infinity.

    Scales the binary float and floors, the same arithmetic as the dashboard's
    Math.round(x * 100) / 100: 2.675 -> 2.67, -12.25 -> -12.2.
    """
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale
