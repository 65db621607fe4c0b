"""
Utility helpers.
"""

from __future__ import annotations

import math
import time
from typing import Any, Optional

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


def now_ms() -> int:
    return int(time.time() * 1000)


def to_int_safe(value: Any) -> Optional[int]:
    """Convert to int, returning None on failure."""
    if value is None:
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def to_float_safe(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (ValueError, TypeError):
        return default


def is_positive_or_zero_number(value: Any) -> bool:
    """True for finite int/float >= 0. Booleans are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0


def order_id_str(order_id: Any) -> str:
    # Exchanges return ids as strings in open-order lists while placement may return ints
    return str(order_id)
