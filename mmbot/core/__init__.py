"""
Core utilities package.

This package contains the exception hierarchy, the bounded retry policy and
small conversion helpers.
"""

from mmbot.core.errors import GatewayError, OrderCollectorError, StoreError
from mmbot.core.retry import MAX_TRIES, RetryPolicy
from mmbot.core.utils import now_ms, to_int_safe, to_float_safe, is_positive_or_zero_number

__all__ = [
    "GatewayError",
    "OrderCollectorError",
    "StoreError",
    "MAX_TRIES",
    "RetryPolicy",
    "now_ms",
    "to_int_safe",
    "to_float_safe",
    "is_positive_or_zero_number",
]
