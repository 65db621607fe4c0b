"""
Order records package.

This package contains the local order record, purposes and sides.
"""

from mmbot.orders.order_record import (
    ALL_PURPOSES,
    ORDER_PURPOSES,
    UNKNOWN_PURPOSE,
    OrderPurpose,
    OrderRecord,
    OrderSide,
    parse_purpose,
    price_range,
)

__all__ = [
    "ALL_PURPOSES",
    "ORDER_PURPOSES",
    "UNKNOWN_PURPOSE",
    "OrderPurpose",
    "OrderRecord",
    "OrderSide",
    "parse_purpose",
    "price_range",
]
