"""
State management package.

This package contains order record persistence.
"""

from mmbot.state.order_store import (
    InMemoryOrderRepository,
    JsonOrderRepository,
    OrderFilter,
    OrderRepository,
)

__all__ = [
    "InMemoryOrderRepository",
    "JsonOrderRepository",
    "OrderFilter",
    "OrderRepository",
]
