"""
Exception hierarchy shared across the order collector.
"""


class OrderCollectorError(Exception):
    """Base class for order collector failures."""
    pass


class StoreError(OrderCollectorError):
    """Order store read or write failed."""
    pass


class GatewayError(OrderCollectorError):
    """Exchange request failed without a definitive answer (timeout, network, rate limit)."""
    pass
