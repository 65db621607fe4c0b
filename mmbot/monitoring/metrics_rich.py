"""
Prometheus metrics for the order collector.

Organized into: cancellation, reconciliation, store, statistics.
"""

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry, start_http_server
from typing import Optional


class CollectorMetrics:
    """Metrics for order collector observability."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        reg = registry or CollectorRegistry()
        self.registry = reg

        # === Cancellation ===
        self.cancel_outcomes = Counter(
            'order_cancel_outcomes_total',
            'Cancel requests by outcome',
            labelnames=['pair', 'source', 'outcome'],
            registry=reg
        )
        self.cancelled_notional = Counter(
            'order_cancelled_notional_total',
            'Notional of cancelled local orders (quote for bids, base for asks)',
            labelnames=['pair', 'side'],
            registry=reg
        )

        # === Reconciliation ===
        self.reconcile_passes = Histogram(
            'order_reconcile_passes',
            'Passes needed per clear operation',
            labelnames=['pair', 'operation'],
            buckets=[1, 2, 3, 5, 8, 10],
            registry=reg
        )
        self.unknown_orders_found = Gauge(
            'unknown_orders_found',
            'Exchange orders absent from the local store in the last sweep',
            labelnames=['pair'],
            registry=reg
        )
        self.clear_failures = Counter(
            'order_clear_failures_total',
            'Clear operations that returned a failure report',
            labelnames=['pair', 'operation'],
            registry=reg
        )

        # === Store ===
        self.store_errors = Counter(
            'order_store_errors_total',
            'Order store read/write failures',
            labelnames=['operation'],
            registry=reg
        )

        # === Statistics ===
        self.open_orders = Gauge(
            'open_orders',
            'Live local orders by purpose and side',
            labelnames=['pair', 'purpose', 'side'],
            registry=reg
        )


def start_metrics_server(metrics: CollectorMetrics, port: int) -> None:
    """Expose the metrics registry over HTTP. Port 0 disables the server."""
    if port > 0:
        start_http_server(port, registry=metrics.registry)
