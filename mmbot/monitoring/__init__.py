"""
Monitoring package.

This package contains Prometheus metrics for the order collector.
"""

from mmbot.monitoring.metrics_rich import CollectorMetrics, start_metrics_server

__all__ = [
    "CollectorMetrics",
    "start_metrics_server",
]
