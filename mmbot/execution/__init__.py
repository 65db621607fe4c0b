"""
Execution layer: everything that talks to the exchange on behalf of the
order store.

- Gateway / HyperliquidGateway: cancel and list open orders
- OpenOrdersSync: refresh local records from the exchange
- OrderCollector: clear local, unknown and all orders
- OrderStats: live and historical order statistics
- RegularCleaner: periodic sweeps
"""

from mmbot.execution.gateway import CancelOutcome, ExchangeOpenOrder, Gateway, HyperliquidGateway
from mmbot.execution.order_sync import NoopOrderSync, OpenOrdersSync, OrderStatusSync
from mmbot.execution.order_collector import (
    CancelByIdResult,
    ClearAllReport,
    ClearReport,
    OrderCollector,
    OrderCollectorConfig,
)
from mmbot.execution.order_stats import HistoricalStats, OrderStats, PurposeStats, StatsSession
from mmbot.execution.cleaner import CleanerConfig, RegularCleaner

__all__ = [
    "CancelOutcome",
    "ExchangeOpenOrder",
    "Gateway",
    "HyperliquidGateway",
    "NoopOrderSync",
    "OpenOrdersSync",
    "OrderStatusSync",
    "CancelByIdResult",
    "ClearAllReport",
    "ClearReport",
    "OrderCollector",
    "OrderCollectorConfig",
    "HistoricalStats",
    "OrderStats",
    "PurposeStats",
    "StatsSession",
    "CleanerConfig",
    "RegularCleaner",
]
