"""
Order statistics: read-only aggregation over the local order store.

- stats_by_purpose: live orders grouped by purpose, plus an "all" bucket
- order_stats / all_order_stats: historical totals of processed orders over
  the last hour, day, 30 days and all time
- StatsSession: remembers the previous stats_by_purpose snapshot of one
  report session to show what changed
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, TYPE_CHECKING

from mmbot.core.utils import DAY_MS, HOUR_MS, now_ms as _now_ms
from mmbot.execution.order_sync import NoopOrderSync
from mmbot.orders.order_record import ALL_PURPOSES, ORDER_PURPOSES, OrderPurpose, OrderSide
from mmbot.state.order_store import OrderFilter

if TYPE_CHECKING:
    from mmbot.execution.gateway import Gateway
    from mmbot.execution.order_sync import OrderStatusSync
    from mmbot.monitoring.metrics_rich import CollectorMetrics
    from mmbot.orders.order_record import OrderRecord
    from mmbot.state.order_store import OrderRepository

log = logging.getLogger("mmbot")

MONTH_MS = 30 * DAY_MS


@dataclass
class PurposeStats:
    """Live orders of one purpose bucket."""
    purpose_name: str
    orders: int = 0
    buy_orders: int = 0
    sell_orders: int = 0
    buy_orders_quote: float = 0.0
    sell_orders_amount: float = 0.0

    def add(self, record: "OrderRecord") -> None:
        self.orders += 1
        if record.side is OrderSide.BUY:
            self.buy_orders += 1
            self.buy_orders_quote += record.quote_amount
        else:
            self.sell_orders += 1
            self.sell_orders_amount += record.base_amount


@dataclass
class HistoricalStats:
    """Amounts and counts of matching orders by age window."""
    purpose: str
    purpose_name: str
    base_amount_all: float = 0.0
    base_amount_hour: float = 0.0
    base_amount_day: float = 0.0
    base_amount_month: float = 0.0
    quote_amount_all: float = 0.0
    quote_amount_hour: float = 0.0
    quote_amount_day: float = 0.0
    quote_amount_month: float = 0.0
    count_all: int = 0
    count_hour: int = 0
    count_day: int = 0
    count_month: int = 0

    @property
    def is_empty(self) -> bool:
        return self.count_all == 0

    def add(self, record: "OrderRecord", now: int) -> None:
        self.base_amount_all += record.base_amount
        self.quote_amount_all += record.quote_amount
        self.count_all += 1
        age = now - record.date_ms
        if age < MONTH_MS:
            self.base_amount_month += record.base_amount
            self.quote_amount_month += record.quote_amount
            self.count_month += 1
        if age < DAY_MS:
            self.base_amount_day += record.base_amount
            self.quote_amount_day += record.quote_amount
            self.count_day += 1
        if age < HOUR_MS:
            self.base_amount_hour += record.base_amount
            self.quote_amount_hour += record.quote_amount
            self.count_hour += 1

    def merge(self, other: "HistoricalStats") -> None:
        for name in self.__dataclass_fields__:
            if name in ("purpose", "purpose_name"):
                continue
            setattr(self, name, getattr(self, name) + getattr(other, name))


@dataclass
class AllOrderStats:
    stat_list: List[HistoricalStats] = field(default_factory=list)
    total: HistoricalStats = field(default_factory=lambda: HistoricalStats("total", "Total orders"))


class OrderStats:
    """
    Statistics over the order store.

    Usage:
        stats = OrderStats(repository, exchange="hyperliquid", order_sync=sync)
        by_purpose = await stats.stats_by_purpose("ADM/USDT")
        print(by_purpose["all"].buy_orders_quote)
    """

    def __init__(
        self,
        repository: "OrderRepository",
        exchange: str,
        order_sync: Optional["OrderStatusSync"] = None,
        default_pair: Optional[str] = None,
        metrics: Optional["CollectorMetrics"] = None,
        log_event_callback: Optional[Callable[..., None]] = None,
        second_gateway: Optional["Gateway"] = None,
    ) -> None:
        self.repository = repository
        self.exchange = exchange
        self.order_sync = order_sync or NoopOrderSync()
        self.default_pair = default_pair
        self.second_gateway = second_gateway
        self.metrics = metrics
        self._log_event = log_event_callback or self._default_log

    def _default_log(self, event: str, **kwargs: Any) -> None:
        log.debug(json.dumps({"event": event, "exchange": self.exchange, **kwargs}, default=str))

    def _pair(self, pair: Optional[str]) -> str:
        pair = pair or self.default_pair
        if not pair:
            raise ValueError("pair is required when no default pair is configured")
        return pair

    async def stats_by_purpose(
        self,
        pair: Optional[str] = None,
        second_account: bool = False,
    ) -> Dict[str, PurposeStats]:
        """
        Live orders grouped by purpose.

        Records are refreshed through the order sync first, so the refresh
        may close some of them. Second-account records are refreshed with
        second_gateway and are taken as stored when it is not configured.
        Every purpose gets a bucket, empty or not, and "all" holds every
        record.

        Raises:
            StoreError: Store read failed
        """
        pair = self._pair(pair)
        records = await self.repository.find(OrderFilter(
            pair=pair,
            exchange=self.exchange,
            is_processed=False,
            is_second_account=second_account,
        ))
        if not second_account:
            records = await self.order_sync.refresh(records, pair)
        elif self.second_gateway is not None:
            records = await self.order_sync.refresh(records, pair, self.second_gateway)
        else:
            self._log_event("stats_refresh_skipped", pair=pair, reason="no_second_gateway", orders=len(records))

        buckets: Dict[str, PurposeStats] = {
            purpose.value: PurposeStats(purpose_name=ORDER_PURPOSES[purpose.value])
            for purpose in OrderPurpose
        }
        buckets[ALL_PURPOSES] = PurposeStats(purpose_name="All types")
        for record in records:
            buckets[record.purpose.value].add(record)
            buckets[ALL_PURPOSES].add(record)

        if self.metrics:
            for purpose in OrderPurpose:
                bucket = buckets[purpose.value]
                self.metrics.open_orders.labels(pair=pair, purpose=purpose.value, side="buy").set(bucket.buy_orders)
                self.metrics.open_orders.labels(pair=pair, purpose=purpose.value, side="sell").set(bucket.sell_orders)

        self._log_event("stats_by_purpose", pair=pair, orders=buckets[ALL_PURPOSES].orders)
        return buckets

    async def order_stats(
        self,
        pair: Optional[str],
        purpose: OrderPurpose,
        is_executed: bool = True,
        is_processed: bool = True,
        is_cancelled: bool = False,
        now_ms: Optional[int] = None,
    ) -> HistoricalStats:
        """
        Historical totals of one purpose.

        Manual orders are never marked executed, so is_executed does not
        apply to them.
        """
        pair = self._pair(pair)
        purpose = OrderPurpose(purpose)
        now = now_ms if now_ms is not None else _now_ms()

        records = await self.repository.find(OrderFilter(
            pair=pair,
            exchange=self.exchange,
            purposes=[purpose],
            is_processed=is_processed,
            is_executed=None if purpose is OrderPurpose.MANUAL else is_executed,
            is_cancelled=is_cancelled,
        ))

        stats = HistoricalStats(purpose=purpose.value, purpose_name=ORDER_PURPOSES[purpose.value])
        for record in records:
            stats.add(record, now)
        return stats

    async def all_order_stats(
        self,
        purposes: Iterable[OrderPurpose],
        pair: Optional[str] = None,
        now_ms: Optional[int] = None,
    ) -> AllOrderStats:
        """Historical totals per purpose plus a "total" row."""
        result = AllOrderStats()
        now = now_ms if now_ms is not None else _now_ms()
        for purpose in purposes:
            stats = await self.order_stats(pair, purpose, now_ms=now)
            result.stat_list.append(stats)
            result.total.merge(stats)
        return result


class StatsSession:
    """
    Previous stats_by_purpose snapshot of one report session.

    Create one per session (an operator chat, a periodic report), never
    share it between sessions.
    """

    def __init__(self) -> None:
        self.previous: Optional[Dict[str, PurposeStats]] = None

    def update(self, snapshot: Dict[str, PurposeStats]) -> Dict[str, int]:
        """
        Store the snapshot and return order count changes per bucket.

        The first update has nothing to compare with and returns {}.
        """
        previous, self.previous = self.previous, snapshot
        if previous is None:
            return {}
        deltas: Dict[str, int] = {}
        for key, bucket in snapshot.items():
            before = previous.get(key)
            deltas[key] = bucket.orders - (before.orders if before else 0)
        return deltas
