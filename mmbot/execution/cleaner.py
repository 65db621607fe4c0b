"""
Regular cleaner: periodic sweeps run by the order collector.

- every mm_interval_sec: clear_local(["mm"]) to drop market-making orders the
  trader left behind
- every unknown_interval_min: clear_unknown() to cancel exchange orders the
  store does not know about

Both sweeps run only when unknown_interval_min > 0. A failed sweep is logged
and the loop carries on.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, TYPE_CHECKING

from mmbot.orders.order_record import OrderPurpose

if TYPE_CHECKING:
    from mmbot.execution.order_collector import ClearReport, OrderCollector

log = logging.getLogger("mmbot")


@dataclass
class CleanerConfig:
    pair: Optional[str] = None
    mm_interval_sec: float = 120.0
    unknown_interval_min: float = 0.0  # 0 disables the cleaner
    error_pause_sec: float = 5.0


class RegularCleaner:
    """
    Usage:
        cleaner = RegularCleaner(collector, CleanerConfig(unknown_interval_min=15))
        cleaner.start()
        ...
        await cleaner.stop()
    """

    def __init__(self, collector: "OrderCollector", config: Optional[CleanerConfig] = None) -> None:
        self.collector = collector
        self.config = config or CleanerConfig()
        self._tasks: List[asyncio.Task] = []
        self._stats = {"mm_sweeps": 0, "unknown_sweeps": 0, "errors": 0}

    def _log(self, event: str, level: int = logging.INFO, **kwargs: Any) -> None:
        log.log(level, json.dumps({"event": event, **kwargs}, default=str))

    @property
    def enabled(self) -> bool:
        return self.config.unknown_interval_min > 0

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def get_stats(self) -> dict:
        return dict(self._stats)

    def start(self) -> None:
        if not self.enabled:
            self._log("cleaner_disabled")
            return
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._loop("mm", self.config.mm_interval_sec, self.sweep_mm_orders)),
            asyncio.create_task(self._loop("unknown", self.config.unknown_interval_min * 60, self.sweep_unknown_orders)),
        ]
        self._log(
            "cleaner_started",
            mm_interval_sec=self.config.mm_interval_sec,
            unknown_interval_min=self.config.unknown_interval_min,
        )

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if tasks:
            self._log("cleaner_stopped", **self._stats)

    async def sweep_mm_orders(self) -> "ClearReport":
        report = await self.collector.clear_local(
            [OrderPurpose.MARKET_MAKING],
            self.config.pair,
            caller_name="regular cleaner",
            orders_string="mm-orders",
        )
        self._stats["mm_sweeps"] += 1
        return report

    async def sweep_unknown_orders(self) -> "ClearReport":
        report = await self.collector.clear_unknown(self.config.pair, caller_name="regular cleaner")
        self._stats["unknown_sweeps"] += 1
        return report

    async def _loop(self, name: str, interval: float, sweep: Callable[[], Awaitable[Any]]) -> None:
        while True:
            try:
                await asyncio.sleep(interval)
                await sweep()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._stats["errors"] += 1
                self._log("cleaner_tick_error", logging.WARNING, sweep=name, err=str(exc), err_type=type(exc).__name__)
                await asyncio.sleep(self.config.error_pause_sec)
