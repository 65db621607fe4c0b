"""
Entry point wiring the order collector.

Runs the regular cleaner against the configured pair until SIGINT/SIGTERM.
Strategies and the operator command layer import `build_runtime` and use
`runtime.collector` / `runtime.stats` directly.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from dataclasses import dataclass

import httpx
from hyperliquid.exchange import Exchange

from mmbot.config.config import Settings
from mmbot.config.config_validator import validate_and_log
from mmbot.execution.cleaner import CleanerConfig, RegularCleaner
from mmbot.execution.gateway import HyperliquidGateway
from mmbot.execution.order_collector import OrderCollector, OrderCollectorConfig
from mmbot.execution.order_stats import OrderStats
from mmbot.execution.order_sync import OpenOrdersSync
from mmbot.infra.async_execution import AsyncExchange
from mmbot.infra.async_info import AsyncInfo
from mmbot.infra.logging_cfg import build_logger, log_event
from mmbot.monitoring.metrics_rich import CollectorMetrics, start_metrics_server
from mmbot.state.order_store import JsonOrderRepository

log = logging.getLogger("mmbot")


@dataclass
class Runtime:
    """Wired components plus the resources that need closing."""
    cfg: Settings
    collector: OrderCollector
    stats: OrderStats
    metrics: CollectorMetrics
    async_info: AsyncInfo
    async_exchange: AsyncExchange
    http_client: httpx.AsyncClient

    async def close(self) -> None:
        await self.async_exchange.close()
        await self.async_info.close()
        await self.http_client.aclose()


def build_runtime(cfg: Settings) -> Runtime:
    wallet = cfg.resolve_signer()
    account = cfg.resolve_account()

    # One HTTP/2 connection for every info request
    http_client = httpx.AsyncClient(base_url=cfg.base_url.rstrip("/"), http2=True, timeout=cfg.http_timeout)
    async_info = AsyncInfo(cfg.base_url, timeout=cfg.http_timeout, client=http_client)
    base_exchange = Exchange(wallet, cfg.base_url, account_address=account, perp_dexs=[cfg.dex])
    async_exchange = AsyncExchange(base_exchange, timeout=cfg.http_timeout)

    metrics = CollectorMetrics()
    gateway = HyperliquidGateway(async_exchange, async_info, account, dex=cfg.dex)
    repository = JsonOrderRepository(cfg.exchange, cfg.state_dir)
    order_sync = OpenOrdersSync(gateway, repository, distrust_empty=cfg.distrust_empty_open_orders)

    collector = OrderCollector(
        repository=repository,
        gateway=gateway,
        order_sync=order_sync,
        metrics=metrics,
        config=OrderCollectorConfig(
            exchange=cfg.exchange,
            default_pair=cfg.default_pair,
            max_tries=cfg.max_tries,
            coin1_decimals=cfg.coin1_decimals,
            coin2_decimals=cfg.coin2_decimals,
        ),
    )
    stats = OrderStats(repository, cfg.exchange, order_sync, default_pair=cfg.default_pair, metrics=metrics)
    return Runtime(cfg, collector, stats, metrics, async_info, async_exchange, http_client)


async def main() -> None:
    cfg = Settings.load()
    build_logger("mmbot", level=logging.getLevelName(cfg.log_level), file_path=cfg.log_file)

    if not validate_and_log(cfg, log):
        log.error("Configuration validation failed, exiting")
        sys.exit(1)

    runtime = build_runtime(cfg)
    start_metrics_server(runtime.metrics, cfg.metrics_port)

    cleaner = RegularCleaner(
        runtime.collector,
        CleanerConfig(
            pair=cfg.default_pair,
            mm_interval_sec=cfg.mm_clear_interval_sec,
            unknown_interval_min=cfg.clear_all_orders_interval_min,
        ),
    )

    log_event(log, "startup", exchange=cfg.exchange, pair=cfg.default_pair)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    # Windows doesn't support add_signal_handler, so rely on KeyboardInterrupt handling
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    cleaner.start()
    try:
        await stop.wait()
        log.info("Shutdown signal received, cleaning up...")
    finally:
        await cleaner.stop()
        await runtime.close()
        log.info("Shutdown complete")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nCollector stopped by user")
    sys.exit(0)
