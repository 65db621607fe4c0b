"""
Runs signed Hyperliquid cancels off the event loop.

The SDK Exchange is blocking, so every call goes to a small thread pool and
is awaited with a timeout. Nothing is retried here: a timed-out cancel raises
asyncio.TimeoutError and the collector's next pass tries the order again.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable


class AsyncExchange:
    """
    Usage:
        async_exchange = AsyncExchange(Exchange(wallet, base_url), timeout=5.0)
        resp = await async_exchange.cancel("BTC", 123456)
    """

    def __init__(self, exchange: Any, timeout: float = 2.0, max_workers: int = 4) -> None:
        self._exchange = exchange
        self._timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="hl-cancel")
        self.calls = 0

    async def cancel(self, coin: str, oid: int) -> Any:
        return await self._run(self._exchange.cancel, coin, oid)

    async def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        self.calls += 1
        loop = asyncio.get_running_loop()
        return await asyncio.wait_for(loop.run_in_executor(self._executor, fn, *args), timeout=self._timeout)
