"""
Async HTTP/2 client for the Hyperliquid info endpoints the collector reads:
open orders and single-order status.
"""

from __future__ import annotations

import httpx
from typing import Any, Dict, List, Optional

# orderStatus answers for orders that can no longer be cancelled
TERMINAL_ORDER_STATUSES = frozenset({
    "filled",
    "canceled",
    "marginCanceled",
    "triggered",
    "rejected",
    "reduceOnlyCanceled",
    "selfTradeCanceled",
    "siblingFilledCanceled",
    "delistedCanceled",
    "liquidatedCanceled",
    "scheduledCancel",
})


class AsyncInfo:
    def __init__(self, base_url: str, timeout: float = 2.0, client: Optional[httpx.AsyncClient] = None) -> None:
        self.base_url = base_url.rstrip("/")
        # Shared clients are closed by their owner
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=self.base_url, http2=True, timeout=timeout)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def frontend_open_orders(self, account: str, dex: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        All open orders of the account, every coin.

        Raises:
            httpx.HTTPError: Request failed
            ValueError: The answer is not a list of orders
        """
        payload: Dict[str, Any] = {"type": "frontendOpenOrders", "user": account}
        if dex:
            payload["dex"] = dex
        data = await self._post_info(payload)
        if isinstance(data, dict):
            data = data.get("openOrders", data.get("orders"))
        if not isinstance(data, list):
            raise ValueError(f"unexpected frontendOpenOrders payload: {type(data).__name__}")
        return data

    async def order_status(self, account: str, oid: int) -> str:
        """
        Status of one order: "open", one of TERMINAL_ORDER_STATUSES, or
        "unknownOid" when the exchange has no such order.
        """
        data = await self._post_info({"type": "orderStatus", "user": account, "oid": oid})
        if not isinstance(data, dict):
            raise ValueError(f"unexpected orderStatus payload: {type(data).__name__}")
        if data.get("status") == "unknownOid":
            return "unknownOid"
        order = data.get("order")
        if isinstance(order, dict) and order.get("status"):
            return str(order["status"])
        raise ValueError(f"orderStatus without order status: {data}")

    async def _post_info(self, payload: Dict[str, Any]) -> Any:
        resp = await self.client.post("/info", json=payload)
        resp.raise_for_status()
        data = resp.json()
        # {"status": "ok", "response": {"data": {...}}}
        if isinstance(data, dict) and isinstance(data.get("response"), dict):
            data = data["response"]
            if isinstance(data.get("data"), dict):
                data = data["data"]
        return data
