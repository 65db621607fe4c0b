"""
Exchange gateway: the order-management capability the collector consumes.

The collector needs two operations against one exchange account:
- cancel(order_id, side, pair) -> CancelOutcome (tri-state, never raises for
  an absent order)
- list_open_orders(pair, side) -> List[ExchangeOpenOrder] (raises GatewayError
  when the exchange gives no answer)

HyperliquidGateway adapts the Hyperliquid SDK Exchange (signed cancels, run
through AsyncExchange) and the AsyncInfo HTTP/2 client (open orders).
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Protocol

import httpx
from hyperliquid.utils.error import ClientError, ServerError

from mmbot.core.errors import GatewayError
from mmbot.infra.async_info import TERMINAL_ORDER_STATUSES
from mmbot.core.utils import order_id_str, to_float_safe, to_int_safe
from mmbot.orders.order_record import OrderSide

log = logging.getLogger("mmbot")


class CancelOutcome(Enum):
    """Result of a single cancel request."""
    CANCELLED = "cancelled"              # exchange confirmed the cancel
    NOT_FOUND = "not_found"              # exchange says the order no longer exists
    TRANSIENT_ERROR = "transient_error"  # no definitive answer; retry later

    @property
    def is_definitive(self) -> bool:
        return self is not CancelOutcome.TRANSIENT_ERROR


@dataclass(frozen=True)
class ExchangeOpenOrder:
    """The exchange's view of one live order. Not persisted."""
    id: str
    side: OrderSide
    pair: str
    price: float
    amount: float
    amount_left: float
    status: str = "new"  # new | part_filled

    @property
    def amount_executed(self) -> float:
        return max(0.0, self.amount - self.amount_left)


class Gateway(Protocol):
    is_second_account: bool

    async def cancel(self, order_id: str, side: OrderSide, pair: str) -> CancelOutcome:
        ...

    async def list_open_orders(self, pair: str, side: Optional[OrderSide] = None) -> List[ExchangeOpenOrder]:
        ...


# Hyperliquid wording for cancels of orders that are gone
_HL_NOT_FOUND_MARKERS = (
    "never placed",
    "already canceled",
    "already cancelled",
    "or filled",
)


def default_coin_for_pair(pair: str) -> str:
    """'BTC/USDC' -> 'BTC'; builder-dex names like 'xyz:TSLA' pass through."""
    return pair.split("/")[0] if "/" in pair else pair


class HyperliquidGateway:
    """
    Gateway over Hyperliquid.

    Args:
        async_exchange: AsyncExchange wrapping hyperliquid.exchange.Exchange
        async_info: AsyncInfo client for info endpoints
        account: Trading account address
        dex: Perp dex name ('' for the main dex)
        is_second_account: Whether this account is the secondary trading account
        coin_for_pair: Maps a configured pair to a Hyperliquid coin
        verify_unclear_cancels: Check orderStatus when a cancel error is not
            one of the known "order is gone" answers
    """

    def __init__(
        self,
        async_exchange: Any,
        async_info: Any,
        account: str,
        dex: Optional[str] = None,
        is_second_account: bool = False,
        coin_for_pair: Callable[[str], str] = default_coin_for_pair,
        verify_unclear_cancels: bool = True,
    ) -> None:
        self.async_exchange = async_exchange
        self.async_info = async_info
        self.account = account
        self.dex = dex or None
        self.is_second_account = is_second_account
        self.verify_unclear_cancels = verify_unclear_cancels
        self._coin_for_pair = coin_for_pair

    def _log_event(self, event: str, level: int = logging.INFO, **kwargs: Any) -> None:
        log.log(level, json.dumps({"event": event, "account": self.account, **kwargs}))

    async def cancel(self, order_id: str, side: OrderSide, pair: str) -> CancelOutcome:
        """
        Cancel one order.

        An error status the response wording does not explain is verified
        through orderStatus: an order that is no longer open counts as
        NOT_FOUND.
        """
        oid = to_int_safe(order_id)
        if oid is None:
            raise ValueError(f"Hyperliquid order id must be numeric, got {order_id!r}")
        coin = self._coin_for_pair(pair)
        try:
            resp = await self.async_exchange.cancel(coin, oid)
        except (asyncio.TimeoutError, httpx.HTTPError, OSError, ClientError, ServerError) as exc:
            self._log_event("cancel_transient_error", logging.WARNING, coin=coin, oid=oid, err=str(exc))
            return CancelOutcome.TRANSIENT_ERROR

        outcome = self.classify_cancel_response(resp)
        if outcome is CancelOutcome.TRANSIENT_ERROR and self.verify_unclear_cancels:
            outcome = await self._verify_gone(coin, oid)
        return outcome

    async def _verify_gone(self, coin: str, oid: int) -> CancelOutcome:
        try:
            status = await self.async_info.order_status(self.account, oid)
        except (asyncio.TimeoutError, httpx.HTTPError, ValueError) as exc:
            self._log_event("cancel_transient_error", logging.WARNING, coin=coin, oid=oid, err=str(exc), stage="verify")
            return CancelOutcome.TRANSIENT_ERROR
        if status == "unknownOid" or status in TERMINAL_ORDER_STATUSES:
            self._log_event("cancel_verified_gone", coin=coin, oid=oid, status=status)
            return CancelOutcome.NOT_FOUND
        self._log_event("cancel_transient_error", logging.WARNING, coin=coin, oid=oid, status=status, stage="verify")
        return CancelOutcome.TRANSIENT_ERROR

    @staticmethod
    def classify_cancel_response(resp: Any) -> CancelOutcome:
        """
        Map an Exchange.cancel response to a CancelOutcome.

        {"status":"ok","response":{"type":"cancel","data":{"statuses":["success"]}}}
        {"status":"ok","response":{"type":"cancel","data":{"statuses":[{"error":"Order was never placed, already canceled, or filled. asset=0"}]}}}
        """
        if not isinstance(resp, dict) or resp.get("status") != "ok":
            return CancelOutcome.TRANSIENT_ERROR
        payload = resp.get("response", {})
        if isinstance(payload, dict):
            payload = payload.get("data", payload)
        statuses = payload.get("statuses") if isinstance(payload, dict) else None
        if not isinstance(statuses, list) or not statuses:
            return CancelOutcome.TRANSIENT_ERROR
        status = statuses[0]
        if status == "success":
            return CancelOutcome.CANCELLED
        if isinstance(status, dict) and status.get("error"):
            message = str(status["error"]).lower()
            if any(marker in message for marker in _HL_NOT_FOUND_MARKERS):
                return CancelOutcome.NOT_FOUND
        return CancelOutcome.TRANSIENT_ERROR

    async def list_open_orders(self, pair: str, side: Optional[OrderSide] = None) -> List[ExchangeOpenOrder]:
        coin = self._coin_for_pair(pair)
        try:
            remote = await self.async_info.frontend_open_orders(self.account, self.dex)
        except (asyncio.TimeoutError, httpx.HTTPError, ValueError) as exc:
            self._log_event("open_orders_error", logging.WARNING, coin=coin, err=str(exc))
            raise GatewayError(f"unable to fetch open orders for {pair}: {exc}") from exc

        orders: List[ExchangeOpenOrder] = []
        for o in remote:
            if o.get("coin") != coin or o.get("oid") is None:
                continue
            order_side = OrderSide.BUY if str(o.get("side", "")).lower().startswith("b") else OrderSide.SELL
            if side is not None and order_side != side:
                continue
            left = to_float_safe(o.get("sz"))
            original = to_float_safe(o.get("origSz"), default=left)
            orders.append(ExchangeOpenOrder(
                id=order_id_str(o["oid"]),
                side=order_side,
                pair=pair,
                price=to_float_safe(o.get("limitPx")),
                amount=original,
                amount_left=left,
                status="part_filled" if left < original else "new",
            ))
        return orders
