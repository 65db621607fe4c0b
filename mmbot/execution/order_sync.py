"""
Order status sync: refresh local records against the exchange before they
are counted or diffed.

Both the unknown-order reconciler and the statistics aggregator call
`refresh(records, pair, gateway)` and work with the records it returns. The
gateway is the one the caller resolved for the records' account. A refresh
may move records to a terminal state (filled, not found) and persists what
it changes.

Implementations:
    NoopOrderSync: returns the records unchanged
    OpenOrdersSync: compares records with Gateway.list_open_orders
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, TYPE_CHECKING

from mmbot.core.errors import GatewayError

if TYPE_CHECKING:
    from mmbot.execution.gateway import ExchangeOpenOrder, Gateway
    from mmbot.orders.order_record import OrderRecord
    from mmbot.state.order_store import OrderRepository

log = logging.getLogger("mmbot")


class OrderStatusSync(Protocol):
    async def refresh(
        self,
        records: Sequence["OrderRecord"],
        pair: str,
        gateway: Optional["Gateway"] = None,
    ) -> List["OrderRecord"]:
        ...


class NoopOrderSync:
    """Trusts the local store as is."""

    async def refresh(
        self,
        records: Sequence["OrderRecord"],
        pair: str,
        gateway: Optional["Gateway"] = None,
    ) -> List["OrderRecord"]:
        return list(records)


class OpenOrdersSync:
    """
    Refresh records from the exchange's open-order list.

    - Records still open with status part_filled get the partial fill applied
      (is_executed, base_amount_left) and are persisted.
    - Records absent from the exchange are closed with is_not_found and
      persisted. They are not returned.
    - A failed open-orders request leaves every record as it is.
    - Open orders come from the gateway passed to refresh, falling back to
      the one given at construction. Records of a second account must be
      refreshed with that account's gateway.
    - An empty open-orders answer while local records exist is treated as a
      glitch when distrust_empty is set. Some exchanges return [] under load.

    Usage:
        sync = OpenOrdersSync(gateway, repository)
        live = await sync.refresh(records, "ADM/USDT")
    """

    def __init__(
        self,
        gateway: "Gateway",
        repository: "OrderRepository",
        distrust_empty: bool = True,
        log_event_callback: Optional[Callable[..., None]] = None,
    ) -> None:
        self.gateway = gateway
        self.repository = repository
        self.distrust_empty = distrust_empty
        self._log_event = log_event_callback or self._default_log

    def _default_log(self, event: str, **kwargs: Any) -> None:
        log.info(json.dumps({"event": event, **kwargs}, default=str))

    async def refresh(
        self,
        records: Sequence["OrderRecord"],
        pair: str,
        gateway: Optional["Gateway"] = None,
    ) -> List["OrderRecord"]:
        records = list(records)
        if not records:
            return records

        gateway = gateway or self.gateway
        try:
            open_orders = await gateway.list_open_orders(pair)
        except GatewayError as exc:
            self._log_event("order_sync_skipped", pair=pair, reason="open_orders_error", err=str(exc))
            return records

        if not open_orders and self.distrust_empty:
            self._log_event("order_sync_skipped", pair=pair, reason="empty_open_orders", local_count=len(records))
            return records

        by_id: Dict[str, "ExchangeOpenOrder"] = {o.id: o for o in open_orders}
        live: List["OrderRecord"] = []
        filled = 0
        not_found = 0

        for record in records:
            remote = by_id.get(record.id)
            if remote is None:
                record.close_with_reason("is_not_found", "Order not found on exchange")
                await self.repository.persist(record)
                not_found += 1
                self._log_event("order_not_found", pair=pair, order_id=record.id, purpose=record.purpose.value)
                continue

            if remote.status == "part_filled":
                delta = record.apply_partial_fill(remote.amount_left, remote.amount_executed)
                if delta > 0:
                    await self.repository.persist(record)
                    filled += 1
                    self._log_event(
                        "order_partly_filled",
                        pair=pair,
                        order_id=record.id,
                        filled_now=delta,
                        amount_left=record.base_amount_left,
                    )
            live.append(record)

        if filled or not_found:
            self._log_event("order_sync_done", pair=pair, live=len(live), filled=filled, not_found=not_found)
        return live
