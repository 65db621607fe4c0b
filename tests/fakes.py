"""
Hand-written fakes shared by the collector tests.
"""

from typing import Dict, List, Optional, Sequence

from mmbot.core.errors import GatewayError, StoreError
from mmbot.execution.gateway import CancelOutcome, ExchangeOpenOrder
from mmbot.execution.order_collector import OrderCollector, OrderCollectorConfig
from mmbot.orders.order_record import OrderRecord, OrderSide
from mmbot.state.order_store import InMemoryOrderRepository

PAIR = "ADM/USDT"
EXCHANGE = "testex"


class FakeGateway:
    """
    Scripted gateway.

    outcomes maps an order id to the outcomes of successive cancel calls; the
    last one repeats. Ids without a script get default_outcome.
    """

    def __init__(
        self,
        outcomes: Optional[Dict[str, Sequence[CancelOutcome]]] = None,
        default_outcome: CancelOutcome = CancelOutcome.CANCELLED,
        open_orders: Optional[List[ExchangeOpenOrder]] = None,
        list_error: bool = False,
        is_second_account: bool = False,
    ):
        self.outcomes = {k: list(v) for k, v in (outcomes or {}).items()}
        self.default_outcome = default_outcome
        self.open_orders = list(open_orders or [])
        self.list_error = list_error
        self.is_second_account = is_second_account
        self.cancel_calls: List[str] = []
        self.list_calls = 0

    async def cancel(self, order_id, side, pair):
        self.cancel_calls.append(order_id)
        script = self.outcomes.get(order_id)
        if not script:
            return self.default_outcome
        if len(script) > 1:
            return script.pop(0)
        return script[0]

    async def list_open_orders(self, pair, side=None):
        self.list_calls += 1
        if self.list_error:
            raise GatewayError("open orders request timed out")
        return [o for o in self.open_orders if side is None or o.side == side]


class FailingRepository(InMemoryOrderRepository):
    """In-memory store whose reads or writes fail on demand."""

    def __init__(self, records=None, fail_find=False, fail_persist_after=None):
        super().__init__(records)
        self.fail_find = fail_find
        self.fail_persist_after = fail_persist_after
        self.persist_calls = 0

    async def find(self, order_filter):
        if self.fail_find:
            raise StoreError("orders file is unreadable")
        return await super().find(order_filter)

    async def persist(self, record):
        self.persist_calls += 1
        if self.fail_persist_after is not None and self.persist_calls > self.fail_persist_after:
            raise StoreError("disk full")
        await super().persist(record)


def make_record(order_id, purpose="mm", side="buy", price=1.0, base_amount=100.0, quote_amount=None, **kwargs):
    return OrderRecord(
        id=order_id,
        exchange=kwargs.pop("exchange", EXCHANGE),
        pair=kwargs.pop("pair", PAIR),
        side=side,
        purpose=purpose,
        price=price,
        base_amount=base_amount,
        quote_amount=quote_amount if quote_amount is not None else base_amount * price,
        **kwargs,
    )


def open_order(order_id, side="buy", price=1.0, amount=100.0, amount_left=None):
    left = amount if amount_left is None else amount_left
    return ExchangeOpenOrder(
        id=str(order_id),
        side=OrderSide(side),
        pair=PAIR,
        price=price,
        amount=amount,
        amount_left=left,
        status="part_filled" if left < amount else "new",
    )


def make_collector(repository, gateway, **kwargs):
    config = OrderCollectorConfig(exchange=EXCHANGE, default_pair=PAIR, **kwargs.pop("config", {}))
    return OrderCollector(repository=repository, gateway=gateway, config=config, **kwargs)


class ScriptedSync:
    """Refresh that closes the records in gone_ids and remembers the gateway it got."""

    def __init__(self, repository, gone_ids=()):
        self.repository = repository
        self.gone_ids = set(gone_ids)
        self.gateways = []

    async def refresh(self, records, pair, gateway=None):
        self.gateways.append(gateway)
        live = []
        for record in records:
            if record.id in self.gone_ids:
                record.close_with_reason("is_not_found", "Order not found on exchange")
                await self.repository.persist(record)
            else:
                live.append(record)
        return live
