"""
OrderCollector: closes out orders on the exchange and keeps the local order
store consistent with what the exchange reports.

Operations:
- clear_local: cancel locally stored orders of given purposes
- clear_unknown: cancel exchange orders the local store does not know about
- clear_all: clear_local("all") followed by clear_unknown, with one report
- clear_order_by_id: cancel a single order, marking the record if known
- clear_buy_orders_to_free_quote / clear_price_step_orders: strategy helpers

Cancel outcomes are tri-state (see CancelOutcome). A CANCELLED record is
marked cancelled+closed+processed, a NOT_FOUND record closed+processed, a
TRANSIENT_ERROR record is left alone for a later pass or invocation. With
do_force the batch is walked again, skipping handled orders, up to
max_tries passes.

Cancellation within a pass is sequential. Exchange rate limits are the
Gateway's concern, the collector never fans out.

Error handling:
    clear_local/clear_unknown propagate StoreError. clear_unknown returns a
    failure report when open orders cannot be fetched. clear_all never
    raises for store or gateway failures and reports them instead.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Set, Tuple, Union, TYPE_CHECKING

from mmbot.core.errors import GatewayError, OrderCollectorError, StoreError
from mmbot.core.retry import MAX_TRIES, RetryPolicy
from mmbot.core.utils import is_positive_or_zero_number, order_id_str
from mmbot.execution.gateway import CancelOutcome
from mmbot.execution.order_sync import NoopOrderSync
from mmbot.orders.order_record import (
    ALL_PURPOSES,
    OrderPurpose,
    OrderRecord,
    OrderSide,
    PurposeSelector,
    RecordPredicate,
    normalize_purposes,
    price_range,
)
from mmbot.state.order_store import OrderFilter

if TYPE_CHECKING:
    from mmbot.execution.gateway import ExchangeOpenOrder, Gateway
    from mmbot.execution.order_sync import OrderStatusSync
    from mmbot.monitoring.metrics_rich import CollectorMetrics
    from mmbot.state.order_store import OrderRepository

log = logging.getLogger("mmbot")


@dataclass
class OrderCollectorConfig:
    """Configuration for OrderCollector."""
    exchange: str = "hyperliquid"
    default_pair: str = "BTC/USDC"

    # Pass budget for do_force
    max_tries: int = MAX_TRIES

    # Decimals for notional totals in report messages
    coin1_decimals: int = 8
    coin2_decimals: int = 2

    # Logging callback
    log_event_callback: Optional[Callable[..., None]] = None


@dataclass
class ClearReport:
    """Result of clear_local / clear_unknown."""
    success: bool
    total_orders: Optional[int] = None
    cleared_orders_count_all: int = 0
    cleared_orders_count_success: int = 0
    cleared_orders_count_only_marked: int = 0
    log_message: str = ""
    total_bids_quote: float = 0.0
    total_asks_amount: float = 0.0
    passes: int = 0


@dataclass
class ClearAllReport(ClearReport):
    """Result of clear_all with the local/unknown breakdown."""
    total_local_orders: int = 0
    cleared_local_orders: int = 0
    total_unknown_orders: int = 0
    cleared_unknown_orders: int = 0


@dataclass
class CancelByIdResult:
    """Result of clear_order_by_id."""
    order_id: str
    outcome: CancelOutcome
    record: Optional[OrderRecord] = None

    @property
    def is_found_in_store(self) -> bool:
        return self.record is not None

    @property
    def is_cancel_request_processed(self) -> bool:
        return self.outcome.is_definitive

    @property
    def is_order_cancelled(self) -> bool:
        return self.outcome is CancelOutcome.CANCELLED


class OrderCollector:
    """
    Reconciles the local order store with the exchange.

    Usage:
        collector = OrderCollector(
            repository=repository,
            gateway=gateway,
            order_sync=OpenOrdersSync(gateway, repository),
            config=OrderCollectorConfig(exchange="hyperliquid", default_pair="BTC/USDC"),
        )

        report = await collector.clear_local(["mm"], do_force=True)
        report = await collector.clear_all(caller_name="cancel_all")
        print(report.log_message)
    """

    def __init__(
        self,
        repository: "OrderRepository",
        gateway: "Gateway",
        order_sync: Optional["OrderStatusSync"] = None,
        second_gateway: Optional["Gateway"] = None,
        metrics: Optional["CollectorMetrics"] = None,
        config: Optional[OrderCollectorConfig] = None,
    ) -> None:
        """
        Initialize OrderCollector.

        Args:
            repository: Local order store
            gateway: Exchange gateway for the main account
            order_sync: Refreshes records before they are diffed (no-op if None)
            second_gateway: Gateway for the secondary trading account, if any
            metrics: Prometheus metrics
            config: Optional configuration
        """
        self.repository = repository
        self.gateway = gateway
        self.order_sync = order_sync or NoopOrderSync()
        self.second_gateway = second_gateway
        self.metrics = metrics
        self.config = config or OrderCollectorConfig()

        self._log_event = self.config.log_event_callback or self._default_log

    def _default_log(self, event: str, **kwargs: Any) -> None:
        payload = {"event": event, "exchange": self.config.exchange, **kwargs}
        log.info(json.dumps(payload, default=str))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _gateway_for(self, second_account: bool) -> "Gateway":
        if not second_account:
            return self.gateway
        if self.second_gateway is None:
            raise ValueError("Second trading account is not configured")
        return self.second_gateway

    def _policy(self, do_force: bool) -> RetryPolicy:
        return RetryPolicy(max_tries=self.config.max_tries, do_force=do_force)

    @staticmethod
    def _coins(pair: str) -> Tuple[str, str]:
        if "/" in pair:
            coin1, coin2 = pair.split("/", 1)
            return coin1, coin2
        return pair, "quote"

    @staticmethod
    def _account_string(second_account: bool) -> str:
        return " on second account" if second_account else ""

    @staticmethod
    def _caller_string(caller_name: Optional[str]) -> str:
        return f" (run by {caller_name})" if caller_name else ""

    def _count_outcome(self, pair: str, source: str, outcome: CancelOutcome) -> None:
        if self.metrics:
            self.metrics.cancel_outcomes.labels(pair=pair, source=source, outcome=outcome.value).inc()

    def _count_failure(self, pair: str, operation: str) -> None:
        if self.metrics:
            self.metrics.clear_failures.labels(pair=pair, operation=operation).inc()

    # -------------------------------------------------------------------------
    # Local orders
    # -------------------------------------------------------------------------

    async def clear_local(
        self,
        purposes: PurposeSelector,
        pair: Optional[str] = None,
        do_force: bool = False,
        side: Optional[OrderSide] = None,
        attribute_filter: Optional[RecordPredicate] = None,
        caller_name: Optional[str] = None,
        second_account: bool = False,
        orders_string: str = "orders",
    ) -> ClearReport:
        """
        Cancel locally stored, non-processed orders of the given purposes.

        Args:
            purposes: "all" or a non-empty collection of purposes
            pair: Trading pair (config default if None)
            do_force: Retry passes until every order is handled or max_tries
            side: Only orders of this side
            attribute_filter: Extra predicate over records, e.g. price_range()
            caller_name: For logs
            second_account: Work with the secondary trading account
            orders_string: Noun used in report messages

        Returns:
            ClearReport

        Raises:
            ValueError: Empty purposes collection
            StoreError: Store read or write failed
        """
        pair = pair or self.config.default_pair
        purpose_list = normalize_purposes(purposes)
        side = OrderSide(side) if side is not None else None
        gateway = self._gateway_for(second_account)
        account_string = self._account_string(second_account)
        orders_string_for_log = orders_string + account_string

        self._log_event(
            "clear_local_start",
            pair=pair,
            caller=caller_name,
            purposes=ALL_PURPOSES if purpose_list is None else [p.value for p in purpose_list],
            side=side.value if side else None,
            with_filter=attribute_filter is not None,
            do_force=do_force,
        )

        records = await self.repository.find(OrderFilter(
            pair=pair,
            exchange=self.config.exchange,
            is_processed=False,
            purposes=purpose_list,
            side=side,
            is_second_account=second_account,
        ))
        if attribute_filter is not None:
            records = [r for r in records if attribute_filter(r)]

        handled: Set[str] = set()
        cancelled: List[OrderRecord] = []
        only_marked: List[OrderRecord] = []
        totals = {OrderSide.BUY: 0.0, OrderSide.SELL: 0.0}

        async def run_pass(tries: int) -> None:
            for record in records:
                if record.id in handled:
                    continue
                outcome = await gateway.cancel(record.id, record.side, pair)
                self._count_outcome(pair, "local", outcome)

                if outcome is CancelOutcome.CANCELLED:
                    record.mark_cancelled()
                    await self.repository.persist(record)
                    handled.add(record.id)
                    cancelled.append(record)
                    totals[record.side] += record.notional
                    if self.metrics:
                        self.metrics.cancelled_notional.labels(pair=pair, side=record.side.value).inc(record.notional)
                    self._log_event("order_cancelled", pair=pair, order_id=record.id, info=record.describe(), pass_no=tries)
                elif outcome is CancelOutcome.NOT_FOUND:
                    record.mark_closed()
                    await self.repository.persist(record)
                    handled.add(record.id)
                    only_marked.append(record)
                    self._log_event("order_closed_not_found", pair=pair, order_id=record.id, info=record.describe(), pass_no=tries)
                else:
                    log.warning(json.dumps({
                        "event": "order_cancel_deferred",
                        "pair": pair,
                        "order_id": record.id,
                        "pass_no": tries,
                    }))

        passes = await self._policy(do_force).run(run_pass, lambda: len(handled) < len(records))
        if self.metrics:
            self.metrics.reconcile_passes.labels(pair=pair, operation="clear_local").observe(passes)

        total_bids_quote = totals[OrderSide.BUY]
        total_asks_amount = totals[OrderSide.SELL]

        if records:
            coin1, coin2 = self._coins(pair)
            if cancelled:
                log_message = (
                    f"Successfully cancelled {len(cancelled)} of {len(records)} {orders_string_for_log}:"
                    f" {total_bids_quote:.{self.config.coin2_decimals}f} {coin2} bids and"
                    f" {total_asks_amount:.{self.config.coin1_decimals}f} {coin1} asks."
                )
            else:
                log_message = f"No {orders_string_for_log} of total {len(records)} were cancelled."
            if only_marked:
                log_message += f" {len(only_marked)} orders don't exist, marked as closed."
        elif orders_string == "orders":
            log_message = f"No orders{account_string} to cancel with these criteria."
        else:
            log_message = f"No {orders_string_for_log} to cancel."

        self._log_event(
            "clear_local_done",
            pair=pair,
            caller=caller_name,
            total=len(records),
            cancelled=len(cancelled),
            only_marked=len(only_marked),
            passes=passes,
            message=f"Order collector{self._caller_string(caller_name)}: {log_message}",
        )

        return ClearReport(
            success=True,
            total_orders=len(records),
            cleared_orders_count_all=len(handled),
            cleared_orders_count_success=len(cancelled),
            cleared_orders_count_only_marked=len(only_marked),
            log_message=log_message,
            total_bids_quote=total_bids_quote,
            total_asks_amount=total_asks_amount,
            passes=passes,
        )

    # -------------------------------------------------------------------------
    # Unknown orders
    # -------------------------------------------------------------------------

    async def clear_unknown(
        self,
        pair: Optional[str] = None,
        do_force: bool = False,
        side: Optional[OrderSide] = None,
        caller_name: Optional[str] = None,
        second_account: bool = False,
        orders_string: str = "unknown orders",
    ) -> ClearReport:
        """
        Cancel exchange orders that are absent from the local store.

        Local records are refreshed through the order sync first, so orders
        that were filled or vanished do not shield exchange orders with the
        same id. The store is never written here apart from what the refresh
        itself persists.

        total_orders is an estimate: exchange open orders minus live local
        records. It may be inaccurate or even negative. Which orders get
        cancelled is decided by the id difference only.

        Returns:
            ClearReport; success=False with total_orders=None when open
            orders cannot be fetched

        Raises:
            StoreError: Store read failed
        """
        pair = pair or self.config.default_pair
        side = OrderSide(side) if side is not None else None
        gateway = self._gateway_for(second_account)
        account_string = self._account_string(second_account)
        orders_string_for_log = orders_string + account_string
        side_string = f"{side.value}-" if side else ""

        self._log_event(
            "clear_unknown_start",
            pair=pair,
            caller=caller_name,
            side=side.value if side else None,
            do_force=do_force,
        )

        records = await self.repository.find(OrderFilter(
            pair=pair,
            exchange=self.config.exchange,
            is_processed=False,
            side=side,
            is_second_account=second_account,
        ))
        count_before = len(records)
        records = await self.order_sync.refresh(records, pair, gateway)
        count_after = len(records)
        known_ids = {order_id_str(r.id) for r in records}

        try:
            open_orders = await gateway.list_open_orders(pair, side)
        except GatewayError as exc:
            log_message = (
                f"Unable to receive {pair} open orders{account_string} from exchange to close Unknown orders."
                " It seems API request failed. Try again later."
            )
            log.warning(json.dumps({"event": "clear_unknown_failed", "pair": pair, "err": str(exc), "message": log_message}))
            self._count_failure(pair, "clear_unknown")
            return ClearReport(success=False, total_orders=None, log_message=log_message)

        if side is not None:
            open_orders = [o for o in open_orders if o.side == side]

        total_orders = len(open_orders) - count_after
        # The exchange may list an order twice; each id is cancelled once
        unknown: List["ExchangeOpenOrder"] = list({
            order_id_str(o.id): o for o in open_orders if order_id_str(o.id) not in known_ids
        }.values())
        if self.metrics:
            self.metrics.unknown_orders_found.labels(pair=pair).set(len(unknown))

        handled: Set[str] = set()
        cancelled_ids: Set[str] = set()

        async def run_pass(tries: int) -> None:
            for order in unknown:
                if order.id in handled:
                    continue
                outcome = await gateway.cancel(order.id, order.side, pair)
                self._count_outcome(pair, "unknown", outcome)
                if outcome.is_definitive:
                    handled.add(order.id)
                    if outcome is CancelOutcome.CANCELLED:
                        cancelled_ids.add(order.id)
                    self._log_event(
                        "unknown_order_cleared",
                        pair=pair,
                        order_id=order.id,
                        side=order.side.value,
                        price=order.price,
                        outcome=outcome.value,
                        pass_no=tries,
                    )
                else:
                    log.warning(json.dumps({
                        "event": "unknown_order_cancel_deferred",
                        "pair": pair,
                        "order_id": order.id,
                        "pass_no": tries,
                    }))

        passes = await self._policy(do_force).run(run_pass, lambda: len(handled) < len(unknown))
        if self.metrics:
            self.metrics.reconcile_passes.labels(pair=pair, operation="clear_unknown").observe(passes)

        summary = (
            f"Filtered {count_before} {side_string}orders in the local store, {count_after} left after update."
            f" The exchange replied with {len(open_orders)} {side_string}orders,"
            f" unknown orders to clear {len(open_orders)}-{count_after}={total_orders}."
        )
        if total_orders > 0:
            if cancelled_ids:
                log_message = f"Successfully cancelled {len(cancelled_ids)} of {total_orders} {orders_string_for_log}."
            else:
                log_message = f"No {orders_string_for_log} of total {total_orders} were cancelled."
        else:
            log_message = f"No {orders_string_for_log} found."

        self._log_event(
            "clear_unknown_done",
            pair=pair,
            caller=caller_name,
            unknown=len(unknown),
            handled=len(handled),
            cancelled=len(cancelled_ids),
            passes=passes,
            message=f"Order collector{self._caller_string(caller_name)}: {summary} {log_message}",
        )

        return ClearReport(
            success=True,
            total_orders=total_orders,
            cleared_orders_count_all=len(handled),
            cleared_orders_count_success=len(cancelled_ids),
            cleared_orders_count_only_marked=len(handled) - len(cancelled_ids),
            log_message=log_message,
            passes=passes,
        )

    # -------------------------------------------------------------------------
    # Both
    # -------------------------------------------------------------------------

    async def clear_all(
        self,
        pair: Optional[str] = None,
        do_force: bool = False,
        side: Optional[OrderSide] = None,
        caller_name: Optional[str] = None,
        second_account: bool = False,
        orders_string: str = "orders",
    ) -> ClearAllReport:
        """
        Cancel every local order of any purpose, then every unknown order.

        Store and gateway failures are reported, not raised.

        Returns:
            ClearAllReport with totals summed over both steps
        """
        pair = pair or self.config.default_pair
        side = OrderSide(side) if side is not None else None
        account_string = self._account_string(second_account)
        orders_string_for_log = orders_string + account_string

        self._log_event(
            "clear_all_start",
            pair=pair,
            caller=caller_name,
            side=side.value if side else None,
            do_force=do_force,
        )

        try:
            local = await self.clear_local(
                ALL_PURPOSES, pair, do_force, side, None, caller_name, second_account,
            )
        except (OrderCollectorError, ValueError) as exc:
            log_message = f"Failed to clear locally stored orders{account_string}. Try again later."
            self._report_failure(pair, "clear_local", exc, log_message)
            return ClearAllReport(success=False, total_orders=None, log_message=log_message)

        try:
            unknown = await self.clear_unknown(pair, do_force, side, caller_name, second_account)
        except (OrderCollectorError, ValueError) as exc:
            unknown = ClearReport(success=False, total_orders=None, log_message=str(exc))
            self._report_failure(pair, "clear_unknown", exc, unknown.log_message)

        if not unknown.success or not is_positive_or_zero_number(unknown.total_orders):
            log_message = (
                f"Failed to clear orders{account_string} received from exchange."
                f" Locally stored orders may be closed: {local.log_message} Error: {unknown.log_message}"
            )
            log.warning(json.dumps({"event": "clear_all_failed", "pair": pair, "message": log_message}))
            self._count_failure(pair, "clear_all")
            return ClearAllReport(
                success=False,
                total_orders=None,
                cleared_orders_count_all=local.cleared_orders_count_all,
                cleared_orders_count_success=local.cleared_orders_count_success,
                cleared_orders_count_only_marked=local.cleared_orders_count_only_marked,
                log_message=log_message,
                total_bids_quote=local.total_bids_quote,
                total_asks_amount=local.total_asks_amount,
                passes=local.passes,
                total_local_orders=local.total_orders or 0,
                cleared_local_orders=local.cleared_orders_count_all,
            )

        total_orders = local.total_orders + unknown.total_orders
        cleared_orders = local.cleared_orders_count_all + unknown.cleared_orders_count_all

        if total_orders:
            if cleared_orders:
                log_message = (
                    f"Successfully closed {cleared_orders} of {total_orders} {orders_string_for_log}:"
                    f" {local.cleared_orders_count_all} of {local.total_orders} locally stored,"
                    f" and {unknown.cleared_orders_count_all} of {unknown.total_orders} received from exchange."
                )
            else:
                log_message = f"No {orders_string_for_log} of total {total_orders} were cancelled."
        else:
            log_message = f"No {orders_string_for_log} to cancel."

        self._log_event(
            "clear_all_done",
            pair=pair,
            caller=caller_name,
            total=total_orders,
            cleared=cleared_orders,
            message=f"Order collector{self._caller_string(caller_name)}: {log_message}",
        )

        return ClearAllReport(
            success=True,
            total_orders=total_orders,
            cleared_orders_count_all=cleared_orders,
            cleared_orders_count_success=local.cleared_orders_count_success + unknown.cleared_orders_count_success,
            cleared_orders_count_only_marked=(
                local.cleared_orders_count_only_marked + unknown.cleared_orders_count_only_marked
            ),
            log_message=log_message,
            total_bids_quote=local.total_bids_quote,
            total_asks_amount=local.total_asks_amount,
            passes=max(local.passes, unknown.passes),
            total_local_orders=local.total_orders,
            cleared_local_orders=local.cleared_orders_count_all,
            total_unknown_orders=unknown.total_orders,
            cleared_unknown_orders=unknown.cleared_orders_count_all,
        )

    def _report_failure(self, pair: str, operation: str, exc: Exception, log_message: str) -> None:
        log.error(json.dumps({
            "event": f"{operation}_error",
            "pair": pair,
            "err": str(exc),
            "err_type": type(exc).__name__,
            "message": log_message,
        }))
        self._count_failure(pair, operation)
        if self.metrics and isinstance(exc, StoreError):
            self.metrics.store_errors.labels(operation=operation).inc()

    # -------------------------------------------------------------------------
    # Single order and strategy helpers
    # -------------------------------------------------------------------------

    async def clear_order_by_id(
        self,
        order: Union[str, int, OrderRecord],
        pair: Optional[str] = None,
        side: Optional[OrderSide] = None,
        reason: Optional[str] = None,
        reason_flag: Optional[str] = None,
        caller_name: Optional[str] = None,
        second_account: bool = False,
    ) -> CancelByIdResult:
        """
        Cancel one order by id or by record.

        If the order is in the store it is marked closed+processed on a
        definitive outcome (and cancelled on CANCELLED). reason_flag, one of
        CLOSE_REASON_FLAGS such as "is_expired", is set as well.

        Raises:
            StoreError: Store read or write failed
        """
        pair = pair or self.config.default_pair
        gateway = self._gateway_for(second_account)

        record: Optional[OrderRecord]
        if isinstance(order, OrderRecord):
            record = order
            pair = record.pair
        else:
            order_id = order_id_str(order)
            candidates = await self.repository.find(OrderFilter(
                pair=pair,
                exchange=self.config.exchange,
                is_second_account=second_account,
            ))
            record = next((r for r in candidates if r.id == order_id), None)

        if record is not None:
            order_id = record.id
            side = record.side
            was_processed = record.is_processed
        else:
            order_id = order_id_str(order)
            was_processed = False
        if side is None:
            raise ValueError(f"side is required to cancel order {order_id} missing from the store")
        side = OrderSide(side)

        outcome = await gateway.cancel(order_id, side, pair)
        self._count_outcome(pair, "by_id", outcome)

        if record is not None and outcome.is_definitive:
            if reason_flag:
                record.close_with_reason(reason_flag, reason)
            elif reason:
                record.close_reason = reason
            if outcome is CancelOutcome.CANCELLED:
                record.mark_cancelled()
            else:
                record.mark_closed()
            await self.repository.persist(record)

        event_kwargs = dict(
            pair=pair,
            caller=caller_name,
            order_id=order_id,
            side=side.value,
            outcome=outcome.value,
            reason=reason,
            in_store=record is not None,
            was_processed=was_processed,
        )
        if outcome.is_definitive:
            self._log_event("order_cleared_by_id", **event_kwargs)
        else:
            log.warning(json.dumps({"event": "order_clear_by_id_failed", **event_kwargs}, default=str))

        return CancelByIdResult(order_id=order_id, outcome=outcome, record=record)

    async def clear_buy_orders_to_free_quote(
        self,
        cancel_all: bool,
        cancel_unknown: bool,
        caller_name: str,
        reason: str,
        pair: Optional[str] = None,
        second_account: bool = False,
    ) -> List[ClearReport]:
        """
        Cancel buy orders to release quote coin.

        cancel_all cancels every buy order, known or not. Otherwise buy orders
        of every purpose except manual are cancelled, plus unknown ones when
        cancel_unknown is set.
        """
        pair = pair or self.config.default_pair
        caller = f"Order collector-{caller_name}"
        self._log_event(
            "free_quote_start",
            pair=pair,
            caller=caller_name,
            reason=reason,
            scope="all" if cancel_all else ("all except man" if cancel_unknown else "all except man and unk"),
        )

        if cancel_all:
            return [await self.clear_all(pair, False, OrderSide.BUY, caller, second_account)]

        purposes = [p for p in OrderPurpose if p is not OrderPurpose.MANUAL]
        reports: List[ClearReport] = [
            await self.clear_local(purposes, pair, False, OrderSide.BUY, None, caller, second_account),
        ]
        if cancel_unknown:
            reports.append(await self.clear_unknown(pair, False, OrderSide.BUY, caller, second_account))
        return reports

    async def clear_price_step_orders(
        self,
        side: OrderSide,
        step_price: float,
        caller_name: str,
        reason: str,
        pair: Optional[str] = None,
    ) -> ClearReport:
        """
        Cancel local orders the bot is about to cross.

        When buying at step_price, sells priced at or below it are cancelled.
        When selling, buys priced at or above it.
        """
        pair = pair or self.config.default_pair
        side = OrderSide(side)
        if side is OrderSide.BUY:
            attribute_filter = price_range(high=step_price)
        else:
            attribute_filter = price_range(low=step_price)

        self._log_event(
            "price_step_clear_start",
            pair=pair,
            caller=caller_name,
            side_to_clear=side.opposite.value,
            step_price=step_price,
            reason=reason,
        )
        return await self.clear_local(
            ALL_PURPOSES, pair, False, side.opposite, attribute_filter, f"Order collector-{caller_name}",
        )
