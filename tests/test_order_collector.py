"""
Tests for OrderCollector: clear_local, clear_unknown, clear_all.
"""
import pytest

from mmbot.core.errors import StoreError
from mmbot.core.retry import MAX_TRIES
from mmbot.execution.gateway import CancelOutcome
from mmbot.execution.order_collector import ClearAllReport, ClearReport
from mmbot.execution.order_sync import OpenOrdersSync
from mmbot.monitoring.metrics_rich import CollectorMetrics
from mmbot.orders.order_record import OrderSide
from mmbot.state.order_store import InMemoryOrderRepository

from fakes import (
    EXCHANGE,
    PAIR,
    FailingRepository,
    FakeGateway,
    ScriptedSync,
    make_collector,
    make_record,
    open_order,
)

NF = CancelOutcome.NOT_FOUND
OK = CancelOutcome.CANCELLED
TE = CancelOutcome.TRANSIENT_ERROR


class TestClearLocal:
    """Local order cancellation."""

    @pytest.mark.asyncio
    async def test_cancels_only_selected_purposes(self, repository):
        """mm-orders are cancelled, the ob-order stays live."""
        gateway = FakeGateway()
        collector = make_collector(repository, gateway)

        report = await collector.clear_local(["mm"], PAIR, False)

        assert isinstance(report, ClearReport)
        assert report.success
        assert report.total_orders == 2
        assert report.cleared_orders_count_success == 2
        assert report.cleared_orders_count_all == 2
        assert report.cleared_orders_count_only_marked == 0
        assert sorted(gateway.cancel_calls) == ["r1", "r3"]
        assert repository.get(EXCHANGE, PAIR, "r2").is_processed is False
        for order_id in ("r1", "r3"):
            record = repository.get(EXCHANGE, PAIR, order_id)
            assert record.is_cancelled and record.is_closed and record.is_processed

    @pytest.mark.asyncio
    async def test_report_message_and_notional(self, repository):
        """Bids are summed in quote, asks in base."""
        collector = make_collector(repository, FakeGateway(), config={"coin1_decimals": 0})

        report = await collector.clear_local(["mm"], PAIR)

        assert report.total_bids_quote == pytest.approx(10.0)
        assert report.total_asks_amount == pytest.approx(300.0)
        assert report.log_message == "Successfully cancelled 2 of 2 orders: 10.00 USDT bids and 300 ADM asks."

    @pytest.mark.asyncio
    async def test_not_found_is_closed_but_not_cancelled(self, repository):
        """NOT_FOUND marks the record closed and counts it as only marked."""
        gateway = FakeGateway(outcomes={"r1": [NF]})
        collector = make_collector(repository, gateway)

        report = await collector.clear_local(["mm"], PAIR)

        r1 = repository.get(EXCHANGE, PAIR, "r1")
        assert r1.is_processed is True
        assert r1.is_closed is True
        assert r1.is_cancelled is False
        assert report.cleared_orders_count_only_marked == 1
        assert report.cleared_orders_count_success == 1
        assert report.cleared_orders_count_all == 2
        assert report.total_bids_quote == 0.0
        assert report.log_message.endswith(" 1 orders don't exist, marked as closed.")

    @pytest.mark.asyncio
    async def test_transient_error_leaves_record_untouched(self, repository):
        gateway = FakeGateway(outcomes={"r1": [TE]})
        collector = make_collector(repository, gateway)

        report = await collector.clear_local(["mm"], PAIR)

        assert repository.get(EXCHANGE, PAIR, "r1").is_processed is False
        assert report.cleared_orders_count_all == 1
        assert report.passes == 1

    @pytest.mark.asyncio
    async def test_all_purposes(self, repository):
        collector = make_collector(repository, FakeGateway())

        report = await collector.clear_local("all", PAIR)

        assert report.total_orders == 3
        assert all(r.is_processed for r in repository.all())

    @pytest.mark.asyncio
    async def test_empty_purposes_rejected(self, repository):
        collector = make_collector(repository, FakeGateway())

        with pytest.raises(ValueError):
            await collector.clear_local([], PAIR)

    @pytest.mark.asyncio
    async def test_side_and_purpose_filters_combine(self, repository):
        """Only mm sell-orders are selected."""
        gateway = FakeGateway()
        collector = make_collector(repository, gateway)

        report = await collector.clear_local(["mm"], PAIR, side=OrderSide.SELL)

        assert report.total_orders == 1
        assert gateway.cancel_calls == ["r3"]

    @pytest.mark.asyncio
    async def test_pair_defaults_to_config(self, repository):
        collector = make_collector(repository, FakeGateway())

        report = await collector.clear_local(["mm"])

        assert report.total_orders == 2

    @pytest.mark.asyncio
    async def test_nothing_to_cancel(self):
        collector = make_collector(InMemoryOrderRepository(), FakeGateway())

        report = await collector.clear_local(["mm"], PAIR)

        assert report.success
        assert report.total_orders == 0
        assert report.log_message == "No orders to cancel with these criteria."

    @pytest.mark.asyncio
    async def test_no_order_cancelled_message(self, repository):
        collector = make_collector(repository, FakeGateway(default_outcome=TE))

        report = await collector.clear_local(["mm"], PAIR)

        assert report.log_message == "No orders of total 2 were cancelled."

    @pytest.mark.asyncio
    async def test_second_invocation_does_not_double_count(self, repository):
        """Terminal records are never selected again."""
        gateway = FakeGateway()
        collector = make_collector(repository, gateway)

        first = await collector.clear_local(["mm"], PAIR)
        second = await collector.clear_local(["mm"], PAIR)

        assert first.cleared_orders_count_success == 2
        assert second.total_orders == 0
        assert second.cleared_orders_count_success == 0
        assert len(gateway.cancel_calls) == 2

    @pytest.mark.asyncio
    async def test_other_account_and_exchange_ignored(self, repository):
        await repository.persist(make_record("x1", is_second_account=True))
        await repository.persist(make_record("x2", exchange="otherex"))
        gateway = FakeGateway()
        collector = make_collector(repository, gateway)

        await collector.clear_local(["mm"], PAIR)

        assert "x1" not in gateway.cancel_calls
        assert "x2" not in gateway.cancel_calls

    @pytest.mark.asyncio
    async def test_second_account_requires_gateway(self, repository):
        collector = make_collector(repository, FakeGateway())

        with pytest.raises(ValueError):
            await collector.clear_local(["mm"], PAIR, second_account=True)

    @pytest.mark.asyncio
    async def test_second_account_uses_second_gateway(self, repository):
        await repository.persist(make_record("s1", is_second_account=True))
        main_gateway = FakeGateway()
        second_gateway = FakeGateway(is_second_account=True)
        collector = make_collector(repository, main_gateway, second_gateway=second_gateway)

        report = await collector.clear_local(["mm"], PAIR, second_account=True)

        assert second_gateway.cancel_calls == ["s1"]
        assert main_gateway.cancel_calls == []
        assert report.log_message.startswith("Successfully cancelled 1 of 1 orders on second account:")


class TestClearLocalRetry:
    """do_force and the pass budget."""

    @pytest.mark.asyncio
    async def test_force_retries_until_all_handled(self, repository):
        """Every matching record ends terminal when cancels eventually succeed."""
        gateway = FakeGateway(outcomes={"r1": [TE, TE, OK], "r3": [TE, NF]})
        collector = make_collector(repository, gateway)

        report = await collector.clear_local(["mm"], PAIR, do_force=True)

        assert report.passes == 3
        assert repository.get(EXCHANGE, PAIR, "r1").is_processed
        assert repository.get(EXCHANGE, PAIR, "r3").is_processed
        assert report.cleared_orders_count_success == 1
        assert report.cleared_orders_count_only_marked == 1

    @pytest.mark.asyncio
    async def test_handled_records_are_not_cancelled_again(self, repository):
        gateway = FakeGateway(outcomes={"r1": [OK], "r3": [TE, OK]})
        collector = make_collector(repository, gateway)

        await collector.clear_local(["mm"], PAIR, do_force=True)

        assert gateway.cancel_calls.count("r1") == 1
        assert gateway.cancel_calls.count("r3") == 2

    @pytest.mark.asyncio
    async def test_bounded_retry_stops_after_max_tries(self, repository):
        """Always-transient cancels run exactly MAX_TRIES passes."""
        gateway = FakeGateway(default_outcome=TE)
        collector = make_collector(repository, gateway)

        report = await collector.clear_local(["mm"], PAIR, do_force=True)

        assert report.passes == MAX_TRIES
        assert len(gateway.cancel_calls) == 2 * MAX_TRIES
        assert report.cleared_orders_count_success == 0
        assert not any(r.is_processed for r in repository.all())

    @pytest.mark.asyncio
    async def test_without_force_one_pass(self, repository):
        gateway = FakeGateway(default_outcome=TE)
        collector = make_collector(repository, gateway)

        report = await collector.clear_local(["mm"], PAIR, do_force=False)

        assert report.passes == 1
        assert len(gateway.cancel_calls) == 2

    @pytest.mark.asyncio
    async def test_max_tries_from_config(self, repository):
        collector = make_collector(repository, FakeGateway(default_outcome=TE), config={"max_tries": 3})

        report = await collector.clear_local(["mm"], PAIR, do_force=True)

        assert report.passes == 3


class TestClearLocalStoreFailures:
    """Store errors abort the invocation."""

    @pytest.mark.asyncio
    async def test_find_failure_propagates(self, scenario_records):
        gateway = FakeGateway()
        collector = make_collector(FailingRepository(scenario_records, fail_find=True), gateway)

        with pytest.raises(StoreError):
            await collector.clear_local(["mm"], PAIR)
        assert gateway.cancel_calls == []

    @pytest.mark.asyncio
    async def test_persist_failure_keeps_earlier_writes(self, scenario_records):
        """Records persisted before the failure stay mutated."""
        repository = FailingRepository(scenario_records, fail_persist_after=1)
        collector = make_collector(repository, FakeGateway())

        with pytest.raises(StoreError):
            await collector.clear_local("all", PAIR)

        processed = [r for r in repository.all() if r.is_processed]
        assert len(processed) == 1


class TestClearUnknown:
    """Exchange orders missing from the store."""

    @pytest.fixture
    def known_repository(self):
        return InMemoryOrderRepository([
            make_record("101"),
            make_record("102", side="sell"),
            make_record("103"),
        ])

    @pytest.mark.asyncio
    async def test_cancels_set_difference(self, known_repository):
        gateway = FakeGateway(open_orders=[open_order(i) for i in (101, 102, 103, 104, 105)])
        collector = make_collector(known_repository, gateway)

        report = await collector.clear_unknown(PAIR)

        assert report.success
        assert report.total_orders == 2
        assert report.cleared_orders_count_success == 2
        assert sorted(gateway.cancel_calls) == ["104", "105"]
        assert report.log_message == "Successfully cancelled 2 of 2 unknown orders."

    @pytest.mark.asyncio
    async def test_never_touches_known_or_store(self, known_repository):
        gateway = FakeGateway(open_orders=[open_order(i) for i in (101, 102, 103, 104)])
        collector = make_collector(known_repository, gateway)
        before = [r.to_dict() for r in known_repository.all()]

        await collector.clear_unknown(PAIR, do_force=True)

        assert not {"101", "102", "103"} & set(gateway.cancel_calls)
        assert [r.to_dict() for r in known_repository.all()] == before

    @pytest.mark.asyncio
    async def test_not_found_counts_as_cleared(self, known_repository):
        gateway = FakeGateway(
            outcomes={"104": [NF], "105": [TE]},
            open_orders=[open_order(i) for i in (101, 102, 103, 104, 105)],
        )
        collector = make_collector(known_repository, gateway)

        report = await collector.clear_unknown(PAIR)

        assert report.cleared_orders_count_all == 1
        assert report.cleared_orders_count_success == 0
        assert report.cleared_orders_count_only_marked == 1
        assert report.log_message == "No unknown orders of total 2 were cancelled."

    @pytest.mark.asyncio
    async def test_list_failure_returns_failure_report(self, known_repository):
        gateway = FakeGateway(list_error=True)
        collector = make_collector(known_repository, gateway)

        report = await collector.clear_unknown(PAIR)

        assert report.success is False
        assert report.total_orders is None
        assert report.log_message.startswith(f"Unable to receive {PAIR} open orders from exchange")
        assert gateway.cancel_calls == []

    @pytest.mark.asyncio
    async def test_side_filter(self, known_repository):
        gateway = FakeGateway(open_orders=[
            open_order(201, side="buy"),
            open_order(202, side="sell"),
        ])
        collector = make_collector(known_repository, gateway)

        report = await collector.clear_unknown(PAIR, side=OrderSide.SELL)

        assert gateway.cancel_calls == ["202"]
        # 1 sell on the exchange, 1 sell in the store
        assert report.total_orders == 0
        assert report.log_message == "No unknown orders found."

    @pytest.mark.asyncio
    async def test_estimate_may_be_negative(self, known_repository):
        """The count is an estimate, cancellation follows the id difference."""
        gateway = FakeGateway(open_orders=[open_order(999)])
        collector = make_collector(known_repository, gateway)

        report = await collector.clear_unknown(PAIR)

        assert report.total_orders == 1 - 3
        assert gateway.cancel_calls == ["999"]
        assert report.cleared_orders_count_success == 1

    @pytest.mark.asyncio
    async def test_force_bounded(self, known_repository):
        gateway = FakeGateway(default_outcome=TE, open_orders=[open_order(500)])
        collector = make_collector(known_repository, gateway)

        report = await collector.clear_unknown(PAIR, do_force=True)

        assert report.passes == MAX_TRIES
        assert gateway.cancel_calls == ["500"] * MAX_TRIES

    @pytest.mark.asyncio
    async def test_refreshed_away_record_no_longer_shields(self, known_repository):
        """A record closed by the refresh leaves its exchange order unknown."""
        sync = ScriptedSync(known_repository, gone_ids={"103"})
        gateway = FakeGateway(open_orders=[open_order(i) for i in (101, 102, 103, 104)])
        collector = make_collector(known_repository, gateway, order_sync=sync)

        report = await collector.clear_unknown(PAIR)

        assert sorted(gateway.cancel_calls) == ["103", "104"]
        # 4 open on the exchange, 2 local records left after the refresh
        assert report.total_orders == 4 - 2
        assert report.cleared_orders_count_success == 2
        assert sync.gateways == [gateway]
        assert known_repository.get(EXCHANGE, PAIR, "103").is_not_found

    @pytest.mark.asyncio
    async def test_open_orders_sync_closes_gone_record(self, known_repository):
        gateway = FakeGateway(open_orders=[open_order(101), open_order(102, side="sell"), open_order(104)])
        sync = OpenOrdersSync(gateway, known_repository, distrust_empty=False)
        collector = make_collector(known_repository, gateway, order_sync=sync)

        report = await collector.clear_unknown(PAIR)

        assert gateway.cancel_calls == ["104"]
        assert report.total_orders == 3 - 2
        assert known_repository.get(EXCHANGE, PAIR, "103").is_not_found
        assert not known_repository.get(EXCHANGE, PAIR, "101").is_processed

    @pytest.mark.asyncio
    async def test_second_account_refreshed_with_its_gateway(self):
        repository = InMemoryOrderRepository([
            make_record("m1"),
            make_record("s1", is_second_account=True),
        ])
        main_gateway = FakeGateway(open_orders=[open_order("m1")])
        second_gateway = FakeGateway(open_orders=[open_order("s1"), open_order("s2")], is_second_account=True)
        sync = OpenOrdersSync(main_gateway, repository)
        collector = make_collector(repository, main_gateway, order_sync=sync, second_gateway=second_gateway)

        report = await collector.clear_unknown(PAIR, second_account=True)

        assert second_gateway.cancel_calls == ["s2"]
        assert main_gateway.cancel_calls == []
        assert main_gateway.list_calls == 0
        assert report.total_orders == 2 - 1
        tracked = repository.get(EXCHANGE, PAIR, "s1")
        assert not tracked.is_processed and not tracked.is_not_found

    @pytest.mark.asyncio
    async def test_duplicate_exchange_ids_cancelled_once(self, known_repository):
        gateway = FakeGateway(open_orders=[open_order(500), open_order(500)])
        collector = make_collector(known_repository, gateway)

        report = await collector.clear_unknown(PAIR, do_force=True)

        assert gateway.cancel_calls == ["500"]
        assert report.passes == 1
        assert report.cleared_orders_count_success == 1

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self):
        collector = make_collector(FailingRepository(fail_find=True), FakeGateway())

        with pytest.raises(StoreError):
            await collector.clear_unknown(PAIR)


class TestClearAll:
    """Local then unknown, one report."""

    @pytest.mark.asyncio
    async def test_sums_sub_reports(self):
        repository = InMemoryOrderRepository([make_record("1"), make_record("2", side="sell")])
        gateway = FakeGateway(
            outcomes={"4": [TE]},
            open_orders=[open_order(3), open_order(4)],
        )
        collector = make_collector(repository, gateway)

        report = await collector.clear_all(PAIR)

        assert isinstance(report, ClearAllReport)
        assert report.success
        assert report.total_orders == 4
        assert report.cleared_orders_count_all == 3
        assert report.total_local_orders == 2
        assert report.cleared_local_orders == 2
        assert report.total_unknown_orders == 2
        assert report.cleared_unknown_orders == 1
        assert report.log_message == (
            "Successfully closed 3 of 4 orders: 2 of 2 locally stored, and 1 of 2 received from exchange."
        )

    @pytest.mark.asyncio
    async def test_local_failure_skips_unknown(self, scenario_records):
        gateway = FakeGateway(open_orders=[open_order(7)])
        collector = make_collector(FailingRepository(scenario_records, fail_find=True), gateway)

        report = await collector.clear_all(PAIR)

        assert report.success is False
        assert report.log_message == "Failed to clear locally stored orders. Try again later."
        assert gateway.list_calls == 0
        assert gateway.cancel_calls == []

    @pytest.mark.asyncio
    async def test_unknown_failure_reports_local_work(self, repository):
        gateway = FakeGateway(list_error=True)
        collector = make_collector(repository, gateway)

        report = await collector.clear_all(PAIR)

        assert report.success is False
        assert report.total_orders is None
        assert report.cleared_local_orders == 3
        assert "Locally stored orders may be closed: Successfully cancelled 3 of 3 orders" in report.log_message
        assert all(r.is_processed for r in repository.all())

    @pytest.mark.asyncio
    async def test_negative_estimate_is_failure(self, repository):
        """Local orders stuck on transient errors outnumber exchange orders."""
        gateway = FakeGateway(default_outcome=TE, open_orders=[open_order("r1")])
        collector = make_collector(repository, gateway)

        report = await collector.clear_all(PAIR)

        assert report.success is False
        assert "No orders of total 3 were cancelled." in report.log_message

    @pytest.mark.asyncio
    async def test_nothing_to_cancel(self):
        collector = make_collector(InMemoryOrderRepository(), FakeGateway())

        report = await collector.clear_all(PAIR)

        assert report.success
        assert report.total_orders == 0
        assert report.log_message == "No orders to cancel."

    @pytest.mark.asyncio
    async def test_force_applies_to_both_steps(self):
        repository = InMemoryOrderRepository([make_record("1")])
        gateway = FakeGateway(
            outcomes={"1": [TE, OK], "9": [TE, TE, OK]},
            open_orders=[open_order(9)],
        )
        collector = make_collector(repository, gateway)

        report = await collector.clear_all(PAIR, do_force=True)

        assert report.success
        assert report.cleared_orders_count_success == 2
        assert report.passes == 3


class TestCollectorObservability:

    @pytest.mark.asyncio
    async def test_metrics_count_outcomes(self, repository):
        metrics = CollectorMetrics()
        gateway = FakeGateway(outcomes={"r1": [NF]})
        collector = make_collector(repository, gateway, metrics=metrics)

        await collector.clear_local(["mm"], PAIR)

        sample = metrics.registry.get_sample_value
        labels = {"pair": PAIR, "source": "local"}
        assert sample("order_cancel_outcomes_total", {**labels, "outcome": "cancelled"}) == 1
        assert sample("order_cancel_outcomes_total", {**labels, "outcome": "not_found"}) == 1
        assert sample("order_cancelled_notional_total", {"pair": PAIR, "side": "sell"}) == 300.0

    @pytest.mark.asyncio
    async def test_log_event_callback(self, repository):
        events = []
        collector = make_collector(
            repository,
            FakeGateway(),
            config={"log_event_callback": lambda event, **kw: events.append((event, kw))},
        )

        await collector.clear_local(["mm"], PAIR, caller_name="test")

        names = [e for e, _ in events]
        assert names[0] == "clear_local_start"
        assert names[-1] == "clear_local_done"
        assert names.count("order_cancelled") == 2
        assert events[-1][1]["message"].startswith("Order collector (run by test): Successfully cancelled")
