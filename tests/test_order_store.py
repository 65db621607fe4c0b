"""
Tests for the order stores.
"""
import json

import pytest

from mmbot.core.errors import StoreError
from mmbot.orders.order_record import OrderPurpose, OrderSide
from mmbot.state.order_store import InMemoryOrderRepository, JsonOrderRepository, OrderFilter

from fakes import EXCHANGE, PAIR, make_record


class TestOrderFilter:

    def test_fields_combine(self):
        record = make_record("1", purpose="mm", side="buy")
        assert OrderFilter(pair=PAIR, purposes=[OrderPurpose.MARKET_MAKING], side=OrderSide.BUY).matches(record)
        assert not OrderFilter(purposes=[OrderPurpose.MARKET_MAKING], side=OrderSide.SELL).matches(record)
        assert not OrderFilter(purposes=[OrderPurpose.LIQUIDITY], side=OrderSide.BUY).matches(record)

    def test_none_means_any(self):
        assert OrderFilter().matches(make_record("1", is_second_account=True))

    def test_account_scope(self):
        assert not OrderFilter(is_second_account=False).matches(make_record("1", is_second_account=True))


class TestInMemoryRepository:

    @pytest.mark.asyncio
    async def test_find_returns_detached_copies(self):
        repository = InMemoryOrderRepository([make_record("1")])
        (record,) = await repository.find(OrderFilter())
        record.mark_cancelled()
        assert repository.get(EXCHANGE, PAIR, "1").is_processed is False
        await repository.persist(record)
        assert repository.get(EXCHANGE, PAIR, "1").is_processed is True

    @pytest.mark.asyncio
    async def test_keeps_insertion_order(self):
        repository = InMemoryOrderRepository([make_record(str(i)) for i in range(5)])
        found = await repository.find(OrderFilter(is_processed=False))
        assert [r.id for r in found] == ["0", "1", "2", "3", "4"]


class TestJsonRepository:

    @pytest.mark.asyncio
    async def test_persist_and_reload(self, tmp_path):
        repository = JsonOrderRepository(EXCHANGE, str(tmp_path))
        await repository.persist(make_record("1", side="sell"))
        await repository.persist(make_record("2"))

        reloaded = JsonOrderRepository(EXCHANGE, str(tmp_path))
        found = await reloaded.find(OrderFilter(side=OrderSide.SELL))

        assert [r.id for r in found] == ["1"]
        assert (tmp_path / f"orders_{EXCHANGE}.json").exists()
        assert not (tmp_path / f"orders_{EXCHANGE}.tmp").exists()

    @pytest.mark.asyncio
    async def test_persist_overwrites_same_order(self, tmp_path):
        repository = JsonOrderRepository(EXCHANGE, str(tmp_path))
        record = make_record("1")
        await repository.persist(record)
        record.mark_cancelled()
        await repository.persist(record)

        rows = json.loads((tmp_path / f"orders_{EXCHANGE}.json").read_text())
        assert len(rows) == 1
        assert next(iter(rows.values()))["is_cancelled"] is True

    @pytest.mark.asyncio
    async def test_corrupt_file_raises_store_error(self, tmp_path):
        (tmp_path / f"orders_{EXCHANGE}.json").write_text("{not json")
        repository = JsonOrderRepository(EXCHANGE, str(tmp_path))

        with pytest.raises(StoreError):
            await repository.find(OrderFilter())

    @pytest.mark.asyncio
    async def test_save_failure_rolls_back_row(self, tmp_path, monkeypatch):
        repository = JsonOrderRepository(EXCHANGE, str(tmp_path))
        await repository.persist(make_record("1"))

        def fail(rows):
            raise OSError("disk full")

        monkeypatch.setattr(repository, "_save_sync", fail)
        with pytest.raises(StoreError):
            await repository.persist(make_record("2"))

        found = await repository.find(OrderFilter())
        assert [r.id for r in found] == ["1"]
