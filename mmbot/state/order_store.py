"""
Order store: persistence for OrderRecord.

The collector decides lifecycle transitions; the store only keeps records
durable. `find` returns detached copies, so a mutated record is not stored
until `persist` is awaited.

Implementations:
    InMemoryOrderRepository: process-local, used in tests and paper runs
    JsonOrderRepository: one JSON file per exchange, atomic tmp+replace writes,
        file IO in an executor, writes serialised with an asyncio.Lock
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from mmbot.core.errors import StoreError
from mmbot.orders.order_record import OrderPurpose, OrderRecord, OrderSide

log = logging.getLogger("mmbot")


@dataclass
class OrderFilter:
    """
    Selection criteria, all AND-combined. None means "any".
    """
    pair: Optional[str] = None
    exchange: Optional[str] = None
    is_processed: Optional[bool] = None
    purposes: Optional[Sequence[OrderPurpose]] = None
    side: Optional[OrderSide] = None
    is_second_account: Optional[bool] = None
    is_executed: Optional[bool] = None
    is_cancelled: Optional[bool] = None

    def matches(self, record: OrderRecord) -> bool:
        if self.pair is not None and record.pair != self.pair:
            return False
        if self.exchange is not None and record.exchange != self.exchange:
            return False
        if self.is_processed is not None and record.is_processed != self.is_processed:
            return False
        if self.purposes is not None and record.purpose not in self.purposes:
            return False
        if self.side is not None and record.side != self.side:
            return False
        if self.is_second_account is not None and record.is_second_account != self.is_second_account:
            return False
        if self.is_executed is not None and record.is_executed != self.is_executed:
            return False
        if self.is_cancelled is not None and record.is_cancelled != self.is_cancelled:
            return False
        return True


class OrderRepository(Protocol):
    """Store contract consumed by the collector."""

    async def find(self, order_filter: OrderFilter) -> List[OrderRecord]:
        ...

    async def persist(self, record: OrderRecord) -> None:
        ...


class InMemoryOrderRepository:
    """Insertion-ordered in-memory store."""

    def __init__(self, records: Optional[Sequence[OrderRecord]] = None) -> None:
        self._rows: Dict[str, Dict[str, Any]] = {}
        for record in records or ():
            self._rows[self._key(record)] = record.to_dict()

    @staticmethod
    def _key(record: OrderRecord) -> str:
        return f"{record.exchange}:{record.pair}:{record.id}"

    async def find(self, order_filter: OrderFilter) -> List[OrderRecord]:
        records = (OrderRecord.from_dict(row) for row in self._rows.values())
        return [r for r in records if order_filter.matches(r)]

    async def persist(self, record: OrderRecord) -> None:
        self._rows[self._key(record)] = record.to_dict()

    def get(self, exchange: str, pair: str, order_id: str) -> Optional[OrderRecord]:
        row = self._rows.get(f"{exchange}:{pair}:{order_id}")
        return OrderRecord.from_dict(row) if row is not None else None

    def all(self) -> List[OrderRecord]:
        return [OrderRecord.from_dict(row) for row in self._rows.values()]


class JsonOrderRepository:
    """
    File-backed store: `<state_dir>/orders_<exchange>.json`.

    Every persist rewrites the file through a temporary file and an atomic
    replace. Errors surface as StoreError.
    """

    def __init__(self, exchange: str, state_dir: str) -> None:
        safe = exchange.replace(":", "_").replace("/", "_")
        self.path = Path(state_dir) / f"orders_{safe}.json"
        self.tmp = self.path.with_suffix(".tmp")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()
        self._rows: Optional[Dict[str, Dict[str, Any]]] = None

    def _load_sync(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text())
        if not isinstance(data, dict):
            raise ValueError(f"unexpected order file layout in {self.path}")
        return data

    def _save_sync(self, rows: Dict[str, Dict[str, Any]]) -> None:
        self.tmp.write_text(json.dumps(rows, indent=2))
        self.tmp.replace(self.path)

    async def _rows_loaded(self) -> Dict[str, Dict[str, Any]]:
        if self._rows is None:
            loop = asyncio.get_running_loop()
            try:
                self._rows = await loop.run_in_executor(None, self._load_sync)
            except (OSError, ValueError) as exc:
                log.error(json.dumps({"event": "order_store_load_error", "path": str(self.path), "err": str(exc)}))
                raise StoreError(f"unable to load {self.path}: {exc}") from exc
        return self._rows

    async def find(self, order_filter: OrderFilter) -> List[OrderRecord]:
        async with self._lock:
            rows = await self._rows_loaded()
            records = [OrderRecord.from_dict(row) for row in rows.values()]
        return [r for r in records if order_filter.matches(r)]

    async def persist(self, record: OrderRecord) -> None:
        async with self._lock:
            rows = await self._rows_loaded()
            key = f"{record.pair}:{record.id}"
            previous = rows.get(key)
            rows[key] = record.to_dict()
            snapshot = dict(rows)
            loop = asyncio.get_running_loop()
            try:
                await loop.run_in_executor(None, lambda: self._save_sync(snapshot))
            except OSError as exc:
                if previous is None:
                    rows.pop(key, None)
                else:
                    rows[key] = previous
                log.error(json.dumps({"event": "order_store_save_error", "path": str(self.path), "err": str(exc)}))
                raise StoreError(f"unable to save {self.path}: {exc}") from exc
