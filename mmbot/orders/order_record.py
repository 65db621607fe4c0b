"""
Order records: the local system-of-record for orders the bot has placed.

Lifecycle flags:
    is_processed: created False; becomes True once the order is filled,
        cancelled or disappeared. Terminal: a processed record is never a
        reconciliation candidate again.
    is_closed: set together with is_processed when the order left the book.
    is_cancelled: the bot cancelled the order itself.
    is_executed: the order is considered (partly) filled.
    is_expired, is_count_exceeded, is_out_of_pw_range, is_out_of_spread,
    is_not_found: closure reasons. Each implies is_closed and is_processed.

Records are created by strategies when an order is placed, mutated by the
order collector and the status sync, and never deleted.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from mmbot.core.utils import now_ms, order_id_str


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"

    @property
    def opposite(self) -> "OrderSide":
        return OrderSide.SELL if self is OrderSide.BUY else OrderSide.BUY


class OrderPurpose(str, Enum):
    """Why an order was placed."""
    MARKET_MAKING = "mm"
    ORDER_BOOK = "ob"
    TRADE_BOT = "tb"
    LIQUIDITY = "liq"
    PRICE_WATCHER = "pw"
    MANUAL = "man"  # placed with /fill, /buy, /sell, /make price commands


ORDER_PURPOSES: Dict[str, str] = {
    OrderPurpose.MARKET_MAKING.value: "Market making",
    OrderPurpose.ORDER_BOOK.value: "Dynamic order book",
    OrderPurpose.TRADE_BOT.value: "Trade bot",
    OrderPurpose.LIQUIDITY.value: "Liquidity",
    OrderPurpose.PRICE_WATCHER.value: "Price watcher",
    OrderPurpose.MANUAL.value: "Manual",
}

ALL_PURPOSES = "all"
UNKNOWN_PURPOSE = "unk"  # on the exchange, absent from the local store

PurposeSelector = Union[str, Iterable[Union[OrderPurpose, str]]]

# Closure reasons; each implies is_closed and is_processed
CLOSE_REASON_FLAGS: Tuple[str, ...] = (
    "is_cancelled",
    "is_expired",
    "is_count_exceeded",
    "is_out_of_pw_range",
    "is_out_of_spread",
    "is_not_found",
)


@dataclass
class OrderRecord:
    """One order the bot believes it owns."""
    id: str
    exchange: str
    pair: str
    side: OrderSide
    purpose: OrderPurpose
    price: float
    base_amount: float
    quote_amount: float

    base_amount_left: Optional[float] = None
    base_amount_filled: float = 0.0
    amount_update_count: int = 0
    is_second_account: bool = False
    date_ms: int = 0

    is_processed: bool = False
    is_closed: bool = False
    is_cancelled: bool = False
    is_executed: bool = False
    is_expired: bool = False
    is_count_exceeded: bool = False
    is_out_of_pw_range: bool = False
    is_out_of_spread: bool = False
    is_not_found: bool = False
    close_reason: Optional[str] = None

    def __post_init__(self) -> None:
        self.id = order_id_str(self.id)
        self.side = OrderSide(self.side)
        self.purpose = OrderPurpose(self.purpose)
        if self.date_ms == 0:
            self.date_ms = now_ms()
        if self.base_amount_left is None:
            self.base_amount_left = self.base_amount

    @property
    def is_terminal(self) -> bool:
        return self.is_processed

    @property
    def notional(self) -> float:
        """Quote amount for bids, base amount for asks."""
        return self.quote_amount if self.side is OrderSide.BUY else self.base_amount

    def describe(self) -> str:
        return (
            f"{self.purpose.value}-order with id={self.id}, type={self.side.value}, pair={self.pair}, "
            f"price={self.price}, baseAmount={self.base_amount} ({self.base_amount_left} left), "
            f"quoteAmount={self.quote_amount}"
        )

    # ----- lifecycle transitions (idempotent) -----

    def mark_cancelled(self) -> None:
        """The bot cancelled the order."""
        self.is_cancelled = True
        self.is_closed = True
        self.is_processed = True

    def mark_closed(self) -> None:
        """The order is gone from the exchange without a confirmed cancel."""
        self.is_closed = True
        self.is_processed = True

    def close_with_reason(self, flag: str, reason: Optional[str] = None) -> None:
        if flag not in CLOSE_REASON_FLAGS:
            raise ValueError(f"unknown close reason flag: {flag}")
        setattr(self, flag, True)
        self.mark_closed()
        if reason:
            self.close_reason = reason

    def apply_partial_fill(self, amount_left: float, amount_executed: Optional[float] = None) -> float:
        """
        Record a partial fill reported by the exchange.

        Returns:
            Base amount filled since the previous update (0 if nothing new)
        """
        before = self.base_amount_left if self.base_amount_left is not None else self.base_amount
        if amount_left >= before:
            return 0.0
        self.is_executed = True
        self.base_amount_left = amount_left
        self.base_amount_filled = (
            amount_executed if amount_executed is not None else self.base_amount - amount_left
        )
        self.amount_update_count += 1
        return before - amount_left

    # ----- persistence -----

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["side"] = self.side.value
        data["purpose"] = self.purpose.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderRecord":
        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in data.items() if k in known})


RecordPredicate = Callable[[OrderRecord], bool]


def price_range(
    low: Optional[float] = None,
    high: Optional[float] = None,
) -> RecordPredicate:
    """Attribute filter matching records with low <= price <= high."""
    def _match(record: OrderRecord) -> bool:
        if low is not None and record.price < low:
            return False
        if high is not None and record.price > high:
            return False
        return True
    return _match


def normalize_purposes(purposes: PurposeSelector) -> Optional[List[OrderPurpose]]:
    """
    Resolve a purpose selector.

    Returns:
        None for the "all" sentinel, otherwise a non-empty list of purposes
    """
    if isinstance(purposes, str):
        if purposes == ALL_PURPOSES:
            return None
        return [OrderPurpose(purposes)]
    resolved = [OrderPurpose(p) for p in purposes]
    if not resolved:
        raise ValueError("purposes must be 'all' or a non-empty collection")
    return resolved


@dataclass
class ParsedPurpose:
    parsed: bool
    purpose: Optional[str] = None
    purpose_string: Optional[str] = None


def purpose_list(add_unknown: bool = True, exclude: Iterable[str] = ()) -> Dict[str, str]:
    """Purposes for operator-facing lists, "all" included."""
    excluded = set(exclude)
    result = {k: v for k, v in ORDER_PURPOSES.items() if k not in excluded}
    if ALL_PURPOSES not in excluded:
        result[ALL_PURPOSES] = "All types"
    if add_unknown:
        result[UNKNOWN_PURPOSE] = "Unknown order"
    return result


def purpose_list_message(add_unknown: bool = True, exclude: Iterable[str] = ()) -> str:
    return ",\n".join(f"{k}: {v}" for k, v in purpose_list(add_unknown, exclude).items())


def parse_purpose(text: str, add_unknown: bool = True) -> ParsedPurpose:
    """Parse an operator-typed purpose key such as 'mm' or 'unk'."""
    key = (text or "").strip().lower()
    purposes = purpose_list(add_unknown)
    if key in purposes:
        return ParsedPurpose(parsed=True, purpose=key, purpose_string=purposes[key])
    return ParsedPurpose(parsed=False)


def purpose_key_by_name(name: str) -> Optional[str]:
    """Reverse lookup by display name, case-insensitive: 'Market making' -> 'mm'."""
    cleaned = name.replace(" Manual", "").replace("Market-making", "Market making").strip().lower()
    for key, value in ORDER_PURPOSES.items():
        if value.lower() == cleaned:
            return key
    return None
