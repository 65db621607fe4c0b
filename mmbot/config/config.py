"""
Settings for the order collector, read from the environment (and .env).

MM_* variables configure the collector, HL_* variables the Hyperliquid
account it trades on.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, TypeVar

from dotenv import load_dotenv
from eth_account import Account
from eth_account.signers.local import LocalAccount

from mmbot.core.retry import MAX_TRIES

load_dotenv()

T = TypeVar("T")

_TRUE = {"1", "true", "yes", "y", "on"}


def _env(key: str, default: T, cast: Callable[[str], T]) -> T:
    """Typed env lookup; unset or empty means default."""
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{key}={raw!r}: {exc}") from exc


def _flag(raw: str) -> bool:
    return raw.lower() in _TRUE


def split_pair(pair: str) -> Tuple[str, str]:
    """'ADM/USDT' -> ('ADM', 'USDT')."""
    parts = pair.split("/")
    if len(parts) != 2 or not all(p.strip() for p in parts):
        raise ValueError(f"Pair must look like BASE/QUOTE, got {pair!r}")
    return parts[0].strip(), parts[1].strip()


@dataclass(frozen=True)
class Settings:
    exchange: str
    default_pair: str
    coin1_decimals: int
    coin2_decimals: int
    max_tries: int
    clear_all_orders_interval_min: float  # unknown-order sweep period, 0 disables sweeps
    mm_clear_interval_sec: float
    distrust_empty_open_orders: bool
    state_dir: str
    log_file: Optional[str]
    log_level: str
    http_timeout: float
    metrics_port: int  # 0 disables the metrics server
    base_url: str
    dex: str
    private_key: Optional[str]
    agent_key: Optional[str]
    user_address: Optional[str]

    @classmethod
    def load(cls) -> "Settings":
        """
        Read settings from the environment.

        Raises:
            ValueError: A variable does not parse or is out of range
        """
        cfg = cls(
            exchange=_env("MM_EXCHANGE", "hyperliquid", str),
            default_pair=_env("MM_DEFAULT_PAIR", "BTC/USDC", str),
            coin1_decimals=_env("MM_COIN1_DECIMALS", 8, int),
            coin2_decimals=_env("MM_COIN2_DECIMALS", 2, int),
            max_tries=_env("MM_MAX_TRIES", MAX_TRIES, int),
            clear_all_orders_interval_min=_env("MM_CLEAR_ALL_ORDERS_INTERVAL_MIN", 0.0, float),
            mm_clear_interval_sec=_env("MM_MM_CLEAR_INTERVAL_SEC", 120.0, float),
            distrust_empty_open_orders=_env("MM_DISTRUST_EMPTY_OPEN_ORDERS", True, _flag),
            state_dir=_env("MM_STATE_DIR", "state", str),
            log_file=os.getenv("MM_LOG_FILE", "mmbot.log") or None,
            log_level=_env("MM_LOG_LEVEL", "INFO", str.upper),
            http_timeout=_env("MM_HTTP_TIMEOUT", 5.0, float),
            metrics_port=_env("MM_METRICS_PORT", 0, int),
            base_url=_env("HL_BASE_URL", "https://api.hyperliquid.xyz", str),
            dex=_env("HL_DEX", "", str),
            private_key=os.getenv("HL_PRIVATE_KEY") or None,
            agent_key=os.getenv("HL_AGENT_KEY") or None,
            user_address=os.getenv("HL_USER_ADDRESS") or None,
        )
        cfg._validate()
        logging.getLogger("mmbot").info(json.dumps({
            "event": "config_loaded",
            "exchange": cfg.exchange,
            "default_pair": cfg.default_pair,
            "max_tries": cfg.max_tries,
            "clear_all_orders_interval_min": cfg.clear_all_orders_interval_min,
        }))
        return cfg

    def _validate(self) -> None:
        if not self.exchange.strip():
            raise ValueError("MM_EXCHANGE must be set")
        split_pair(self.default_pair)
        if self.max_tries < 1:
            raise ValueError("MM_MAX_TRIES must be >= 1")
        if self.clear_all_orders_interval_min < 0:
            raise ValueError("MM_CLEAR_ALL_ORDERS_INTERVAL_MIN must be >= 0")
        if self.mm_clear_interval_sec <= 0:
            raise ValueError("MM_MM_CLEAR_INTERVAL_SEC must be > 0")
        if self.http_timeout <= 0:
            raise ValueError("MM_HTTP_TIMEOUT must be > 0")
        if self.coin1_decimals < 0 or self.coin2_decimals < 0:
            raise ValueError("Coin decimals must be >= 0")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"MM_LOG_LEVEL={self.log_level} is not a logging level")

    @property
    def coins(self) -> Tuple[str, str]:
        return split_pair(self.default_pair)

    def dump(self) -> dict:
        """Settings as a dict with keys masked, for startup logs."""
        data = dict(self.__dict__)
        for key in ("private_key", "agent_key"):
            if data.get(key):
                data[key] = "***"
        return data

    def resolve_signer(self) -> LocalAccount:
        """Wallet that signs cancels: the account key, else the agent key."""
        key = self.private_key or self.agent_key
        if not key:
            raise RuntimeError("Missing credentials: set HL_PRIVATE_KEY or HL_AGENT_KEY")
        return Account.from_key(key)

    def resolve_account(self) -> str:
        """Address whose orders are managed."""
        if self.private_key:
            return Account.from_key(self.private_key).address
        if self.user_address:
            return self.user_address
        raise RuntimeError("Missing HL_USER_ADDRESS or HL_PRIVATE_KEY")
