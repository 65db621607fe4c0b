"""
Logging setup for the order collector.

Collector components log one JSON object per event (`{"event": ..., ...}`).
This module turns those into:
- a rich console for operators
- JSON lines in a file, written off the event loop through a queue
- at most one line per cooldown for events a flaky exchange repeats
"""

from __future__ import annotations

import atexit
import json
import logging
import queue
import sys
import time
from datetime import datetime
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Dict, Optional, Set

from rich.logging import RichHandler

# Events a flaky exchange can fire on every pass
NOISY_EVENTS = frozenset({
    "cancel_transient_error",
    "open_orders_error",
    "cleaner_tick_error",
})


def parse_event(message: str) -> Optional[Dict[str, Any]]:
    """The event dict of a structured message, None for plain text."""
    if not message.startswith("{"):
        return None
    try:
        data = json.loads(message)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) and "event" in data else None


class JsonFormatter(logging.Formatter):
    """One JSON line per record; event fields are lifted to the top level."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        payload: Dict[str, Any] = {
            "ts_iso": datetime.fromtimestamp(record.created).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
        }
        event = parse_event(message)
        if event is None:
            payload["msg"] = message
        else:
            payload.update(event)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


class ThrottledFilter(logging.Filter):
    """
    Let a noisy event through once per order per cooldown_sec.

    Plain text and events outside `events` always pass.
    """

    def __init__(self, cooldown_sec: float = 30.0, events: Optional[Set[str]] = None):
        super().__init__()
        self.cooldown_sec = cooldown_sec
        self.events = NOISY_EVENTS if events is None else frozenset(events)
        self._last_seen: Dict[str, float] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        event = parse_event(record.getMessage())
        if event is None or event["event"] not in self.events:
            return True
        order_id = event.get("order_id", event.get("oid", ""))
        key = f"{event['event']}:{event.get('pair', event.get('coin', ''))}:{order_id}"
        now = time.monotonic()
        if now - self._last_seen.get(key, float("-inf")) < self.cooldown_sec:
            return False
        self._last_seen[key] = now
        return True


def _start_file_queue(file_handler: logging.Handler, level: int) -> QueueHandler:
    records: queue.Queue = queue.Queue(maxsize=10000)
    listener = QueueListener(records, file_handler, respect_handler_level=True)
    listener.start()
    atexit.register(listener.stop)
    handler = QueueHandler(records)
    handler.setLevel(level)
    return handler


def build_logger(
    name: str = "mmbot",
    level: int = logging.INFO,
    file_path: Optional[str] = "mmbot.log",
    async_file: bool = True,
    throttle_warnings: bool = True,
    use_rich: bool = True,
) -> logging.Logger:
    """
    Configure the collector logger once; later calls only adjust the level.

    Args:
        name: Logger name
        level: Minimum log level
        file_path: JSON-lines log file, None disables it
        async_file: Write the file from a background thread
        throttle_warnings: Drop repeats of NOISY_EVENTS on the console
        use_rich: Rich console, JSON lines on stdout otherwise
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    if use_rich:
        console: logging.Handler = RichHandler(show_path=False, markup=False, rich_tracebacks=False)
        console.setFormatter(logging.Formatter("%(message)s"))
    else:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(JsonFormatter())
    console.setLevel(level)
    if throttle_warnings:
        console.addFilter(ThrottledFilter())
    logger.addHandler(console)

    if file_path:
        file_handler = logging.FileHandler(file_path)
        file_handler.setFormatter(JsonFormatter())
        file_handler.setLevel(level)
        logger.addHandler(_start_file_queue(file_handler, level) if async_file else file_handler)

    logger.propagate = False
    return logger


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **data: Any) -> None:
    """
    Usage:
        log_event(log, "order_cancelled", pair="ADM/USDT", order_id="123")
    """
    logger.log(level, json.dumps({"event": event, **data}, default=str))
