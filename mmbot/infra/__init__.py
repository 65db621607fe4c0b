"""
Infrastructure package.

This package contains async exchange I/O and logging configuration.
"""

from mmbot.infra.async_execution import AsyncExchange
from mmbot.infra.async_info import AsyncInfo
from mmbot.infra.logging_cfg import build_logger, log_event

__all__ = [
    "AsyncExchange",
    "AsyncInfo",
    "build_logger",
    "log_event",
]
