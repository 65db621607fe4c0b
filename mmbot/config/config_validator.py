"""
Startup validation of Settings.

Settings.load() already rejects values the collector cannot run with. This
layer adds operator-facing checks: safe ranges, credentials, and settings
that are legal but make the collector leave orders behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from mmbot.config.config import split_pair

logger = logging.getLogger(__name__)


class ValidationSeverity(Enum):
    ERROR = "error"      # startup is refused
    WARNING = "warning"  # logged, startup continues


@dataclass
class ValidationIssue:
    field: str
    message: str
    severity: ValidationSeverity
    value: Any = None
    suggestion: Optional[str] = None

    def describe(self) -> str:
        text = f"CONFIG {self.severity.name}: {self.message}"
        if self.suggestion:
            text += f" (suggestion: {self.suggestion})"
        return text


@dataclass
class ValidationResult:
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.get_errors()

    def has_warnings(self) -> bool:
        return bool(self.get_warnings())

    def get_errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity is ValidationSeverity.ERROR]

    def get_warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity is ValidationSeverity.WARNING]


class ConfigValidator:
    """
    Usage:
        result = ConfigValidator().validate(Settings.load())
        for issue in result.get_errors():
            print(issue.describe())
    """

    # field -> (min, max)
    NUMERIC_RANGES: Dict[str, Tuple[float, float]] = {
        "max_tries": (1, 50),
        "clear_all_orders_interval_min": (0.0, 24 * 60.0),
        "mm_clear_interval_sec": (5.0, 3600.0),
        "http_timeout": (0.5, 120.0),
        "metrics_port": (0, 65535),
        "coin1_decimals": (0, 18),
        "coin2_decimals": (0, 18),
    }

    REQUIRED_STRINGS = ("exchange", "default_pair", "base_url", "state_dir")

    def validate(self, cfg) -> ValidationResult:
        result = ValidationResult()
        for check in (self._required, self._ranges, self._pair, self._credentials, self._risky):
            result.issues.extend(check(cfg))
        return result

    def _required(self, cfg) -> List[ValidationIssue]:
        return [
            ValidationIssue(name, f"Required field '{name}' is missing or empty", ValidationSeverity.ERROR)
            for name in self.REQUIRED_STRINGS
            if not str(getattr(cfg, name, "") or "").strip()
        ]

    def _ranges(self, cfg) -> List[ValidationIssue]:
        issues = []
        for name, (low, high) in self.NUMERIC_RANGES.items():
            value = getattr(cfg, name, None)
            if value is None or not low <= value <= high:
                issues.append(ValidationIssue(
                    name,
                    f"'{name}' is {value}, expected a value in [{low}, {high}]",
                    ValidationSeverity.ERROR,
                    value=value,
                ))
        return issues

    def _pair(self, cfg) -> List[ValidationIssue]:
        pair = getattr(cfg, "default_pair", None)
        if not pair:
            return []
        try:
            split_pair(pair)
        except ValueError:
            return [ValidationIssue(
                "default_pair",
                f"Invalid pair format '{pair}', expected 'BASE/QUOTE' (e.g., 'BTC/USDC')",
                ValidationSeverity.ERROR,
                value=pair,
            )]
        return []

    def _credentials(self, cfg) -> List[ValidationIssue]:
        if getattr(cfg, "private_key", None):
            return []
        if not getattr(cfg, "agent_key", None):
            return [ValidationIssue(
                "agent_key",
                "No authentication configured (agent_key or private_key)",
                ValidationSeverity.ERROR,
                suggestion="Set HL_AGENT_KEY or HL_PRIVATE_KEY",
            )]
        if not getattr(cfg, "user_address", None):
            return [ValidationIssue(
                "user_address",
                "agent_key requires user_address to be set",
                ValidationSeverity.ERROR,
                suggestion="Set HL_USER_ADDRESS to the account the agent trades for",
            )]
        return []

    def _risky(self, cfg) -> List[ValidationIssue]:
        """Legal settings that can leave orders on the book."""
        issues = []
        max_tries = getattr(cfg, "max_tries", None)
        if max_tries is not None and max_tries < 3:
            issues.append(ValidationIssue(
                "max_tries",
                f"Low max_tries ({max_tries}) may leave orders open after a forced clear",
                ValidationSeverity.WARNING,
                value=max_tries,
            ))
        if not getattr(cfg, "clear_all_orders_interval_min", 0):
            issues.append(ValidationIssue(
                "clear_all_orders_interval_min",
                "Unknown-order sweeps are disabled",
                ValidationSeverity.WARNING,
                suggestion="Set MM_CLEAR_ALL_ORDERS_INTERVAL_MIN to sweep orders missing from the store",
            ))
        if not getattr(cfg, "distrust_empty_open_orders", True):
            issues.append(ValidationIssue(
                "distrust_empty_open_orders",
                "An empty open-orders answer will close every tracked order",
                ValidationSeverity.WARNING,
            ))
        return issues


def validate_config(cfg) -> ValidationResult:
    return ConfigValidator().validate(cfg)


def validate_and_log(cfg, logger_instance=None) -> bool:
    """
    Validate and log every issue.

    Returns:
        True when no ERROR was found
    """
    log = logger_instance or logger
    result = validate_config(cfg)
    for issue in result.get_errors():
        log.error(issue.describe())
    for issue in result.get_warnings():
        log.warning(issue.describe())
    if result.valid:
        log.info("Configuration validation passed")
    else:
        log.error(f"Configuration validation failed with {len(result.get_errors())} error(s)")
    return result.valid
