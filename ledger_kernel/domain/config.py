"""
Ledger configuration schema.

Holds the knobs the kernel services read: the balance tolerance applied at
posting time, the account classification rules, and the batch size used
when streaming posted lines.  Loadable from a dict or a YAML file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Self

import yaml

from ledger_kernel.domain.balances import DEFAULT_BALANCE_TOLERANCE
from ledger_kernel.domain.classification import ClassificationRules
from ledger_kernel.logging_config import get_logger

logger = get_logger("domain.config")


@dataclass
class LedgerConfig:
    """
    Configuration for the posting and aggregation services.

    Contract:
        balance_tolerance is the maximum |debits - credits| accepted for an
        entry.  stream_batch_size bounds the rows held in memory per fetch
        by LedgerStore.list_posted().
    """

    balance_tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE

    classification: ClassificationRules = field(default_factory=ClassificationRules)

    stream_batch_size: int = 500

    def __post_init__(self):
        self.balance_tolerance = Decimal(str(self.balance_tolerance))
        if self.balance_tolerance < 0:
            raise ValueError("balance_tolerance cannot be negative")
        if self.stream_batch_size <= 0:
            raise ValueError("stream_batch_size must be positive")

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary."""
        data = dict(data)
        if "classification" in data and isinstance(data["classification"], dict):
            data["classification"] = ClassificationRules.from_dict(data["classification"])
        logger.info(
            "ledger_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Load config from a YAML file whose top level is a mapping."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Ledger config {path} must contain a mapping")
        return cls.from_dict(data)
