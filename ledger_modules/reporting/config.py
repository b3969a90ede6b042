"""
Reporting Configuration Schema.

Report formatting options, the classification rules used to bucket
accounts, and the policy for inverted date ranges.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Self

import yaml

from ledger_kernel.domain.classification import ClassificationRules
from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.reporting.config")


@dataclass
class ReportingConfig:
    """
    Configuration schema for the reporting module.

    Controls account classification, formatting, and report generation.
    """

    # Classification rules (subtype aliases and code ranges)
    classification: ClassificationRules = field(
        default_factory=ClassificationRules,
    )

    # Currency label shown on reports (amounts are never converted)
    default_currency: str = "USD"

    # Entity name shown on reports
    entity_name: str = "Company"

    # Rounding precision for display
    display_precision: int = 2

    # Whether to include accounts with zero balance in reports
    include_zero_balances: bool = False

    # Raise InvalidDateRangeError for end < start instead of an empty report
    strict_date_range: bool = False

    # Maximum difference accepted by the A = L + E and cash reconciliation checks
    reconciliation_tolerance: Decimal = Decimal("0.01")

    def __post_init__(self):
        if self.display_precision < 0:
            raise ValueError("display_precision cannot be negative")
        if len(self.default_currency) != 3:
            raise ValueError("default_currency must be a 3-letter ISO 4217 code")
        self.reconciliation_tolerance = Decimal(str(self.reconciliation_tolerance))
        if self.reconciliation_tolerance < 0:
            raise ValueError("reconciliation_tolerance cannot be negative")

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("reporting_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary."""
        data = dict(data)
        if "classification" in data and isinstance(data["classification"], dict):
            data["classification"] = ClassificationRules.from_dict(data["classification"])
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Load config from a YAML file whose top level is a mapping."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Reporting config {path} must contain a mapping")
        return cls.from_dict(data)
