"""Read-only selectors over posted ledger data."""

from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.ledger_selector import (
    AccountTotals,
    DailyActivity,
    LedgerSelector,
    TrialBalanceRow,
)

__all__ = [
    "AccountTotals",
    "BaseSelector",
    "DailyActivity",
    "LedgerSelector",
    "TrialBalanceRow",
]
