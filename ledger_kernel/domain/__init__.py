"""Pure functional core: DTOs, classification, balance arithmetic, clock, config."""

from ledger_kernel.domain.balances import (
    DEFAULT_BALANCE_TOLERANCE,
    compute_natural_balance,
    natural_balance_for_type,
    within_tolerance,
)
from ledger_kernel.domain.classification import (
    ClassificationRules,
    CodeRange,
    StatementCategory,
    classify,
    expense_category,
    is_depreciation,
)
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountBalance,
    AccountInfo,
    BalanceMismatch,
    CandidateEntry,
    CandidateLine,
    CommittedEntry,
    CommittedLine,
    LedgerLine,
    ResolvedLine,
    ValidationResult,
)

__all__ = [
    "DEFAULT_BALANCE_TOLERANCE",
    "AccountBalance",
    "AccountInfo",
    "BalanceMismatch",
    "CandidateEntry",
    "CandidateLine",
    "ClassificationRules",
    "Clock",
    "CodeRange",
    "CommittedEntry",
    "CommittedLine",
    "DeterministicClock",
    "LedgerLine",
    "ResolvedLine",
    "StatementCategory",
    "SystemClock",
    "ValidationResult",
    "classify",
    "compute_natural_balance",
    "expense_category",
    "is_depreciation",
    "natural_balance_for_type",
    "within_tolerance",
]
