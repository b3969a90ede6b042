"""
Financial Reporting Domain Models (``ledger_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects representing financial statement outputs:
trial balance, income statement, balance sheet and cash flow statement,
plus the ``ReconciliationWarning`` value embedded in every report.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``ReportingService`` and returned to callers.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


# =========================================================================
# Enums
# =========================================================================


class ReportType(str, Enum):
    """Types of financial reports."""

    TRIAL_BALANCE = "trial_balance"
    BALANCE_SHEET = "balance_sheet"
    INCOME_STATEMENT = "income_statement"
    CASH_FLOW = "cash_flow"


class WarningCode(str, Enum):
    """Kinds of non-fatal reconciliation findings."""

    UNCLASSIFIED_ACCOUNT = "unclassified_account"
    UNKNOWN_ACCOUNT = "unknown_account"
    EMPTY_PERIOD = "empty_period"
    UNBALANCED_BALANCE_SHEET = "unbalanced_balance_sheet"
    CASH_NOT_RECONCILED = "cash_not_reconciled"


# =========================================================================
# Report Metadata and warnings (common to all reports)
# =========================================================================


@dataclass(frozen=True)
class ReportMetadata:
    """Metadata attached to every financial report."""

    report_type: ReportType
    entity_id: UUID
    entity_name: str
    currency: str
    as_of_date: date
    generated_at: str  # ISO format timestamp from injected clock
    period_start: date | None = None
    period_end: date | None = None


@dataclass(frozen=True)
class ReconciliationWarning:
    """
    Non-fatal finding surfaced inside a report instead of being raised,
    e.g. an account that could not be placed in a specific bucket.
    """

    code: WarningCode
    message: str
    account_id: UUID | None = None
    amount: Decimal | None = None


# =========================================================================
# Line items
# =========================================================================


@dataclass(frozen=True)
class StatementLine:
    """
    A single line on a statement.  Derived lines (e.g. retained earnings
    including undistributed profit) may carry no account id.
    """

    account_id: UUID | None
    account_code: str | None
    account_name: str
    category: str
    amount: Decimal


@dataclass(frozen=True)
class TrialBalanceLineItem:
    """A single line in the trial balance."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    debit_balance: Decimal
    credit_balance: Decimal
    net_balance: Decimal  # Natural-balance-adjusted


# =========================================================================
# Trial Balance Report
# =========================================================================


@dataclass(frozen=True)
class TrialBalanceReport:
    """Complete trial balance report."""

    metadata: ReportMetadata
    lines: tuple[TrialBalanceLineItem, ...]
    total_debits: Decimal
    total_credits: Decimal
    is_balanced: bool  # total_debits == total_credits


# =========================================================================
# Income Statement
# =========================================================================


@dataclass(frozen=True)
class IncomeStatementReport:
    """
    Income statement (P&L) for a period.

    Revenue - Cost of sales = Gross profit
    Gross profit + Other income - Expenses = Operating profit
    Operating profit - Tax expenses = Net profit
    """

    metadata: ReportMetadata

    revenue: Decimal
    other_income: Decimal
    cost_of_sales: Decimal
    expenses: Decimal
    tax_expenses: Decimal

    gross_profit: Decimal
    operating_profit: Decimal
    net_profit: Decimal

    # Keyed by account subtype, else account name
    expenses_by_category: dict[str, Decimal] = field(default_factory=dict)

    lines: tuple[StatementLine, ...] = ()
    warnings: tuple[ReconciliationWarning, ...] = ()


# =========================================================================
# Balance Sheet Report
# =========================================================================


@dataclass(frozen=True)
class BalanceSheetSection:
    """A section of the balance sheet (e.g., Current Assets)."""

    label: str
    lines: tuple[StatementLine, ...]
    total: Decimal


@dataclass(frozen=True)
class BalanceSheetReport:
    """
    Classified balance sheet at a point in time.

    Assets = Liabilities + Equity is checked, not assumed: is_balanced
    reports the outcome.
    """

    metadata: ReportMetadata

    # Asset sections
    non_current_assets: BalanceSheetSection
    current_assets: BalanceSheetSection
    other_assets: BalanceSheetSection
    total_assets: Decimal

    # Liability sections
    non_current_liabilities: BalanceSheetSection
    current_liabilities: BalanceSheetSection
    other_liabilities: BalanceSheetSection
    total_liabilities: Decimal

    # Equity section (retained earnings includes undistributed profit)
    equity: BalanceSheetSection
    total_equity: Decimal
    retained_earnings: Decimal

    # Cash and cash equivalents (subset of current assets)
    cash: Decimal

    # Verification
    total_liabilities_and_equity: Decimal
    is_balanced: bool

    warnings: tuple[ReconciliationWarning, ...] = ()


# =========================================================================
# Cash Flow Statement (Indirect Method)
# =========================================================================


@dataclass(frozen=True)
class CashFlowLineItem:
    """A single line in a cash flow section."""

    description: str
    amount: Decimal


@dataclass(frozen=True)
class CashFlowSection:
    """A section of the cash flow statement."""

    label: str
    lines: tuple[CashFlowLineItem, ...]
    total: Decimal


@dataclass(frozen=True)
class CashFlowStatementReport:
    """
    Statement of cash flows (indirect method).

    Operating: Net profit + non-cash adjustments + working capital changes
    Investing: Non-current asset purchases/disposals
    Financing: Long-term borrowing and equity movements
    """

    metadata: ReportMetadata

    net_profit: Decimal

    operating_adjustments: CashFlowSection
    working_capital_changes: CashFlowSection
    net_cash_from_operations: Decimal

    investing_activities: CashFlowSection
    net_cash_from_investing: Decimal

    financing_activities: CashFlowSection
    net_cash_from_financing: Decimal

    net_change_in_cash: Decimal
    opening_cash: Decimal
    closing_cash: Decimal

    # closing - opening == net change (within tolerance)
    cash_change_reconciles: bool

    warnings: tuple[ReconciliationWarning, ...] = ()
