"""
Financial Reporting Module (``ledger_modules.reporting``).

Responsibility
--------------
Read-only module that derives financial statements from the ledger:
trial balance, classified balance sheet, income statement, and cash flow
statement (indirect method).

Invariants enforced
-------------------
* No journal entries are created by this module.
* Statements derive from posted entries only.
* Statement generation is deterministic for a given ledger and clock.
"""

from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheetReport,
    BalanceSheetSection,
    CashFlowLineItem,
    CashFlowSection,
    CashFlowStatementReport,
    IncomeStatementReport,
    ReconciliationWarning,
    ReportMetadata,
    ReportType,
    StatementLine,
    TrialBalanceLineItem,
    TrialBalanceReport,
    WarningCode,
)
from ledger_modules.reporting.service import ReportingService
from ledger_modules.reporting.statements import render_to_dict

__all__ = [
    "BalanceSheetReport",
    "BalanceSheetSection",
    "CashFlowLineItem",
    "CashFlowSection",
    "CashFlowStatementReport",
    "IncomeStatementReport",
    "ReconciliationWarning",
    "ReportMetadata",
    "ReportType",
    "ReportingConfig",
    "ReportingService",
    "StatementLine",
    "TrialBalanceLineItem",
    "TrialBalanceReport",
    "WarningCode",
    "render_to_dict",
]
