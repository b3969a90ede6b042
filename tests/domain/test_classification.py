"""
Pure tests for account classification.

NO database.  Precedence is subtype tag, then code range, then account type;
a tag or range never moves an account across account types.
"""

from __future__ import annotations

from uuid import uuid4

import pytest

from ledger_kernel.domain.classification import (
    ClassificationRules,
    CodeRange,
    StatementCategory,
    classify,
    expense_category,
    is_depreciation,
    normalize_tag,
)
from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.models.account import AccountType

ENTITY_ID = uuid4()


def _acct(code: str, name: str, account_type: AccountType, subtype: str | None = None) -> AccountInfo:
    return AccountInfo(uuid4(), ENTITY_ID, code, name, account_type, subtype)


class TestPrecedence:

    def test_subtype_wins_over_code_range(self):
        # 1101 falls in the inventory range but is tagged as receivables
        acct = _acct("1101", "Accounts Receivable", AccountType.ASSET, "trade_receivables")
        assert classify(acct) == StatementCategory.TRADE_RECEIVABLES

    def test_code_range_when_no_subtype(self):
        assert classify(_acct("1050", "Bank", AccountType.ASSET)) == StatementCategory.CASH
        assert classify(_acct("1650", "Vehicles", AccountType.ASSET)) == StatementCategory.NON_CURRENT_ASSET
        assert classify(_acct("2700", "Mortgage", AccountType.LIABILITY)) == StatementCategory.NON_CURRENT_LIABILITY

    def test_unknown_subtype_falls_through_to_range(self):
        acct = _acct("6001", "Operating Expenses", AccountType.EXPENSE, "operating_expenses")
        assert classify(acct) == StatementCategory.EXPENSE

    def test_incompatible_subtype_ignored(self):
        # A revenue account tagged "cash" is still revenue
        acct = _acct("4001", "Sales", AccountType.REVENUE, "cash")
        assert classify(acct) == StatementCategory.REVENUE

    def test_incompatible_range_ignored(self):
        # An expense account numbered in the cash range is still an expense
        acct = _acct("1010", "Bank Fees", AccountType.EXPENSE)
        assert classify(acct) == StatementCategory.EXPENSE

    def test_subtype_normalization(self):
        acct = _acct("3001", "Owner's Equity", AccountType.EQUITY, "Owner's-Equity")
        assert normalize_tag("Owner's-Equity") == "owners_equity"
        assert classify(acct) == StatementCategory.SHARE_CAPITAL


class TestTypeFallback:

    def test_unmatched_asset_is_unclassified(self):
        acct = _acct("A-17", "Suspense", AccountType.ASSET)
        assert classify(acct) == StatementCategory.UNCLASSIFIED

    def test_unmatched_liability_is_unclassified(self):
        acct = _acct("X1", "Clearing", AccountType.LIABILITY)
        assert classify(acct) == StatementCategory.UNCLASSIFIED

    @pytest.mark.parametrize(
        "account_type, expected",
        [
            (AccountType.REVENUE, StatementCategory.REVENUE),
            (AccountType.EXPENSE, StatementCategory.EXPENSE),
            (AccountType.COGS, StatementCategory.COGS),
            (AccountType.CONTRA_ASSET, StatementCategory.CONTRA_ASSET),
            (AccountType.EQUITY, StatementCategory.OTHER_EQUITY),
        ],
    )
    def test_type_defaults(self, account_type, expected):
        assert classify(_acct("Z", "Misc", account_type)) == expected

    def test_equity_named_drawings(self):
        assert classify(_acct("Z", "Owner Drawings", AccountType.EQUITY)) == StatementCategory.DRAWINGS


class TestCustomRules:

    def test_from_dict_merges_aliases_and_replaces_ranges(self):
        rules = ClassificationRules.from_dict({
            "code_ranges": [{"low": 100, "high": 199, "category": "cash"}],
            "subtype_aliases": {"Petty Cash": "cash"},
        })

        assert rules.code_ranges == (CodeRange(100, 199, StatementCategory.CASH),)
        assert rules.subtype_aliases["petty_cash"] == StatementCategory.CASH
        assert rules.subtype_aliases["inventory"] == StatementCategory.INVENTORY

        assert classify(_acct("150", "Till", AccountType.ASSET), rules) == StatementCategory.CASH
        # Default ranges no longer apply
        assert classify(_acct("1050", "Bank", AccountType.ASSET), rules) == StatementCategory.UNCLASSIFIED

    def test_inverted_range_rejected(self):
        with pytest.raises(ValueError):
            CodeRange(200, 100, StatementCategory.CASH)


class TestHelpers:

    def test_is_depreciation(self):
        assert is_depreciation(_acct("6101", "Depreciation Expense", AccountType.EXPENSE))
        assert is_depreciation(_acct("6102", "Wear", AccountType.EXPENSE, "depreciation"))
        assert not is_depreciation(_acct("6201", "Rent", AccountType.EXPENSE, "rent"))

    def test_expense_category_prefers_subtype(self):
        assert expense_category(_acct("6201", "Rent Expense", AccountType.EXPENSE, "rent")) == "rent"
        assert expense_category(_acct("6202", "Utilities", AccountType.EXPENSE)) == "Utilities"
