"""
Pure financial statement transformation functions.

These functions transform ledger data (streamed posted lines, account
balances, period movements) and account metadata into structured
financial statements. ZERO I/O. ZERO side effects.

All monetary values are Decimal. All outputs are frozen dataclasses.

Functions in this module follow the ledger_kernel/domain/ purity convention:
- No database access
- No clock access
- No file I/O
- Deterministic: same inputs always produce same outputs

Unclassified or unknown accounts never raise: their amounts land in an
"other" bucket and a ReconciliationWarning is attached to the report.
"""

from __future__ import annotations

import dataclasses
from collections import defaultdict
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Mapping
from uuid import UUID

from ledger_kernel.domain.balances import compute_natural_balance, within_tolerance
from ledger_kernel.domain.classification import (
    CURRENT_ASSET_CATEGORIES,
    CURRENT_LIABILITY_CATEGORIES,
    INCOME_STATEMENT_CATEGORIES,
    StatementCategory,
    classify,
    expense_category,
    is_depreciation,
)
from ledger_kernel.domain.dtos import AccountInfo, LedgerLine
from ledger_kernel.models.account import AccountType
from ledger_kernel.selectors.ledger_selector import AccountTotals, TrialBalanceRow
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
    StatementLine,
    TrialBalanceLineItem,
    TrialBalanceReport,
    WarningCode,
)

ZERO = Decimal("0")

Category = StatementCategory


# =========================================================================
# Helpers
# =========================================================================


def _sorted_accounts(accounts: Mapping[UUID, AccountInfo]) -> list[AccountInfo]:
    return sorted(accounts.values(), key=lambda a: (a.code, str(a.id)))


def _line(account: AccountInfo, category: Category, amount: Decimal) -> StatementLine:
    return StatementLine(
        account_id=account.id,
        account_code=account.code,
        account_name=account.name,
        category=category.value,
        amount=amount,
    )


def _make_section(label: str, lines: list[StatementLine]) -> BalanceSheetSection:
    return BalanceSheetSection(
        label=label,
        lines=tuple(lines),
        total=sum((ln.amount for ln in lines), ZERO),
    )


def _make_cf_section(label: str, lines: list[CashFlowLineItem]) -> CashFlowSection:
    kept = [ln for ln in lines if ln.amount != ZERO]
    return CashFlowSection(
        label=label,
        lines=tuple(kept),
        total=sum((ln.amount for ln in kept), ZERO),
    )


def _unclassified_warning(account: AccountInfo, amount: Decimal) -> ReconciliationWarning:
    return ReconciliationWarning(
        code=WarningCode.UNCLASSIFIED_ACCOUNT,
        message=(
            f"Account {account.code} ({account.name}) matches no subtype or code "
            f"range; reported under other {AccountType(account.account_type).value}s"
        ),
        account_id=account.id,
        amount=amount,
    )


def _unknown_account_warning(account_id: UUID, amount: Decimal) -> ReconciliationWarning:
    return ReconciliationWarning(
        code=WarningCode.UNKNOWN_ACCOUNT,
        message=f"Posted activity on account {account_id} with no account metadata",
        account_id=account_id,
        amount=amount,
    )


def empty_period_warning(start: date, end: date) -> ReconciliationWarning:
    return ReconciliationWarning(
        code=WarningCode.EMPTY_PERIOD,
        message=f"Period end {end} is before start {start}; no activity reported",
    )


def income_statement_amount(category: Category, debit: Decimal, credit: Decimal) -> Decimal:
    """Signed contribution: credit - debit for income, debit - credit for costs."""
    if category in (Category.REVENUE, Category.OTHER_INCOME):
        return credit - debit
    return debit - credit


def compute_profit_from_balances(
    balances: Mapping[UUID, Decimal],
    accounts: Mapping[UUID, AccountInfo],
    config: ReportingConfig,
) -> Decimal:
    """
    Net profit implied by natural balances of income statement accounts:
    revenue + other income - cost of sales - expenses - tax.
    """
    profit = ZERO
    for account_id, balance in balances.items():
        account = accounts.get(account_id)
        if account is None:
            continue
        category = classify(account, config.classification)
        if category in (Category.REVENUE, Category.OTHER_INCOME):
            profit += balance
        elif category in (Category.COGS, Category.EXPENSE, Category.TAX_EXPENSE):
            profit -= balance
    return profit


# =========================================================================
# 1. TRIAL BALANCE
# =========================================================================


def build_trial_balance(
    rows: list[TrialBalanceRow],
    accounts: Mapping[UUID, AccountInfo],
    config: ReportingConfig,
    metadata: ReportMetadata,
) -> TrialBalanceReport:
    """Build a trial balance report sorted by account code."""
    items: list[TrialBalanceLineItem] = []
    for row in rows:
        acct = accounts.get(row.account_id)
        if acct is None:
            continue

        natural = compute_natural_balance(
            row.debit_total, row.credit_total, acct.normal_balance,
        )
        if not config.include_zero_balances and natural == ZERO:
            continue

        items.append(
            TrialBalanceLineItem(
                account_id=row.account_id,
                account_code=row.account_code,
                account_name=row.account_name,
                account_type=AccountType(acct.account_type).value,
                debit_balance=row.debit_total,
                credit_balance=row.credit_total,
                net_balance=natural,
            )
        )

    items.sort(key=lambda x: x.account_code)
    total_debits = sum((row.debit_total for row in rows), ZERO)
    total_credits = sum((row.credit_total for row in rows), ZERO)

    return TrialBalanceReport(
        metadata=metadata,
        lines=tuple(items),
        total_debits=total_debits,
        total_credits=total_credits,
        is_balanced=within_tolerance(
            total_debits, total_credits, config.reconciliation_tolerance,
        ),
    )


# =========================================================================
# 2. INCOME STATEMENT
# =========================================================================


def build_income_statement(
    lines: Iterable[LedgerLine],
    accounts: Mapping[UUID, AccountInfo],
    config: ReportingConfig,
    metadata: ReportMetadata,
    warnings: Iterable[ReconciliationWarning] = (),
) -> IncomeStatementReport:
    """
    Build the income statement by streaming posted lines once.

    Only income statement buckets contribute; balance sheet lines in the
    stream are ignored.  Memory is bounded by the number of accounts, not
    the number of lines.

        gross_profit     = revenue - cost_of_sales
        operating_profit = gross_profit + other_income - expenses
        net_profit       = operating_profit - tax_expenses
    """
    warnings = list(warnings)
    categories: dict[UUID, Category] = {}
    per_account: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    unknown: dict[UUID, Decimal] = defaultdict(lambda: ZERO)

    for ln in lines:
        account = accounts.get(ln.account_id)
        if account is None:
            unknown[ln.account_id] += ln.debit - ln.credit
            continue
        category = categories.get(ln.account_id)
        if category is None:
            category = classify(account, config.classification)
            categories[ln.account_id] = category
        if category not in INCOME_STATEMENT_CATEGORIES:
            continue
        per_account[ln.account_id] += income_statement_amount(category, ln.debit, ln.credit)

    totals: dict[Category, Decimal] = defaultdict(lambda: ZERO)
    by_category: dict[str, Decimal] = {}
    statement_lines: list[StatementLine] = []

    for account in _sorted_accounts(accounts):
        if account.id not in per_account:
            continue
        category = categories[account.id]
        amount = per_account[account.id]
        totals[category] += amount
        if category == Category.EXPENSE:
            key = expense_category(account)
            by_category[key] = by_category.get(key, ZERO) + amount
        if amount != ZERO or config.include_zero_balances:
            statement_lines.append(_line(account, category, amount))

    for account_id, amount in unknown.items():
        warnings.append(_unknown_account_warning(account_id, amount))

    revenue = totals[Category.REVENUE]
    other_income = totals[Category.OTHER_INCOME]
    cost_of_sales = totals[Category.COGS]
    expenses = totals[Category.EXPENSE]
    tax_expenses = totals[Category.TAX_EXPENSE]

    gross_profit = revenue - cost_of_sales
    operating_profit = gross_profit + other_income - expenses
    net_profit = operating_profit - tax_expenses

    return IncomeStatementReport(
        metadata=metadata,
        revenue=revenue,
        other_income=other_income,
        cost_of_sales=cost_of_sales,
        expenses=expenses,
        tax_expenses=tax_expenses,
        gross_profit=gross_profit,
        operating_profit=operating_profit,
        net_profit=net_profit,
        expenses_by_category=by_category,
        lines=tuple(statement_lines),
        warnings=tuple(warnings),
    )


# =========================================================================
# 3. BALANCE SHEET
# =========================================================================


def build_balance_sheet(
    balances: Mapping[UUID, Decimal],
    accounts: Mapping[UUID, AccountInfo],
    config: ReportingConfig,
    metadata: ReportMetadata,
) -> BalanceSheetReport:
    """
    Build a classified balance sheet from natural balances at an instant.

    Classification:
    1. Current assets: cash, inventory, trade receivables, other current
    2. Non-current assets, net of contra-asset (accumulated depreciation)
       balances
    3. Liabilities split current / non-current
    4. Equity: capital lines plus one retained earnings line =
       stored retained earnings + life-to-date profit + drawings
    5. Unclassified asset/liability balances go to "other" with a warning
    6. Verify A = L + E within tolerance
    """
    include_zero = config.include_zero_balances
    warnings: list[ReconciliationWarning] = []

    sections: dict[str, list[StatementLine]] = {
        "current_assets": [],
        "non_current_assets": [],
        "other_assets": [],
        "current_liabilities": [],
        "non_current_liabilities": [],
        "other_liabilities": [],
        "equity": [],
    }

    cash = ZERO
    stored_retained = ZERO
    drawings = ZERO
    retained_account: AccountInfo | None = None

    for account in _sorted_accounts(accounts):
        balance = balances.get(account.id, ZERO)
        category = classify(account, config.classification)

        if category in INCOME_STATEMENT_CATEGORIES:
            continue
        if category == Category.RETAINED_EARNINGS:
            stored_retained += balance
            retained_account = retained_account or account
            continue
        if category == Category.DRAWINGS:
            drawings += balance
            continue

        amount = balance
        if category in CURRENT_ASSET_CATEGORIES:
            key = "current_assets"
            if category == Category.CASH:
                cash += balance
        elif category == Category.NON_CURRENT_ASSET:
            key = "non_current_assets"
        elif category == Category.CONTRA_ASSET:
            key = "non_current_assets"
            amount = -balance
        elif category in CURRENT_LIABILITY_CATEGORIES:
            key = "current_liabilities"
        elif category == Category.NON_CURRENT_LIABILITY:
            key = "non_current_liabilities"
        elif category == Category.UNCLASSIFIED:
            if AccountType(account.account_type) == AccountType.LIABILITY:
                key = "other_liabilities"
            else:
                key = "other_assets"
            if balance != ZERO:
                warnings.append(_unclassified_warning(account, balance))
        else:
            key = "equity"

        if amount != ZERO or include_zero:
            sections[key].append(_line(account, category, amount))

    period_profit = compute_profit_from_balances(balances, accounts, config)
    retained_earnings = stored_retained + period_profit + drawings
    if retained_earnings != ZERO or include_zero or retained_account is not None:
        sections["equity"].append(
            StatementLine(
                account_id=retained_account.id if retained_account else None,
                account_code=retained_account.code if retained_account else None,
                account_name=retained_account.name if retained_account else "Retained Earnings",
                category=Category.RETAINED_EARNINGS.value,
                amount=retained_earnings,
            )
        )

    non_current_assets = _make_section("Non-Current Assets", sections["non_current_assets"])
    current_assets = _make_section("Current Assets", sections["current_assets"])
    other_assets = _make_section("Other Assets", sections["other_assets"])
    total_assets = non_current_assets.total + current_assets.total + other_assets.total

    non_current_liabilities = _make_section(
        "Non-Current Liabilities", sections["non_current_liabilities"],
    )
    current_liabilities = _make_section("Current Liabilities", sections["current_liabilities"])
    other_liabilities = _make_section("Other Liabilities", sections["other_liabilities"])
    total_liabilities = (
        non_current_liabilities.total + current_liabilities.total + other_liabilities.total
    )

    equity = _make_section("Equity", sections["equity"])
    total_equity = equity.total

    total_l_and_e = total_liabilities + total_equity
    is_balanced = within_tolerance(total_assets, total_l_and_e, config.reconciliation_tolerance)
    if not is_balanced:
        warnings.append(
            ReconciliationWarning(
                code=WarningCode.UNBALANCED_BALANCE_SHEET,
                message=(
                    f"Total assets {total_assets} differ from liabilities and "
                    f"equity {total_l_and_e}"
                ),
                amount=total_assets - total_l_and_e,
            )
        )

    return BalanceSheetReport(
        metadata=metadata,
        non_current_assets=non_current_assets,
        current_assets=current_assets,
        other_assets=other_assets,
        total_assets=total_assets,
        non_current_liabilities=non_current_liabilities,
        current_liabilities=current_liabilities,
        other_liabilities=other_liabilities,
        total_liabilities=total_liabilities,
        equity=equity,
        total_equity=total_equity,
        retained_earnings=retained_earnings,
        cash=cash,
        total_liabilities_and_equity=total_l_and_e,
        is_balanced=is_balanced,
        warnings=tuple(warnings),
    )


def cash_balance(
    balances: Mapping[UUID, Decimal],
    accounts: Mapping[UUID, AccountInfo],
    config: ReportingConfig,
) -> Decimal:
    """Sum of natural balances of cash-bucket accounts."""
    return sum(
        (
            balances.get(account.id, ZERO)
            for account in accounts.values()
            if classify(account, config.classification) == Category.CASH
        ),
        ZERO,
    )


# =========================================================================
# 4. CASH FLOW STATEMENT (Indirect Method)
# =========================================================================


_WORKING_CAPITAL_LABELS: dict[Category, str] = {
    Category.INVENTORY: "(Increase)/decrease in inventory",
    Category.TRADE_RECEIVABLES: "(Increase)/decrease in trade receivables",
    Category.CURRENT_ASSET: "(Increase)/decrease in other current assets",
    Category.TRADE_PAYABLE: "Increase/(decrease) in trade payables",
    Category.CURRENT_LIABILITY: "Increase/(decrease) in other current liabilities",
    Category.RETAINED_EARNINGS: "Transfers to retained earnings",
    Category.UNCLASSIFIED: "Other unclassified items",
}


def build_cash_flow_statement(
    movements: Mapping[UUID, AccountTotals],
    accounts: Mapping[UUID, AccountInfo],
    config: ReportingConfig,
    metadata: ReportMetadata,
    opening_cash: Decimal,
    closing_cash: Decimal,
    warnings: Iterable[ReconciliationWarning] = (),
    cash_settled_debits: Mapping[UUID, Decimal] | None = None,
) -> CashFlowStatementReport:
    """
    Build the statement of cash flows using the indirect method.

    Inputs are the per-account debit/credit movements within the period and
    the cash balances from the balance sheets at the period boundaries.

    Every non-cash account's period movement lands in exactly one place,
    with cash effect (credit - debit):

    1. Net profit (income statement buckets)
    2. Non-cash add-back: movement on depreciation expense accounts
    3. Working capital: inventory, receivables, payables, other current
       items, retained earnings transfers, unclassified accounts
    4. Investing: non-current asset purchases (debits) and disposals
       (credits), plus contra-asset movement not explained by the add-back
    5. Financing: non-current liabilities (loans received / repaid) and
       capital accounts (capital introduced / drawings and dividends paid).
       Debits to retained earnings paid out of cash in the same entry
       (cash_settled_debits) are dividends and also land here; the rest of
       the retained-earnings movement stays in working capital.

    Because every balanced entry nets to zero, the sections sum to the net
    movement on cash accounts, which reconciles with closing - opening cash.
    """
    warnings = list(warnings)
    net_profit = ZERO
    depreciation_lines: list[CashFlowLineItem] = []
    depreciation_total = ZERO
    contra_movement = ZERO
    wc_totals: dict[Category, Decimal] = defaultdict(lambda: ZERO)
    nca_purchases = ZERO
    nca_disposals = ZERO
    loans_received = ZERO
    loans_repaid = ZERO
    capital_introduced = ZERO
    capital_withdrawn = ZERO
    settled = cash_settled_debits or {}

    known_ids = set(accounts)
    for account_id, totals in movements.items():
        if account_id not in known_ids:
            warnings.append(_unknown_account_warning(account_id, totals.net_debit))
            wc_totals[Category.UNCLASSIFIED] -= totals.net_debit

    for account in _sorted_accounts(accounts):
        totals = movements.get(account.id)
        if totals is None:
            continue
        debit, credit = totals.debit_total, totals.credit_total
        cash_effect = credit - debit
        category = classify(account, config.classification)

        if category == Category.CASH:
            continue
        if category in INCOME_STATEMENT_CATEGORIES:
            net_profit += cash_effect
            if category in (Category.EXPENSE, Category.COGS) and is_depreciation(account):
                addback = debit - credit
                depreciation_total += addback
                depreciation_lines.append(
                    CashFlowLineItem(description=f"Add back: {account.name}", amount=addback)
                )
        elif category == Category.CONTRA_ASSET:
            contra_movement += cash_effect
        elif category == Category.NON_CURRENT_ASSET:
            nca_purchases -= debit
            nca_disposals += credit
        elif category == Category.NON_CURRENT_LIABILITY:
            loans_received += credit
            loans_repaid -= debit
        elif category in (Category.SHARE_CAPITAL, Category.OTHER_EQUITY, Category.DRAWINGS):
            capital_introduced += credit
            capital_withdrawn -= debit
        elif category == Category.RETAINED_EARNINGS:
            paid = min(settled.get(account.id, ZERO), debit)
            capital_withdrawn -= paid
            wc_totals[category] += cash_effect + paid
        else:
            wc_totals[category] += cash_effect
            if category == Category.UNCLASSIFIED and cash_effect != ZERO:
                warnings.append(_unclassified_warning(account, -cash_effect))

    operating_adjustments = _make_cf_section("Non-Cash Adjustments", depreciation_lines)
    working_capital = _make_cf_section(
        "Working Capital Changes",
        [
            CashFlowLineItem(description=label, amount=wc_totals[category])
            for category, label in _WORKING_CAPITAL_LABELS.items()
        ],
    )
    net_cash_from_operations = net_profit + operating_adjustments.total + working_capital.total

    investing = _make_cf_section(
        "Investing Activities",
        [
            CashFlowLineItem("Purchase of non-current assets", nca_purchases),
            CashFlowLineItem("Disposal of non-current assets", nca_disposals),
            CashFlowLineItem(
                "Accumulated depreciation released on disposals",
                contra_movement - depreciation_total,
            ),
        ],
    )

    financing = _make_cf_section(
        "Financing Activities",
        [
            CashFlowLineItem("Loans received", loans_received),
            CashFlowLineItem("Loans repaid", loans_repaid),
            CashFlowLineItem("Capital introduced", capital_introduced),
            CashFlowLineItem("Drawings and dividends paid", capital_withdrawn),
        ],
    )

    net_change = net_cash_from_operations + investing.total + financing.total
    reconciles = within_tolerance(
        closing_cash - opening_cash, net_change, config.reconciliation_tolerance,
    )
    if not reconciles:
        warnings.append(
            ReconciliationWarning(
                code=WarningCode.CASH_NOT_RECONCILED,
                message=(
                    f"Net change in cash {net_change} differs from closing minus "
                    f"opening cash {closing_cash - opening_cash}"
                ),
                amount=(closing_cash - opening_cash) - net_change,
            )
        )

    return CashFlowStatementReport(
        metadata=metadata,
        net_profit=net_profit,
        operating_adjustments=operating_adjustments,
        working_capital_changes=working_capital,
        net_cash_from_operations=net_cash_from_operations,
        investing_activities=investing,
        net_cash_from_investing=investing.total,
        financing_activities=financing,
        net_cash_from_financing=financing.total,
        net_change_in_cash=net_change,
        opening_cash=opening_cash,
        closing_cash=closing_cash,
        cash_change_reconciles=reconciles,
        warnings=tuple(warnings),
    )


# =========================================================================
# 5. RENDERER (dict/JSON output)
# =========================================================================


def render_to_dict(obj: object) -> dict | list | str | int | float | bool | None:
    """
    Convert any report dataclass to a plain dict for JSON serialization.

    Handles:
    - Decimal -> str (preserving precision)
    - UUID -> str
    - date -> ISO format string
    - Enum -> .value
    - Nested frozen dataclasses -> nested dicts
    - Tuples -> lists
    - None preserved
    """
    if obj is None:
        return None
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)
