"""
Classification -- account to statement-bucket mapping.

Responsibility:
    Maps every account to exactly one ``StatementCategory`` consumed by the
    statement builders.  Precedence:

        1. explicit ``subtype`` tag (when its bucket suits the account type)
        2. numeric ``code`` sub-range
        3. ``account_type`` alone

    Asset and liability accounts that match neither a tag nor a range fall
    into ``UNCLASSIFIED`` so their amounts stay visible in reports instead of
    being dropped.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - classify() never raises and always returns a member of the closed
      StatementCategory enum.
    - A tag or range never moves an account across account types (a
      revenue account is never classified as an asset bucket).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.models.account import AccountType


class StatementCategory(str, Enum):
    """Statement line buckets."""

    # Assets
    CASH = "cash"
    INVENTORY = "inventory"
    TRADE_RECEIVABLES = "trade_receivables"
    CURRENT_ASSET = "current_asset"
    NON_CURRENT_ASSET = "non_current_asset"
    CONTRA_ASSET = "contra_asset"

    # Liabilities
    TRADE_PAYABLE = "trade_payable"
    CURRENT_LIABILITY = "current_liability"
    NON_CURRENT_LIABILITY = "non_current_liability"

    # Equity
    SHARE_CAPITAL = "share_capital"
    RETAINED_EARNINGS = "retained_earnings"
    DRAWINGS = "drawings"
    OTHER_EQUITY = "other_equity"

    # Income statement
    REVENUE = "revenue"
    OTHER_INCOME = "other_income"
    COGS = "cogs"
    EXPENSE = "expense"
    TAX_EXPENSE = "tax_expense"

    UNCLASSIFIED = "unclassified"


CURRENT_ASSET_CATEGORIES = frozenset({
    StatementCategory.CASH,
    StatementCategory.INVENTORY,
    StatementCategory.TRADE_RECEIVABLES,
    StatementCategory.CURRENT_ASSET,
})

CURRENT_LIABILITY_CATEGORIES = frozenset({
    StatementCategory.TRADE_PAYABLE,
    StatementCategory.CURRENT_LIABILITY,
})

EQUITY_CATEGORIES = frozenset({
    StatementCategory.SHARE_CAPITAL,
    StatementCategory.RETAINED_EARNINGS,
    StatementCategory.DRAWINGS,
    StatementCategory.OTHER_EQUITY,
})

INCOME_STATEMENT_CATEGORIES = frozenset({
    StatementCategory.REVENUE,
    StatementCategory.OTHER_INCOME,
    StatementCategory.COGS,
    StatementCategory.EXPENSE,
    StatementCategory.TAX_EXPENSE,
})

_ALLOWED_TYPES: dict[StatementCategory, frozenset[AccountType]] = {
    StatementCategory.CASH: frozenset({AccountType.ASSET}),
    StatementCategory.INVENTORY: frozenset({AccountType.ASSET}),
    StatementCategory.TRADE_RECEIVABLES: frozenset({AccountType.ASSET}),
    StatementCategory.CURRENT_ASSET: frozenset({AccountType.ASSET}),
    StatementCategory.NON_CURRENT_ASSET: frozenset({AccountType.ASSET}),
    StatementCategory.CONTRA_ASSET: frozenset({AccountType.CONTRA_ASSET}),
    StatementCategory.TRADE_PAYABLE: frozenset({AccountType.LIABILITY}),
    StatementCategory.CURRENT_LIABILITY: frozenset({AccountType.LIABILITY}),
    StatementCategory.NON_CURRENT_LIABILITY: frozenset({AccountType.LIABILITY}),
    StatementCategory.SHARE_CAPITAL: frozenset({AccountType.EQUITY}),
    StatementCategory.RETAINED_EARNINGS: frozenset({AccountType.EQUITY}),
    StatementCategory.DRAWINGS: frozenset({AccountType.EQUITY}),
    StatementCategory.OTHER_EQUITY: frozenset({AccountType.EQUITY}),
    StatementCategory.REVENUE: frozenset({AccountType.REVENUE}),
    StatementCategory.OTHER_INCOME: frozenset({AccountType.REVENUE}),
    StatementCategory.COGS: frozenset({AccountType.COGS}),
    StatementCategory.EXPENSE: frozenset({AccountType.EXPENSE}),
    StatementCategory.TAX_EXPENSE: frozenset({AccountType.EXPENSE}),
}


def normalize_tag(tag: str | None) -> str:
    """Lower-case a free-form tag and collapse separators to underscores."""
    if not tag:
        return ""
    cleaned = tag.strip().lower().replace("-", " ").replace("'", "")
    return "_".join(cleaned.split())


DEFAULT_SUBTYPE_ALIASES: dict[str, StatementCategory] = {
    "cash": StatementCategory.CASH,
    "bank": StatementCategory.CASH,
    "cash_equivalent": StatementCategory.CASH,
    "inventory": StatementCategory.INVENTORY,
    "stock": StatementCategory.INVENTORY,
    "trade_receivables": StatementCategory.TRADE_RECEIVABLES,
    "trade_receivable": StatementCategory.TRADE_RECEIVABLES,
    "accounts_receivable": StatementCategory.TRADE_RECEIVABLES,
    "receivables": StatementCategory.TRADE_RECEIVABLES,
    "current_asset": StatementCategory.CURRENT_ASSET,
    "other_current_asset": StatementCategory.CURRENT_ASSET,
    "prepayment": StatementCategory.CURRENT_ASSET,
    "fixed_asset": StatementCategory.NON_CURRENT_ASSET,
    "non_current_asset": StatementCategory.NON_CURRENT_ASSET,
    "property_plant_equipment": StatementCategory.NON_CURRENT_ASSET,
    "intangible_asset": StatementCategory.NON_CURRENT_ASSET,
    "accumulated_depreciation": StatementCategory.CONTRA_ASSET,
    "contra_asset": StatementCategory.CONTRA_ASSET,
    "trade_payable": StatementCategory.TRADE_PAYABLE,
    "trade_payables": StatementCategory.TRADE_PAYABLE,
    "accounts_payable": StatementCategory.TRADE_PAYABLE,
    "current_liability": StatementCategory.CURRENT_LIABILITY,
    "accrued_liability": StatementCategory.CURRENT_LIABILITY,
    "tax_payable": StatementCategory.CURRENT_LIABILITY,
    "long_term_liability": StatementCategory.NON_CURRENT_LIABILITY,
    "non_current_liability": StatementCategory.NON_CURRENT_LIABILITY,
    "long_term_loan": StatementCategory.NON_CURRENT_LIABILITY,
    "share_capital": StatementCategory.SHARE_CAPITAL,
    "capital": StatementCategory.SHARE_CAPITAL,
    "owners_equity": StatementCategory.SHARE_CAPITAL,
    "members_equity": StatementCategory.SHARE_CAPITAL,
    "partners_capital": StatementCategory.SHARE_CAPITAL,
    "retained_earnings": StatementCategory.RETAINED_EARNINGS,
    "drawings": StatementCategory.DRAWINGS,
    "dividends": StatementCategory.DRAWINGS,
    "other_equity": StatementCategory.OTHER_EQUITY,
    "revenue": StatementCategory.REVENUE,
    "sales": StatementCategory.REVENUE,
    "other_income": StatementCategory.OTHER_INCOME,
    "interest_income": StatementCategory.OTHER_INCOME,
    "cogs": StatementCategory.COGS,
    "cost_of_sales": StatementCategory.COGS,
    "tax_expense": StatementCategory.TAX_EXPENSE,
    "income_tax": StatementCategory.TAX_EXPENSE,
}


@dataclass(frozen=True)
class CodeRange:
    """Inclusive numeric code range mapped to a bucket."""

    low: int
    high: int
    category: StatementCategory

    def __post_init__(self) -> None:
        if self.low > self.high:
            raise ValueError(f"Code range {self.low}-{self.high} is inverted")
        if not isinstance(self.category, StatementCategory):
            object.__setattr__(self, "category", StatementCategory(self.category))

    def contains(self, code_number: int) -> bool:
        return self.low <= code_number <= self.high


DEFAULT_CODE_RANGES: tuple[CodeRange, ...] = (
    CodeRange(1000, 1099, StatementCategory.CASH),
    CodeRange(1100, 1199, StatementCategory.INVENTORY),
    CodeRange(1200, 1299, StatementCategory.TRADE_RECEIVABLES),
    CodeRange(1300, 1399, StatementCategory.CASH),
    CodeRange(1400, 1499, StatementCategory.CURRENT_ASSET),
    CodeRange(1500, 1999, StatementCategory.NON_CURRENT_ASSET),
    CodeRange(2000, 2099, StatementCategory.TRADE_PAYABLE),
    CodeRange(2100, 2599, StatementCategory.CURRENT_LIABILITY),
    CodeRange(2600, 2999, StatementCategory.NON_CURRENT_LIABILITY),
    CodeRange(3000, 3099, StatementCategory.SHARE_CAPITAL),
    CodeRange(3100, 3199, StatementCategory.RETAINED_EARNINGS),
    CodeRange(4000, 4499, StatementCategory.REVENUE),
    CodeRange(4500, 4999, StatementCategory.OTHER_INCOME),
    CodeRange(5000, 5999, StatementCategory.COGS),
    CodeRange(6000, 8999, StatementCategory.EXPENSE),
    CodeRange(9000, 9999, StatementCategory.TAX_EXPENSE),
)


@dataclass(frozen=True)
class ClassificationRules:
    """
    Subtype aliases and code ranges used by classify().

    Ranges are checked in order; the first compatible match wins.
    """

    code_ranges: tuple[CodeRange, ...] = DEFAULT_CODE_RANGES
    subtype_aliases: dict[str, StatementCategory] = field(
        default_factory=lambda: dict(DEFAULT_SUBTYPE_ALIASES),
    )

    @classmethod
    def from_dict(cls, data: dict) -> ClassificationRules:
        """
        Build rules from plain data, e.g. a YAML mapping::

            code_ranges:
              - {low: 1000, high: 1099, category: cash}
            subtype_aliases:
              petty_cash: cash

        Aliases are merged over the defaults; ranges replace them.
        """
        ranges = DEFAULT_CODE_RANGES
        if "code_ranges" in data:
            ranges = tuple(
                CodeRange(int(r["low"]), int(r["high"]), StatementCategory(r["category"]))
                for r in data["code_ranges"]
            )
        aliases = dict(DEFAULT_SUBTYPE_ALIASES)
        for tag, category in (data.get("subtype_aliases") or {}).items():
            aliases[normalize_tag(tag)] = StatementCategory(category)
        return cls(code_ranges=ranges, subtype_aliases=aliases)


DEFAULT_RULES = ClassificationRules()


def _compatible(category: StatementCategory, account_type: AccountType) -> bool:
    return account_type in _ALLOWED_TYPES.get(category, frozenset())


def _code_number(code: str) -> int | None:
    digits = ""
    for ch in code.strip():
        if not ch.isdigit():
            break
        digits += ch
    return int(digits) if digits else None


def _by_type(account: AccountInfo) -> StatementCategory:
    account_type = AccountType(account.account_type)
    if account_type == AccountType.REVENUE:
        return StatementCategory.REVENUE
    if account_type == AccountType.EXPENSE:
        return StatementCategory.EXPENSE
    if account_type == AccountType.COGS:
        return StatementCategory.COGS
    if account_type == AccountType.CONTRA_ASSET:
        return StatementCategory.CONTRA_ASSET
    if account_type == AccountType.EQUITY:
        name = account.name.lower()
        if "drawing" in name or "dividend" in name:
            return StatementCategory.DRAWINGS
        return StatementCategory.OTHER_EQUITY
    # A bare asset or liability says nothing about current vs non-current
    return StatementCategory.UNCLASSIFIED


def classify(
    account: AccountInfo,
    rules: ClassificationRules | None = None,
) -> StatementCategory:
    """Map an account to its statement bucket.  Never raises."""
    rules = rules or DEFAULT_RULES
    account_type = AccountType(account.account_type)

    tag = normalize_tag(account.subtype)
    if tag:
        category = rules.subtype_aliases.get(tag)
        if category is not None and _compatible(category, account_type):
            return category

    number = _code_number(account.code)
    if number is not None:
        for code_range in rules.code_ranges:
            if code_range.contains(number) and _compatible(code_range.category, account_type):
                return code_range.category

    return _by_type(account)


def is_depreciation(account: AccountInfo) -> bool:
    """True when the account name or subtype mentions depreciation."""
    return (
        "depreciation" in account.name.lower()
        or "depreciation" in (account.subtype or "").lower()
    )


def expense_category(account: AccountInfo) -> str:
    """Key for the expenses-by-category breakdown: subtype, else account name."""
    if account.subtype and account.subtype.strip():
        return account.subtype.strip()
    return account.name
