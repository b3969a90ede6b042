"""
Balance arithmetic -- pure helpers shared by posting, aggregation and
reporting.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
"""

from decimal import Decimal

from ledger_kernel.models.account import AccountType, NormalBalance, normal_balance_for

DEFAULT_BALANCE_TOLERANCE = Decimal("0.01")


def compute_natural_balance(
    debit_total: Decimal,
    credit_total: Decimal,
    normal_balance: NormalBalance,
) -> Decimal:
    """
    Compute balance adjusted for normal balance side.

    DEBIT-normal (ASSET, EXPENSE, COGS): balance = debit_total - credit_total
    CREDIT-normal (LIABILITY, EQUITY, REVENUE, CONTRA_ASSET):
        balance = credit_total - debit_total

    Result is positive when the account has its expected normal direction.
    """
    if NormalBalance(normal_balance) == NormalBalance.DEBIT:
        return debit_total - credit_total
    return credit_total - debit_total


def natural_balance_for_type(
    debit_total: Decimal,
    credit_total: Decimal,
    account_type: AccountType,
) -> Decimal:
    return compute_natural_balance(
        debit_total, credit_total, normal_balance_for(account_type),
    )


def within_tolerance(
    left: Decimal,
    right: Decimal,
    tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
) -> bool:
    """True when |left - right| <= tolerance."""
    return abs(left - right) <= tolerance
