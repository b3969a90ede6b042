"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import (
    Account,
    AccountType,
    NormalBalance,
    normal_balance_for,
)
from ledger_kernel.models.balance import AccountActivity
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine


def import_all_models() -> None:
    """Ensure every model module is imported so Base.metadata holds all tables."""
    import ledger_kernel.models.account  # noqa: F401
    import ledger_kernel.models.balance  # noqa: F401
    import ledger_kernel.models.journal  # noqa: F401


__all__ = [
    "Account",
    "AccountActivity",
    "AccountType",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "NormalBalance",
    "import_all_models",
    "normal_balance_for",
]
