"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the Chart of Accounts -- the target of
    every journal line.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - code is unique within the owning entity (uq_account_entity_code).
    - Accounts are deactivated, never deleted, once referenced.

Failure modes:
    - AccountNotFoundError when a posting references a non-existent account.
    - AccountInactiveError when a posting targets an inactive account.
    - DuplicateAccountCodeError when a code is reused within an entity.
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalLine


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"
    COGS = "cogs"
    CONTRA_ASSET = "contra_asset"


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


_NORMAL_BALANCE_BY_TYPE: dict[AccountType, NormalBalance] = {
    AccountType.ASSET: NormalBalance.DEBIT,
    AccountType.EXPENSE: NormalBalance.DEBIT,
    AccountType.COGS: NormalBalance.DEBIT,
    AccountType.LIABILITY: NormalBalance.CREDIT,
    AccountType.EQUITY: NormalBalance.CREDIT,
    AccountType.REVENUE: NormalBalance.CREDIT,
    AccountType.CONTRA_ASSET: NormalBalance.CREDIT,
}


def normal_balance_for(account_type: AccountType) -> NormalBalance:
    """Return the normal balance side implied by an account type."""
    return _NORMAL_BALANCE_BY_TYPE[AccountType(account_type)]


class Account(TrackedBase):
    """
    Chart of Accounts entry owned by a single entity (company).

    Contract:
        (entity_id, code) is unique.  account_type is explicit; subtype is a
        free-form tag ("fixed_asset", "long_term_liability", ...) consulted
        first by classification.

    Non-goals:
        - Classification logic lives in ledger_kernel.domain.classification,
          not on the model.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("entity_id", "code", name="uq_account_entity_code"),
        Index("idx_account_entity", "entity_id"),
        Index("idx_account_type", "account_type"),
    )

    # Owning entity (company)
    entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # Human-readable, numeric-sortable code
    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    account_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    subtype: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    journal_lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def normal_balance(self) -> NormalBalance:
        return normal_balance_for(self.account_type)

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.DEBIT

    @property
    def is_credit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.CREDIT
