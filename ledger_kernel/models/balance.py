"""
Module: ledger_kernel.models.balance
Responsibility: Materialized per-account, per-day posted activity.  Summing
    rows with activity_date <= instant gives an account balance without
    replaying every journal line.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per (entity_id, account_id, activity_date).
    - Rows are maintained in the same transaction as the posting that
      produced them, so the view is never ahead of the journal.
    - The view is disposable: BalanceAggregator.rebuild() recreates it from
      posted journal lines, which remain the source of truth.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class AccountActivity(Base):
    """Debit and credit totals posted to one account on one day."""

    __tablename__ = "account_activity"

    __table_args__ = (
        UniqueConstraint(
            "entity_id", "account_id", "activity_date",
            name="uq_activity_account_day",
        ),
        Index("idx_activity_entity_date", "entity_id", "activity_date"),
    )

    entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    activity_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    debit_total: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    credit_total: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    def __repr__(self) -> str:
        return (
            f"<AccountActivity {self.account_id} {self.activity_date} "
            f"dr={self.debit_total} cr={self.credit_total}>"
        )
