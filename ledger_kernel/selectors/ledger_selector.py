"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only aggregation over posted journal lines: per-account
    debit/credit totals up to an instant (the replay strategy for balances),
    per-account movements within a period and the cash-settled part of
    equity debits (cash flow inputs), per-day activity
    (materialized view rebuild) and the trial balance.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Invariants enforced:
    - Only POSTED entries contribute.  Draft and cancelled entries, and the
      reversing counterparts of cancelled entries, are invisible here.
    - All aggregation happens in SQL GROUP BY; no method loads the ledger
      into memory.
    - All totals are Decimal (never float).

Failure modes:
    - Returns empty results or zero totals when no posted entries exist.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Collection
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.selectors.base import BaseSelector

ZERO = Decimal("0")


@dataclass(frozen=True)
class AccountTotals:
    """Debit and credit totals for one account over some window."""

    account_id: UUID
    debit_total: Decimal
    credit_total: Decimal

    @property
    def net_debit(self) -> Decimal:
        """Net movement (debits - credits)."""
        return self.debit_total - self.credit_total


@dataclass(frozen=True)
class DailyActivity:
    """Posted activity for one account on one day."""

    account_id: UUID
    activity_date: date
    debit_total: Decimal
    credit_total: Decimal


@dataclass(frozen=True)
class TrialBalanceRow:
    """A single row in a trial balance."""

    account_id: UUID
    account_code: str
    account_name: str
    debit_total: Decimal
    credit_total: Decimal

    @property
    def balance(self) -> Decimal:
        """Net balance (debits - credits)."""
        return self.debit_total - self.credit_total


class LedgerSelector(BaseSelector[JournalLine]):
    """
    Selector for ledger aggregation queries.

    Contract:
        Every query is scoped to one entity and filters on
        status == POSTED.  Date filters apply to JournalEntry.entry_date and
        are inclusive.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _sums(self):
        debit_sum = func.coalesce(func.sum(JournalLine.debit), ZERO).label("debit_total")
        credit_sum = func.coalesce(func.sum(JournalLine.credit), ZERO).label("credit_total")
        return debit_sum, credit_sum

    def _posted(self, query, entity_id: UUID):
        return query.select_from(JournalLine).join(
            JournalEntry, JournalLine.journal_entry_id == JournalEntry.id,
        ).where(
            JournalEntry.entity_id == entity_id,
            JournalEntry.status == JournalEntryStatus.POSTED.value,
        )

    def account_totals(
        self,
        entity_id: UUID,
        as_of_date: date | None = None,
        account_id: UUID | None = None,
    ) -> dict[UUID, AccountTotals]:
        """
        Debit/credit totals per account over posted lines with
        entry_date <= as_of_date (all time when as_of_date is None).

        Accounts without posted lines are absent from the result.
        """
        debit_sum, credit_sum = self._sums()
        query = self._posted(
            select(JournalLine.account_id, debit_sum, credit_sum), entity_id,
        ).group_by(JournalLine.account_id)

        if as_of_date is not None:
            query = query.where(JournalEntry.entry_date <= as_of_date)
        if account_id is not None:
            query = query.where(JournalLine.account_id == account_id)

        return {
            row.account_id: AccountTotals(
                account_id=row.account_id,
                debit_total=row.debit_total or ZERO,
                credit_total=row.credit_total or ZERO,
            )
            for row in self.session.execute(query).all()
        }

    def period_movements(
        self,
        entity_id: UUID,
        start_date: date,
        end_date: date,
    ) -> dict[UUID, AccountTotals]:
        """
        Debit/credit totals per account over posted lines with
        start_date <= entry_date <= end_date.  Empty when end < start.
        """
        if end_date < start_date:
            return {}

        debit_sum, credit_sum = self._sums()
        query = (
            self._posted(select(JournalLine.account_id, debit_sum, credit_sum), entity_id)
            .where(
                JournalEntry.entry_date >= start_date,
                JournalEntry.entry_date <= end_date,
            )
            .group_by(JournalLine.account_id)
        )

        return {
            row.account_id: AccountTotals(
                account_id=row.account_id,
                debit_total=row.debit_total or ZERO,
                credit_total=row.credit_total or ZERO,
            )
            for row in self.session.execute(query).all()
        }

    def cash_settled_debits(
        self,
        entity_id: UUID,
        start_date: date,
        end_date: date,
        account_ids: Collection[UUID],
        cash_account_ids: Collection[UUID],
    ) -> dict[UUID, Decimal]:
        """
        Debits on account_ids within the period that were paid out of cash.

        Only entries that debit one of account_ids are read.  Within each,
        the debits are matched against the entry's net cash outflow, so a
        debit settled partly by a payable counts only the cash part.
        """
        if end_date < start_date or not account_ids or not cash_account_ids:
            return {}

        in_period = (
            JournalEntry.entry_date >= start_date,
            JournalEntry.entry_date <= end_date,
        )
        debiting_entries = (
            self._posted(select(JournalLine.journal_entry_id), entity_id)
            .where(
                *in_period,
                JournalLine.account_id.in_(list(account_ids)),
                JournalLine.debit > ZERO,
            )
            .correlate(None)
        )
        debit_sum, credit_sum = self._sums()
        query = (
            self._posted(
                select(JournalLine.journal_entry_id, JournalLine.account_id, debit_sum, credit_sum),
                entity_id,
            )
            .where(
                *in_period,
                JournalLine.journal_entry_id.in_(debiting_entries),
                JournalLine.account_id.in_([*account_ids, *cash_account_ids]),
            )
            .group_by(JournalLine.journal_entry_id, JournalLine.account_id)
            .order_by(JournalLine.journal_entry_id, JournalLine.account_id)
        )

        per_entry: dict[UUID, list] = {}
        for row in self.session.execute(query).all():
            per_entry.setdefault(row.journal_entry_id, []).append(row)

        cash_ids = set(cash_account_ids)
        settled: dict[UUID, Decimal] = {}
        for rows in per_entry.values():
            cash_out = sum(
                ((r.credit_total or ZERO) - (r.debit_total or ZERO) for r in rows if r.account_id in cash_ids),
                ZERO,
            )
            for row in rows:
                if cash_out <= ZERO:
                    break
                if row.account_id in cash_ids:
                    continue
                paid = min(row.debit_total or ZERO, cash_out)
                if paid > ZERO:
                    settled[row.account_id] = settled.get(row.account_id, ZERO) + paid
                    cash_out -= paid
        return settled

    def daily_activity(self, entity_id: UUID) -> list[DailyActivity]:
        """Posted activity grouped by (account, entry_date)."""
        debit_sum, credit_sum = self._sums()
        query = (
            self._posted(
                select(
                    JournalLine.account_id,
                    JournalEntry.entry_date,
                    debit_sum,
                    credit_sum,
                ),
                entity_id,
            )
            .group_by(JournalLine.account_id, JournalEntry.entry_date)
            .order_by(JournalEntry.entry_date)
        )

        return [
            DailyActivity(
                account_id=row.account_id,
                activity_date=row.entry_date,
                debit_total=row.debit_total or ZERO,
                credit_total=row.credit_total or ZERO,
            )
            for row in self.session.execute(query).all()
        ]

    def trial_balance(
        self,
        entity_id: UUID,
        as_of_date: date | None = None,
    ) -> list[TrialBalanceRow]:
        """
        Compute the trial balance as of a specific date.

        Postconditions: one TrialBalanceRow per account with posted lines,
            ordered by account code.  Sum of debit_totals equals sum of
            credit_totals for a well-formed ledger.
        """
        debit_sum, credit_sum = self._sums()
        query = (
            self._posted(
                select(
                    JournalLine.account_id,
                    Account.code.label("account_code"),
                    Account.name.label("account_name"),
                    debit_sum,
                    credit_sum,
                ),
                entity_id,
            )
            .join(Account, JournalLine.account_id == Account.id)
            .group_by(JournalLine.account_id, Account.code, Account.name)
            .order_by(Account.code)
        )

        if as_of_date is not None:
            query = query.where(JournalEntry.entry_date <= as_of_date)

        return [
            TrialBalanceRow(
                account_id=row.account_id,
                account_code=row.account_code,
                account_name=row.account_name,
                debit_total=row.debit_total or ZERO,
                credit_total=row.credit_total or ZERO,
            )
            for row in self.session.execute(query).all()
        ]

    def total_debits_credits(
        self,
        entity_id: UUID,
        as_of_date: date | None = None,
    ) -> tuple[Decimal, Decimal]:
        """Total debits and credits across all accounts of the entity."""
        debit_sum, credit_sum = self._sums()
        query = self._posted(select(debit_sum, credit_sum), entity_id)
        if as_of_date is not None:
            query = query.where(JournalEntry.entry_date <= as_of_date)

        row = self.session.execute(query).one()
        return (row.debit_total or ZERO, row.credit_total or ZERO)
