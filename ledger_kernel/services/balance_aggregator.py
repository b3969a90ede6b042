"""
Module: ledger_kernel.services.balance_aggregator
Responsibility: Account balances as of an instant, served from the
    materialized ``account_activity`` view and verifiable against a full
    replay of posted journal lines.
Architecture position: Kernel > Services.  Flush-only (BaseService).

Invariants enforced:
    - Replay is the correctness oracle.  verify() lists every account where
      the materialized balance and the replayed balance differ; rebuild()
      recreates the view from posted lines.
    - all_balances() contains every account of the entity, zero-filled,
      including inactive accounts with history.
    - apply() runs in the same transaction as the posting that produced the
      lines, so the view never holds activity from an uncommitted entry.

Failure modes:
    - AccountNotFoundError from balance_as_of() for an id outside the entity.
"""

from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.balances import natural_balance_for_type
from ledger_kernel.domain.dtos import AccountBalance, BalanceMismatch
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.balance import AccountActivity
from ledger_kernel.selectors.ledger_selector import AccountTotals, LedgerSelector
from ledger_kernel.services.base import BaseService

logger = get_logger("services.balance_aggregator")

ZERO = Decimal("0")


def _as_date(instant: date | datetime) -> date:
    if isinstance(instant, datetime):
        return instant.date()
    return instant


class BalanceAggregator(BaseService[AccountActivity]):
    """
    Running balances per account.

    Contract:
        Balances are natural-side: positive when the account holds its
        normal direction (debit-normal for asset/expense/cogs, credit-normal
        otherwise).  Instants are calendar dates; a datetime is truncated.
    """

    def __init__(self, session: Session):
        super().__init__(session)
        self._ledger = LedgerSelector(session)

    # -------------------------------------------------------------------------
    # Incremental maintenance
    # -------------------------------------------------------------------------

    def apply(
        self,
        entity_id: UUID,
        activity_date: date,
        lines: Iterable[tuple[UUID, Decimal, Decimal]],
    ) -> None:
        """
        Fold (account_id, debit, credit) movements into the view for one day.
        """
        per_account: dict[UUID, list[Decimal]] = defaultdict(lambda: [ZERO, ZERO])
        for account_id, debit, credit in lines:
            per_account[account_id][0] += debit
            per_account[account_id][1] += credit

        for account_id, (debit, credit) in per_account.items():
            row = self.session.execute(
                select(AccountActivity)
                .where(
                    AccountActivity.entity_id == entity_id,
                    AccountActivity.account_id == account_id,
                    AccountActivity.activity_date == activity_date,
                )
                .with_for_update()
            ).scalar_one_or_none()

            if row is None:
                self.session.add(
                    AccountActivity(
                        entity_id=entity_id,
                        account_id=account_id,
                        activity_date=activity_date,
                        debit_total=debit,
                        credit_total=credit,
                    )
                )
            else:
                row.debit_total = row.debit_total + debit
                row.credit_total = row.credit_total + credit

        self.session.flush()
        logger.debug(
            "balance_view_updated",
            extra={
                "entity_id": str(entity_id),
                "activity_date": activity_date.isoformat(),
                "accounts_touched": len(per_account),
            },
        )

    # -------------------------------------------------------------------------
    # Materialized reads
    # -------------------------------------------------------------------------

    def _account_types(self, entity_id: UUID) -> dict[UUID, AccountType]:
        rows = self.session.execute(
            select(Account.id, Account.account_type).where(Account.entity_id == entity_id)
        ).all()
        return {row.id: AccountType(row.account_type) for row in rows}

    def _materialized_totals(
        self,
        entity_id: UUID,
        as_of: date | None,
        account_id: UUID | None = None,
    ) -> dict[UUID, AccountTotals]:
        query = (
            select(
                AccountActivity.account_id,
                func.coalesce(func.sum(AccountActivity.debit_total), ZERO).label("debit_total"),
                func.coalesce(func.sum(AccountActivity.credit_total), ZERO).label("credit_total"),
            )
            .where(AccountActivity.entity_id == entity_id)
            .group_by(AccountActivity.account_id)
        )
        if as_of is not None:
            query = query.where(AccountActivity.activity_date <= as_of)
        if account_id is not None:
            query = query.where(AccountActivity.account_id == account_id)

        return {
            row.account_id: AccountTotals(
                account_id=row.account_id,
                debit_total=row.debit_total or ZERO,
                credit_total=row.credit_total or ZERO,
            )
            for row in self.session.execute(query).all()
        }

    @staticmethod
    def _naturalize(
        types: dict[UUID, AccountType],
        totals: dict[UUID, AccountTotals],
    ) -> dict[UUID, Decimal]:
        balances: dict[UUID, Decimal] = {}
        for account_id, account_type in types.items():
            t = totals.get(account_id)
            if t is None:
                balances[account_id] = ZERO
            else:
                balances[account_id] = natural_balance_for_type(
                    t.debit_total, t.credit_total, account_type,
                )
        return balances

    def balance_as_of(
        self,
        entity_id: UUID,
        account_id: UUID,
        instant: date | datetime,
    ) -> Decimal:
        """Balance of one account; 0 for an account with no posted lines."""
        account = self.session.execute(
            select(Account).where(Account.entity_id == entity_id, Account.id == account_id)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(str(account_id))

        totals = self._materialized_totals(entity_id, _as_date(instant), account_id)
        return self._naturalize({account_id: AccountType(account.account_type)}, totals)[account_id]

    def all_balances(self, entity_id: UUID, instant: date | datetime) -> dict[UUID, Decimal]:
        """Balances of every account of the entity as of the instant."""
        return self._naturalize(
            self._account_types(entity_id),
            self._materialized_totals(entity_id, _as_date(instant)),
        )

    def materialized_balances(self, entity_id: UUID) -> list[AccountBalance]:
        """Current (all-time) balances as stored in the view."""
        balances = self._naturalize(
            self._account_types(entity_id),
            self._materialized_totals(entity_id, None),
        )
        return [AccountBalance(account_id=k, balance=v) for k, v in balances.items()]

    # -------------------------------------------------------------------------
    # Replay
    # -------------------------------------------------------------------------

    def replay_balance_as_of(
        self,
        entity_id: UUID,
        account_id: UUID,
        instant: date | datetime,
    ) -> Decimal:
        return self.replay_all_balances(entity_id, instant).get(account_id, ZERO)

    def replay_all_balances(
        self,
        entity_id: UUID,
        instant: date | datetime | None = None,
    ) -> dict[UUID, Decimal]:
        """Balances recomputed from posted journal lines."""
        as_of = _as_date(instant) if instant is not None else None
        return self._naturalize(
            self._account_types(entity_id),
            self._ledger.account_totals(entity_id, as_of_date=as_of),
        )

    def verify(
        self,
        entity_id: UUID,
        instant: date | datetime | None = None,
    ) -> list[BalanceMismatch]:
        """Accounts where the view disagrees with a full replay."""
        as_of = _as_date(instant) if instant is not None else None
        types = self._account_types(entity_id)
        materialized = self._naturalize(types, self._materialized_totals(entity_id, as_of))
        replayed = self.replay_all_balances(entity_id, as_of)

        mismatches = [
            BalanceMismatch(
                account_id=account_id,
                materialized=materialized[account_id],
                replayed=replayed[account_id],
            )
            for account_id in sorted(types, key=str)
            if materialized[account_id] != replayed[account_id]
        ]

        if mismatches:
            logger.warning(
                "balance_view_mismatch",
                extra={
                    "entity_id": str(entity_id),
                    "mismatch_count": len(mismatches),
                },
            )
        else:
            logger.info("balance_view_verified", extra={"entity_id": str(entity_id)})
        return mismatches

    def rebuild(self, entity_id: UUID) -> int:
        """
        Recreate the view for the entity from posted lines.

        Returns:
            Number of activity rows written.
        """
        self.session.execute(
            delete(AccountActivity).where(AccountActivity.entity_id == entity_id)
        )
        activity = self._ledger.daily_activity(entity_id)
        for item in activity:
            self.session.add(
                AccountActivity(
                    entity_id=entity_id,
                    account_id=item.account_id,
                    activity_date=item.activity_date,
                    debit_total=item.debit_total,
                    credit_total=item.credit_total,
                )
            )
        self.session.flush()

        logger.info(
            "balance_view_rebuilt",
            extra={"entity_id": str(entity_id), "row_count": len(activity)},
        )
        return len(activity)
