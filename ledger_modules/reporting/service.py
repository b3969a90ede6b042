"""
Reporting Module Service (``ledger_modules.reporting.service``).

Responsibility
--------------
Orchestrates financial statement generation -- trial balance, income
statement, balance sheet and cash flow statement -- by bridging the kernel
read paths (``LedgerStore.list_posted``, ``BalanceAggregator``,
``LedgerSelector``, ``AccountRegistry``) to the pure transformation
functions in ``statements.py``.  This is a **read-only** service: no
journal entries are posted.

Architecture position
---------------------
**Modules layer** -- thin glue.  Constructor: ``session`` + ``clock`` +
``config``.

Invariants enforced
-------------------
* Read-only -- no mutations to the journal or the balance view.
* All monetary amounts use ``Decimal`` -- NEVER ``float``.
* Only POSTED entries contribute to any report.

Failure modes
-------------
* end_date < start_date  -> empty report carrying an EMPTY_PERIOD warning,
  or ``InvalidDateRangeError`` when ``strict_date_range`` is set.
* Unclassified or unknown accounts  -> warnings inside the report, never
  an exception.
* Query failure  -> exception propagates (read-only, nothing to roll back).
"""

from __future__ import annotations

from datetime import date, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.classification import StatementCategory, classify
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.exceptions import InvalidDateRangeError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.balance_aggregator import BalanceAggregator
from ledger_kernel.services.ledger_store import LedgerStore
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheetReport,
    CashFlowStatementReport,
    IncomeStatementReport,
    ReconciliationWarning,
    ReportMetadata,
    ReportType,
    TrialBalanceReport,
)
from ledger_modules.reporting.statements import (
    build_balance_sheet,
    build_cash_flow_statement,
    build_income_statement,
    build_trial_balance,
    cash_balance,
    empty_period_warning,
    render_to_dict,
)

logger = get_logger("modules.reporting.service")


class ReportingService:
    """
    Financial statement generation service.

    Contract
    --------
    * Every public method returns a typed, frozen report DTO.
    * All methods are read-only.

    Guarantees
    ----------
    * Report generation delegates to pure functions in ``statements.py``;
      no financial logic lives in this class.
    * Clock is injectable for deterministic testing.
    * The income statement streams posted lines in batches, so memory stays
      bounded by the number of accounts.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
        batch_size: int = 500,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig.with_defaults()
        self._ledger = LedgerSelector(session)
        self._store = LedgerStore(session, batch_size=batch_size)
        self._balances = BalanceAggregator(session)
        self._registry = AccountRegistry(session, rules=self._config.classification)

        logger.info(
            "reporting_service_initialized",
            extra={
                "entity_name": self._config.entity_name,
                "default_currency": self._config.default_currency,
            },
        )

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _load_accounts(self, entity_id: UUID) -> dict[UUID, AccountInfo]:
        """
        Snapshot the entity's accounts, inactive ones included, so that
        historical activity on a deactivated account is still reported.
        """
        accounts = self._registry.account_infos(entity_id, include_inactive=True)
        logger.debug(
            "accounts_loaded_for_reporting",
            extra={"entity_id": str(entity_id), "account_count": len(accounts)},
        )
        return accounts

    def _accounts_in(
        self,
        accounts: dict[UUID, AccountInfo],
        category: StatementCategory,
    ) -> list[UUID]:
        return [
            account_id
            for account_id, account in accounts.items()
            if classify(account, self._config.classification) == category
        ]

    def _build_metadata(
        self,
        report_type: ReportType,
        entity_id: UUID,
        as_of_date: date,
        period_start: date | None = None,
        period_end: date | None = None,
    ) -> ReportMetadata:
        """Build report metadata with injected clock timestamp."""
        return ReportMetadata(
            report_type=report_type,
            entity_id=entity_id,
            entity_name=self._config.entity_name,
            currency=self._config.default_currency,
            as_of_date=as_of_date,
            generated_at=self._clock.now().isoformat(),
            period_start=period_start,
            period_end=period_end,
        )

    def _check_period(
        self,
        report_type: ReportType,
        start_date: date,
        end_date: date,
    ) -> list[ReconciliationWarning]:
        if end_date >= start_date:
            return []
        if self._config.strict_date_range:
            raise InvalidDateRangeError(start_date, end_date)
        logger.warning(
            "report_period_inverted",
            extra={
                "report_type": report_type.value,
                "period_start": start_date.isoformat(),
                "period_end": end_date.isoformat(),
            },
        )
        return [empty_period_warning(start_date, end_date)]

    # =========================================================================
    # Public API
    # =========================================================================

    def trial_balance(
        self,
        entity_id: UUID,
        as_of_date: date,
    ) -> TrialBalanceReport:
        """
        Generate a trial balance report.

        Returns:
            TrialBalanceReport with debit/credit totals and balance flag.
        """
        accounts = self._load_accounts(entity_id)
        rows = self._ledger.trial_balance(entity_id, as_of_date=as_of_date)
        metadata = self._build_metadata(ReportType.TRIAL_BALANCE, entity_id, as_of_date)

        report = build_trial_balance(rows, accounts, self._config, metadata)

        logger.info(
            "trial_balance_generated",
            extra={
                "entity_id": str(entity_id),
                "as_of_date": as_of_date.isoformat(),
                "line_count": len(report.lines),
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def income_statement(
        self,
        entity_id: UUID,
        start_date: date,
        end_date: date,
    ) -> IncomeStatementReport:
        """
        Generate an income statement (P&L) for start_date..end_date inclusive.

        Args:
            entity_id: Reporting entity.
            start_date: First day of the period.
            end_date: Last day of the period.

        Returns:
            IncomeStatementReport with gross, operating and net profit.

        Raises:
            InvalidDateRangeError: end before start in strict mode.
        """
        warnings = self._check_period(ReportType.INCOME_STATEMENT, start_date, end_date)
        accounts = self._load_accounts(entity_id)
        metadata = self._build_metadata(
            ReportType.INCOME_STATEMENT,
            entity_id,
            end_date,
            period_start=start_date,
            period_end=end_date,
        )

        report = build_income_statement(
            self._store.list_posted(entity_id, start_date, end_date),
            accounts,
            self._config,
            metadata,
            warnings,
        )

        logger.info(
            "income_statement_generated",
            extra={
                "entity_id": str(entity_id),
                "period_start": start_date.isoformat(),
                "period_end": end_date.isoformat(),
                "revenue": str(report.revenue),
                "net_profit": str(report.net_profit),
                "warning_count": len(report.warnings),
            },
        )
        return report

    def balance_sheet(
        self,
        entity_id: UUID,
        as_of_date: date,
    ) -> BalanceSheetReport:
        """
        Generate a classified balance sheet as of the end of as_of_date.

        Returns:
            BalanceSheetReport with A = L + E verification.
        """
        accounts = self._load_accounts(entity_id)
        balances = self._balances.all_balances(entity_id, as_of_date)
        metadata = self._build_metadata(ReportType.BALANCE_SHEET, entity_id, as_of_date)

        report = build_balance_sheet(balances, accounts, self._config, metadata)

        log = logger.info if report.is_balanced else logger.warning
        log(
            "balance_sheet_generated",
            extra={
                "entity_id": str(entity_id),
                "as_of_date": as_of_date.isoformat(),
                "total_assets": str(report.total_assets),
                "total_l_and_e": str(report.total_liabilities_and_equity),
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def cash_flow_statement(
        self,
        entity_id: UUID,
        start_date: date,
        end_date: date,
    ) -> CashFlowStatementReport:
        """
        Generate a cash flow statement (indirect method).

        Opening cash is the cash position at the end of the day before
        start_date; closing cash is the position at the end of end_date.
        An inverted period reports zero movement and equal opening and
        closing cash.

        Raises:
            InvalidDateRangeError: end before start in strict mode.
        """
        warnings = self._check_period(ReportType.CASH_FLOW, start_date, end_date)
        accounts = self._load_accounts(entity_id)

        opening_cash = cash_balance(
            self._balances.all_balances(entity_id, start_date - timedelta(days=1)),
            accounts,
            self._config,
        )
        if warnings:
            closing_cash = opening_cash
        else:
            closing_cash = cash_balance(
                self._balances.all_balances(entity_id, end_date),
                accounts,
                self._config,
            )
        movements = self._ledger.period_movements(entity_id, start_date, end_date)
        settled = self._ledger.cash_settled_debits(
            entity_id,
            start_date,
            end_date,
            account_ids=self._accounts_in(accounts, StatementCategory.RETAINED_EARNINGS),
            cash_account_ids=self._accounts_in(accounts, StatementCategory.CASH),
        )

        metadata = self._build_metadata(
            ReportType.CASH_FLOW,
            entity_id,
            end_date,
            period_start=start_date,
            period_end=end_date,
        )

        report = build_cash_flow_statement(
            movements,
            accounts,
            self._config,
            metadata,
            opening_cash,
            closing_cash,
            warnings,
            cash_settled_debits=settled,
        )

        log = logger.info if report.cash_change_reconciles else logger.warning
        log(
            "cash_flow_statement_generated",
            extra={
                "entity_id": str(entity_id),
                "period_start": start_date.isoformat(),
                "period_end": end_date.isoformat(),
                "net_change_in_cash": str(report.net_change_in_cash),
                "reconciles": report.cash_change_reconciles,
            },
        )
        return report

    @staticmethod
    def to_dict(report: object) -> dict:
        """Convert any report to a JSON-serializable dict."""
        return render_to_dict(report)
