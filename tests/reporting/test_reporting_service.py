"""
ReportingService integration tests.

Posts through the real PostingEngine and reads statements back through the
service, checking the cross-report identities:
- A = L + E on every balance sheet
- TB debits = TB credits
- Cash flow: closing - opening = net change in cash
- Only POSTED entries contribute (drafts and cancellations excluded)
"""

from __future__ import annotations

import json
from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.classification import ClassificationRules
from ledger_kernel.domain.dtos import CandidateEntry, CandidateLine
from ledger_kernel.exceptions import InvalidDateRangeError
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import ReportType, WarningCode
from ledger_modules.reporting.service import ReportingService

MARCH_START = date(2024, 3, 1)
MARCH_END = date(2024, 3, 31)


@pytest.fixture
def two_months(post):
    """February opening activity followed by a month of trading."""
    post(date(2024, 2, 10), "1001", "3001", "5000")   # capital introduced
    post(date(2024, 2, 20), "1001", "4001", "700")    # February cash sales
    post(date(2024, 3, 1), "1001", "4001", "1000")    # cash sale
    post(date(2024, 3, 2), "1601", "1001", "1200")    # equipment for cash
    post(date(2024, 3, 5), "1201", "2001", "800")     # stock on credit
    post(date(2024, 3, 10), "1101", "4001", "600")    # credit sale
    post(date(2024, 3, 15), "6201", "1001", "200")    # rent
    post(date(2024, 3, 20), "2001", "1001", "300")    # supplier paid
    post(date(2024, 3, 31), "6101", "1701", "100")    # depreciation
    post(date(2024, 3, 31), "5001", "1201", "350")    # cost of goods sold


class TestSimpleMonth:

    def test_single_cash_sale(self, reporting, post, entity_id):
        post(date(2024, 3, 1), "1001", "4001", "1000")

        report = reporting.income_statement(entity_id, MARCH_START, MARCH_END)

        assert report.revenue == Decimal("1000")
        assert report.net_profit == Decimal("1000")

    def test_sale_and_rent(self, reporting, post, entity_id):
        post(date(2024, 3, 1), "1001", "4001", "1000")
        post(date(2024, 3, 15), "6201", "1001", "200")

        income = reporting.income_statement(entity_id, MARCH_START, MARCH_END)
        balance = reporting.balance_sheet(entity_id, MARCH_END)

        assert income.expenses == Decimal("200")
        assert income.net_profit == Decimal("800")
        assert balance.cash == Decimal("800")
        assert balance.retained_earnings == Decimal("800")
        assert balance.is_balanced


class TestIncomeStatement:

    def test_march_profit_cascade(self, reporting, entity_id, two_months):
        report = reporting.income_statement(entity_id, MARCH_START, MARCH_END)

        assert report.revenue == Decimal("1600")
        assert report.cost_of_sales == Decimal("350")
        assert report.gross_profit == Decimal("1250")
        assert report.expenses == Decimal("300")
        assert report.net_profit == Decimal("950")
        assert report.expenses_by_category == {
            "rent": Decimal("200"),
            "depreciation": Decimal("100"),
        }

    def test_period_bounds_are_inclusive(self, reporting, entity_id, two_months):
        february = reporting.income_statement(entity_id, date(2024, 2, 20), date(2024, 2, 29))
        assert february.revenue == Decimal("700")

        last_day = reporting.income_statement(entity_id, MARCH_END, MARCH_END)
        assert last_day.cost_of_sales == Decimal("350")
        assert last_day.revenue == Decimal("0")

    def test_streams_in_small_batches(self, session, deterministic_clock, entity_id, two_months):
        service = ReportingService(session, deterministic_clock, batch_size=2)
        report = service.income_statement(entity_id, MARCH_START, MARCH_END)
        assert report.net_profit == Decimal("950")

    def test_drafts_excluded(self, reporting, post, entity_id, two_months):
        post(date(2024, 3, 12), "1001", "4001", "999", draft=True)

        report = reporting.income_statement(entity_id, MARCH_START, MARCH_END)
        assert report.revenue == Decimal("1600")

    def test_cancelled_entries_excluded(self, reporting, post, posting_engine, entity_id, two_months):
        mistake = post(date(2024, 3, 12), "1001", "4001", "450")
        posting_engine.cancel(entity_id, mistake.entry_id, reason="duplicate")

        report = reporting.income_statement(entity_id, MARCH_START, MARCH_END)
        assert report.revenue == Decimal("1600")

    def test_inactive_account_still_reported(self, reporting, session, entity_id, accounts, two_months):
        AccountRegistry(session).deactivate(entity_id, accounts["6201"])
        session.commit()

        report = reporting.income_statement(entity_id, MARCH_START, MARCH_END)

        assert report.expenses == Decimal("300")
        assert "6201" in [ln.account_code for ln in report.lines]


class TestBalanceSheet:

    def test_accounting_equation(self, reporting, entity_id, two_months):
        report = reporting.balance_sheet(entity_id, MARCH_END)

        assert report.cash == Decimal("5000")
        assert report.current_assets.total == Decimal("6050")
        assert report.non_current_assets.total == Decimal("1100")
        assert report.total_assets == Decimal("7150")
        assert report.total_liabilities == Decimal("500")
        assert report.retained_earnings == Decimal("1650")
        assert report.total_equity == Decimal("6650")
        assert report.is_balanced
        assert report.warnings == ()

    @pytest.mark.parametrize(
        "as_of",
        [date(2024, 2, 1), date(2024, 2, 29), date(2024, 3, 10), MARCH_END, date(2024, 12, 31)],
    )
    def test_balanced_at_every_date(self, reporting, entity_id, two_months, as_of):
        report = reporting.balance_sheet(entity_id, as_of)
        assert report.total_assets == report.total_liabilities_and_equity

    def test_end_of_february(self, reporting, entity_id, two_months):
        report = reporting.balance_sheet(entity_id, date(2024, 2, 29))
        assert report.cash == Decimal("5700")
        assert report.retained_earnings == Decimal("700")

    def test_cancellation_leaves_balances_unchanged(
        self, reporting, post, posting_engine, entity_id, two_months,
    ):
        before = reporting.balance_sheet(entity_id, MARCH_END)
        mistake = post(date(2024, 3, 12), "1001", "4001", "450")
        posting_engine.cancel(entity_id, mistake.entry_id)
        after = reporting.balance_sheet(entity_id, MARCH_END)

        assert after.cash == before.cash
        assert after.total_assets == before.total_assets

    def test_unclassified_account_warns(self, reporting, session, post, entity_id, accounts):
        AccountRegistry(session).create_account(entity_id, "S-1", "Suspense", "asset", subtype="clearing")
        session.commit()
        post(date(2024, 3, 3), "S-1", "3001", "40")

        report = reporting.balance_sheet(entity_id, MARCH_END)

        assert report.other_assets.total == Decimal("40")
        assert report.is_balanced
        assert [w.code for w in report.warnings] == [WarningCode.UNCLASSIFIED_ACCOUNT]

    def test_custom_subtype_alias_classifies_account(
        self, session, deterministic_clock, post, entity_id, accounts,
    ):
        AccountRegistry(session).create_account(entity_id, "S-1", "Suspense", "asset", subtype="clearing")
        session.commit()
        post(date(2024, 3, 3), "S-1", "3001", "40")

        config = ReportingConfig(
            classification=ClassificationRules.from_dict(
                {"subtype_aliases": {"clearing": "current_asset"}},
            ),
        )
        report = ReportingService(session, deterministic_clock, config).balance_sheet(entity_id, MARCH_END)

        assert report.current_assets.total == Decimal("40")
        assert report.warnings == ()


class TestTrialBalance:

    def test_debits_equal_credits(self, reporting, entity_id, two_months):
        report = reporting.trial_balance(entity_id, MARCH_END)

        assert report.is_balanced
        assert report.total_debits == Decimal("10250")
        assert report.total_credits == Decimal("10250")
        codes = [ln.account_code for ln in report.lines]
        assert codes == sorted(codes)

    def test_empty_ledger_is_balanced(self, reporting, entity_id, accounts):
        report = reporting.trial_balance(entity_id, MARCH_END)
        assert report.is_balanced
        assert report.lines == ()


class TestCashFlowStatement:

    def test_march_reconciles(self, reporting, entity_id, two_months):
        report = reporting.cash_flow_statement(entity_id, MARCH_START, MARCH_END)

        assert report.opening_cash == Decimal("5700")
        assert report.closing_cash == Decimal("5000")
        assert report.net_profit == Decimal("950")
        assert report.operating_adjustments.total == Decimal("100")
        assert report.working_capital_changes.total == Decimal("-550")
        assert report.net_cash_from_operations == Decimal("500")
        assert report.net_cash_from_investing == Decimal("-1200")
        assert report.net_cash_from_financing == Decimal("0")
        assert report.net_change_in_cash == Decimal("-700")
        assert report.cash_change_reconciles
        assert report.warnings == ()

    def test_february_reconciles(self, reporting, entity_id, two_months):
        report = reporting.cash_flow_statement(entity_id, date(2024, 2, 1), date(2024, 2, 29))

        assert report.opening_cash == Decimal("0")
        assert report.net_cash_from_financing == Decimal("5000")
        assert report.net_change_in_cash == Decimal("5700")
        assert report.cash_change_reconciles

    def test_reconciles_after_cancellation(self, reporting, post, posting_engine, entity_id, two_months):
        mistake = post(date(2024, 3, 12), "1001", "4001", "450")
        posting_engine.cancel(entity_id, mistake.entry_id)

        report = reporting.cash_flow_statement(entity_id, MARCH_START, MARCH_END)
        assert report.net_change_in_cash == Decimal("-700")
        assert report.cash_change_reconciles

    def test_net_profit_agrees_with_income_statement(self, reporting, entity_id, two_months):
        income = reporting.income_statement(entity_id, MARCH_START, MARCH_END)
        cash_flow = reporting.cash_flow_statement(entity_id, MARCH_START, MARCH_END)
        assert cash_flow.net_profit == income.net_profit

    def test_cash_dividend_is_financing(self, reporting, post, entity_id, two_months):
        post(date(2024, 3, 25), "3101", "1001", "300")

        report = reporting.cash_flow_statement(entity_id, MARCH_START, MARCH_END)

        assert report.net_cash_from_operations == Decimal("500")
        assert report.net_cash_from_financing == Decimal("-300")
        assert report.net_change_in_cash == Decimal("-1000")
        assert report.cash_change_reconciles

    def test_declared_dividend_is_not_financing(self, reporting, post, entity_id, two_months):
        post(date(2024, 3, 25), "3101", "2001", "300")

        report = reporting.cash_flow_statement(entity_id, MARCH_START, MARCH_END)

        assert report.net_cash_from_financing == Decimal("0")
        assert report.net_change_in_cash == Decimal("-700")
        assert report.cash_change_reconciles

    def test_partly_paid_dividend_splits(self, reporting, posting_engine, entity_id, two_months):
        posting_engine.post(
            CandidateEntry(
                entity_id=entity_id,
                entry_date=date(2024, 3, 25),
                lines=(
                    CandidateLine.debit_line("3101", "500"),
                    CandidateLine.credit_line("1001", "200"),
                    CandidateLine.credit_line("2001", "300"),
                ),
            )
        )

        report = reporting.cash_flow_statement(entity_id, MARCH_START, MARCH_END)

        assert report.net_cash_from_financing == Decimal("-200")
        assert report.net_cash_from_operations == Decimal("500")
        assert report.net_change_in_cash == Decimal("-900")
        assert report.cash_change_reconciles


class TestInvertedPeriod:

    def test_income_statement_empty_with_warning(self, reporting, entity_id, two_months):
        report = reporting.income_statement(entity_id, MARCH_END, MARCH_START)

        assert report.revenue == Decimal("0")
        assert report.net_profit == Decimal("0")
        assert [w.code for w in report.warnings] == [WarningCode.EMPTY_PERIOD]

    def test_cash_flow_zero_movement(self, reporting, entity_id, two_months):
        report = reporting.cash_flow_statement(entity_id, MARCH_END, MARCH_START)

        assert report.net_change_in_cash == Decimal("0")
        assert report.opening_cash == report.closing_cash
        assert report.cash_change_reconciles
        assert [w.code for w in report.warnings] == [WarningCode.EMPTY_PERIOD]

    def test_inverted_period_is_logged(self, reporting, entity_id, accounts, captured_logs):
        reporting.income_statement(entity_id, MARCH_END, MARCH_START)
        assert any(r["message"] == "report_period_inverted" for r in captured_logs())

    @pytest.mark.parametrize("method", ["income_statement", "cash_flow_statement"])
    def test_strict_mode_raises(self, session, deterministic_clock, entity_id, accounts, method):
        service = ReportingService(
            session, deterministic_clock, ReportingConfig(strict_date_range=True),
        )
        with pytest.raises(InvalidDateRangeError) as exc_info:
            getattr(service, method)(entity_id, MARCH_END, MARCH_START)
        assert exc_info.value.code == "INVALID_DATE_RANGE"


class TestMetadataAndRendering:

    def test_metadata_from_clock_and_config(self, session, deterministic_clock, entity_id, accounts):
        config = ReportingConfig(entity_name="Acme Pty Ltd", default_currency="AUD")
        report = ReportingService(session, deterministic_clock, config).income_statement(
            entity_id, MARCH_START, MARCH_END,
        )

        assert report.metadata.report_type == ReportType.INCOME_STATEMENT
        assert report.metadata.entity_name == "Acme Pty Ltd"
        assert report.metadata.currency == "AUD"
        assert report.metadata.generated_at == deterministic_clock.now().isoformat()
        assert report.metadata.period_start == MARCH_START
        assert report.metadata.as_of_date == MARCH_END

    def test_every_report_is_json_serializable(self, reporting, entity_id, two_months):
        reports = [
            reporting.trial_balance(entity_id, MARCH_END),
            reporting.balance_sheet(entity_id, MARCH_END),
            reporting.income_statement(entity_id, MARCH_START, MARCH_END),
            reporting.cash_flow_statement(entity_id, MARCH_START, MARCH_END),
        ]
        for report in reports:
            data = json.loads(json.dumps(reporting.to_dict(report)))
            assert data["metadata"]["entity_id"] == str(entity_id)

    def test_generation_is_logged(self, reporting, entity_id, two_months, captured_logs):
        reporting.balance_sheet(entity_id, MARCH_END)
        reporting.cash_flow_statement(entity_id, MARCH_START, MARCH_END)

        messages = [r["message"] for r in captured_logs()]
        assert "balance_sheet_generated" in messages
        assert "cash_flow_statement_generated" in messages
