"""
PostingEngine tests: validation, atomic commit, failure handling, drafts,
cancellation and audit hand-off.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from ledger_kernel.domain.dtos import CandidateEntry, CandidateLine
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    EmptyEntryError,
    FatalInconsistencyError,
    InvalidLineError,
    InvalidStatusTransitionError,
    TransientPersistenceError,
    UnbalancedEntryError,
)
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.audit import AuditSink
from ledger_kernel.services.balance_aggregator import BalanceAggregator
from ledger_kernel.services.ledger_store import LedgerStore
from ledger_kernel.services.posting_engine import PostingEngine

MARCH_1 = date(2024, 3, 1)
MARCH_31 = date(2024, 3, 31)


def _candidate(entity_id, *lines, reference=None, draft=False) -> CandidateEntry:
    return CandidateEntry(
        entity_id=entity_id,
        entry_date=MARCH_1,
        lines=tuple(lines),
        reference=reference,
        draft=draft,
    )


def _entry_count(session) -> int:
    return session.execute(select(func.count()).select_from(JournalEntry)).scalar_one()


def _line_count(session) -> int:
    return session.execute(select(func.count()).select_from(JournalLine)).scalar_one()


def _balance(session, entity_id, account_id, as_of=MARCH_31) -> Decimal:
    return BalanceAggregator(session).balance_as_of(entity_id, account_id, as_of)


class TestPostBalancedEntry:
    """Accepted entries are committed with all lines."""

    def test_cash_sale_updates_balances(self, post, session, entity_id, accounts):
        committed = post(MARCH_1, "1001", "4001", "1000", reference="INV-1")

        assert committed.status == JournalEntryStatus.POSTED.value
        assert committed.total_debits == committed.total_credits == Decimal("1000")
        assert committed.posted_at is not None
        assert [ln.account_code for ln in committed.lines] == ["1001", "4001"]

        assert _balance(session, entity_id, accounts["1001"]) == Decimal("1000")
        assert _balance(session, entity_id, accounts["4001"]) == Decimal("1000")

    def test_accepts_account_ids_and_multiple_lines(
        self, posting_engine, session, entity_id, accounts,
    ):
        candidate = _candidate(
            entity_id,
            CandidateLine.debit_line(accounts["1001"], "700"),
            CandidateLine.debit_line(accounts["1101"], "300"),
            CandidateLine.credit_line("4001", "1000"),
        )
        committed = posting_engine.post(candidate)

        assert len(committed.lines) == 3
        assert [ln.line_seq for ln in committed.lines] == [0, 1, 2]
        assert _balance(session, entity_id, accounts["1101"]) == Decimal("300")

    def test_difference_within_tolerance_is_accepted(self, posting_engine, entity_id, accounts):
        candidate = _candidate(
            entity_id,
            CandidateLine.debit_line("1001", "100.00"),
            CandidateLine.credit_line("4001", "99.99"),
        )
        committed = posting_engine.post(candidate)
        assert committed.total_debits - committed.total_credits == Decimal("0.01")

    def test_balance_before_entry_date_is_zero(self, post, session, entity_id, accounts):
        post(MARCH_1, "1001", "4001", "1000")
        assert _balance(session, entity_id, accounts["1001"], date(2024, 2, 29)) == Decimal("0")


class TestRejectedEntriesLeaveNoTrace:
    """Validation failures write nothing."""

    def test_unbalanced_entry_rejected(self, posting_engine, session, entity_id, accounts):
        candidate = _candidate(
            entity_id,
            CandidateLine.debit_line("1001", "100"),
            CandidateLine.credit_line("4001", "90"),
        )

        with pytest.raises(UnbalancedEntryError) as exc_info:
            posting_engine.post(candidate)

        assert exc_info.value.debit_total == Decimal("100")
        assert exc_info.value.credit_total == Decimal("90")
        assert exc_info.value.code == "UNBALANCED_ENTRY"
        assert _entry_count(session) == 0
        assert _line_count(session) == 0
        assert _balance(session, entity_id, accounts["1001"]) == Decimal("0")

    def test_difference_above_tolerance_rejected(self, posting_engine, entity_id, accounts):
        candidate = _candidate(
            entity_id,
            CandidateLine.debit_line("1001", "100.00"),
            CandidateLine.credit_line("4001", "99.98"),
        )
        with pytest.raises(UnbalancedEntryError):
            posting_engine.post(candidate)

    def test_unknown_account_code(self, post, posting_engine, session, entity_id, accounts):
        post(MARCH_1, "1001", "4001", "1000")
        candidate = _candidate(
            entity_id,
            CandidateLine.debit_line("1999", "50"),
            CandidateLine.credit_line("4001", "50"),
        )

        with pytest.raises(AccountNotFoundError) as exc_info:
            posting_engine.post(candidate)

        assert exc_info.value.reference == "1999"
        assert _entry_count(session) == 1
        assert _balance(session, entity_id, accounts["1001"]) == Decimal("1000")
        assert _balance(session, entity_id, accounts["4001"]) == Decimal("1000")

    def test_account_of_another_entity_not_found(self, posting_engine, accounts):
        candidate = _candidate(
            uuid4(),
            CandidateLine.debit_line(accounts["1001"], "50"),
            CandidateLine.credit_line(accounts["4001"], "50"),
        )
        with pytest.raises(AccountNotFoundError):
            posting_engine.post(candidate)

    def test_inactive_account_rejected(self, posting_engine, session, entity_id, accounts):
        AccountRegistry(session).deactivate(entity_id, accounts["6201"])
        session.commit()

        candidate = _candidate(
            entity_id,
            CandidateLine.debit_line("6201", "200"),
            CandidateLine.credit_line("1001", "200"),
        )
        with pytest.raises(AccountInactiveError):
            posting_engine.post(candidate)
        assert _entry_count(session) == 0

    def test_empty_entry_rejected(self, posting_engine, entity_id, accounts):
        with pytest.raises(EmptyEntryError):
            posting_engine.post(_candidate(entity_id))

    @pytest.mark.parametrize(
        "line",
        [
            CandidateLine(debit=Decimal("-5"), account_code="1001"),
            CandidateLine(debit=Decimal("5"), credit=Decimal("5"), account_code="1001"),
            CandidateLine(account_code="1001"),
            CandidateLine(debit=Decimal("5")),
            CandidateLine.debit_line("1001", "NaN"),
            CandidateLine.debit_line("1001", "sNaN"),
            CandidateLine.debit_line("1001", "Infinity"),
            CandidateLine(debit=Decimal("5"), credit=Decimal("-Infinity"), account_code="1001"),
        ],
        ids=["negative", "both_sides", "no_amount", "no_account", "nan", "snan", "infinity", "neg_infinity"],
    )
    def test_malformed_line_rejected(self, posting_engine, session, entity_id, accounts, line):
        candidate = _candidate(entity_id, line, CandidateLine.credit_line("4001", "5"))
        with pytest.raises(InvalidLineError) as exc_info:
            posting_engine.post(candidate)
        assert exc_info.value.line_index == 0
        assert _entry_count(session) == 0

    def test_rejection_is_logged(self, posting_engine, entity_id, accounts, captured_logs):
        candidate = _candidate(
            entity_id,
            CandidateLine.debit_line("1001", "100"),
            CandidateLine.credit_line("4001", "90"),
        )
        with pytest.raises(UnbalancedEntryError):
            posting_engine.post(candidate)

        rejected = [r for r in captured_logs() if r["message"] == "posting_rejected"]
        assert len(rejected) == 1
        assert rejected[0]["error_code"] == "UNBALANCED_ENTRY"
        assert rejected[0]["entity_id"] == str(entity_id)


class TestValidateDryRun:

    def test_valid_candidate(self, posting_engine, session, entity_id, accounts):
        candidate = _candidate(
            entity_id,
            CandidateLine.debit_line("1001", "10"),
            CandidateLine.credit_line("4001", "10"),
        )
        result = posting_engine.validate(candidate)
        assert result.is_valid
        assert _entry_count(session) == 0

    def test_invalid_candidate(self, posting_engine, entity_id, accounts):
        candidate = _candidate(
            entity_id,
            CandidateLine.debit_line("1001", "10"),
            CandidateLine.credit_line("4001", "9"),
        )
        result = posting_engine.validate(candidate)
        assert not result.is_valid
        assert result.error_codes == ("UNBALANCED_ENTRY",)


class TestPersistenceFailures:
    """Storage failures roll back the whole entry."""

    def test_line_write_failure_rolls_back_header(
        self, posting_engine, session, entity_id, accounts, monkeypatch, captured_logs,
    ):
        def _fail(self, entry, lines, actor_id):
            raise OperationalError("INSERT INTO journal_lines", {}, Exception("disk I/O error"))

        monkeypatch.setattr(LedgerStore, "_add_lines", _fail)
        candidate = _candidate(
            entity_id,
            CandidateLine.debit_line("1001", "100"),
            CandidateLine.credit_line("4001", "100"),
        )

        with pytest.raises(TransientPersistenceError) as exc_info:
            posting_engine.post(candidate)

        assert exc_info.value.operation == "append_lines"
        assert _entry_count(session) == 0
        assert _line_count(session) == 0
        assert _balance(session, entity_id, accounts["1001"]) == Decimal("0")

        messages = [r["message"] for r in captured_logs()]
        assert "posting_persistence_failed" in messages
        assert "posting_rolled_back" in messages

    def test_failed_rollback_is_fatal(
        self, session_factory, deterministic_clock, entity_id, accounts, monkeypatch,
    ):
        def _fail_lines(self, entry, lines, actor_id):
            raise OperationalError("INSERT INTO journal_lines", {}, Exception("connection lost"))

        def _failing_factory():
            sess = session_factory()

            def _rollback():
                raise OperationalError("ROLLBACK", {}, Exception("connection lost"))

            monkeypatch.setattr(sess, "rollback", _rollback)
            return sess

        monkeypatch.setattr(LedgerStore, "_add_lines", _fail_lines)
        engine = PostingEngine(_failing_factory, clock=deterministic_clock)
        candidate = _candidate(
            entity_id,
            CandidateLine.debit_line("1001", "100"),
            CandidateLine.credit_line("4001", "100"),
        )

        with pytest.raises(FatalInconsistencyError) as exc_info:
            engine.post(candidate)
        assert exc_info.value.code == "FATAL_INCONSISTENCY"


class TestAudit:

    def test_audit_record_emitted_after_commit(self, post, audit_sink):
        committed = post(MARCH_1, "1001", "4001", "1000", reference="INV-7")

        assert len(audit_sink.records) == 1
        record = audit_sink.records[0]
        assert record.action == "CREATE_JOURNAL_ENTRY"
        assert record.entity_id == str(committed.entry_id)
        assert record.details["reference"] == "INV-7"

    def test_audit_failure_does_not_fail_posting(
        self, session_factory, deterministic_clock, session, entity_id, accounts, captured_logs,
    ):
        class _BrokenSink(AuditSink):
            def emit(self, record):
                raise RuntimeError("audit store offline")

        engine = PostingEngine(session_factory, clock=deterministic_clock, audit_sink=_BrokenSink())
        committed = engine.post(
            _candidate(
                entity_id,
                CandidateLine.debit_line("1001", "100"),
                CandidateLine.credit_line("4001", "100"),
            )
        )

        assert committed.status == "posted"
        assert _entry_count(session) == 1
        assert any(r["message"] == "audit_emit_failed" for r in captured_logs())


class TestDrafts:

    def test_draft_does_not_touch_balances(self, post, session, entity_id, accounts):
        draft = post(MARCH_1, "1001", "4001", "500", draft=True)

        assert draft.status == JournalEntryStatus.DRAFT.value
        assert draft.posted_at is None
        assert _balance(session, entity_id, accounts["1001"]) == Decimal("0")

    def test_post_draft_applies_balances(
        self, post, posting_engine, session, entity_id, accounts, audit_sink,
    ):
        draft = post(MARCH_1, "1001", "4001", "500", draft=True)
        posted = posting_engine.post_draft(entity_id, draft.entry_id)

        assert posted.status == JournalEntryStatus.POSTED.value
        assert posted.entry_id == draft.entry_id
        assert _balance(session, entity_id, accounts["1001"]) == Decimal("500")
        assert [r.action for r in audit_sink.records] == [
            "CREATE_JOURNAL_ENTRY",
            "POST_JOURNAL_ENTRY",
        ]

    def test_post_draft_twice_rejected(self, post, posting_engine, entity_id, accounts):
        draft = post(MARCH_1, "1001", "4001", "500", draft=True)
        posting_engine.post_draft(entity_id, draft.entry_id)

        with pytest.raises(InvalidStatusTransitionError):
            posting_engine.post_draft(entity_id, draft.entry_id)

    def test_post_draft_revalidates_accounts(
        self, post, posting_engine, session, entity_id, accounts,
    ):
        draft = post(MARCH_1, "6201", "1001", "200", draft=True)
        AccountRegistry(session).deactivate(entity_id, accounts["6201"])
        session.commit()

        with pytest.raises(AccountInactiveError):
            posting_engine.post_draft(entity_id, draft.entry_id)
        assert _balance(session, entity_id, accounts["1001"]) == Decimal("0")


class TestCancel:

    def test_cancel_posted_entry_writes_mirrored_counterpart(
        self, post, posting_engine, session, entity_id, accounts,
    ):
        original = post(MARCH_1, "1001", "4001", "1000", reference="INV-9")

        result = posting_engine.cancel(entity_id, original.entry_id, reason="duplicate")

        assert result.cancelled.status == JournalEntryStatus.CANCELLED.value
        reversal = result.reversal
        assert reversal is not None
        assert reversal.reversal_of_id == original.entry_id
        assert reversal.entry_date == original.entry_date
        assert reversal.reference == "REV-INV-9"
        assert reversal.status == JournalEntryStatus.CANCELLED.value
        debit_side = {ln.account_code: ln.debit for ln in reversal.lines}
        assert debit_side["4001"] == Decimal("1000")

        assert _balance(session, entity_id, accounts["1001"]) == Decimal("0")
        assert _balance(session, entity_id, accounts["4001"]) == Decimal("0")
        assert BalanceAggregator(session).verify(entity_id) == []

    def test_cancel_twice_rejected(self, post, posting_engine, entity_id, accounts):
        original = post(MARCH_1, "1001", "4001", "1000")
        posting_engine.cancel(entity_id, original.entry_id)

        with pytest.raises(InvalidStatusTransitionError):
            posting_engine.cancel(entity_id, original.entry_id)

    def test_cancel_draft_has_no_counterpart(self, post, posting_engine, session, entity_id, accounts):
        draft = post(MARCH_1, "1001", "4001", "1000", draft=True)

        result = posting_engine.cancel(entity_id, draft.entry_id)

        assert result.reversal is None
        assert result.cancelled.status == JournalEntryStatus.CANCELLED.value
        assert _entry_count(session) == 1

    def test_cancelled_draft_cannot_be_posted(self, post, posting_engine, entity_id, accounts):
        draft = post(MARCH_1, "1001", "4001", "1000", draft=True)
        posting_engine.cancel(entity_id, draft.entry_id)

        with pytest.raises(InvalidStatusTransitionError):
            posting_engine.post_draft(entity_id, draft.entry_id)
