"""
Pytest fixtures for the ledger test suite.

Provides:
- A fresh file-backed SQLite database per test (tables created, engine reset)
- Session factory, deterministic clock, posting engine and audit sink
- A seeded chart of accounts (corporation template plus a few extras)
- Captured structured logs as parsed JSON dicts

Environment Variables:
- LEDGER_TEST_DATABASE_URL: run against another database (e.g. PostgreSQL).
  If not set, uses a SQLite file in the test's tmp_path.
"""

import json
import logging
import os
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import CandidateEntry, CandidateLine, CommittedEntry
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.audit import InMemoryAuditSink
from ledger_kernel.services.posting_engine import PostingEngine
from ledger_modules.coa.seeding import seed
from ledger_modules.reporting.service import ReportingService

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

# Accounts added on top of the corporation template
EXTRA_ACCOUNTS = (
    ("2601", "Long-term Loan", "liability", "long_term_loan"),
    ("3201", "Dividends", "equity", "dividends"),
    ("4501", "Interest Income", "revenue", "interest_income"),
    ("6201", "Rent Expense", "expense", "rent"),
    ("9001", "Income Tax Expense", "expense", "income_tax"),
)


def get_database_url(tmp_path) -> str:
    return os.environ.get("LEDGER_TEST_DATABASE_URL", f"sqlite:///{tmp_path / 'ledger.db'}")


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, posting_engine):
            posting_engine.post(...)
            logs = captured_logs()
            assert any(r["message"] == "entry_posted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine(tmp_path):
    """Fresh database per test."""
    eng = init_engine_from_url(get_database_url(tmp_path), echo=False)
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    """
    Session for fixtures and read paths.

    Writes made through it must be committed before the posting engine
    runs: the engine opens its own sessions and sees committed data only.
    """
    sess = session_factory()
    yield sess
    sess.close()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def posting_engine(session_factory, deterministic_clock, audit_sink) -> PostingEngine:
    return PostingEngine(
        session_factory,
        clock=deterministic_clock,
        audit_sink=audit_sink,
    )


@pytest.fixture
def reporting(session, deterministic_clock) -> ReportingService:
    return ReportingService(session=session, clock=deterministic_clock)


# =============================================================================
# Chart of accounts
# =============================================================================


@pytest.fixture
def entity_id() -> UUID:
    return uuid4()


@pytest.fixture
def accounts(session, entity_id) -> dict[str, UUID]:
    """Seed the corporation template plus extras; returns code -> account id."""
    seed(session, entity_id, "corp", actor_id=TEST_ACTOR_ID)
    registry = AccountRegistry(session)
    for code, name, account_type, subtype in EXTRA_ACCOUNTS:
        registry.create_account(entity_id, code, name, account_type, subtype=subtype)
    session.commit()
    return {acct.code: acct.id for acct in registry.list_accounts(entity_id)}


@pytest.fixture
def post(posting_engine, entity_id, accounts):
    """
    Post a simple two-line entry by account code.

    Usage::

        post(date(2024, 3, 1), "1001", "4001", "1000")
    """

    def _post(
        entry_date: date,
        debit_code: str,
        credit_code: str,
        amount: str | Decimal,
        reference: str | None = None,
        draft: bool = False,
    ) -> CommittedEntry:
        candidate = CandidateEntry(
            entity_id=entity_id,
            entry_date=entry_date,
            lines=(
                CandidateLine.debit_line(debit_code, amount),
                CandidateLine.credit_line(credit_code, amount),
            ),
            reference=reference,
            draft=draft,
        )
        return posting_engine.post(candidate, actor_id=TEST_ACTOR_ID)

    return _post
