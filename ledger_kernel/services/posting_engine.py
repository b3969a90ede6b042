"""
Module: ledger_kernel.services.posting_engine
Responsibility: Validates candidate entries and commits them atomically --
    the only write path into the ledger.
Architecture position: Kernel > Services.  Unlike the flush-only services it
    coordinates, the PostingEngine owns its transactions: it opens one
    session per operation from the injected session factory and commits or
    rolls back itself.

Posting pipeline (post):
    1. Structural checks: at least one line; every line is a pure debit-side
       or credit-side line with finite, non-negative amounts.
    2. Resolve every account reference (id or code) within the entity.
    3. Balance check: |debits - credits| <= balance_tolerance.
    4. Status POSTED (auto-post) unless the candidate asks for DRAFT.
    5. Header then lines appended; balance view updated for POSTED entries;
       one commit.  On failure the transaction is rolled back; a failed
       rollback surfaces as FatalInconsistencyError.
    6. Audit record emitted after commit (best-effort).

Invariants enforced:
    - Nothing is written for a rejected candidate.
    - Posting is serialized per entity (EntityLockRegistry).
    - Posted entries are never edited.  Cancelling a posted entry writes a
      mirrored counterpart linked by reversal_of_id; both end CANCELLED.

Failure modes:
    - ValidationError subclasses for rejected candidates.
    - TransientPersistenceError / PermanentPersistenceError after rollback.
    - FatalInconsistencyError when the rollback itself fails.
    - EntryNotFoundError / InvalidStatusTransitionError from post_draft()
      and cancel().
"""

import time
from dataclasses import dataclass
from typing import Callable
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_kernel.domain.balances import within_tolerance
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.config import LedgerConfig
from ledger_kernel.domain.dtos import (
    ZERO,
    AccountInfo,
    CandidateEntry,
    CommittedEntry,
    ResolvedLine,
    ValidationResult,
)
from ledger_kernel.exceptions import (
    EmptyEntryError,
    FatalInconsistencyError,
    InvalidLineError,
    InvalidStatusTransitionError,
    PersistenceError,
    UnbalancedEntryError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.audit import AuditRecord, AuditSink, LoggingAuditSink
from ledger_kernel.services.balance_aggregator import BalanceAggregator
from ledger_kernel.services.entity_lock import EntityLockRegistry
from ledger_kernel.services.ledger_store import LedgerStore, translate_persistence_error

logger = get_logger("services.posting_engine")

ACTION_CREATE = "CREATE_JOURNAL_ENTRY"
ACTION_POST = "POST_JOURNAL_ENTRY"
ACTION_CANCEL = "CANCEL_JOURNAL_ENTRY"


@dataclass(frozen=True)
class CancellationResult:
    """Outcome of cancel(): the cancelled entry and, for a posted entry, its counterpart."""

    cancelled: CommittedEntry
    reversal: CommittedEntry | None = None


class PostingEngine:
    """
    Validates and commits journal entries.

    Contract:
        post() returns a CommittedEntry only after the commit succeeded.
        Every public method is safe to call from several threads; posts for
        the same entity are serialized.

    Non-goals:
        - Retrying transient failures.  TransientPersistenceError tells the
          caller a retry may succeed.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
        audit_sink: AuditSink | None = None,
        locks: EntityLockRegistry | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or LedgerConfig.with_defaults()
        self._audit = audit_sink or LoggingAuditSink()
        self._locks = locks or EntityLockRegistry()

    # =========================================================================
    # Public API
    # =========================================================================

    def post(self, candidate: CandidateEntry, actor_id: UUID | None = None) -> CommittedEntry:
        """
        Validate and commit a candidate entry.

        Raises:
            EmptyEntryError, InvalidLineError, AccountNotFoundError,
            AccountInactiveError, UnbalancedEntryError: candidate rejected,
                nothing written.
            TransientPersistenceError, PermanentPersistenceError: storage
                failed and the transaction was rolled back.
            FatalInconsistencyError: storage failed and so did the rollback.
        """
        t0 = time.monotonic()
        with LogContext.bind(entity_id=candidate.entity_id, actor_id=actor_id):
            logger.info(
                "posting_started",
                extra={
                    "reference": candidate.reference,
                    "entry_date": candidate.entry_date.isoformat(),
                    "line_count": len(candidate.lines),
                    "draft": candidate.draft,
                },
            )

            with self._locks.hold(candidate.entity_id):
                session = self._session_factory()
                try:
                    committed = self._post_in_session(session, candidate, actor_id)
                finally:
                    session.close()

            logger.info(
                "entry_posted",
                extra={
                    "entry_id": str(committed.entry_id),
                    "status": committed.status,
                    "total_debits": str(committed.total_debits),
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )

        self._emit_audit(ACTION_CREATE, committed, actor_id)
        return committed

    def validate(self, candidate: CandidateEntry) -> ValidationResult:
        """Dry run of the validation steps of post(); writes nothing."""
        session = self._session_factory()
        try:
            self._validate(session, candidate)
        except ValidationError as exc:
            return ValidationResult.failure(str(exc), exc.code)
        finally:
            session.close()
        return ValidationResult.success()

    def post_draft(
        self,
        entity_id: UUID,
        entry_id: UUID,
        actor_id: UUID | None = None,
    ) -> CommittedEntry:
        """
        Move a DRAFT entry to POSTED.

        The draft is re-validated against current account state (an account
        deactivated since the draft was saved blocks posting).
        """
        with LogContext.bind(entity_id=entity_id, actor_id=actor_id, entry_id=entry_id):
            with self._locks.hold(entity_id):
                session = self._session_factory()
                try:
                    committed = self._post_draft_in_session(session, entity_id, entry_id)
                finally:
                    session.close()
            logger.info("draft_posted", extra={"entry_id": str(entry_id)})

        self._emit_audit(ACTION_POST, committed, actor_id)
        return committed

    def cancel(
        self,
        entity_id: UUID,
        entry_id: UUID,
        reason: str | None = None,
        actor_id: UUID | None = None,
    ) -> CancellationResult:
        """
        Cancel an entry.

        DRAFT entries are cancelled directly.  POSTED entries get a mirrored
        counterpart (debits and credits swapped, same entry date, linked by
        reversal_of_id); original and counterpart both end CANCELLED, so
        neither contributes to balances or statements.
        """
        with LogContext.bind(entity_id=entity_id, actor_id=actor_id, entry_id=entry_id):
            with self._locks.hold(entity_id):
                session = self._session_factory()
                try:
                    result = self._cancel_in_session(
                        session, entity_id, entry_id, reason, actor_id,
                    )
                finally:
                    session.close()
            logger.info(
                "entry_cancelled",
                extra={
                    "entry_id": str(entry_id),
                    "reversal_entry_id": (
                        str(result.reversal.entry_id) if result.reversal else None
                    ),
                    "reason": reason,
                },
            )

        self._emit_audit(ACTION_CANCEL, result.cancelled, actor_id, reason=reason)
        return result

    # =========================================================================
    # Validation
    # =========================================================================

    def _validate(self, session: Session, candidate: CandidateEntry) -> list[ResolvedLine]:
        if not candidate.lines:
            raise EmptyEntryError(candidate.reference)

        for index, line in enumerate(candidate.lines):
            if not (line.debit.is_finite() and line.credit.is_finite()):
                raise InvalidLineError(index, "amount must be a finite number")
            if line.debit < ZERO or line.credit < ZERO:
                raise InvalidLineError(index, "amounts must be non-negative")
            if line.debit > ZERO and line.credit > ZERO:
                raise InvalidLineError(index, "line has both a debit and a credit")
            if line.debit == ZERO and line.credit == ZERO:
                raise InvalidLineError(index, "line has no amount")
            if line.account_id is None and not (line.account_code or "").strip():
                raise InvalidLineError(index, "line has no account reference")

        registry = AccountRegistry(session, self._config.classification)
        resolved: list[ResolvedLine] = []
        cache: dict[str, AccountInfo] = {}
        for index, line in enumerate(candidate.lines):
            reference = line.account_id if line.account_id is not None else line.account_code
            key = str(reference)
            if key not in cache:
                cache[key] = registry.resolve(candidate.entity_id, reference)
            resolved.append(
                ResolvedLine(
                    account=cache[key],
                    debit=line.debit,
                    credit=line.credit,
                    description=line.description,
                    line_seq=index,
                )
            )

        self._check_balanced(candidate.total_debits, candidate.total_credits)
        return resolved

    def _check_balanced(self, debits, credits) -> None:
        if not within_tolerance(debits, credits, self._config.balance_tolerance):
            raise UnbalancedEntryError(debits, credits)

    # =========================================================================
    # Transactional steps
    # =========================================================================

    def _post_in_session(
        self,
        session: Session,
        candidate: CandidateEntry,
        actor_id: UUID | None,
    ) -> CommittedEntry:
        try:
            resolved = self._validate(session, candidate)
        except ValidationError as exc:
            session.rollback()
            logger.warning(
                "posting_rejected",
                extra={
                    "error_code": exc.code,
                    "detail": str(exc),
                    "reference": candidate.reference,
                },
            )
            raise

        status = JournalEntryStatus.DRAFT if candidate.draft else JournalEntryStatus.POSTED
        entry: JournalEntry | None = None
        try:
            store = LedgerStore(session, self._config.stream_batch_size)
            entry = store.append(
                entity_id=candidate.entity_id,
                entry_date=candidate.entry_date,
                lines=resolved,
                status=status,
                reference=candidate.reference,
                description=candidate.description,
                posted_at=self._clock.now() if status == JournalEntryStatus.POSTED else None,
                actor_id=actor_id,
            )
            if status == JournalEntryStatus.POSTED:
                BalanceAggregator(session).apply(
                    candidate.entity_id,
                    candidate.entry_date,
                    ((ln.account.id, ln.debit, ln.credit) for ln in resolved),
                )
            committed = CommittedEntry.from_model(entry)
            session.commit()
        except PersistenceError as exc:
            self._rollback_or_fail(session, entry, exc)
            raise
        except SQLAlchemyError as exc:
            self._rollback_or_fail(session, entry, exc)
            raise translate_persistence_error("post", exc) from exc

        return committed

    def _post_draft_in_session(
        self,
        session: Session,
        entity_id: UUID,
        entry_id: UUID,
    ) -> CommittedEntry:
        store = LedgerStore(session, self._config.stream_batch_size)
        entry = store.get_entry(entity_id, entry_id)
        if JournalEntryStatus(entry.status) != JournalEntryStatus.DRAFT:
            raise InvalidStatusTransitionError(
                str(entry_id), str(entry.status), JournalEntryStatus.POSTED.value,
            )

        registry = AccountRegistry(session, self._config.classification)
        try:
            for line in entry.lines:
                registry.resolve(entity_id, line.account_id)
            self._check_balanced(entry.total_debits, entry.total_credits)
        except ValidationError as exc:
            session.rollback()
            logger.warning(
                "draft_posting_rejected",
                extra={"error_code": exc.code, "detail": str(exc)},
            )
            raise

        try:
            store.set_status(entry, JournalEntryStatus.POSTED, posted_at=self._clock.now())
            BalanceAggregator(session).apply(
                entity_id,
                entry.entry_date,
                ((ln.account_id, ln.debit, ln.credit) for ln in entry.lines),
            )
            committed = CommittedEntry.from_model(entry)
            session.commit()
        except PersistenceError as exc:
            self._rollback_or_fail(session, entry, exc)
            raise
        except SQLAlchemyError as exc:
            self._rollback_or_fail(session, entry, exc)
            raise translate_persistence_error("post_draft", exc) from exc
        return committed

    def _cancel_in_session(
        self,
        session: Session,
        entity_id: UUID,
        entry_id: UUID,
        reason: str | None,
        actor_id: UUID | None,
    ) -> CancellationResult:
        store = LedgerStore(session, self._config.stream_batch_size)
        original = store.get_entry(entity_id, entry_id)
        status = JournalEntryStatus(original.status)

        if status == JournalEntryStatus.POSTED and store.find_reversal(entity_id, entry_id):
            raise InvalidStatusTransitionError(
                str(entry_id), status.value, JournalEntryStatus.CANCELLED.value,
            )

        reversal: JournalEntry | None = None
        try:
            if status == JournalEntryStatus.POSTED:
                mirrored = [
                    ResolvedLine(
                        account=AccountInfo.from_model(line.account),
                        debit=line.credit,
                        credit=line.debit,
                        description=line.description,
                        line_seq=line.line_seq,
                    )
                    for line in original.lines
                ]
                reversal = store.append(
                    entity_id=entity_id,
                    entry_date=original.entry_date,
                    lines=mirrored,
                    status=JournalEntryStatus.CANCELLED,
                    reference=f"REV-{original.reference or original.id}",
                    description=_reversal_description(original, reason),
                    posted_at=self._clock.now(),
                    reversal_of_id=original.id,
                    actor_id=actor_id,
                )
                BalanceAggregator(session).apply(
                    entity_id,
                    original.entry_date,
                    ((ln.account.id, ln.debit, ln.credit) for ln in mirrored),
                )

            store.set_status(original, JournalEntryStatus.CANCELLED)
            result = CancellationResult(
                cancelled=CommittedEntry.from_model(original),
                reversal=CommittedEntry.from_model(reversal) if reversal is not None else None,
            )
            session.commit()
        except PersistenceError as exc:
            self._rollback_or_fail(session, reversal or original, exc)
            raise
        except SQLAlchemyError as exc:
            self._rollback_or_fail(session, reversal or original, exc)
            raise translate_persistence_error("cancel", exc) from exc
        return result

    # =========================================================================
    # Failure handling
    # =========================================================================

    def _rollback_or_fail(
        self,
        session: Session,
        entry: JournalEntry | None,
        cause: Exception,
    ) -> None:
        entry_ref = str(entry.id) if entry is not None and entry.id is not None else "<unassigned>"
        logger.error(
            "posting_persistence_failed",
            extra={"entry_id": entry_ref, "detail": str(cause)},
        )
        try:
            session.rollback()
        except SQLAlchemyError as rollback_exc:
            logger.critical(
                "posting_rollback_failed",
                extra={"entry_id": entry_ref, "detail": str(rollback_exc)},
                exc_info=True,
            )
            raise FatalInconsistencyError(entry_ref, str(rollback_exc)) from rollback_exc
        logger.info("posting_rolled_back", extra={"entry_id": entry_ref})

    # =========================================================================
    # Audit
    # =========================================================================

    def _emit_audit(
        self,
        action: str,
        entry: CommittedEntry,
        actor_id: UUID | None,
        **extra_details,
    ) -> None:
        record = AuditRecord(
            action=action,
            entity_type="journal_entry",
            entity_id=str(entry.entry_id),
            details={
                "ledger_entity_id": str(entry.entity_id),
                "reference": entry.reference,
                "entry_date": entry.entry_date.isoformat(),
                "status": entry.status,
                "total": str(entry.total_debits),
                "line_count": len(entry.lines),
                "actor_id": str(actor_id) if actor_id else None,
                **extra_details,
            },
        )
        try:
            self._audit.emit(record)
        except Exception:
            # The posting is already committed.
            logger.warning(
                "audit_emit_failed",
                extra={"entry_id": str(entry.entry_id), "action": action},
                exc_info=True,
            )


def _reversal_description(original: JournalEntry, reason: str | None) -> str:
    base = f"Reversal of {original.reference or original.id}"
    return f"{base}: {reason}" if reason else base
