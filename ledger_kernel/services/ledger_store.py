"""
Module: ledger_kernel.services.ledger_store
Responsibility: Owns the journal entry / journal line lifecycle -- append,
    status transitions, and streaming reads of posted lines.
Architecture position: Kernel > Services.  Flush-only (BaseService); the
    PostingEngine owns commit and rollback.

Invariants enforced:
    - The header is flushed before its lines; both live in the caller's
      transaction, so a failed line insert never leaves an orphan header
      once the caller rolls back.
    - Status transitions follow DRAFT -> POSTED, DRAFT -> CANCELLED,
      POSTED -> CANCELLED.  Anything else raises
      InvalidStatusTransitionError.
    - list_posted() streams in batches of ``batch_size`` rows and never
      materializes the ledger.

Failure modes:
    - TransientPersistenceError / PermanentPersistenceError translated from
      SQLAlchemy errors raised during flush.
    - EntryNotFoundError for an unknown entry id within the entity.
"""

from datetime import date, datetime
from typing import Iterable, Iterator
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import LedgerLine, ResolvedLine
from ledger_kernel.exceptions import (
    EntryNotFoundError,
    InvalidStatusTransitionError,
    PermanentPersistenceError,
    PersistenceError,
    TransientPersistenceError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.services.base import BaseService

logger = get_logger("services.ledger_store")

_ALLOWED_TRANSITIONS: dict[JournalEntryStatus, frozenset[JournalEntryStatus]] = {
    JournalEntryStatus.DRAFT: frozenset({
        JournalEntryStatus.POSTED,
        JournalEntryStatus.CANCELLED,
    }),
    JournalEntryStatus.POSTED: frozenset({JournalEntryStatus.CANCELLED}),
    JournalEntryStatus.CANCELLED: frozenset(),
}


def translate_persistence_error(operation: str, exc: SQLAlchemyError) -> PersistenceError:
    """
    Map a SQLAlchemy error to the kernel's persistence taxonomy.

    Connection loss, lock and pool timeouts are transient; everything else
    (constraint violations, programming errors) is permanent.
    """
    transient = isinstance(exc, (OperationalError, PoolTimeoutError, DisconnectionError)) or (
        isinstance(exc, DBAPIError) and exc.connection_invalidated
    )
    cls = TransientPersistenceError if transient else PermanentPersistenceError
    return cls(operation, str(exc.orig) if isinstance(exc, DBAPIError) else str(exc))


class LedgerStore(BaseService[JournalEntry]):
    """
    Journal persistence for one session.

    Contract:
        append() returns the flushed JournalEntry (ids assigned).
        list_posted() returns a fresh generator on each call.
    """

    def __init__(self, session: Session, batch_size: int = 500):
        super().__init__(session)
        self._batch_size = batch_size

    def append(
        self,
        entity_id: UUID,
        entry_date: date,
        lines: Iterable[ResolvedLine],
        status: JournalEntryStatus = JournalEntryStatus.POSTED,
        reference: str | None = None,
        description: str | None = None,
        posted_at: datetime | None = None,
        reversal_of_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> JournalEntry:
        """
        Write the header, then its lines, within the caller's transaction.

        Raises:
            TransientPersistenceError / PermanentPersistenceError.
        """
        entry = JournalEntry(
            entity_id=entity_id,
            entry_date=entry_date,
            reference=reference,
            description=description,
            status=JournalEntryStatus(status).value,
            posted_at=posted_at,
            reversal_of_id=reversal_of_id,
            created_by_id=actor_id,
        )
        try:
            self.session.add(entry)
            self.session.flush()
        except SQLAlchemyError as exc:
            raise translate_persistence_error("append_header", exc) from exc

        logger.debug(
            "journal_header_written",
            extra={"entry_id": str(entry.id), "status": entry.status},
        )

        try:
            self._add_lines(entry, lines, actor_id)
        except SQLAlchemyError as exc:
            raise translate_persistence_error("append_lines", exc) from exc

        return entry

    def _add_lines(
        self,
        entry: JournalEntry,
        lines: Iterable[ResolvedLine],
        actor_id: UUID | None,
    ) -> None:
        for line in lines:
            entry.lines.append(
                JournalLine(
                    journal_entry_id=entry.id,
                    account_id=line.account.id,
                    description=line.description,
                    debit=line.debit,
                    credit=line.credit,
                    line_seq=line.line_seq,
                    created_by_id=actor_id,
                )
            )
        self.session.flush()

    def get_entry(self, entity_id: UUID, entry_id: UUID) -> JournalEntry:
        entry = self.session.execute(
            select(JournalEntry).where(
                JournalEntry.entity_id == entity_id,
                JournalEntry.id == entry_id,
            )
        ).scalar_one_or_none()
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def find_reversal(self, entity_id: UUID, entry_id: UUID) -> JournalEntry | None:
        """The reversing counterpart of an entry, if one exists."""
        return self.session.execute(
            select(JournalEntry).where(
                JournalEntry.entity_id == entity_id,
                JournalEntry.reversal_of_id == entry_id,
            )
        ).scalar_one_or_none()

    def set_status(
        self,
        entry: JournalEntry,
        new_status: JournalEntryStatus,
        posted_at: datetime | None = None,
    ) -> JournalEntry:
        current = JournalEntryStatus(entry.status)
        new_status = JournalEntryStatus(new_status)
        if new_status not in _ALLOWED_TRANSITIONS[current]:
            raise InvalidStatusTransitionError(
                str(entry.id), current.value, new_status.value,
            )

        entry.status = new_status.value
        if new_status == JournalEntryStatus.POSTED:
            entry.posted_at = posted_at
        try:
            self.session.flush()
        except SQLAlchemyError as exc:
            raise translate_persistence_error("set_status", exc) from exc

        logger.info(
            "journal_status_changed",
            extra={
                "entry_id": str(entry.id),
                "from_status": current.value,
                "to_status": new_status.value,
            },
        )
        return entry

    def list_posted(
        self,
        entity_id: UUID,
        start_date: date,
        end_date: date,
    ) -> Iterator[LedgerLine]:
        """
        Stream posted (entry, line) pairs with start <= entry_date <= end.

        Rows are fetched ``batch_size`` at a time.  Yields nothing when
        end_date < start_date.
        """
        if end_date < start_date:
            return

        query = (
            select(
                JournalEntry.id.label("entry_id"),
                JournalEntry.entry_date,
                JournalEntry.reference,
                JournalLine.id.label("line_id"),
                JournalLine.account_id,
                JournalLine.debit,
                JournalLine.credit,
                JournalLine.line_seq,
                JournalLine.description,
            )
            .select_from(JournalLine)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalEntry.entity_id == entity_id,
                JournalEntry.status == JournalEntryStatus.POSTED.value,
                JournalEntry.entry_date >= start_date,
                JournalEntry.entry_date <= end_date,
            )
            .order_by(JournalEntry.entry_date, JournalEntry.id, JournalLine.line_seq)
            .execution_options(yield_per=self._batch_size)
        )

        for row in self.session.execute(query):
            yield LedgerLine(
                entry_id=row.entry_id,
                entry_date=row.entry_date,
                line_id=row.line_id,
                account_id=row.account_id,
                debit=row.debit,
                credit=row.credit,
                line_seq=row.line_seq,
                reference=row.reference,
                description=row.description,
            )
