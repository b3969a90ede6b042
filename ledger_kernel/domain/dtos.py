"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that flow through the posting and
    reporting pipelines: CandidateLine / CandidateEntry (input from
    collaborators), AccountInfo (account snapshot), CommittedLine /
    CommittedEntry (posting result), LedgerLine (streamed read model) and
    BalanceMismatch (verification output).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    ``from_model()`` class methods are boundary converters invoked only from
    the service layer.

Data flow:
    CandidateEntry -> (PostingEngine) -> JournalEntry rows -> CommittedEntry
    JournalLine rows -> (LedgerStore.list_posted) -> LedgerLine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from ledger_kernel.models.account import AccountType, NormalBalance, normal_balance_for

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account as AccountModel
    from ledger_kernel.models.journal import JournalEntry as JournalEntryModel

ZERO = Decimal("0")


def to_decimal(value: Decimal | int | str | float) -> Decimal:
    """Coerce an amount to Decimal, going through str for floats."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


@dataclass(frozen=True)
class AccountInfo:
    """
    Pure domain representation of an account.

    Contract:
        Immutable snapshot of account state.  Classification and statement
        builders work on this DTO, never on the ORM Account.
    """

    id: UUID
    entity_id: UUID
    code: str
    name: str
    account_type: AccountType
    subtype: str | None = None
    is_active: bool = True

    @property
    def normal_balance(self) -> NormalBalance:
        return normal_balance_for(self.account_type)

    @classmethod
    def from_model(cls, model: AccountModel) -> AccountInfo:
        return cls(
            id=model.id,
            entity_id=model.entity_id,
            code=model.code,
            name=model.name,
            account_type=AccountType(model.account_type),
            subtype=model.subtype,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class CandidateLine:
    """
    One proposed line of a candidate entry.

    The account is referenced either by id or by human-entered code; when
    both are given the id wins.  Amounts are coerced to Decimal but not
    validated here -- structural checks belong to the PostingEngine so
    that rejections carry a typed error.
    """

    debit: Decimal = ZERO
    credit: Decimal = ZERO
    account_id: UUID | None = None
    account_code: str | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", to_decimal(self.debit))
        object.__setattr__(self, "credit", to_decimal(self.credit))

    @property
    def account_reference(self) -> str:
        if self.account_id is not None:
            return str(self.account_id)
        return self.account_code or ""

    @classmethod
    def debit_line(
        cls, account: UUID | str, amount: Decimal | int | str, description: str | None = None,
    ) -> CandidateLine:
        """Build a debit-side line, accepting an account id or code."""
        return cls(debit=to_decimal(amount), description=description, **_account_kwargs(account))

    @classmethod
    def credit_line(
        cls, account: UUID | str, amount: Decimal | int | str, description: str | None = None,
    ) -> CandidateLine:
        """Build a credit-side line, accepting an account id or code."""
        return cls(credit=to_decimal(amount), description=description, **_account_kwargs(account))


def _account_kwargs(account: UUID | str) -> dict:
    if isinstance(account, UUID):
        return {"account_id": account}
    return {"account_code": str(account)}


@dataclass(frozen=True)
class CandidateEntry:
    """
    A proposed journal entry submitted by a collaborator (UI form, bank
    import, transaction mapping).

    ``draft=False`` is the auto-post default; ``draft=True`` stores the entry
    for staged review without touching balances.
    """

    entity_id: UUID
    entry_date: date
    lines: tuple[CandidateLine, ...]
    reference: str | None = None
    description: str | None = None
    draft: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.lines, tuple):
            object.__setattr__(self, "lines", tuple(self.lines))

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)


@dataclass(frozen=True)
class ResolvedLine:
    """A candidate line whose account reference has been resolved."""

    account: AccountInfo
    debit: Decimal
    credit: Decimal
    description: str | None
    line_seq: int


@dataclass(frozen=True)
class CommittedLine:
    """A persisted journal line."""

    line_id: UUID
    account_id: UUID
    account_code: str
    debit: Decimal
    credit: Decimal
    description: str | None
    line_seq: int


@dataclass(frozen=True)
class CommittedEntry:
    """Result of a successful post: the persisted entry as stored."""

    entry_id: UUID
    entity_id: UUID
    entry_date: date
    status: str
    lines: tuple[CommittedLine, ...]
    reference: str | None = None
    description: str | None = None
    posted_at: datetime | None = None
    reversal_of_id: UUID | None = None

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)

    @property
    def touched_account_ids(self) -> frozenset[UUID]:
        return frozenset(line.account_id for line in self.lines)

    @classmethod
    def from_model(cls, model: JournalEntryModel) -> CommittedEntry:
        return cls(
            entry_id=model.id,
            entity_id=model.entity_id,
            entry_date=model.entry_date,
            status=str(getattr(model.status, "value", model.status)),
            reference=model.reference,
            description=model.description,
            posted_at=model.posted_at,
            reversal_of_id=model.reversal_of_id,
            lines=tuple(
                CommittedLine(
                    line_id=line.id,
                    account_id=line.account_id,
                    account_code=line.account.code,
                    debit=line.debit,
                    credit=line.credit,
                    description=line.description,
                    line_seq=line.line_seq,
                )
                for line in sorted(model.lines, key=lambda ln: ln.line_seq)
            ),
        )


@dataclass(frozen=True)
class LedgerLine:
    """
    One (entry, line) pair from the posted ledger.

    Carries the entry date and reference alongside the line so consumers
    can aggregate a stream without loading entry headers separately.
    """

    entry_id: UUID
    entry_date: date
    line_id: UUID
    account_id: UUID
    debit: Decimal
    credit: Decimal
    line_seq: int = 0
    reference: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class AccountBalance:
    """Natural-side balance of one account (positive in its normal direction)."""

    account_id: UUID
    balance: Decimal


@dataclass(frozen=True)
class BalanceMismatch:
    """Disagreement between the materialized view and a full replay."""

    account_id: UUID
    materialized: Decimal
    replayed: Decimal

    @property
    def difference(self) -> Decimal:
        return self.materialized - self.replayed


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a dry-run validation of a candidate entry."""

    is_valid: bool
    errors: tuple[str, ...] = field(default_factory=tuple)
    error_codes: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls) -> ValidationResult:
        return cls(is_valid=True)

    @classmethod
    def failure(cls, message: str, code: str) -> ValidationResult:
        return cls(is_valid=False, errors=(message,), error_codes=(code,))
