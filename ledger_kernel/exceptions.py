"""
Typed exception hierarchy for the ledger kernel.

Every error is a typed class carrying a machine-readable ``code`` class
attribute and its context as structured attributes, so callers catch by
type and report by code rather than parsing messages:

    try:
        engine.post(candidate)
    except UnbalancedEntryError as e:
        return {"error": e.code, "debits": e.debit_total, "credits": e.credit_total}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- ValidationError
    |   +-- UnbalancedEntryError
    |   +-- AccountNotFoundError
    |   +-- AccountInactiveError
    |   +-- InvalidDateRangeError
    |   +-- InvalidLineError
    |   +-- EmptyEntryError
    |
    +-- PersistenceError
    |   +-- TransientPersistenceError
    |   +-- PermanentPersistenceError
    |   +-- FatalInconsistencyError
    |
    +-- AccountError
    |   +-- DuplicateAccountCodeError
    |
    +-- EntryError
    |   +-- EntryNotFoundError
    |   +-- InvalidStatusTransitionError
    |
    +-- SetupError
        +-- TemplateNotFoundError
        +-- UnknownTransactionTypeError

===============================================================================
ERROR CODES
===============================================================================

Category     | Code                       | When Raised
-------------|----------------------------|------------------------------------------
Validation   | UNBALANCED_ENTRY           | Debits != Credits beyond tolerance
             | ACCOUNT_NOT_FOUND          | Line references an unknown id or code
             | ACCOUNT_INACTIVE           | Line references a deactivated account
             | INVALID_DATE_RANGE         | end_date < start_date (strict mode)
             | INVALID_LINE               | Negative amount, or not exactly one side
             | EMPTY_ENTRY                | Entry has no lines
-------------|----------------------------|------------------------------------------
Persistence  | TRANSIENT_PERSISTENCE      | Retryable storage failure (connection, lock)
             | PERMANENT_PERSISTENCE      | Non-retryable storage failure (constraint)
             | FATAL_INCONSISTENCY        | Compensating rollback failed
-------------|----------------------------|------------------------------------------
Account      | DUPLICATE_ACCOUNT_CODE     | Code already used within the entity
-------------|----------------------------|------------------------------------------
Entry        | ENTRY_NOT_FOUND            | Entry id unknown for the entity
             | INVALID_STATUS_TRANSITION  | e.g. cancelled -> posted
-------------|----------------------------|------------------------------------------
Setup        | TEMPLATE_NOT_FOUND         | Unknown ownership form when seeding
             | UNKNOWN_TRANSACTION_TYPE   | No mapping for a business transaction type

Validation errors are always surfaced to the caller and never corrected.
FatalInconsistencyError means a posting may have left partial state behind
and the ledger needs manual reconciliation.
"""

from datetime import date
from decimal import Decimal


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses define a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Validation exceptions


class ValidationError(LedgerKernelError):
    """Base exception for rejected input.  Nothing is written."""

    code: str = "VALIDATION_ERROR"


class UnbalancedEntryError(ValidationError):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debit_total: Decimal, credit_total: Decimal):
        self.debit_total = debit_total
        self.credit_total = credit_total
        super().__init__(
            f"Unbalanced entry: debits={debit_total}, credits={credit_total}"
        )


class AccountNotFoundError(ValidationError):
    """Account reference (id or code) does not resolve within the entity."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Account not found: {reference}")


class AccountInactiveError(ValidationError):
    """Account is deactivated and cannot receive new postings."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Account is inactive: {reference}")


class InvalidDateRangeError(ValidationError):
    """Report period ends before it starts."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start_date: date, end_date: date):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"Invalid date range: end {end_date} is before start {start_date}"
        )


class InvalidLineError(ValidationError):
    """A journal line is not a pure debit-side or credit-side line."""

    code: str = "INVALID_LINE"

    def __init__(self, line_index: int, reason: str):
        self.line_index = line_index
        self.reason = reason
        super().__init__(f"Invalid line {line_index}: {reason}")


class EmptyEntryError(ValidationError):
    """Journal entry has no lines."""

    code: str = "EMPTY_ENTRY"

    def __init__(self, reference: str | None = None):
        self.reference = reference
        super().__init__(f"Journal entry has no lines: {reference or '<no reference>'}")


# Persistence exceptions


class PersistenceError(LedgerKernelError):
    """Base exception for storage failures."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}")


class TransientPersistenceError(PersistenceError):
    """Storage failure that may succeed on retry (connection loss, lock timeout)."""

    code: str = "TRANSIENT_PERSISTENCE"


class PermanentPersistenceError(PersistenceError):
    """Storage failure that will not succeed on retry (constraint violation)."""

    code: str = "PERMANENT_PERSISTENCE"


class FatalInconsistencyError(PersistenceError):
    """
    The compensating rollback of a failed posting itself failed.

    The ledger may hold a partially written entry.  This is never
    recovered silently; it requires manual reconciliation.
    """

    code: str = "FATAL_INCONSISTENCY"

    def __init__(self, entry_id: str, detail: str):
        self.entry_id = entry_id
        super().__init__("rollback", f"entry {entry_id}: {detail}")


# Account exceptions


class AccountError(LedgerKernelError):
    """Base exception for chart-of-accounts errors."""

    code: str = "ACCOUNT_ERROR"


class DuplicateAccountCodeError(AccountError):
    """Account code already exists within the owning entity."""

    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, entity_id: str, account_code: str):
        self.entity_id = entity_id
        self.account_code = account_code
        super().__init__(
            f"Account code {account_code} already exists for entity {entity_id}"
        )


# Entry lifecycle exceptions


class EntryError(LedgerKernelError):
    """Base exception for journal entry lifecycle errors."""

    code: str = "ENTRY_ERROR"


class EntryNotFoundError(EntryError):
    """Journal entry was not found for the entity."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


class InvalidStatusTransitionError(EntryError):
    """Requested status change is not permitted."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, entry_id: str, from_status: str, to_status: str):
        self.entry_id = entry_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot move entry {entry_id} from {from_status} to {to_status}"
        )


# Setup helper exceptions (chart-of-accounts templates, transaction mappings)


class SetupError(LedgerKernelError):
    """Base exception for chart-of-accounts and mapping setup errors."""

    code: str = "SETUP_ERROR"


class TemplateNotFoundError(SetupError):
    """No chart-of-accounts template exists for the ownership form."""

    code: str = "TEMPLATE_NOT_FOUND"

    def __init__(self, ownership: str):
        self.ownership = ownership
        super().__init__(f"No chart of accounts template for ownership form: {ownership}")


class UnknownTransactionTypeError(SetupError):
    """No active mapping exists for the transaction type."""

    code: str = "UNKNOWN_TRANSACTION_TYPE"

    def __init__(self, transaction_type: str):
        self.transaction_type = transaction_type
        super().__init__(f"No mapping found for transaction type: {transaction_type}")
