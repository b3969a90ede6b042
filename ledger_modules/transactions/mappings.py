"""
Transaction-type mappings (``ledger_modules.transactions.mappings``).

Responsibility
--------------
Turns a simple business transaction (bank-import row, quick-entry form)
into a two-line ``CandidateEntry``.  Each named transaction type maps to
one debit account code and one credit account code from the standard
chart of accounts.  The resulting candidate enters the ledger through the
normal ``PostingEngine.post`` path, so every posting rule still applies.

Failure modes
-------------
* Unknown or inactive transaction type  -> ``UnknownTransactionTypeError``.
* Non-positive amount  -> ``ValueError`` before any candidate is built.
* Mapped account code missing for the entity  -> ``AccountNotFoundError``
  from the PostingEngine at post time.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from ledger_kernel.domain.dtos import CandidateEntry, CandidateLine, to_decimal
from ledger_kernel.exceptions import UnknownTransactionTypeError
from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.transactions.mappings")


@dataclass(frozen=True)
class TransactionMapping:
    """Debit/credit account codes for a named business transaction."""

    transaction_type: str
    debit_code: str
    credit_code: str
    description: str
    is_active: bool = True


DEFAULT_MAPPINGS: tuple[TransactionMapping, ...] = (
    TransactionMapping("sale_cash", "1001", "4001", "Cash sale"),
    TransactionMapping("sale_credit", "1101", "4001", "Credit sale"),
    TransactionMapping("purchase_inventory", "1201", "2001", "Inventory purchase on credit"),
    TransactionMapping("asset_purchase_cash", "1601", "1001", "Fixed asset purchase cash"),
    TransactionMapping("asset_purchase_credit", "1601", "2001", "Fixed asset purchase on credit"),
    TransactionMapping("monthly_depreciation", "6101", "1701", "Monthly depreciation"),
    TransactionMapping(
        "disposal_cost_remove", "1701", "1601", "Remove cost via accumulated depreciation",
    ),
    TransactionMapping("disposal_sale_cash", "1001", "1601", "Record disposal cash proceeds"),
    TransactionMapping("disposal_sale_credit", "1101", "1601", "Record disposal credit proceeds"),
    TransactionMapping("disposal_gain", "1601", "4001", "Gain on disposal"),
    TransactionMapping("disposal_loss", "6001", "1601", "Loss on disposal"),
)


class MappingRegistry:
    """
    Lookup of transaction mappings by type.

    Starts from DEFAULT_MAPPINGS; callers may register additional types or
    replace and deactivate existing ones.
    """

    def __init__(self, mappings: Iterable[TransactionMapping] | None = None):
        self._mappings: dict[str, TransactionMapping] = {}
        for mapping in DEFAULT_MAPPINGS if mappings is None else mappings:
            self.register(mapping)

    def register(self, mapping: TransactionMapping) -> None:
        self._mappings[mapping.transaction_type] = mapping

    def deactivate(self, transaction_type: str) -> None:
        mapping = self._mappings.get(transaction_type)
        if mapping is None:
            raise UnknownTransactionTypeError(transaction_type)
        self._mappings[transaction_type] = replace(mapping, is_active=False)

    def get(self, transaction_type: str) -> TransactionMapping:
        """
        Active mapping for the type.

        Raises:
            UnknownTransactionTypeError: type unknown or deactivated.
        """
        mapping = self._mappings.get(transaction_type)
        if mapping is None or not mapping.is_active:
            raise UnknownTransactionTypeError(transaction_type)
        return mapping

    def types(self) -> list[str]:
        return sorted(t for t, m in self._mappings.items() if m.is_active)


DEFAULT_REGISTRY = MappingRegistry()


def build_candidate(
    entity_id: UUID,
    transaction_type: str,
    amount: Decimal | int | str,
    entry_date: date,
    reference: str | None = None,
    description: str | None = None,
    registry: MappingRegistry | None = None,
) -> CandidateEntry:
    """
    Build a balanced two-line candidate entry for a business transaction.

    Args:
        entity_id: Owning entity.
        transaction_type: Mapping key, e.g. "sale_cash".
        amount: Positive transaction amount.
        entry_date: Accounting date.
        reference: Optional external reference (invoice, bank row id).
        description: Defaults to the mapping's description.

    Raises:
        UnknownTransactionTypeError: no active mapping for the type.
        ValueError: amount is not a positive finite number.
    """
    mapping = (registry or DEFAULT_REGISTRY).get(transaction_type)
    value = to_decimal(amount)
    if not value.is_finite() or value <= 0:
        raise ValueError(f"Transaction amount must be a positive finite number, got {value}")

    text = description or mapping.description
    candidate = CandidateEntry(
        entity_id=entity_id,
        entry_date=entry_date,
        lines=(
            CandidateLine.debit_line(mapping.debit_code, value, text),
            CandidateLine.credit_line(mapping.credit_code, value, text),
        ),
        reference=reference,
        description=text,
    )

    logger.debug(
        "transaction_candidate_built",
        extra={
            "entity_id": str(entity_id),
            "transaction_type": transaction_type,
            "debit_code": mapping.debit_code,
            "credit_code": mapping.credit_code,
            "amount": str(value),
        },
    )
    return candidate
