"""Business transaction types mapped to candidate journal entries."""

from ledger_modules.transactions.mappings import (
    DEFAULT_MAPPINGS,
    MappingRegistry,
    TransactionMapping,
    build_candidate,
)

__all__ = [
    "DEFAULT_MAPPINGS",
    "MappingRegistry",
    "TransactionMapping",
    "build_candidate",
]
