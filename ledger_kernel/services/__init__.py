"""Imperative shell: registry, store, posting engine, balance aggregator."""

from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.audit import (
    AuditRecord,
    AuditSink,
    InMemoryAuditSink,
    LoggingAuditSink,
)
from ledger_kernel.services.balance_aggregator import BalanceAggregator
from ledger_kernel.services.entity_lock import EntityLockRegistry
from ledger_kernel.services.ledger_store import LedgerStore, translate_persistence_error
from ledger_kernel.services.posting_engine import CancellationResult, PostingEngine

__all__ = [
    "AccountRegistry",
    "AuditRecord",
    "AuditSink",
    "BalanceAggregator",
    "CancellationResult",
    "EntityLockRegistry",
    "InMemoryAuditSink",
    "LedgerStore",
    "LoggingAuditSink",
    "PostingEngine",
    "translate_persistence_error",
]
