"""
Audit sink -- hand-off point for audit records emitted after a posting.

Delivery of audit records (database, queue, SIEM) belongs to an external
collaborator.  The kernel only builds the record and passes it to an
``AuditSink``; the default sink writes it to the structured log.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from ledger_kernel.logging_config import get_logger

logger = get_logger("services.audit")


@dataclass(frozen=True)
class AuditRecord:
    """One fire-and-forget audit record."""

    action: str
    entity_type: str
    entity_id: str
    details: dict[str, Any] = field(default_factory=dict)


class AuditSink(ABC):
    """Receives audit records.  Implementations may raise; callers log and continue."""

    @abstractmethod
    def emit(self, record: AuditRecord) -> None:
        ...


class LoggingAuditSink(AuditSink):
    """Writes each record as an ``audit_record`` log event."""

    def emit(self, record: AuditRecord) -> None:
        logger.info(
            "audit_record",
            extra={
                "action": record.action,
                "entity_type": record.entity_type,
                "audited_id": record.entity_id,
                "details": record.details,
            },
        )


class InMemoryAuditSink(AuditSink):
    """Keeps records in a list; used by tooling and tests."""

    def __init__(self):
        self.records: list[AuditRecord] = []

    def emit(self, record: AuditRecord) -> None:
        self.records.append(record)
