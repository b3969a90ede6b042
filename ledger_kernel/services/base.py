"""
BaseService -- abstract base for session-bound kernel services.

Responsibility:
    Provides the common constructor contract for services that work inside
    a caller-owned transaction.  Subclasses persist with ``session.flush()``
    and never commit or roll back; the caller (PostingEngine, seeding,
    or a test) owns the transaction boundary.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for flush-only kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``, so several services can take part in one
          atomic unit of work.
    """

    def __init__(self, session: Session):
        self.session = session
