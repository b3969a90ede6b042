"""
Per-entity single-writer locks.

Posting is serialized per owning entity so that two concurrent posts to
the same ledger never interleave.  Different entities post in parallel.
The lock is process-local; across processes the database transaction and
the unique constraint on the balance view are the backstop.
"""

import threading
from contextlib import contextmanager
from typing import Iterator
from uuid import UUID


class EntityLockRegistry:
    """Hands out one lock per entity id, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[UUID, threading.Lock] = {}

    def lock_for(self, entity_id: UUID) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(entity_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[entity_id] = lock
            return lock

    @contextmanager
    def hold(self, entity_id: UUID) -> Iterator[None]:
        lock = self.lock_for(entity_id)
        with lock:
            yield
