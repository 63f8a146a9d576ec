"""
Concurrency Control: Coordinating Lock

The student, course and enrollment stores are guarded by one re-entrant lock
shared through the records context. Every compound operation (validate, then
write) runs inside ``guard`` so it sees a single consistent snapshot, e.g.
``enroll`` cannot double-book the credit ceiling between its credit check and
its write.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class CoordinatingLock:
    """
    Re-entrant lock spanning all record stores.

    Re-entrancy lets a guarded operation call other guarded operations
    (``enroll`` reading the student store through its service).
    """

    def __init__(self, name: str = "records"):
        """
        Initialize lock.

        Args:
            name: Lock name used in log events
        """
        self.name = name
        self._lock = threading.RLock()
        self._owner_operation: str | None = None
        self._depth = 0
        self._acquired_at: datetime | None = None

    @contextmanager
    def guard(self, operation: str) -> Iterator[None]:
        """
        Hold the lock for the duration of one compound operation.

        Args:
            operation: Operation name (for diagnostics)
        """
        with self._lock:
            self._depth += 1
            if self._depth == 1:
                self._owner_operation = operation
                self._acquired_at = datetime.now(timezone.utc)
                logger.debug("Lock acquired", lock=self.name, operation=operation)
            try:
                yield
            finally:
                self._depth -= 1
                if self._depth == 0:
                    logger.debug("Lock released", lock=self.name, operation=operation)
                    self._owner_operation = None
                    self._acquired_at = None

    def is_held(self) -> bool:
        """Check whether some operation currently holds the lock."""
        return self._depth > 0

    def get_lock_info(self) -> dict[str, Any] | None:
        """Get information about the current holder, if any."""
        if not self.is_held():
            return None
        return {
            "lock": self.name,
            "operation": self._owner_operation,
            "depth": self._depth,
            "acquired_at": self._acquired_at.isoformat() if self._acquired_at else None,
        }
