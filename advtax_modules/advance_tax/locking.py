"""
Per-assessment serialization of recomputation.

Responsibility:
    Schedule recomputation reads the full payment history and rewrites all
    schedule rows, so ``record_payment``, ``recalculate_schedules`` and the
    other mutating operations on ONE assessment must not interleave.  The
    registry hands out one re-entrant lock per assessment id.

Architecture:
    advtax_modules -- module layer, process-local.  Cross-process safety
    comes from the assessment row's version counter and ``FOR UPDATE``
    reads in the service.

Invariants:
    - At most one holder per assessment id at a time.
    - Different assessments never contend.
    - An entry exists only while some thread holds or waits on it.

Failure modes:
    - ``ConcurrentRecomputeError`` when the lock is not acquired within the
      timeout.  The caller is expected to report it, not retry blindly.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from advtax_kernel.exceptions import ConcurrentRecomputeError
from advtax_kernel.logging_config import get_logger

logger = get_logger("modules.advance_tax.locking")


class AssessmentLockRegistry:
    """
    Process-local registry of per-assessment locks.

    An entry lives only while some thread holds or waits on it, so the
    registry stays as small as the set of assessments being mutated.
    """

    def __init__(self, timeout_seconds: float = 5.0):
        self._timeout = timeout_seconds
        self._guard = threading.Lock()
        # assessment id -> (lock, holders plus waiters)
        self._locks: dict[UUID, tuple[threading.RLock, int]] = {}

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, assessment_id: UUID) -> threading.RLock:
        with self._guard:
            lock, users = self._locks.get(assessment_id, (None, 0))
            if lock is None:
                lock = threading.RLock()
            self._locks[assessment_id] = (lock, users + 1)
            return lock

    def _checkin(self, assessment_id: UUID) -> None:
        with self._guard:
            lock, users = self._locks[assessment_id]
            if users == 1:
                del self._locks[assessment_id]
            else:
                self._locks[assessment_id] = (lock, users - 1)

    @contextmanager
    def hold(
        self,
        assessment_id: UUID,
        operation: str,
        timeout_seconds: float | None = None,
    ) -> Iterator[None]:
        """
        Hold the assessment's lock for the duration of the block.

        ``timeout_seconds`` overrides the registry default for this call.

        Raises:
            ConcurrentRecomputeError: If the lock is busy past the timeout.
        """
        timeout = self._timeout if timeout_seconds is None else timeout_seconds
        lock = self._checkout(assessment_id)
        try:
            if not lock.acquire(timeout=timeout):
                logger.warning(
                    "assessment_lock_timeout",
                    extra={
                        "assessment_id": str(assessment_id),
                        "operation": operation,
                        "timeout_seconds": timeout,
                    },
                )
                raise ConcurrentRecomputeError(str(assessment_id), timeout)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(assessment_id)


_default_registry = AssessmentLockRegistry()


def default_lock_registry() -> AssessmentLockRegistry:
    """Registry shared by every service instance in this process."""
    return _default_registry
