"""
Module: tenancy_kernel.services.student_lock
Responsibility: Per-student serialization of ledger writes.  Two payments
    (or a payment and an accrual) for the same student never read the same
    outstanding-balance snapshot.
Architecture position: Kernel > Services.

Invariants enforced:
    - Within a process: a keyed re-entrant lock per student_id.  A lock
      stays registered only while some thread holds or waits for it.
    - Across processes: SELECT ... FOR UPDATE on the student's row in
      student_locks, held by the database until the transaction ends.

Usage:
    with locks.hold(session, student_id):
        ...read outstanding, write settlements...
        session.commit()

    Acquire before the session's first query of the unit of work so the
    database lock is never requested while already holding another
    student's row.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenancy_kernel.logging_config import get_logger
from tenancy_kernel.models.student_lock import StudentLock

logger = get_logger("services.student_lock")


class StudentLockManager:
    """Keyed locks shared by every service instance in the process."""

    _registry_lock = threading.Lock()
    # student_id -> [lock, number of holders and waiters]
    _locks: dict[str, list] = {}

    @classmethod
    def _checkout(cls, student_id: str) -> threading.RLock:
        with cls._registry_lock:
            slot = cls._locks.get(student_id)
            if slot is None:
                slot = [threading.RLock(), 0]
                cls._locks[student_id] = slot
            slot[1] += 1
            return slot[0]

    @classmethod
    def _checkin(cls, student_id: str) -> None:
        with cls._registry_lock:
            slot = cls._locks[student_id]
            slot[1] -= 1
            if slot[1] == 0:
                del cls._locks[student_id]

    @classmethod
    def registered_count(cls) -> int:
        with cls._registry_lock:
            return len(cls._locks)

    def _lock_row(self, session: Session, student_id: str) -> None:
        stmt = (
            select(StudentLock)
            .where(StudentLock.student_id == student_id)
            .with_for_update()
        )
        if session.scalars(stmt).one_or_none() is not None:
            return
        try:
            with session.begin_nested():
                session.add(StudentLock(student_id=student_id))
                session.flush()
        except IntegrityError:
            logger.debug("student_lock_row_exists", extra={"student_id": student_id})
        session.scalars(stmt).one()

    @contextmanager
    def hold(self, session: Session, student_id: str) -> Iterator[None]:
        lock = self._checkout(student_id)
        try:
            with lock:
                self._lock_row(session, student_id)
                logger.debug("student_lock_acquired", extra={"student_id": student_id})
                yield
        finally:
            self._checkin(student_id)
