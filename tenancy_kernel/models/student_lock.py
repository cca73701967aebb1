"""
Module: tenancy_kernel.models.student_lock
Responsibility: One row per student, locked with SELECT ... FOR UPDATE to
    serialize accrual and allocation work for that student across processes.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tenancy_kernel.db.base import TrackedBase


class StudentLock(TrackedBase):
    """Serialization point for one student's ledger writes."""

    __tablename__ = "student_locks"

    __table_args__ = (
        UniqueConstraint("student_id", name="uq_student_lock_student"),
    )

    student_id: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<StudentLock {self.student_id}>"
