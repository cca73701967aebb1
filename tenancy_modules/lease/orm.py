"""
Lease ORM models (``tenancy_modules.lease.orm``).

Persistence for residences and student leases, mapped to the frozen
dataclasses in ``models.py``.  Imports from ``tenancy_kernel.db.base``;
MUST NOT be imported by ``tenancy_kernel``.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tenancy_kernel.db.base import TrackedBase


class ResidenceModel(TrackedBase):
    """A residence (building) students are housed in."""

    __tablename__ = "residences"

    __table_args__ = (
        UniqueConstraint("residence_code", name="uq_residence_code"),
    )

    residence_code: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def to_dto(self):
        from tenancy_modules.lease.models import Residence

        return Residence(residence_id=self.residence_code, name=self.name)


class LeaseModel(TrackedBase):
    """
    A student's lease.

    Guarantees:
        - lease_code is unique.
        - status is one of active, ended, cancelled; cancelled leases never
          accrue.
    """

    __tablename__ = "leases"

    __table_args__ = (
        UniqueConstraint("lease_code", name="uq_lease_code"),
        Index("idx_lease_student", "student_id"),
        Index("idx_lease_dates", "start_date", "end_date"),
    )

    lease_code: Mapped[str] = mapped_column(String(64), nullable=False)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False)
    student_name: Mapped[str] = mapped_column(String(255), nullable=False)
    residence_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    room: Mapped[str | None] = mapped_column(String(64), nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    monthly_rent: Mapped[Decimal | None] = mapped_column(nullable=True)
    monthly_admin_fee: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    deposit_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(20), default="active")

    def to_dto(self):
        from tenancy_modules.lease.models import LeaseTerms

        return LeaseTerms(
            lease_id=self.lease_code,
            student_id=self.student_id,
            student_name=self.student_name,
            lease_start=self.start_date,
            lease_end=self.end_date,
            residence_id=self.residence_code,
            room=self.room,
            monthly_rent=self.monthly_rent,
            monthly_admin_fee=self.monthly_admin_fee or Decimal("0"),
            deposit_amount=self.deposit_amount or Decimal("0"),
        )

    @classmethod
    def from_dto(cls, lease, status: str = "active") -> "LeaseModel":
        return cls(
            lease_code=lease.lease_id,
            student_id=lease.student_id,
            student_name=lease.student_name,
            residence_code=lease.residence_id,
            room=lease.room,
            start_date=lease.lease_start,
            end_date=lease.lease_end,
            monthly_rent=lease.monthly_rent,
            monthly_admin_fee=lease.monthly_admin_fee,
            deposit_amount=lease.deposit_amount,
            status=status,
        )
