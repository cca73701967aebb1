"""
Lease sources (``tenancy_modules.lease.source``).

The accrual and allocation services read leases through ``LeaseSource`` so
the ledger does not depend on where tenancy data lives.  ``OrmLeaseSource``
reads the ``leases``/``residences`` tables; ``StaticLeaseSource`` serves an
in-memory list (imports, tests, one-off runs).
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from tenancy_kernel.domain.months import month_bounds
from tenancy_modules.lease.models import LeaseTerms
from tenancy_modules.lease.orm import LeaseModel, ResidenceModel


class LeaseSource(Protocol):
    def active_leases(self, year: int, month: int) -> list[LeaseTerms]:
        """Leases that cover at least one day of the month."""
        ...

    def lease_for_student(self, student_id: str) -> LeaseTerms | None:
        """The student's most recent lease."""
        ...

    def residence_exists(self, residence_id: str) -> bool:
        ...


class OrmLeaseSource:
    """Leases from the database, excluding cancelled ones."""

    def __init__(self, session: Session):
        self._session = session

    def active_leases(self, year: int, month: int) -> list[LeaseTerms]:
        first, last = month_bounds(year, month)
        stmt = (
            select(LeaseModel)
            .where(
                LeaseModel.status != "cancelled",
                LeaseModel.start_date <= last,
                or_(LeaseModel.end_date.is_(None), LeaseModel.end_date >= first),
            )
            .order_by(LeaseModel.student_id, LeaseModel.start_date)
        )
        leases = [m.to_dto() for m in self._session.scalars(stmt).all()]
        return [lease for lease in leases if lease.is_active_in(year, month)]

    def lease_for_student(self, student_id: str) -> LeaseTerms | None:
        model = self._session.scalars(
            select(LeaseModel)
            .where(LeaseModel.student_id == student_id, LeaseModel.status != "cancelled")
            .order_by(LeaseModel.start_date.desc())
            .limit(1)
        ).first()
        return model.to_dto() if model is not None else None

    def residence_exists(self, residence_id: str) -> bool:
        return (
            self._session.scalars(
                select(ResidenceModel.id).where(ResidenceModel.residence_code == residence_id)
            ).first()
            is not None
        )


class StaticLeaseSource:
    """Leases held in memory.

    With ``residences=None`` every non-empty residence id is accepted.
    """

    def __init__(self, leases: Iterable[LeaseTerms], residences: Iterable[str] | None = None):
        self._leases = list(leases)
        self._residences = None if residences is None else set(residences)

    def active_leases(self, year: int, month: int) -> list[LeaseTerms]:
        return sorted(
            (lease for lease in self._leases if lease.is_active_in(year, month)),
            key=lambda lease: (lease.student_id, lease.lease_start),
        )

    def lease_for_student(self, student_id: str) -> LeaseTerms | None:
        matches = [lease for lease in self._leases if lease.student_id == student_id]
        return max(matches, key=lambda lease: lease.lease_start) if matches else None

    def residence_exists(self, residence_id: str) -> bool:
        if self._residences is None:
            return bool(residence_id)
        return residence_id in self._residences
