"""
Lease domain models (``tenancy_modules.lease.models``).

Frozen dataclasses describing what the ledger needs to know about a
tenancy.  Leases are owned by the (excluded) student-management layer; the
ledger treats them as read-only facts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from tenancy_engines.obligations import days_occupied_in


@dataclass(frozen=True)
class Residence:
    residence_id: str
    name: str


@dataclass(frozen=True)
class LeaseTerms:
    """
    Rent-relevant facts of one student's lease.

    lease_end None means the lease is ongoing.  monthly_rent None means the
    rent was never captured; accrual skips such leases and reports them.
    """

    lease_id: str
    student_id: str
    student_name: str
    lease_start: date
    lease_end: date | None = None
    residence_id: str | None = None
    room: str | None = None
    monthly_rent: Decimal | None = None
    monthly_admin_fee: Decimal = Decimal("0")
    deposit_amount: Decimal = Decimal("0")

    def is_active_in(self, year: int, month: int) -> bool:
        if self.lease_end is not None and self.lease_end < self.lease_start:
            return False
        return days_occupied_in(self, year, month) > 0
